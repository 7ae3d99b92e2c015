"""
Schemas Module

Contains all Pydantic models for:
- Candidate records and their scores
- Per-run query context
- Stage statistics and pipeline results
- API requests and SSE streaming events
"""
from .candidate import Candidate, Venue, QualityBreakdown, SCORE_FIELDS, stable_id
from .context import CancellationToken, CompiledTerm, TargetBand, QueryContext
from .pipeline import (
    Stage,
    STAGE_ORDER,
    StageStatus,
    StageStatistics,
    PipelineCondition,
    ThresholdState,
    ThresholdStep,
    ThresholdOutcome,
    DiversityMetrics,
    PipelineResult,
)
from .events import StageEvent, ErrorEvent, CompleteEvent, STAGE_CONFIG
from .ranking import RankingRequest

__all__ = [
    # Candidates
    "Candidate",
    "Venue",
    "QualityBreakdown",
    "SCORE_FIELDS",
    "stable_id",
    # Context
    "CancellationToken",
    "CompiledTerm",
    "TargetBand",
    "QueryContext",
    # Results
    "Stage",
    "STAGE_ORDER",
    "StageStatus",
    "StageStatistics",
    "PipelineCondition",
    "ThresholdState",
    "ThresholdStep",
    "ThresholdOutcome",
    "DiversityMetrics",
    "PipelineResult",
    # Events
    "StageEvent",
    "ErrorEvent",
    "CompleteEvent",
    "STAGE_CONFIG",
    # API
    "RankingRequest",
]
