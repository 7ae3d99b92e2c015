"""
Pipeline Result Schemas

Stage statistics, threshold outcome, diversity metrics and the final
result returned by the orchestrator.
"""
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .candidate import Candidate


class Stage(str, Enum):
    """Pipeline stages in execution order."""
    LEXICAL = "lexical"
    SEMANTIC = "semantic"
    DOMAIN_ASPECT = "domain_aspect"
    QUALITY = "quality"
    THRESHOLD = "threshold"
    DIVERSITY = "diversity"


STAGE_ORDER = tuple(Stage)


class StageStatus(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"
    FAILED = "failed"
    SKIPPED = "skipped"


class StageStatistics(BaseModel):
    """Read-only record appended after each stage."""
    model_config = ConfigDict(frozen=True)
    
    stage: Stage
    input_count: int = Field(ge=0)
    output_count: int = Field(ge=0)
    elapsed_ms: float = Field(ge=0)
    status: StageStatus = StageStatus.OK
    detail: Optional[str] = None


class PipelineCondition(str, Enum):
    """Reported, non-fatal conditions of a run."""
    STAGE_DEGRADED = "stage_degraded"
    THRESHOLD_EXHAUSTED = "threshold_exhausted"


class ThresholdState(str, Enum):
    INITIAL = "initial"
    EVALUATING = "evaluating"
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"


class ThresholdStep(BaseModel):
    model_config = ConfigDict(frozen=True)
    
    threshold: float
    survivors: int


class ThresholdOutcome(BaseModel):
    """Where the adaptive threshold search stopped and why."""
    model_config = ConfigDict(frozen=True)
    
    state: ThresholdState
    threshold: Optional[float] = None
    survivors: int = 0
    steps: List[ThresholdStep] = Field(default_factory=list)
    reason: str = ""


class DiversityMetrics(BaseModel):
    """Coverage of a result set along one diversity dimension."""
    dimension: str
    group_counts: Dict[str, int] = Field(default_factory=dict)
    unique_values: int = 0
    # Shannon entropy normalized to [0, 1]
    entropy: float = 0.0
    # 0 = evenly spread over the observed groups
    gini: float = 0.0
    underrepresented: List[str] = Field(default_factory=list)


class PipelineResult(BaseModel):
    """Bounded, ordered result set plus run observability."""
    candidates: List[Candidate] = Field(default_factory=list)
    stats: List[StageStatistics] = Field(default_factory=list)
    degraded_stages: List[Stage] = Field(default_factory=list)
    conditions: List[PipelineCondition] = Field(default_factory=list)
    threshold: Optional[ThresholdOutcome] = None
    diversity: Optional[DiversityMetrics] = None
    elapsed_ms: float = 0.0
    
    def stage_stats(self, stage: Stage) -> Optional[StageStatistics]:
        for record in self.stats:
            if record.stage == stage:
                return record
        return None
