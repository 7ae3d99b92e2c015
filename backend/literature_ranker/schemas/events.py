"""
SSE Event Schemas

Pydantic models for Server-Sent Events emitted while a ranking run
streams its stage statistics.
"""
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .pipeline import Stage, StageStatistics


class StageEvent(BaseModel):
    """One stage finished."""
    type: Literal["stage"] = "stage"
    stage: Stage
    label: str
    statistics: StageStatistics
    progress_percent: int = Field(ge=0, le=100, description="Overall progress percentage")


class ErrorEvent(BaseModel):
    """Error event when the run fails."""
    type: Literal["error"] = "error"
    message: str
    stage: Optional[Stage] = None


class CompleteEvent(BaseModel):
    """Completion event with the final count."""
    type: Literal["complete"] = "complete"
    returned: int


STAGE_CONFIG = {
    Stage.LEXICAL: {"label": "Scoring lexical relevance", "progress": 15},
    Stage.SEMANTIC: {"label": "Reranking by semantic similarity", "progress": 45},
    Stage.DOMAIN_ASPECT: {"label": "Filtering by domain and aspect", "progress": 55},
    Stage.QUALITY: {"label": "Scoring quality", "progress": 70},
    Stage.THRESHOLD: {"label": "Adapting quality threshold", "progress": 85},
    Stage.DIVERSITY: {"label": "Sampling for diversity", "progress": 100},
}
