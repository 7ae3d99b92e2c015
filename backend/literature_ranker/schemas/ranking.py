"""
Ranking API Schemas

Request model for the HTTP ranking endpoints.
"""
from typing import List, Optional

from pydantic import BaseModel, Field

from literature_ranker.core.purposes import ResearchPurpose
from .candidate import Candidate


class RankingRequest(BaseModel):
    """A deduplicated candidate pool plus the query to rank it for."""
    query: str = Field(min_length=1, description="Research question or search query")
    purpose: ResearchPurpose = Field(default=ResearchPurpose.QUALITATIVE_ANALYSIS)
    candidates: List[Candidate] = Field(description="Deduplicated candidate records")
    min_results: Optional[int] = Field(default=None, ge=0, le=10_000, description="Lower end of the target band")
    max_results: Optional[int] = Field(default=None, ge=0, le=10_000, description="Upper end of the target band")
    target_domains: List[str] = Field(default_factory=list)
    target_aspects: List[str] = Field(default_factory=list)
    excluded_domains: List[str] = Field(default_factory=list)
