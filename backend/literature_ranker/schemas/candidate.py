"""
Candidate Schemas

One retrieved document flowing through the ranking pipeline, plus the
venue descriptor and the quality breakdown attached during scoring.
"""
import hashlib
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator

from literature_ranker.core.exceptions import ScoreOwnershipError
from literature_ranker.core.text import normalize_text, word_count as count_words

# Scoring fields written by the pipeline, each by exactly one stage
SCORE_FIELDS = (
    "lexical_score",
    "semantic_score",
    "quality_score",
    "quality_breakdown",
    "diversity_tag",
)


class Venue(BaseModel):
    """Journal or conference descriptor with optional prestige metrics."""
    name: str = ""
    impact_factor: Optional[float] = Field(default=None, ge=0)
    h_index: Optional[int] = Field(default=None, ge=0)
    quartile: Optional[Literal["Q1", "Q2", "Q3", "Q4"]] = None


class QualityBreakdown(BaseModel):
    """Independent sub-scores (each 0-100) behind a composite quality score."""
    model_config = ConfigDict(frozen=True)
    
    content_depth: float = Field(ge=0, le=100)
    citation_impact: float = Field(ge=0, le=100)
    venue_prestige: float = Field(ge=0, le=100)
    methodology: float = Field(ge=0, le=100)
    diversity_potential: float = Field(ge=0, le=100)
    full_text_bonus: float = Field(default=0.0, ge=0)


class Candidate(BaseModel):
    """
    A deduplicated document record.
    
    Input attributes are supplied by the collection stage. Scoring fields
    start unset and must be written through assign_score() so that a field
    set by one stage cannot be overwritten by another.
    """
    id: str = ""
    title: str = ""
    abstract: str = ""
    full_text: Optional[str] = None
    has_full_text: bool = False
    year: Optional[int] = Field(default=None, ge=0, le=3000)
    venue: Venue = Field(default_factory=Venue)
    citation_count: int = Field(default=0, ge=0)
    source: str = ""
    doi: str = ""
    pmid: str = ""
    keywords: List[str] = Field(default_factory=list)
    domains: List[str] = Field(default_factory=list)
    aspects: List[str] = Field(default_factory=list)
    # Overrides the word count estimated from the text fields
    word_count: Optional[int] = Field(default=None, ge=0)
    
    lexical_score: Optional[float] = None
    semantic_score: Optional[float] = None
    quality_score: Optional[float] = None
    quality_breakdown: Optional[QualityBreakdown] = None
    diversity_tag: Optional[str] = None
    
    _score_owners: Dict[str, str] = PrivateAttr(default_factory=dict)
    
    @model_validator(mode="before")
    @classmethod
    def _accept_venue_name(cls, data: Any) -> Any:
        # Collectors often hand over the journal as a bare string
        if isinstance(data, dict) and isinstance(data.get("venue"), str):
            data = {**data, "venue": {"name": data["venue"]}}
        return data
    
    @model_validator(mode="after")
    def _fill_derived(self) -> "Candidate":
        if not self.id:
            self.id = stable_id(self.title, doi=self.doi, pmid=self.pmid)
        if self.full_text and self.full_text.strip():
            self.has_full_text = True
        return self
    
    def assign_score(self, field: str, value: Any, stage: str) -> None:
        """
        Write a scoring field on behalf of a pipeline stage.
        
        Raises:
            ValueError: field is not a scoring field
            ScoreOwnershipError: another stage already wrote the field
        """
        if field not in SCORE_FIELDS:
            raise ValueError(f"{field} is not a scoring field")
        owner = self._score_owners.get(field)
        if owner is not None and owner != stage:
            raise ScoreOwnershipError(field, owner, stage)
        self._score_owners[field] = stage
        setattr(self, field, value)
    
    def clear_unowned_scores(self) -> List[str]:
        """Reset scoring fields no stage wrote, such as scores sent in with the record."""
        cleared = []
        for field in SCORE_FIELDS:
            if field not in self._score_owners and getattr(self, field) is not None:
                setattr(self, field, None)
                cleared.append(field)
        return cleared
    
    def score_owner(self, field: str) -> Optional[str]:
        return self._score_owners.get(field)
    
    @property
    def relevance_score(self) -> float:
        """Semantic score when one was computed, otherwise the lexical score."""
        if self.semantic_score is not None:
            return self.semantic_score
        return self.lexical_score or 0.0
    
    @property
    def estimated_word_count(self) -> int:
        if self.word_count is not None:
            return self.word_count
        if self.has_full_text and self.full_text:
            return count_words(self.full_text)
        return count_words(f"{self.title} {self.abstract}")
    
    def embedding_text(self, abstract_chars: int = 800) -> str:
        """Title plus the leading part of the abstract."""
        abstract = (self.abstract or "")[:abstract_chars]
        if abstract:
            return f"{self.title}. {abstract}".strip()
        return self.title.strip()
    
    def summary_text(self) -> str:
        """Lower-cased title and abstract used by keyword heuristics."""
        return f"{self.title} {self.abstract or ''}".lower()


def stable_id(title: str, doi: str = "", pmid: str = "") -> str:
    """
    Persistent identifier for a candidate.
    
    Prefers DOI, then PMID, and falls back to a hash of the normalized title.
    """
    if doi and doi.strip():
        return f"doi:{doi.strip().lower()}"
    if pmid and pmid.strip():
        return f"pmid:{pmid.strip()}"
    digest = hashlib.sha1(normalize_text(title).encode("utf-8")).hexdigest()
    return f"title:{digest[:16]}"
