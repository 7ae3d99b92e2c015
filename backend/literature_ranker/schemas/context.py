"""
Query Context

Immutable per-run context: the compiled query, target constraints,
research purpose, result-count band and the cancellation token.
"""
import re
import threading
from typing import FrozenSet, Iterable, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from literature_ranker.core.exceptions import InvalidInputError, PipelineCancelledError
from literature_ranker.core.purposes import (
    MAX_PAPERS,
    PurposeRegistry,
    ResearchPurpose,
    get_purpose_registry,
    resolve_purpose,
)
from literature_ranker.core.text import query_terms, tokenize


class CancellationToken:
    """Thread-safe cancellation flag shared between a caller and a run."""
    
    def __init__(self):
        self._event = threading.Event()
    
    def cancel(self) -> None:
        self._event.set()
    
    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
    
    def raise_if_cancelled(self, stage: str) -> None:
        if self._event.is_set():
            raise PipelineCancelledError(stage)


class CompiledTerm(BaseModel):
    """A normalized query term with its precompiled match pattern."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)
    
    text: str
    pattern: re.Pattern
    
    @classmethod
    def compile(cls, term: str) -> "CompiledTerm":
        return cls(text=term, pattern=re.compile(rf"(?<![a-z0-9]){re.escape(term)}(?![a-z0-9])"))
    
    def count(self, normalized_text: str) -> int:
        return len(self.pattern.findall(normalized_text))


class TargetBand(BaseModel):
    """Inclusive target range for the number of returned candidates."""
    model_config = ConfigDict(frozen=True)
    
    min: int = Field(ge=0, le=MAX_PAPERS)
    max: int = Field(ge=0, le=MAX_PAPERS)
    
    @model_validator(mode="after")
    def _check_order(self) -> "TargetBand":
        if self.min > self.max:
            raise ValueError(f"min ({self.min}) must not exceed max ({self.max})")
        return self
    
    def contains(self, count: int) -> bool:
        return self.min <= count <= self.max


class QueryContext(BaseModel):
    """Everything a pipeline run reads about the request. Never mutated."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)
    
    query: str
    terms: Tuple[CompiledTerm, ...] = ()
    phrase_pattern: Optional[re.Pattern] = None
    target_domains: FrozenSet[str] = frozenset()
    excluded_domains: FrozenSet[str] = frozenset()
    target_aspects: FrozenSet[str] = frozenset()
    purpose: ResearchPurpose
    band: TargetBand
    cancellation: Optional[CancellationToken] = None
    
    @classmethod
    def build(
        cls,
        query: str,
        purpose: Union[ResearchPurpose, str],
        band: Optional[Union[TargetBand, Tuple[int, int]]] = None,
        target_domains: Iterable[str] = (),
        target_aspects: Iterable[str] = (),
        excluded_domains: Iterable[str] = (),
        cancellation: Optional[CancellationToken] = None,
        registry: Optional[PurposeRegistry] = None,
    ) -> "QueryContext":
        """
        Compile a query context, rejecting malformed input.
        
        Args:
            query: Raw query string
            purpose: Research purpose (enum or its string value)
            band: (min, max) result count; defaults to the purpose's limits
            target_domains: Allowed domain tags (empty = any)
            target_aspects: Aspect tags every result must carry (empty = any)
            excluded_domains: Domain tags that always disqualify
            cancellation: Optional token checked between stages
            registry: Purpose table; the process-wide table by default
        
        Raises:
            InvalidInputError: empty query, unknown purpose or invalid band
        """
        if query is None or not str(query).strip():
            raise InvalidInputError("query must not be empty", field="query")
        
        resolved = resolve_purpose(purpose)
        registry = registry or get_purpose_registry()
        
        try:
            if band is None:
                limits = registry.get(resolved).limits
                band = TargetBand(min=limits.min, max=limits.max)
            elif not isinstance(band, TargetBand):
                low, high = band
                band = TargetBand(min=low, max=high)
        except (ValidationError, TypeError, ValueError) as e:
            raise InvalidInputError(str(e), field="band") from e
        
        query = str(query).strip()
        return cls(
            query=query,
            terms=tuple(CompiledTerm.compile(t) for t in query_terms(query)),
            phrase_pattern=_phrase_pattern(query),
            target_domains=_normalize_tags(target_domains),
            excluded_domains=_normalize_tags(excluded_domains),
            target_aspects=_normalize_tags(target_aspects),
            purpose=resolved,
            band=band,
            cancellation=cancellation,
        )
    
    @property
    def term_texts(self) -> Tuple[str, ...]:
        return tuple(t.text for t in self.terms)
    
    @property
    def is_cancelled(self) -> bool:
        return self.cancellation is not None and self.cancellation.cancelled
    
    def check_cancelled(self, stage: str) -> None:
        if self.is_cancelled:
            raise PipelineCancelledError(stage)


def _phrase_pattern(query: str) -> Optional[re.Pattern]:
    tokens = tokenize(query)
    if len(tokens) < 2:
        return None
    body = r"[\s\-]+".join(re.escape(t) for t in tokens)
    return re.compile(rf"(?<![a-z0-9]){body}(?![a-z0-9])")


def _normalize_tags(tags: Iterable[str]) -> FrozenSet[str]:
    return frozenset(t.strip().casefold() for t in (tags or ()) if t and t.strip())
