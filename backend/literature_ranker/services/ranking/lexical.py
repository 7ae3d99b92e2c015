"""
Lexical recall scoring.

Cheap term/field-weighted relevance over the full candidate pool:
- per term and field: weight * (1 + ln(tf)), tf capped
- a phrase bonus when the whole query appears verbatim in a field
- a coverage multiplier over the SET of distinct matched terms
- a small recency bonus for recent papers that matched at all

Matching is one precompiled regex scan per term and field, so cost is
O(terms x text length).
"""
import math
from datetime import date
from typing import Dict, List, Optional, Set

from literature_ranker.core.logging import get_logger
from literature_ranker.core.text import normalize_text
from literature_ranker.schemas.candidate import Candidate
from literature_ranker.schemas.context import QueryContext
from literature_ranker.schemas.pipeline import Stage

logger = get_logger(__name__)

FIELD_WEIGHTS: Dict[str, float] = {
    "title": 3.0,
    "keywords": 2.0,
    "abstract": 1.0,
    "full_text": 0.5,
    "venue": 0.25,
}

PHRASE_BONUS = 5.0
TERM_FREQUENCY_CAP = 20
FULL_TEXT_CHARS = 20_000
RECENCY_YEARS = 3
RECENCY_BONUS = 1.0

COVERAGE_BASE = 0.5
COVERAGE_SPAN = 0.7


def coverage_multiplier(matched_terms: int, total_terms: int) -> float:
    """0.5 with no coverage, rising linearly to 1.2 at full coverage."""
    if total_terms <= 0:
        return 0.0
    ratio = min(matched_terms, total_terms) / total_terms
    return COVERAGE_BASE + COVERAGE_SPAN * ratio


class LexicalScorer:
    """Writes lexical_score on every candidate of the pool."""
    
    STAGE = Stage.LEXICAL.value
    
    def __init__(
        self,
        field_weights: Optional[Dict[str, float]] = None,
        phrase_bonus: float = PHRASE_BONUS,
        current_year: Optional[int] = None,
    ):
        self.field_weights = dict(field_weights or FIELD_WEIGHTS)
        self.phrase_bonus = phrase_bonus
        self.current_year = current_year or date.today().year
    
    def score(self, candidates: List[Candidate], context: Optional[QueryContext]) -> List[Candidate]:
        """
        Score every candidate in place; input order is preserved.
        
        A context without usable terms scores everything 0.
        """
        if not candidates:
            return []
        
        if context is None or not context.terms:
            logger.info(f"No usable query terms, {len(candidates)} candidates scored 0")
            for candidate in candidates:
                candidate.assign_score("lexical_score", 0.0, self.STAGE)
            return candidates
        
        logger.info(f"LEXICAL SCORING {len(candidates)} CANDIDATES for terms {list(context.term_texts)}")
        matched_any = 0
        for candidate in candidates:
            value = self.score_one(candidate, context)
            candidate.assign_score("lexical_score", value, self.STAGE)
            if value > 0:
                matched_any += 1
        
        logger.debug(f"{matched_any}/{len(candidates)} candidates matched at least one term")
        return candidates
    
    def score_one(self, candidate: Candidate, context: QueryContext) -> float:
        fields = self._fields(candidate)
        total = 0.0
        matched: Set[str] = set()
        
        for name, text in fields.items():
            weight = self.field_weights.get(name, 0.0)
            if weight <= 0:
                continue
            for term in context.terms:
                tf = term.count(text)
                if tf == 0:
                    continue
                matched.add(term.text)
                total += weight * (1.0 + math.log(min(tf, TERM_FREQUENCY_CAP)))
            if context.phrase_pattern is not None and context.phrase_pattern.search(text):
                total += self.phrase_bonus * weight
        
        if not matched:
            return 0.0
        
        total *= coverage_multiplier(len(matched), len(context.terms))
        if candidate.year and self.current_year - candidate.year < RECENCY_YEARS:
            total += RECENCY_BONUS
        return round(total, 4)
    
    def _fields(self, candidate: Candidate) -> Dict[str, str]:
        # Missing fields are skipped rather than treated as errors
        fields = {}
        if candidate.title:
            fields["title"] = normalize_text(candidate.title)
        if candidate.keywords:
            fields["keywords"] = normalize_text(" ; ".join(candidate.keywords))
        if candidate.abstract:
            fields["abstract"] = normalize_text(candidate.abstract)
        if candidate.full_text:
            fields["full_text"] = normalize_text(candidate.full_text[:FULL_TEXT_CHARS])
        if candidate.venue.name:
            fields["venue"] = normalize_text(candidate.venue.name)
        return fields


def sort_by_lexical(candidates: List[Candidate]) -> List[Candidate]:
    """Stable sort, best lexical score first."""
    return sorted(candidates, key=lambda c: c.lexical_score or 0.0, reverse=True)
