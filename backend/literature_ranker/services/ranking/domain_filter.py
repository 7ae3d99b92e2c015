"""
Domain and aspect filtering.

A candidate is removed when:
- any of its domain tags is explicitly excluded
- it declares domain tags, a target domain set is given, and none match
- a required aspect set is given and the candidate does not cover it

Empty target sets impose no constraint. Tags compare case-insensitively.
Candidates that declare no aspect tags can have them inferred from their
title and abstract.
"""
from collections import Counter
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from literature_ranker.core.logging import get_logger
from literature_ranker.schemas.candidate import Candidate
from literature_ranker.schemas.pipeline import Stage

logger = get_logger(__name__)

# Aspect tag -> cue words looked up in title and abstract
ASPECT_RULES: Dict[str, Tuple[str, ...]] = {
    "humans": ("human", "patient", "participant", "adults", "children", "people", "respondent"),
    "animals": ("mice", "mouse", "rats", "animal", "primate", "zebrafish", "drosophila"),
    "review": ("systematic review", "meta-analysis", "literature review", "scoping review", "overview of"),
    "empirical": ("we measured", "we observed", "data were", "results show", "experiment", "cohort"),
    "qualitative": ("interview", "focus group", "thematic analysis", "ethnograph", "grounded theory"),
    "quantitative": ("regression", "statistical", "survey data", "correlation", "randomized"),
}

REASON_EXCLUDED = "excluded_domain"
REASON_DOMAIN = "domain_mismatch"
REASON_ASPECT = "missing_aspect"


def infer_aspects(candidate: Candidate) -> FrozenSet[str]:
    text = candidate.summary_text()
    return frozenset(
        aspect for aspect, cues in ASPECT_RULES.items()
        if any(cue in text for cue in cues)
    )


class DomainAspectFilter:
    """Removes candidates outside the target domains or missing required aspects."""
    
    STAGE = Stage.DOMAIN_ASPECT.value
    
    def __init__(self, infer_missing_aspects: bool = True):
        self.infer_missing_aspects = infer_missing_aspects
    
    def filter(
        self,
        candidates: List[Candidate],
        target_domains: Iterable[str],
        target_aspects: Iterable[str],
        excluded_domains: Iterable[str] = (),
    ) -> List[Candidate]:
        """Return the kept candidates in their input order."""
        targets = _fold(target_domains)
        aspects = _fold(target_aspects)
        excluded = _fold(excluded_domains)
        
        if not (targets or aspects or excluded):
            return list(candidates)
        
        kept = []
        reasons: Counter = Counter()
        for candidate in candidates:
            reason = self.rejection_reason(candidate, targets, aspects, excluded)
            if reason is None:
                kept.append(candidate)
            else:
                reasons[reason] += 1
        
        if reasons:
            summary = ", ".join(f"{k}={v}" for k, v in sorted(reasons.items()))
            logger.info(f"Domain/aspect filter removed {sum(reasons.values())}/{len(candidates)} ({summary})")
        return kept
    
    def rejection_reason(
        self,
        candidate: Candidate,
        targets: FrozenSet[str],
        aspects: FrozenSet[str],
        excluded: FrozenSet[str] = frozenset(),
    ) -> Optional[str]:
        """Why a candidate would be removed, or None if it is kept."""
        domains = _fold(candidate.domains)
        if excluded and domains & excluded:
            return REASON_EXCLUDED
        if targets and domains and not domains & targets:
            return REASON_DOMAIN
        if aspects and not aspects <= self._aspects_of(candidate):
            return REASON_ASPECT
        return None
    
    def _aspects_of(self, candidate: Candidate) -> FrozenSet[str]:
        declared = _fold(candidate.aspects)
        if declared or not self.infer_missing_aspects:
            return declared
        return infer_aspects(candidate)


def _fold(tags: Iterable[str]) -> FrozenSet[str]:
    return frozenset(t.strip().casefold() for t in (tags or ()) if t and t.strip())
