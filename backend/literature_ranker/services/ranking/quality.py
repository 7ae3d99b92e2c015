"""
Purpose-aware quality scoring.

Five independent sub-scores in [0, 100]:
- content depth from word count
- citation impact from citations per year of age
- venue prestige from impact factor, quartile or venue name
- methodology from design keywords across categories
- diversity potential from viewpoint and geographic cues

The composite is the purpose-weighted sum plus an additive bonus for
verified full text, clamped to [0, 100].
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from literature_ranker.core.logging import get_logger
from literature_ranker.core.purposes import (
    PurposeRegistry,
    QualityWeights,
    ResearchPurpose,
    get_purpose_registry,
)
from literature_ranker.schemas.candidate import Candidate, QualityBreakdown, Venue
from literature_ranker.schemas.pipeline import Stage

logger = get_logger(__name__)

# Word-count breakpoints and the score reached at each one
CONTENT_DEPTH_STEPS = (
    (6000, 100.0, None),
    (3000, 85.0, 15.0),
    (1500, 65.0, 20.0),
    (500, 40.0, 25.0),
    (200, 20.0, 20.0),
)

# Citations per year breakpoints
CITATION_STEPS = (
    (50.0, 100.0, None),
    (20.0, 80.0, 20.0),
    (10.0, 60.0, 20.0),
    (5.0, 40.0, 20.0),
    (2.0, 20.0, 20.0),
)

VENUE_ELITE = 90.0
VENUE_HIGH = 70.0
VENUE_GOOD = 50.0
VENUE_AVERAGE = 30.0
VENUE_LOW = 15.0
VENUE_UNKNOWN = 10.0

IMPACT_FACTOR_TIERS = ((20.0, VENUE_ELITE), (10.0, VENUE_HIGH), (5.0, VENUE_GOOD), (2.0, VENUE_AVERAGE), (1.0, VENUE_LOW))
QUARTILE_SCORES = {"Q1": VENUE_HIGH, "Q2": VENUE_GOOD, "Q3": VENUE_AVERAGE, "Q4": VENUE_LOW}
ELITE_VENUES = ("nature", "science", "cell", "lancet", "nejm", "jama", "bmj")
PREPRINT_VENUES = ("arxiv", "biorxiv", "medrxiv", "ssrn", "preprint")
ESTABLISHED_PUBLISHERS = ("plos", "frontiers", "mdpi", "springer")

METHODOLOGY_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "experimental": (
        "randomized", "controlled", "double-blind", "placebo",
        "experimental", "rct", "trial", "intervention",
    ),
    "quantitative": (
        "regression", "correlation", "anova", "statistical",
        "sample size", "p-value", "confidence interval", "hypothesis",
    ),
    "qualitative": (
        "interview", "focus group", "thematic analysis", "grounded theory",
        "phenomenological", "ethnographic", "case study", "narrative",
    ),
    "mixed": (
        "mixed method", "triangulation", "multi-method",
        "convergent design", "sequential design",
    ),
    "systematic": (
        "systematic review", "meta-analysis", "prisma",
        "inclusion criteria", "exclusion criteria", "search strategy",
    ),
}

VIEWPOINT_CUES = (
    "perspective", "viewpoint", "debate", "controversy", "contested",
    "alternative", "critical", "challenging", "opposing", "different",
    "multiple", "diverse", "various", "range of", "spectrum",
)
GEOGRAPHIC_CUES = (
    "global", "international", "cross-cultural", "comparative",
    "developing", "western", "eastern", "african", "asian", "european",
)


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return min(high, max(low, value))


def _piecewise(value: float, steps, floor: float) -> float:
    # steps run from the highest breakpoint down; each interpolates up to the one above
    upper = None
    for breakpoint, base, span in steps:
        if value >= breakpoint:
            if span is None:
                return base
            return base + (value - breakpoint) / (upper - breakpoint) * span
        upper = breakpoint
    lowest = steps[-1][0]
    return max(floor, value / lowest * steps[-1][1])


def content_depth_score(word_count: int) -> float:
    return _clamp(_piecewise(max(0, word_count), CONTENT_DEPTH_STEPS, 5.0))


def citation_impact_score(citations: int, year: Optional[int], current_year: int) -> float:
    age = max(1, current_year - (year or current_year))
    per_year = max(0, citations) / age
    return _clamp(_piecewise(per_year, CITATION_STEPS, 5.0))


def venue_prestige_score(venue: Venue, floor: float = 0.0) -> float:
    """Impact factor first, then quartile, then venue-name heuristics."""
    if venue.impact_factor is not None and np.isfinite(venue.impact_factor):
        score = VENUE_UNKNOWN
        for minimum, tier in IMPACT_FACTOR_TIERS:
            if venue.impact_factor >= minimum:
                score = tier
                break
    elif venue.quartile:
        score = QUARTILE_SCORES[venue.quartile]
    else:
        name = venue.name.lower()
        if any(v in name for v in ELITE_VENUES):
            score = VENUE_ELITE
        elif any(v in name for v in PREPRINT_VENUES):
            score = VENUE_UNKNOWN
        elif any(v in name for v in ESTABLISHED_PUBLISHERS):
            score = VENUE_GOOD
        else:
            score = VENUE_AVERAGE
    return _clamp(max(score, floor))


def methodology_score(text: str) -> float:
    text = text.lower()
    score = 0.0
    categories = 0
    for keywords in METHODOLOGY_KEYWORDS.values():
        matches = sum(1 for kw in keywords if kw in text)
        if matches:
            categories += 1
            score += min(20, matches * 10)
    if categories >= 3:
        score += 20
    elif categories >= 2:
        score += 10
    return _clamp(score)


def diversity_potential_score(text: str) -> float:
    text = text.lower()
    score = 50.0
    score += min(30, 8 * sum(1 for cue in VIEWPOINT_CUES if cue in text))
    score += min(20, 10 * sum(1 for cue in GEOGRAPHIC_CUES if cue in text))
    return _clamp(score)


def compose_score(breakdown: QualityBreakdown, weights: QualityWeights, full_text_bonus: float = 0.0) -> float:
    """
    Weighted sum of sub-scores plus the additive full-text bonus.
    
    Returns:
        Composite in [0, 100], rounded to 2 decimals
    """
    weighted = (
        breakdown.content_depth * weights.content
        + breakdown.citation_impact * weights.citation
        + breakdown.venue_prestige * weights.venue
        + breakdown.methodology * weights.methodology
        + breakdown.diversity_potential * weights.diversity
    )
    return round(_clamp(weighted + full_text_bonus), 2)


@dataclass
class QualityStats:
    count: int = 0
    mean: float = 0.0
    median: float = 0.0
    std: float = 0.0
    min: float = 0.0
    max: float = 0.0
    pass_rate: float = 0.0
    full_text_count: int = 0


@dataclass
class BatchScoringResult:
    kept: List[Candidate] = field(default_factory=list)
    rejected: List[Candidate] = field(default_factory=list)
    stats: QualityStats = field(default_factory=QualityStats)


class PurposeAwareQualityScorer:
    """Composite quality scoring with purpose-specific weights."""
    
    STAGE = Stage.QUALITY.value
    
    def __init__(self, registry: Optional[PurposeRegistry] = None, current_year: Optional[int] = None):
        self.registry = registry or get_purpose_registry()
        self.current_year = current_year or date.today().year
    
    def breakdown(self, candidate: Candidate, full_text_bonus: float = 0.0) -> QualityBreakdown:
        text = candidate.summary_text()
        return QualityBreakdown(
            content_depth=round(content_depth_score(candidate.estimated_word_count), 2),
            citation_impact=round(citation_impact_score(candidate.citation_count, candidate.year, self.current_year), 2),
            venue_prestige=round(venue_prestige_score(candidate.venue, self.registry.venue_floor), 2),
            methodology=methodology_score(text),
            diversity_potential=diversity_potential_score(text),
            full_text_bonus=full_text_bonus if candidate.has_full_text else 0.0,
        )
    
    def score(
        self,
        candidate: Candidate,
        purpose: Union[ResearchPurpose, str]
    ) -> Tuple[float, QualityBreakdown]:
        """Composite score and breakdown; does not write to the candidate."""
        profile = self.registry.get(purpose)
        breakdown = self.breakdown(candidate, profile.full_text_bonus)
        return compose_score(breakdown, profile.weights, breakdown.full_text_bonus), breakdown
    
    def score_batch(
        self,
        candidates: List[Candidate],
        purpose: Union[ResearchPurpose, str],
        floor: Optional[float] = None,
    ) -> BatchScoringResult:
        """
        Score and partition a batch in one pass.
        
        Args:
            candidates: Candidates to score (written in place)
            purpose: Selects weights and full-text bonus, looked up once
            floor: Minimum composite to keep; the lowest scheduled threshold by default
        """
        profile = self.registry.get(purpose)
        weights = profile.weights
        bonus = profile.full_text_bonus
        floor = profile.thresholds.lowest if floor is None else floor
        
        result = BatchScoringResult()
        if not candidates:
            return result
        
        logger.info(f"QUALITY SCORING {len(candidates)} CANDIDATES for {profile.purpose.value}")
        
        scores = np.empty(len(candidates), dtype=np.float64)
        full_text_count = 0
        for i, candidate in enumerate(candidates):
            breakdown = self.breakdown(candidate, bonus)
            composite = compose_score(breakdown, weights, breakdown.full_text_bonus)
            candidate.assign_score("quality_breakdown", breakdown, self.STAGE)
            candidate.assign_score("quality_score", composite, self.STAGE)
            scores[i] = composite
            if candidate.has_full_text:
                full_text_count += 1
            (result.kept if composite >= floor else result.rejected).append(candidate)
        
        result.stats = QualityStats(
            count=len(candidates),
            mean=round(float(scores.mean()), 2),
            median=round(float(np.median(scores)), 2),
            std=round(float(scores.std()), 2),
            min=round(float(scores.min()), 2),
            max=round(float(scores.max()), 2),
            pass_rate=round(len(result.kept) / len(candidates), 4),
            full_text_count=full_text_count,
        )
        logger.info(
            f"Quality: kept {len(result.kept)}/{len(candidates)} at >= {floor} "
            f"(mean {result.stats.mean}, median {result.stats.median})"
        )
        return result
