"""
Diversity-aware sampling.

For purposes that need breadth of viewpoint, an over-sized set is cut
down by round-robin over the groups of one diversity dimension instead of
by pure rank. Candidates below the quality floor are never admitted, and
a set that already fits is passed through untouched.
"""
import math
from collections import Counter, OrderedDict, deque
from typing import Callable, Dict, List

from literature_ranker.core.logging import get_logger
from literature_ranker.core.purposes import DiversityDimension, PurposeProfile
from literature_ranker.schemas.candidate import Candidate
from literature_ranker.schemas.pipeline import DiversityMetrics, Stage

logger = get_logger(__name__)

UNSPECIFIED = "unspecified"
UNDERREPRESENTED_SHARE = 0.05
PERIOD_YEARS = 5

STANCE_CUES = (
    ("supportive", ("support", "advocate", "benefit", "promising")),
    ("critical", ("critique", "criticism", "challenge", "skeptic", "limitation")),
    ("neutral", ("neutral", "objective", "balanced")),
)


def stance_of(candidate: Candidate) -> str:
    text = candidate.summary_text()
    for stance, cues in STANCE_CUES:
        if any(cue in text for cue in cues):
            return stance
    return UNSPECIFIED


def subfield_of(candidate: Candidate) -> str:
    for domain in candidate.domains:
        if domain and domain.strip():
            return domain.strip().casefold()
    return UNSPECIFIED


def period_of(candidate: Candidate) -> str:
    if not candidate.year:
        return UNSPECIFIED
    start = candidate.year - candidate.year % PERIOD_YEARS
    return f"{start}-{start + PERIOD_YEARS - 1}"


def source_of(candidate: Candidate) -> str:
    return candidate.source.strip().casefold() or UNSPECIFIED


DIMENSION_EXTRACTORS: Dict[DiversityDimension, Callable[[Candidate], str]] = {
    DiversityDimension.STANCE: stance_of,
    DiversityDimension.SUBFIELD: subfield_of,
    DiversityDimension.PERIOD: period_of,
    DiversityDimension.SOURCE: source_of,
}


class DiversitySampler:
    """Round-robin selection across the groups of one dimension."""
    
    STAGE = Stage.DIVERSITY.value
    
    def __init__(self, dimension: DiversityDimension = DiversityDimension.STANCE, quality_floor: float = 0.0):
        self.dimension = DiversityDimension(dimension)
        self.quality_floor = quality_floor
        self._extract = DIMENSION_EXTRACTORS[self.dimension]
    
    @classmethod
    def for_profile(cls, profile: PurposeProfile) -> "DiversitySampler":
        return cls(profile.diversity.dimension, profile.diversity_floor)
    
    def tag(self, candidate: Candidate) -> str:
        value = self._extract(candidate)
        candidate.assign_score("diversity_tag", f"{self.dimension.value}:{value}", self.STAGE)
        return value
    
    def sample(self, candidates: List[Candidate], max_size: int) -> List[Candidate]:
        """
        Select at most `max_size` candidates favoring group coverage.
        
        Args:
            candidates: Ranked candidates, best first
            max_size: Upper end of the target band
            
        Returns:
            The selection in its original rank order
        """
        tags = [self.tag(c) for c in candidates]
        if len(candidates) <= max_size:
            return list(candidates)
        
        groups: "OrderedDict[str, deque]" = OrderedDict()
        below_floor = 0
        for rank, (candidate, tag) in enumerate(zip(candidates, tags)):
            if (candidate.quality_score or 0.0) < self.quality_floor:
                below_floor += 1
                continue
            groups.setdefault(tag, deque()).append(rank)
        
        logger.info(
            f"DIVERSITY SAMPLING {len(candidates)} -> {max_size} over {len(groups)} "
            f"{self.dimension.value} groups ({below_floor} below floor {self.quality_floor})"
        )
        
        selected: List[int] = []
        while len(selected) < max_size and groups:
            for tag in list(groups):
                selected.append(groups[tag].popleft())
                if not groups[tag]:
                    del groups[tag]
                if len(selected) >= max_size:
                    break
        
        selected.sort()
        return [candidates[rank] for rank in selected]


def diversity_metrics(
    candidates: List[Candidate],
    dimension: DiversityDimension = DiversityDimension.STANCE
) -> DiversityMetrics:
    """Group counts, normalized entropy, Gini coefficient and thin groups."""
    extract = DIMENSION_EXTRACTORS[DiversityDimension(dimension)]
    counts = Counter(extract(c) for c in candidates)
    total = sum(counts.values())
    metrics = DiversityMetrics(
        dimension=DiversityDimension(dimension).value,
        group_counts=dict(counts),
        unique_values=len(counts),
    )
    if total == 0:
        return metrics
    
    if len(counts) > 1:
        entropy = -sum((n / total) * math.log(n / total) for n in counts.values())
        metrics.entropy = round(entropy / math.log(len(counts)), 4)
    metrics.gini = round(_gini(list(counts.values())), 4)
    metrics.underrepresented = sorted(
        value for value, n in counts.items() if n / total < UNDERREPRESENTED_SHARE
    )
    return metrics


def _gini(values: List[int]) -> float:
    values = sorted(values)
    n = len(values)
    total = sum(values)
    if n == 0 or total == 0:
        return 0.0
    weighted = sum((2 * (i + 1) - n - 1) * v for i, v in enumerate(values))
    return weighted / (n * total)
