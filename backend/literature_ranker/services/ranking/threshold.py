"""
Adaptive quality threshold.

Walks a descending threshold schedule until the number of survivors
falls inside the target band:

    initial -> evaluating -> converged | exhausted

- within the band: converged
- above the band: converged as well; a larger high-quality set is accepted
- below the band: try the next, lower threshold
- schedule used up: exhausted, returning the survivors of the lowest threshold

The search never raises a threshold above its starting value and takes at
most one step per scheduled threshold.
"""
from typing import List, Sequence, Tuple

from literature_ranker.core.logging import get_logger
from literature_ranker.core.purposes import ThresholdSchedule
from literature_ranker.schemas.candidate import Candidate
from literature_ranker.schemas.context import TargetBand
from literature_ranker.schemas.pipeline import Stage, ThresholdOutcome, ThresholdState, ThresholdStep

logger = get_logger(__name__)

REASON_WITHIN_BAND = "within_band"
REASON_ABOVE_BAND = "above_band"
REASON_EXHAUSTED = "schedule_exhausted"


class AdaptiveThresholdController:
    """State machine over one threshold schedule and one target band."""
    
    STAGE = Stage.THRESHOLD.value
    
    def __init__(self, schedule: ThresholdSchedule, band: TargetBand):
        self.schedule = schedule
        self.band = band
        self.state = ThresholdState.INITIAL
        self.steps: List[ThresholdStep] = []
    
    @classmethod
    def from_thresholds(cls, thresholds: Sequence[float], band: Tuple[int, int]) -> "AdaptiveThresholdController":
        low, high = band
        return cls(ThresholdSchedule(thresholds=tuple(thresholds)), TargetBand(min=low, max=high))
    
    def run(self, candidates: List[Candidate]) -> Tuple[List[Candidate], ThresholdOutcome]:
        """
        Search the schedule; candidates need quality_score set.
        
        Returns:
            (survivors in input order, outcome)
        """
        self.state = ThresholdState.EVALUATING
        self.steps = []
        survivors: List[Candidate] = []
        
        logger.info(
            f"ADAPTIVE THRESHOLD over {len(candidates)} candidates, "
            f"band [{self.band.min}, {self.band.max}], schedule {list(self.schedule.thresholds)}"
        )
        
        for threshold in self.schedule.thresholds:
            survivors = [c for c in candidates if (c.quality_score or 0.0) >= threshold]
            self.steps.append(ThresholdStep(threshold=threshold, survivors=len(survivors)))
            logger.debug(f"  threshold {threshold}: {len(survivors)} survive")
            
            if self.band.contains(len(survivors)):
                return survivors, self._finish(ThresholdState.CONVERGED, threshold, survivors, REASON_WITHIN_BAND)
            if len(survivors) > self.band.max:
                return survivors, self._finish(ThresholdState.CONVERGED, threshold, survivors, REASON_ABOVE_BAND)
        
        return survivors, self._finish(
            ThresholdState.EXHAUSTED, self.schedule.lowest, survivors, REASON_EXHAUSTED
        )
    
    def _finish(self, state: ThresholdState, threshold: float, survivors: List[Candidate], reason: str) -> ThresholdOutcome:
        self.state = state
        if state == ThresholdState.EXHAUSTED:
            logger.warning(
                f"Threshold schedule exhausted: {len(survivors)} candidates at {threshold}, "
                f"below minimum {self.band.min}"
            )
        else:
            logger.info(f"Threshold converged at {threshold} with {len(survivors)} candidates ({reason})")
        return ThresholdOutcome(
            state=state,
            threshold=threshold,
            survivors=len(survivors),
            steps=list(self.steps),
            reason=reason,
        )
