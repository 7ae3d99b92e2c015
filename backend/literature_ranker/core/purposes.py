"""
Research Purpose Configuration

Per-purpose scoring weights, threshold schedules, full-text bonuses,
diversity requirements and paper limits. The table is exhaustive over
ResearchPurpose and validated once when it is loaded; any problem is
raised as ConfigurationInvalidError before a request is served.
"""
import json
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from literature_ranker.core.exceptions import ConfigurationInvalidError, InvalidInputError
from literature_ranker.core.logging import get_logger

logger = get_logger(__name__)

WEIGHT_SUM_TOLERANCE = 0.001
MAX_PAPERS = 10_000


class ResearchPurpose(str, Enum):
    """Downstream research use-case that selects a scoring profile."""
    Q_METHODOLOGY = "q_methodology"
    QUALITATIVE_ANALYSIS = "qualitative_analysis"
    LITERATURE_SYNTHESIS = "literature_synthesis"
    HYPOTHESIS_GENERATION = "hypothesis_generation"
    SURVEY_CONSTRUCTION = "survey_construction"


class DiversityDimension(str, Enum):
    """Partition used by the diversity sampler."""
    STANCE = "stance"
    SUBFIELD = "subfield"
    PERIOD = "period"
    SOURCE = "source"


class QualityWeights(BaseModel):
    """Normalized sub-score weights; must sum to 1.0."""
    model_config = ConfigDict(frozen=True)
    
    content: float = Field(ge=0.0, le=1.0)
    citation: float = Field(default=0.0, ge=0.0, le=1.0)
    venue: float = Field(default=0.0, ge=0.0, le=1.0)
    methodology: float = Field(default=0.0, ge=0.0, le=1.0)
    diversity: float = Field(default=0.0, ge=0.0, le=1.0)
    
    @model_validator(mode="after")
    def _check_sum(self) -> "QualityWeights":
        total = self.total
        if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            raise ValueError(f"weights must sum to 1.0 (got {total:.4f})")
        return self
    
    @property
    def total(self) -> float:
        return self.content + self.citation + self.venue + self.methodology + self.diversity


class ThresholdSchedule(BaseModel):
    """Starting threshold followed by strictly lower fallbacks."""
    model_config = ConfigDict(frozen=True)
    
    thresholds: Tuple[float, ...] = Field(min_length=1)
    
    @model_validator(mode="after")
    def _check_order(self) -> "ThresholdSchedule":
        for value in self.thresholds:
            if not 0 <= value <= 100:
                raise ValueError(f"threshold {value} outside [0, 100]")
        for higher, lower in zip(self.thresholds, self.thresholds[1:]):
            if lower >= higher:
                raise ValueError(f"thresholds must be strictly descending ({higher} then {lower})")
        return self
    
    @property
    def initial(self) -> float:
        return self.thresholds[0]
    
    @property
    def lowest(self) -> float:
        return self.thresholds[-1]
    
    def __len__(self) -> int:
        return len(self.thresholds)


class DiversityRequirement(BaseModel):
    """Whether breadth of viewpoint is sampled for, and along which dimension."""
    model_config = ConfigDict(frozen=True)
    
    required: bool = False
    dimension: DiversityDimension = DiversityDimension.STANCE
    # None means "use the lowest threshold of the schedule"
    quality_floor: Optional[float] = Field(default=None, ge=0.0, le=100.0)


class PaperLimits(BaseModel):
    """Default target band when the caller does not supply one."""
    model_config = ConfigDict(frozen=True)
    
    min: int = Field(ge=0, le=MAX_PAPERS)
    target: int = Field(ge=0, le=MAX_PAPERS)
    max: int = Field(ge=0, le=MAX_PAPERS)
    
    @model_validator(mode="after")
    def _check_order(self) -> "PaperLimits":
        if not self.min <= self.target <= self.max:
            raise ValueError(f"expected min <= target <= max (got {self.min}/{self.target}/{self.max})")
        return self


class PurposeProfile(BaseModel):
    """Everything the quality, threshold and diversity stages need for one purpose."""
    model_config = ConfigDict(frozen=True)
    
    purpose: ResearchPurpose
    description: str = ""
    weights: QualityWeights
    thresholds: ThresholdSchedule
    full_text_bonus: float = Field(default=0.0, ge=0.0, le=50.0)
    diversity: DiversityRequirement = Field(default_factory=DiversityRequirement)
    limits: PaperLimits
    
    @property
    def diversity_floor(self) -> float:
        if self.diversity.quality_floor is not None:
            return self.diversity.quality_floor
        return self.thresholds.lowest


class PurposeRegistry(BaseModel):
    """Validated, immutable purpose table."""
    model_config = ConfigDict(frozen=True)
    
    # Minimum venue-prestige sub-score applied for every purpose
    venue_floor: float = Field(default=10.0, ge=0.0, le=100.0)
    profiles: Dict[ResearchPurpose, PurposeProfile]
    
    @model_validator(mode="after")
    def _check_exhaustive(self) -> "PurposeRegistry":
        missing = [p.value for p in ResearchPurpose if p not in self.profiles]
        if missing:
            raise ValueError(f"missing profiles for: {', '.join(missing)}")
        for key, profile in self.profiles.items():
            if profile.purpose != key:
                raise ValueError(f"profile keyed '{key.value}' declares purpose '{profile.purpose.value}'")
        return self
    
    def get(self, purpose: Union[ResearchPurpose, str]) -> PurposeProfile:
        """Look up a profile, rejecting unknown purpose names."""
        return self.profiles[resolve_purpose(purpose)]
    
    @classmethod
    def load(cls, data: dict) -> "PurposeRegistry":
        """Validate a raw table, failing with ConfigurationInvalidError."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationInvalidError("purpose table", _summarize(e)) from e
    
    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "PurposeRegistry":
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationInvalidError(str(path), str(e)) from e
        registry = cls.load(data)
        logger.info(f"Loaded purpose table from {path}")
        return registry
    
    @classmethod
    def default(cls) -> "PurposeRegistry":
        return cls.load(DEFAULT_PURPOSE_TABLE)


def resolve_purpose(purpose: Union[ResearchPurpose, str]) -> ResearchPurpose:
    if isinstance(purpose, ResearchPurpose):
        return purpose
    try:
        return ResearchPurpose(str(purpose).strip().lower())
    except ValueError:
        valid = ", ".join(p.value for p in ResearchPurpose)
        raise InvalidInputError(f"unknown purpose '{purpose}' (expected one of: {valid})", field="purpose")


def _summarize(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"])
        parts.append(f"{location}: {item['msg']}" if location else item["msg"])
    return "; ".join(parts)


DEFAULT_PURPOSE_TABLE = {
    "venue_floor": 10.0,
    "profiles": {
        "q_methodology": {
            "purpose": "q_methodology",
            "description": "Breadth of viewpoint over depth; needs many papers for statement generation",
            "weights": {"content": 0.5, "citation": 0.2, "venue": 0.0, "methodology": 0.0, "diversity": 0.3},
            "thresholds": {"thresholds": [40, 35, 30, 25, 20]},
            "full_text_bonus": 5,
            "diversity": {"required": True, "dimension": "stance"},
            "limits": {"min": 500, "target": 600, "max": 800},
        },
        "qualitative_analysis": {
            "purpose": "qualitative_analysis",
            "description": "Rich content for coding until saturation",
            "weights": {"content": 0.4, "citation": 0.2, "venue": 0.2, "methodology": 0.2, "diversity": 0.0},
            "thresholds": {"thresholds": [60, 55, 50, 45, 40]},
            "full_text_bonus": 15,
            "limits": {"min": 50, "target": 100, "max": 200},
        },
        "literature_synthesis": {
            "purpose": "literature_synthesis",
            "description": "Comprehensive, high-quality coverage across subfields",
            "weights": {"content": 0.3, "citation": 0.25, "venue": 0.25, "methodology": 0.2, "diversity": 0.0},
            "thresholds": {"thresholds": [70, 65, 60, 55, 50]},
            "full_text_bonus": 20,
            "diversity": {"required": True, "dimension": "subfield"},
            "limits": {"min": 400, "target": 450, "max": 500},
        },
        "hypothesis_generation": {
            "purpose": "hypothesis_generation",
            "description": "Theoretical depth for mechanism and gap finding",
            "weights": {"content": 0.4, "citation": 0.2, "venue": 0.2, "methodology": 0.2, "diversity": 0.0},
            "thresholds": {"thresholds": [60, 55, 50, 45, 40]},
            "full_text_bonus": 15,
            "limits": {"min": 100, "target": 150, "max": 300},
        },
        "survey_construction": {
            "purpose": "survey_construction",
            "description": "Validated instruments and construct definitions",
            "weights": {"content": 0.35, "citation": 0.2, "venue": 0.25, "methodology": 0.2, "diversity": 0.0},
            "thresholds": {"thresholds": [60, 55, 50, 45, 40]},
            "full_text_bonus": 15,
            "limits": {"min": 100, "target": 150, "max": 200},
        },
    },
}


@lru_cache(maxsize=4)
def get_purpose_registry(path: Optional[Union[str, Path]] = None) -> PurposeRegistry:
    """
    Load the purpose table once per process.
    
    Args:
        path: Optional JSON file replacing the built-in table
        
    Returns:
        Validated PurposeRegistry
    """
    if path:
        return PurposeRegistry.from_json_file(path)
    return PurposeRegistry.default()
