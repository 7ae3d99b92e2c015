"""
Progressive ranking pipeline.

Package Structure:
- pipeline.py: RankingPipeline / PipelineRun orchestration
- lexical.py: Term and field weighted recall scoring
- semantic.py: Embedding-based reranking of the lexical top-K
- cross_encoder.py: Optional FlashRank pair scorer for the reranker
- domain_filter.py: Domain and aspect constraints
- quality.py: Purpose-aware composite quality scoring
- threshold.py: Adaptive threshold search over a target band
- diversity.py: Diversity-aware sampling and coverage metrics
"""

# Main pipeline - primary public interface
from .pipeline import RankingPipeline, PipelineRun, create_ranking_pipeline

# Individual stages for advanced usage
from .lexical import LexicalScorer, coverage_multiplier, sort_by_lexical
from .semantic import SemanticReranker, RerankResult, SemanticTier
from .cross_encoder import FlashRankPairScorer
from .domain_filter import DomainAspectFilter, infer_aspects
from .quality import PurposeAwareQualityScorer, BatchScoringResult, QualityStats, compose_score
from .threshold import AdaptiveThresholdController
from .diversity import DiversitySampler, diversity_metrics

__all__ = [
    # Main pipeline
    "RankingPipeline",
    "PipelineRun",
    "create_ranking_pipeline",
    
    # Stages
    "LexicalScorer",
    "coverage_multiplier",
    "sort_by_lexical",
    "SemanticReranker",
    "RerankResult",
    "SemanticTier",
    "FlashRankPairScorer",
    "DomainAspectFilter",
    "infer_aspects",
    "PurposeAwareQualityScorer",
    "BatchScoringResult",
    "QualityStats",
    "compose_score",
    "AdaptiveThresholdController",
    "DiversitySampler",
    "diversity_metrics",
]
