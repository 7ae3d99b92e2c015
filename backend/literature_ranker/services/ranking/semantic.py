"""
Semantic reranking.

Embeds the lexical top-K and orders it by cosine similarity to the query
embedding. Work is done in progressive tiers (immediate, refined,
complete) with a cancellation check between tiers.

When the recall subset is empty, the query embedding is missing, or too
large a share of the subset cannot be embedded, the stage reports itself
unavailable and writes no semantic scores; later stages then rank by
lexical score alone.
"""
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from literature_ranker.core.logging import get_logger
from literature_ranker.schemas.candidate import Candidate
from literature_ranker.schemas.context import CancellationToken
from literature_ranker.schemas.pipeline import Stage
from literature_ranker.services.embedding import Embedding, EmbeddingService, cosine_similarity
from .lexical import sort_by_lexical

logger = get_logger(__name__)

DEFAULT_TOP_K = 1200
DEFAULT_MAX_FAILURE_RATIO = 0.5
ABSTRACT_CHARS = 800
# Sizes of the immediate and refined tiers; the complete tier takes the rest
TIER_SIZES = (50, 150)
TIER_NAMES = ("immediate", "refined", "complete")

# (query, candidate text) -> relevance in [0, 1]
PairScorer = Callable[[str, str], float]


@dataclass
class SemanticTier:
    name: str
    size: int
    scored: int
    failed: int
    elapsed_ms: float


@dataclass
class RerankResult:
    """Reranked recall subset, or the lexical subset when unavailable."""
    candidates: List[Candidate]
    available: bool
    scored: int = 0
    failed_ids: List[str] = field(default_factory=list)
    reason: Optional[str] = None
    tiers: List[SemanticTier] = field(default_factory=list)


class SemanticReranker:
    """Cosine reranking of the lexical recall subset."""
    
    STAGE = Stage.SEMANTIC.value
    
    def __init__(
        self,
        embedding_service: EmbeddingService,
        top_k: int = DEFAULT_TOP_K,
        max_failure_ratio: float = DEFAULT_MAX_FAILURE_RATIO,
        pair_scorer: Optional[PairScorer] = None,
        pair_weight: float = 0.5,
        tier_sizes: Tuple[int, ...] = TIER_SIZES,
    ):
        if top_k < 1:
            raise ValueError("top_k must be positive")
        if not 0.0 <= pair_weight <= 1.0:
            raise ValueError("pair_weight must be within [0, 1]")
        self.embedding_service = embedding_service
        self.top_k = top_k
        self.max_failure_ratio = max_failure_ratio
        self.pair_scorer = pair_scorer
        self.pair_weight = pair_weight
        self.tier_sizes = tier_sizes
    
    def recall_subset(self, candidates: List[Candidate]) -> List[Candidate]:
        """Top-K candidates by lexical score."""
        return sort_by_lexical(candidates)[:self.top_k]
    
    def rerank(
        self,
        candidates: List[Candidate],
        query_embedding: Optional[Embedding],
        query_text: str = "",
        cancellation: Optional[CancellationToken] = None,
    ) -> RerankResult:
        """
        Rerank the recall subset of `candidates`.
        
        Candidates whose embedding failed stay in the subset, after every
        scored candidate, in lexical order.
        
        Raises:
            PipelineCancelledError: cancelled between tiers
        """
        subset = self.recall_subset(candidates)
        if not subset:
            return RerankResult(candidates=[], available=False, reason="empty recall subset")
        if query_embedding is None:
            return RerankResult(candidates=subset, available=False, reason="query embedding unavailable")
        
        logger.info(f"SEMANTIC RERANKING top {len(subset)} of {len(candidates)} candidates")
        
        keys = _unique_keys(subset)
        id_by_key = {key: candidate.id for key, candidate in zip(keys, subset)}
        scores: Dict[str, float] = {}
        failed: List[str] = []
        tiers: List[SemanticTier] = []
        
        for name, chunk in self._tiers(list(zip(keys, subset))):
            if cancellation is not None:
                cancellation.raise_if_cancelled(f"{self.STAGE}:{name}")
            started = time.perf_counter()
            chunk_scores, chunk_failed = self._score_chunk(chunk, query_embedding, query_text)
            scores.update(chunk_scores)
            failed.extend(chunk_failed)
            tiers.append(SemanticTier(
                name=name,
                size=len(chunk),
                scored=len(chunk_scores),
                failed=len(chunk_failed),
                elapsed_ms=(time.perf_counter() - started) * 1000,
            ))
            logger.debug(f"  tier {name}: {len(chunk_scores)} scored, {len(chunk_failed)} failed")
        
        failure_ratio = len(failed) / len(subset)
        if failure_ratio > self.max_failure_ratio:
            logger.warning(
                f"Semantic reranking unavailable: {len(failed)}/{len(subset)} embeddings failed"
            )
            return RerankResult(
                candidates=subset,
                available=False,
                failed_ids=[id_by_key[k] for k in failed],
                reason=f"{failure_ratio:.0%} of embeddings failed",
                tiers=tiers,
            )
        
        scored, unscored = [], []
        for key, candidate in zip(keys, subset):
            if key in scores:
                candidate.assign_score("semantic_score", scores[key], self.STAGE)
                scored.append(candidate)
            else:
                unscored.append(candidate)
        
        # Ties fall back to lexical order, which `scored` already has
        scored.sort(key=lambda c: c.semantic_score, reverse=True)
        
        for candidate in scored[:5]:
            logger.debug(f"  [{candidate.semantic_score:.3f}] {candidate.title[:55]}...")
        
        return RerankResult(
            candidates=scored + unscored,
            available=True,
            scored=len(scored),
            failed_ids=[id_by_key[k] for k in failed],
            tiers=tiers,
        )
    
    def _tiers(self, items: list):
        start = 0
        for name, size in zip(TIER_NAMES, self.tier_sizes):
            if start >= len(items):
                return
            yield name, items[start:start + size]
            start += size
        if start < len(items):
            yield TIER_NAMES[-1], items[start:]
    
    def _score_chunk(
        self,
        chunk: List[Tuple[str, Candidate]],
        query_embedding: Embedding,
        query_text: str,
    ) -> Tuple[Dict[str, float], List[str]]:
        texts = {key: candidate.embedding_text(ABSTRACT_CHARS) for key, candidate in chunk}
        batch = self.embedding_service.embed_many(texts)
        
        scores = {}
        for key, embedding in batch.embeddings.items():
            similarity = cosine_similarity(query_embedding, embedding)
            scores[key] = round(self._blend(similarity, query_text, texts[key]), 6)
        return scores, list(batch.failures)
    
    def _blend(self, similarity: float, query_text: str, text: str) -> float:
        if self.pair_scorer is None or not query_text:
            return similarity
        try:
            pair = float(self.pair_scorer(query_text, text))
        except Exception as e:
            logger.debug(f"Pair scorer failed, using cosine only: {e}")
            return similarity
        pair = min(1.0, max(0.0, pair))
        return (1.0 - self.pair_weight) * similarity + self.pair_weight * pair


def _unique_keys(candidates: List[Candidate]) -> List[str]:
    # Results are merged back by id; repeated ids get a positional suffix
    seen = set()
    keys = []
    for position, candidate in enumerate(candidates):
        key = candidate.id
        if key in seen:
            key = f"{candidate.id}#{position}"
        seen.add(key)
        keys.append(key)
    return keys