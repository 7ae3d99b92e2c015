"""
Ranking pipeline orchestration.

Runs the stages in order over one candidate pool:
1. Lexical recall scoring (full pool)
2. Semantic reranking (lexical top-K)
3. Domain and aspect filtering
4. Purpose-aware quality scoring
5. Adaptive threshold search
6. Diversity sampling (purpose-conditional)

RankingPipeline.start() returns a PipelineRun, an iterator yielding
(stage_name, StageStatistics) as each stage finishes; cancellation is
checked before every stage. An unexpected error inside a stage is logged
and the stage's input passes through unchanged. The result never holds
more candidates than the context's band maximum.
"""
import time
from typing import Callable, Iterator, List, Optional, Tuple

from pydantic import ValidationError

from literature_ranker.core.config import Settings
from literature_ranker.core.exceptions import InvalidInputError, PipelineCancelledError
from literature_ranker.core.logging import get_logger, stage_context
from literature_ranker.core.purposes import PurposeProfile, PurposeRegistry, get_purpose_registry
from literature_ranker.schemas.candidate import Candidate
from literature_ranker.schemas.context import QueryContext
from literature_ranker.schemas.pipeline import (
    PipelineCondition,
    PipelineResult,
    Stage,
    StageStatistics,
    StageStatus,
    ThresholdOutcome,
    ThresholdState,
)
from literature_ranker.services.embedding import EmbeddingService
from .diversity import DiversitySampler, diversity_metrics
from .domain_filter import DomainAspectFilter
from .cross_encoder import FlashRankPairScorer
from .lexical import LexicalScorer, sort_by_lexical
from .quality import PurposeAwareQualityScorer
from .semantic import SemanticReranker
from .threshold import AdaptiveThresholdController

logger = get_logger(__name__)

# Stage callables return (output, status, detail)
StageOutcome = Tuple[List[Candidate], StageStatus, Optional[str]]


class RankingPipeline:
    """Stateless across runs; every run gets its own PipelineRun."""
    
    def __init__(
        self,
        embedding_service: EmbeddingService,
        registry: Optional[PurposeRegistry] = None,
        lexical: Optional[LexicalScorer] = None,
        reranker: Optional[SemanticReranker] = None,
        domain_filter: Optional[DomainAspectFilter] = None,
        quality: Optional[PurposeAwareQualityScorer] = None,
    ):
        self.embedding_service = embedding_service
        self.registry = registry or get_purpose_registry()
        self.lexical = lexical or LexicalScorer()
        self.reranker = reranker or SemanticReranker(embedding_service)
        self.domain_filter = domain_filter or DomainAspectFilter()
        self.quality = quality or PurposeAwareQualityScorer(self.registry)
    
    def start(self, candidates: Optional[List[Candidate]], context: QueryContext) -> "PipelineRun":
        """
        Validate the input and return a lazy run.
        
        Raises:
            InvalidInputError: candidates is None, or context/candidates are malformed
        """
        if candidates is None:
            raise InvalidInputError("candidate list is required", field="candidates")
        if not isinstance(context, QueryContext):
            raise InvalidInputError("a QueryContext is required", field="context")
        
        pool = []
        for item in candidates:
            if isinstance(item, Candidate):
                pool.append(item)
                continue
            try:
                pool.append(Candidate.model_validate(item))
            except ValidationError as e:
                raise InvalidInputError(str(e), field="candidates") from e
        
        carried = sum(1 for c in pool if c.clear_unowned_scores())
        if carried:
            logger.debug(f"Dropped input-supplied scores on {carried} candidates")
        
        return PipelineRun(self, pool, context, self.registry.get(context.purpose))
    
    def run(self, candidates: Optional[List[Candidate]], context: QueryContext) -> PipelineResult:
        """Run every stage and return the final result."""
        run = self.start(candidates, context)
        for _ in run:
            pass
        return run.result


class PipelineRun:
    """
    One execution of the pipeline.
    
    Iterating yields (stage_name, StageStatistics) after each stage;
    `result` is available once iteration is complete.
    """
    
    def __init__(self, pipeline: RankingPipeline, candidates: List[Candidate], context: QueryContext, profile: PurposeProfile):
        self._pipeline = pipeline
        self._candidates = candidates
        self._context = context
        self._profile = profile
        self._result: Optional[PipelineResult] = None
        self._stats: List[StageStatistics] = []
        self._degraded: List[Stage] = []
        self._conditions: List[PipelineCondition] = []
        self._threshold: Optional[ThresholdOutcome] = None
        self._semantic_available = False
        self._steps = self._execute()
    
    def __iter__(self) -> Iterator[Tuple[str, StageStatistics]]:
        return self
    
    def __next__(self) -> Tuple[str, StageStatistics]:
        return next(self._steps)
    
    @property
    def finished(self) -> bool:
        return self._result is not None
    
    @property
    def result(self) -> PipelineResult:
        if self._result is None:
            raise RuntimeError("pipeline run has not finished; iterate it first")
        return self._result
    
    @property
    def stats(self) -> List[StageStatistics]:
        return list(self._stats)
    
    def _execute(self) -> Iterator[Tuple[str, StageStatistics]]:
        started = time.perf_counter()
        ctx = self._context
        logger.info(
            f"RANKING {len(self._candidates)} CANDIDATES for '{ctx.query[:60]}' "
            f"(purpose={ctx.purpose.value}, band=[{ctx.band.min}, {ctx.band.max}])"
        )
        
        stages: List[Tuple[Stage, Callable[[List[Candidate]], StageOutcome]]] = [
            (Stage.LEXICAL, self._lexical),
            (Stage.SEMANTIC, self._semantic),
            (Stage.DOMAIN_ASPECT, self._domain_aspect),
            (Stage.QUALITY, self._quality),
            (Stage.THRESHOLD, self._apply_threshold),
            (Stage.DIVERSITY, self._diversity),
        ]
        
        items = list(self._candidates)
        for stage, fn in stages:
            items, stats = self._run_stage(stage, fn, items)
            yield stage.value, stats
        
        final = self._rank(items)[:ctx.band.max]
        self._result = PipelineResult(
            candidates=final,
            stats=list(self._stats),
            degraded_stages=list(self._degraded),
            conditions=list(self._conditions),
            threshold=self._threshold,
            diversity=diversity_metrics(final, self._profile.diversity.dimension),
            elapsed_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        logger.info(
            f"Ranking complete: {len(self._candidates)} -> {len(final)} candidates "
            f"in {self._result.elapsed_ms:.0f}ms"
            + (f", degraded: {[s.value for s in self._degraded]}" if self._degraded else "")
        )
    
    def _run_stage(
        self,
        stage: Stage,
        fn: Callable[[List[Candidate]], StageOutcome],
        items: List[Candidate],
    ) -> Tuple[List[Candidate], StageStatistics]:
        self._context.check_cancelled(stage.value)
        started = time.perf_counter()
        
        if not items:
            output, status, detail = [], StageStatus.SKIPPED, "no candidates"
        else:
            with stage_context(stage.value):
                try:
                    output, status, detail = fn(items)
                except PipelineCancelledError:
                    raise
                except Exception as e:
                    logger.exception(f"Stage '{stage.value}' failed, passing {len(items)} candidates through")
                    output, status, detail = list(items), StageStatus.FAILED, f"{type(e).__name__}: {e}"
        
        if status in (StageStatus.DEGRADED, StageStatus.FAILED):
            self._degraded.append(stage)
            if PipelineCondition.STAGE_DEGRADED not in self._conditions:
                self._conditions.append(PipelineCondition.STAGE_DEGRADED)
        
        stats = StageStatistics(
            stage=stage,
            input_count=len(items),
            output_count=len(output),
            elapsed_ms=round((time.perf_counter() - started) * 1000, 3),
            status=status,
            detail=detail,
        )
        self._stats.append(stats)
        logger.debug(f"  {stage.value}: {stats.input_count} -> {stats.output_count} ({status.value})")
        return output, stats
    
    def _lexical(self, items: List[Candidate]) -> StageOutcome:
        self._pipeline.lexical.score(items, self._context)
        if not self._context.terms:
            return items, StageStatus.OK, "no usable query terms"
        return items, StageStatus.OK, f"terms: {', '.join(self._context.term_texts)}"
    
    def _semantic(self, items: List[Candidate]) -> StageOutcome:
        try:
            query_embedding = self._pipeline.embedding_service.embed(self._context.query)
        except Exception as e:
            logger.warning(f"Query embedding failed, falling back to lexical ranking: {e}")
            return sort_by_lexical(items), StageStatus.DEGRADED, f"query embedding failed: {e}"
        
        result = self._pipeline.reranker.rerank(
            items,
            query_embedding,
            query_text=self._context.query,
            cancellation=self._context.cancellation,
        )
        if not result.available:
            logger.warning(f"Semantic reranking unavailable ({result.reason}), using lexical scores")
            return sort_by_lexical(items), StageStatus.DEGRADED, result.reason
        
        self._semantic_available = True
        detail = f"{result.scored} scored"
        if result.failed_ids:
            detail += f", {len(result.failed_ids)} without embedding"
        return result.candidates, StageStatus.OK, detail
    
    def _domain_aspect(self, items: List[Candidate]) -> StageOutcome:
        ctx = self._context
        kept = self._pipeline.domain_filter.filter(
            items, ctx.target_domains, ctx.target_aspects, ctx.excluded_domains
        )
        return kept, StageStatus.OK, None
    
    def _quality(self, items: List[Candidate]) -> StageOutcome:
        batch = self._pipeline.quality.score_batch(items, self._profile.purpose)
        stats = batch.stats
        detail = f"mean {stats.mean}, median {stats.median}, pass rate {stats.pass_rate:.0%}"
        return batch.kept, StageStatus.OK, detail
    
    def _apply_threshold(self, items: List[Candidate]) -> StageOutcome:
        if all(c.quality_score is None for c in items):
            return items, StageStatus.SKIPPED, "no quality scores"
        
        controller = AdaptiveThresholdController(self._profile.thresholds, self._context.band)
        survivors, outcome = controller.run(items)
        self._threshold = outcome
        if outcome.state == ThresholdState.EXHAUSTED:
            self._conditions.append(PipelineCondition.THRESHOLD_EXHAUSTED)
        return self._rank(survivors), StageStatus.OK, f"{outcome.state.value} at {outcome.threshold} ({outcome.reason})"
    
    def _diversity(self, items: List[Candidate]) -> StageOutcome:
        requirement = self._profile.diversity
        if not requirement.required:
            return items, StageStatus.SKIPPED, "not required for purpose"
        
        sampler = DiversitySampler.for_profile(self._profile)
        selected = sampler.sample(items, self._context.band.max)
        return selected, StageStatus.OK, f"{requirement.dimension.value} over {len(items)} candidates"
    
    def _rank(self, items: List[Candidate]) -> List[Candidate]:
        """Semantic order when reranking ran, lexical order otherwise."""
        if self._semantic_available:
            return sorted(
                items,
                key=lambda c: (c.semantic_score is not None, c.semantic_score or 0.0, c.lexical_score or 0.0),
                reverse=True,
            )
        return sort_by_lexical(items)


def create_ranking_pipeline(settings: Settings, embedding_service: EmbeddingService) -> RankingPipeline:
    """Pipeline wired from settings and the shared embedding service."""
    registry = get_purpose_registry(settings.PURPOSE_CONFIG_FILE)
    pair_scorer = None
    if settings.semantic_cross_encoder:
        pair_scorer = FlashRankPairScorer(settings.cross_encoder_model)
    reranker = SemanticReranker(
        embedding_service,
        top_k=settings.SEMANTIC_TOP_K,
        max_failure_ratio=settings.semantic_max_failure_ratio,
        pair_scorer=pair_scorer,
        pair_weight=settings.cross_encoder_weight,
    )
    return RankingPipeline(embedding_service, registry=registry, reranker=reranker)
