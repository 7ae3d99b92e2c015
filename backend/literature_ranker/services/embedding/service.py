"""
Embedding Service

Cached, deterministic, concurrency-bounded text embedding.

Every generation runs on one thread pool owned by the service, so
max_workers caps model concurrency across all callers. An item's timeout
starts when a worker picks it up; a timed-out item is retried once while
a worker is free, then generated in-process, and only if that also fails
is it reported as EmbeddingFailedError. Workers that time out keep their
slot until they return; when all of them are stuck, queued items are
generated in-process instead of waiting. Failures are returned per item
so callers can exclude a candidate instead of failing the whole batch.
"""
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, List, Mapping, Optional, Tuple

from literature_ranker.core.config import Settings
from literature_ranker.core.exceptions import (
    ConfigurationInvalidError,
    EmbeddingFailedError,
    InvalidInputError,
)
from literature_ranker.core.logging import get_logger
from literature_ranker.core.text import collapse_whitespace
from .cache import CacheStats, EmbeddingCache
from .encoders import TextEncoder, create_encoder
from .models import Embedding

logger = get_logger(__name__)

DEFAULT_MAX_WORKERS = 4
DEFAULT_TIMEOUT_SECONDS = 30.0
POLL_SECONDS = 0.05

STALLED_REASON = "no free embedding worker"


@dataclass
class BatchEmbeddingResult:
    """Embeddings and failures of one batch, both keyed by caller id."""
    embeddings: Dict[str, Embedding] = field(default_factory=dict)
    failures: Dict[str, EmbeddingFailedError] = field(default_factory=dict)
    cache_hits: int = 0
    
    @property
    def failure_ratio(self) -> float:
        total = len(self.embeddings) + len(self.failures)
        return len(self.failures) / total if total else 0.0


@dataclass
class _PoolRound:
    generated: Dict[str, Embedding] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    # Cancelled before any worker picked them up
    unstarted: List[str] = field(default_factory=list)


class EmbeddingService:
    """Turns text into Embeddings through a cache and a shared bounded worker pool."""
    
    def __init__(
        self,
        encoder: TextEncoder,
        cache: Optional[EmbeddingCache] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._encoder = encoder
        self._cache = cache if cache is not None else EmbeddingCache()
        self._max_workers = max_workers
        self._timeout = timeout_seconds
        self._poll = min(POLL_SECONDS, timeout_seconds / 4)
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="embedding")
        self._stalled = 0
        self._stalled_lock = threading.Lock()
        self._closed = False
    
    @property
    def model_id(self) -> str:
        return self._encoder.model_id
    
    @property
    def dimensions(self) -> int:
        return self._encoder.dimensions
    
    @property
    def cache(self) -> EmbeddingCache:
        return self._cache
    
    @property
    def stalled_workers(self) -> int:
        """Workers still busy with an item that already timed out."""
        with self._stalled_lock:
            return self._stalled
    
    def embed(self, text: str) -> Embedding:
        """
        Embed one text, consulting the cache first.
        
        Raises:
            InvalidInputError: text is empty or whitespace-only
            EmbeddingFailedError: generation failed after retry and fallback
        """
        text = _require_text(text)
        result = self.embed_many({"text": text})
        if result.failures:
            raise result.failures["text"]
        return result.embeddings["text"]
    
    def embed_batch(self, texts: List[str]) -> List[Embedding]:
        """
        Embed many texts, preserving input order.
        
        Raises:
            InvalidInputError: any text is empty
            EmbeddingFailedError: an item failed after retry and fallback
        """
        for text in texts:
            _require_text(text)
        keyed = {str(i): text for i, text in enumerate(texts)}
        result = self.embed_many(keyed)
        if result.failures:
            raise next(iter(result.failures.values()))
        return [result.embeddings[str(i)] for i in range(len(texts))]
    
    def embed_many(self, items: Mapping[str, str]) -> BatchEmbeddingResult:
        """
        Embed a mapping of id -> text; results are merged back by id.
        
        Empty texts are reported as per-item failures instead of raising.
        """
        if self._closed:
            raise RuntimeError("embedding service is closed")
        
        result = BatchEmbeddingResult()
        # Identical texts share one generation
        pending: Dict[str, Tuple[str, List[str]]] = {}
        
        for item_id, text in items.items():
            text = collapse_whitespace(str(text)) if text is not None else ""
            if not text:
                result.failures[item_id] = EmbeddingFailedError(item_id, "empty text")
                continue
            key = self._cache.make_key(text, self.model_id)
            cached = self._cache.get(key)
            if cached is not None:
                result.embeddings[item_id] = cached
                result.cache_hits += 1
            elif key in pending:
                pending[key][1].append(item_id)
            else:
                pending[key] = (text, [item_id])
        
        if pending:
            generated, errors = self._generate_pending(pending)
            for key, (text, item_ids) in pending.items():
                if key in generated:
                    self._cache.set(key, generated[key])
                    for item_id in item_ids:
                        result.embeddings[item_id] = generated[key]
                else:
                    for item_id in item_ids:
                        result.failures[item_id] = EmbeddingFailedError(item_id, errors[key])
        
        if result.failures:
            logger.warning(
                f"Embedded {len(result.embeddings)}/{len(items)} texts, "
                f"{len(result.failures)} failed"
            )
        else:
            logger.debug(f"Embedded {len(items)} texts ({result.cache_hits} from cache)")
        return result
    
    def _generate_pending(
        self,
        pending: Dict[str, Tuple[str, List[str]]]
    ) -> Tuple[Dict[str, Embedding], Dict[str, str]]:
        texts = {key: text for key, (text, _) in pending.items()}
        
        first = self._run_in_pool(texts)
        generated, errors = first.generated, first.errors
        unstarted = list(first.unstarted)
        if errors:
            if self.stalled_workers < self._max_workers:
                logger.debug(f"Retrying {len(errors)} embeddings in the worker pool")
                retry = self._run_in_pool({k: texts[k] for k in errors})
                generated.update(retry.generated)
                errors = retry.errors
                unstarted.extend(retry.unstarted)
            else:
                logger.warning(f"All {self._max_workers} embedding workers are stalled, skipping the pool retry")
        for key in unstarted:
            errors.setdefault(key, STALLED_REASON)
        
        # Last resort: generate in the calling thread
        final_errors = {}
        for key, reason in errors.items():
            try:
                generated[key] = self._generate(texts[key])
                logger.debug(f"In-process fallback succeeded after: {reason}")
            except Exception as e:
                final_errors[key] = f"{reason}; in-process fallback: {e}"
        return generated, final_errors
    
    def _run_in_pool(self, texts: Dict[str, str]) -> _PoolRound:
        """Submit one round to the shared pool and wait for it."""
        started_at: Dict[str, float] = {}
        futures = {
            self._pool.submit(self._generate_in_worker, key, text, started_at): key
            for key, text in texts.items()
        }
        outcome = _PoolRound()
        waiting = set(futures)
        
        while waiting:
            done, waiting = wait(waiting, timeout=self._poll, return_when=FIRST_COMPLETED)
            for future in done:
                key = futures[future]
                if future.cancelled():
                    outcome.unstarted.append(key)
                    continue
                error = future.exception()
                if error is None:
                    outcome.generated[key] = future.result()
                else:
                    outcome.errors[key] = str(error) or type(error).__name__
            
            now = time.monotonic()
            for future in list(waiting):
                key = futures[future]
                started = started_at.get(key)
                if started is not None and now - started > self._timeout:
                    waiting.discard(future)
                    outcome.errors[key] = f"timed out after {self._timeout}s"
                    self._mark_stalled(future)
            
            if waiting and self.stalled_workers >= self._max_workers:
                for future in list(waiting):
                    if future.cancel():
                        waiting.discard(future)
                        outcome.unstarted.append(futures[future])
        return outcome
    
    def _generate_in_worker(self, key: str, text: str, started_at: Dict[str, float]) -> Embedding:
        started_at[key] = time.monotonic()
        return self._generate(text)
    
    def _mark_stalled(self, future: Future) -> None:
        # The worker keeps its slot until the encoder returns
        with self._stalled_lock:
            self._stalled += 1
        future.add_done_callback(self._release_stalled)
    
    def _release_stalled(self, future: Future) -> None:
        with self._stalled_lock:
            self._stalled -= 1
    
    def _generate(self, text: str) -> Embedding:
        vector = self._encoder.encode(text)
        return Embedding.from_vector(vector, self.model_id, self.dimensions)
    
    def cache_stats(self) -> CacheStats:
        return self._cache.stats()
    
    def close(self) -> None:
        """Stop the worker pool; queued generations are cancelled."""
        if self._closed:
            return
        self._closed = True
        self._pool.shutdown(wait=False, cancel_futures=True)
        logger.info("Embedding service closed")


def _require_text(text: str) -> str:
    if text is None or not str(text).strip():
        raise InvalidInputError("text must not be empty", field="text")
    return str(text)


def create_embedding_service(settings: Settings) -> EmbeddingService:
    """
    Build the service described by settings.
    
    Raises:
        ConfigurationInvalidError: the openai provider is selected without a key
    """
    if settings.EMBEDDING_PROVIDER == "openai" and not settings.OPENAI_API_KEY:
        raise ConfigurationInvalidError("embedding", "OPENAI_API_KEY is required for the openai provider")
    
    encoder = create_encoder(
        settings.EMBEDDING_PROVIDER,
        model=settings.EMBEDDING_MODEL,
        dimensions=settings.EMBEDDING_DIMENSIONS,
    )
    cache = EmbeddingCache(
        max_entries=settings.embedding_cache_max_entries,
        ttl=timedelta(hours=settings.embedding_cache_ttl_hours),
        persistent=settings.embedding_persistent_cache,
        redis_host=settings.REDIS_HOST,
        redis_port=settings.REDIS_PORT,
    )
    logger.info(f"Embedding service: {encoder.model_id} ({encoder.dimensions} dims)")
    return EmbeddingService(
        encoder,
        cache=cache,
        max_workers=settings.embedding_max_workers,
        timeout_seconds=settings.embedding_timeout_seconds,
    )
