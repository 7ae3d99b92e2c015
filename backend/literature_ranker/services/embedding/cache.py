"""
Embedding Cache

Two tiers keyed by a hash of (whitespace-collapsed text, model id). The
key text is exactly what the encoder receives, so case is significant:
- a bounded in-memory LRU with a time-to-live, safe for concurrent use
- an optional Redis tier, read-through; when Redis is unavailable every
  lookup there is a miss and writes are dropped

Generation is deterministic, so concurrent writes to the same key are
idempotent: whichever thread wins stores the same vector.
"""
import hashlib
import threading
import time
from collections import OrderedDict
from datetime import timedelta
from typing import Callable, Optional

import redis
from pydantic import BaseModel

from literature_ranker.core.exceptions import CacheConnectionError
from literature_ranker.core.logging import get_logger
from literature_ranker.core.text import collapse_whitespace
from .models import Embedding

logger = get_logger(__name__)


class CacheStats(BaseModel):
    size: int
    max_entries: int
    hits: int
    misses: int
    evictions: int
    expirations: int
    persistent_hits: int
    persistent_connected: bool
    
    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0


class EmbeddingCache:
    """LRU + TTL embedding cache with an optional Redis tier."""
    
    DEFAULT_TTL = timedelta(hours=24)
    KEY_PREFIX = "embedding:"
    
    def __init__(
        self,
        max_entries: int = 10_000,
        ttl: Optional[timedelta] = None,
        persistent: bool = False,
        redis_host: str = "localhost",
        redis_port: int = 6379,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self._max_entries = max_entries
        self._ttl = ttl or self.DEFAULT_TTL
        self._clock = clock
        self._entries: "OrderedDict[str, tuple]" = OrderedDict()
        self._lock = threading.Lock()
        
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0
        self._persistent_hits = 0
        
        self._client: Optional[redis.Redis] = None
        self._connected = False
        if persistent:
            try:
                self._connect(redis_host, redis_port)
            except CacheConnectionError as e:
                logger.warning(f"{e}; embedding cache is memory-only")
    
    def _connect(self, host: str, port: int):
        """
        Connect the Redis tier.
        
        Raises:
            CacheConnectionError: Redis did not answer the ping
        """
        try:
            self._client = redis.Redis(
                host=host,
                port=port,
                db=0,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2
            )
            self._client.ping()
            self._connected = True
            logger.info(f"Embedding cache using Redis at {host}:{port}")
        except (redis.ConnectionError, redis.TimeoutError) as e:
            self._client = None
            self._connected = False
            raise CacheConnectionError(host, port, str(e)) from e
    
    @staticmethod
    def make_key(text: str, model_id: str) -> str:
        """Content hash of the whitespace-collapsed text and the generating model."""
        payload = f"{model_id}\x00{collapse_whitespace(text)}".encode("utf-8")
        return hashlib.sha256(payload).hexdigest()
    
    def get(self, key: str) -> Optional[Embedding]:
        """
        Look up an embedding.
        
        Returns:
            The cached Embedding, or None on a miss in both tiers
        """
        now = self._clock()
        with self._lock:
            item = self._entries.get(key)
            if item is not None:
                stored_at, embedding = item
                if now - stored_at <= self._ttl.total_seconds():
                    self._entries.move_to_end(key)
                    self._hits += 1
                    return embedding
                del self._entries[key]
                self._expirations += 1
        
        embedding = self._get_persistent(key)
        with self._lock:
            if embedding is None:
                self._misses += 1
                return None
            self._hits += 1
            self._persistent_hits += 1
        self._store(key, embedding)
        return embedding
    
    def set(self, key: str, embedding: Embedding) -> None:
        """Store in memory and, best-effort, in Redis."""
        self._store(key, embedding)
        self._set_persistent(key, embedding)
    
    def _store(self, key: str, embedding: Embedding) -> None:
        now = self._clock()
        with self._lock:
            self._entries[key] = (now, embedding)
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)
                self._evictions += 1
    
    def _get_persistent(self, key: str) -> Optional[Embedding]:
        if not (self._connected and self._client):
            return None
        try:
            data = self._client.get(self.KEY_PREFIX + key)
            if data:
                return Embedding.from_json(data)
            return None
        except (redis.RedisError, ValueError, KeyError) as e:
            logger.warning(f"Embedding cache read from Redis failed, treating as miss: {e}")
            return None
    
    def _set_persistent(self, key: str, embedding: Embedding) -> None:
        if not (self._connected and self._client):
            return
        try:
            self._client.setex(
                self.KEY_PREFIX + key,
                int(self._ttl.total_seconds()),
                embedding.to_json()
            )
        except redis.RedisError as e:
            logger.warning(f"Embedding cache write to Redis failed: {e}")
    
    def evict(self, key: str) -> bool:
        """Drop one key from the memory tier."""
        with self._lock:
            return self._entries.pop(key, None) is not None
    
    def clear(self) -> None:
        """Empty the memory tier and reset counters."""
        with self._lock:
            self._entries.clear()
            self._hits = self._misses = self._evictions = 0
            self._expirations = self._persistent_hits = 0
    
    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                max_entries=self._max_entries,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                expirations=self._expirations,
                persistent_hits=self._persistent_hits,
                persistent_connected=self._connected,
            )
    
    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
    
    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries
    
    @property
    def is_connected(self) -> bool:
        """Check if the Redis tier is connected."""
        return self._connected
