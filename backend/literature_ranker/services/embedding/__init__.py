"""
Embedding subsystem: encoders, the two-tier cache and the batch service.
"""
from .models import Embedding, cosine_similarity
from .encoders import TextEncoder, HashingEncoder, OpenAIEncoder, CallableEncoder, create_encoder
from .cache import EmbeddingCache, CacheStats
from .service import EmbeddingService, BatchEmbeddingResult, create_embedding_service

__all__ = [
    "Embedding",
    "cosine_similarity",
    "TextEncoder",
    "HashingEncoder",
    "OpenAIEncoder",
    "CallableEncoder",
    "create_encoder",
    "EmbeddingCache",
    "CacheStats",
    "EmbeddingService",
    "BatchEmbeddingResult",
    "create_embedding_service",
]
