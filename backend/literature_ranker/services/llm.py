"""
LLM Client Management

Provides cached embedding clients to avoid recreating connections for
every call. Uses lru_cache for thread-safe singleton-like behavior.
"""
from functools import lru_cache
from typing import Optional

from langchain_openai import OpenAIEmbeddings

from literature_ranker.core.config import settings


@lru_cache(maxsize=2)
def get_embeddings(
    model: str = "text-embedding-3-small",
    dimensions: Optional[int] = None
) -> OpenAIEmbeddings:
    """
    Get a cached embeddings instance.
    
    Uses lru_cache to ensure the same instance is reused across calls.
    
    Args:
        model: OpenAI embedding model name
        dimensions: Requested output size (text-embedding-3 models only)
        
    Returns:
        Cached OpenAIEmbeddings instance
    """
    return OpenAIEmbeddings(
        model=model,
        dimensions=dimensions,
        api_key=settings.OPENAI_API_KEY
    )


def clear_llm_cache():
    """
    Clear the embeddings client cache.
    
    Useful for testing or when you need to force re-initialization.
    """
    get_embeddings.cache_clear()
