"""
FastAPI Dependencies

Dependency injection for settings and the long-lived services.
The embedding service owns the only cross-request state (its cache), so
it is built once and shared.
"""
from functools import lru_cache

from literature_ranker.core.config import Settings
from literature_ranker.core.purposes import PurposeRegistry, get_purpose_registry
from literature_ranker.services.embedding import EmbeddingService, create_embedding_service
from literature_ranker.services.ranking import RankingPipeline, create_ranking_pipeline


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings.
    
    Uses lru_cache to ensure settings are only loaded once.
    Can be overridden in tests using app.dependency_overrides.
    
    Example test override:
        def get_settings_override():
            return Settings(semantic_top_k=100)
        
        app.dependency_overrides[get_settings] = get_settings_override
    """
    return Settings()


@lru_cache()
def get_embedding_service() -> EmbeddingService:
    """
    Get the shared embedding service.
    
    Uses lru_cache so every request hits the same embedding cache.
    Can be overridden in tests with a service around a fake encoder.
    
    Example test override:
        encoder = CallableEncoder(lambda text: [1.0, 0.0], "fake", 2)
        app.dependency_overrides[get_embedding_service] = lambda: EmbeddingService(encoder)
    """
    return create_embedding_service(get_settings())


@lru_cache()
def get_ranking_pipeline() -> RankingPipeline:
    """
    Get the ranking pipeline.
    
    The pipeline keeps no per-run state, so one instance serves all requests.
    """
    return create_ranking_pipeline(get_settings(), get_embedding_service())


def get_purpose_table() -> PurposeRegistry:
    """
    Get the validated purpose table named by settings.
    
    Raises:
        ConfigurationInvalidError: the configured table is unreadable or invalid
    """
    return get_purpose_registry(get_settings().PURPOSE_CONFIG_FILE)


def close_services() -> None:
    """Release the shared services; the next request builds fresh ones."""
    if get_embedding_service.cache_info().currsize:
        get_embedding_service().close()
    get_ranking_pipeline.cache_clear()
    get_embedding_service.cache_clear()
