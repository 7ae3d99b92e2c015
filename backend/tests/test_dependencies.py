"""Tests for core/dependencies.py"""
import pytest


class TestGetSettings:
    """Test the settings dependency."""

    def test_get_settings_returns_settings(self):
        """get_settings should return a Settings instance."""
        from literature_ranker.core.config import Settings
        from literature_ranker.core.dependencies import get_settings
        
        assert isinstance(get_settings(), Settings)

    def test_get_settings_is_cached(self):
        """get_settings should return the same instance."""
        from literature_ranker.core.dependencies import get_settings
        
        assert get_settings() is get_settings()


class TestGetEmbeddingService:
    """Test the shared embedding service dependency."""

    def test_returns_service(self):
        """The service is built from settings."""
        from literature_ranker.core.dependencies import get_embedding_service
        from literature_ranker.services.embedding import EmbeddingService
        
        service = get_embedding_service()
        assert isinstance(service, EmbeddingService)
        assert service.model_id == "hashing-v1"

    def test_service_is_shared(self):
        """Every caller gets the same service, hence the same cache."""
        from literature_ranker.core.dependencies import get_embedding_service
        
        assert get_embedding_service() is get_embedding_service()
        assert get_embedding_service().cache is get_embedding_service().cache


class TestGetRankingPipeline:
    """Test the pipeline dependency."""

    def test_pipeline_uses_shared_embedding_service(self):
        """The pipeline wraps the shared embedding service."""
        from literature_ranker.core.dependencies import get_embedding_service, get_ranking_pipeline
        
        pipeline = get_ranking_pipeline()
        assert pipeline.embedding_service is get_embedding_service()
        assert pipeline.reranker.top_k == 1200


class TestDependencyInjection:
    """Test that dependencies work in FastAPI context."""

    def test_dependencies_can_be_overridden(self, test_client):
        """A test pipeline can replace the shared one."""
        from literature_ranker.core.dependencies import get_ranking_pipeline
        from literature_ranker.main import app
        from literature_ranker.services.embedding import CallableEncoder, EmbeddingService
        from literature_ranker.services.ranking import RankingPipeline
        
        calls = []
        
        def encode(text):
            calls.append(text)
            return [1.0, 0.0, 0.0, 0.0]
        
        app.dependency_overrides[get_ranking_pipeline] = lambda: RankingPipeline(
            EmbeddingService(CallableEncoder(encode, "constant", 4))
        )
        try:
            response = test_client.post("/api/ranking/run", json={
                "query": "drought governance",
                "candidates": [{"title": "Drought governance in river basins"}],
                "min_results": 0,
                "max_results": 5,
            })
        finally:
            app.dependency_overrides.clear()
        
        assert response.status_code == 200
        assert "drought governance" in calls


class TestApplicationLifespan:
    """Test service setup and teardown around the app's lifetime."""

    def test_invalid_purpose_table_fails_startup(self, tmp_path, monkeypatch):
        """A broken PURPOSE_CONFIG_FILE stops the app before it serves requests."""
        from fastapi.testclient import TestClient
        from literature_ranker.core.dependencies import get_ranking_pipeline, get_settings
        from literature_ranker.core.exceptions import ConfigurationInvalidError
        from literature_ranker.main import app
        
        path = tmp_path / "purposes.json"
        path.write_text('{"profiles": {}}')
        monkeypatch.setenv("PURPOSE_CONFIG_FILE", str(path))
        get_settings.cache_clear()
        get_ranking_pipeline.cache_clear()
        try:
            with pytest.raises(ConfigurationInvalidError):
                with TestClient(app):
                    pass
        finally:
            monkeypatch.delenv("PURPOSE_CONFIG_FILE")
            get_settings.cache_clear()
            get_ranking_pipeline.cache_clear()

    def test_get_purpose_table_reads_settings(self, tmp_path, monkeypatch):
        """The purpose table follows PURPOSE_CONFIG_FILE."""
        import json
        from literature_ranker.core.dependencies import get_purpose_table, get_settings
        from literature_ranker.core.purposes import DEFAULT_PURPOSE_TABLE
        
        table = json.loads(json.dumps(DEFAULT_PURPOSE_TABLE))
        table["venue_floor"] = 30
        path = tmp_path / "purposes.json"
        path.write_text(json.dumps(table))
        monkeypatch.setenv("PURPOSE_CONFIG_FILE", str(path))
        get_settings.cache_clear()
        try:
            assert get_purpose_table().venue_floor == 30
        finally:
            monkeypatch.delenv("PURPOSE_CONFIG_FILE")
            get_settings.cache_clear()

    def test_shutdown_closes_shared_embedding_service(self):
        """Leaving the app's lifespan closes the pool and drops the cached services."""
        from fastapi.testclient import TestClient
        from literature_ranker.core.dependencies import get_embedding_service
        from literature_ranker.main import app
        
        with TestClient(app):
            service = get_embedding_service()
        
        with pytest.raises(RuntimeError):
            service.embed_many({"a": "drought"})
        assert get_embedding_service() is not service
