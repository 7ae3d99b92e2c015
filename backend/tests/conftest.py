"""
Pytest fixtures and configuration for backend tests.

Provides reusable candidate factories, a deterministic embedding service
and an API test client.
"""
import os
import sys

import pytest
from fastapi.testclient import TestClient

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# 22 words; repeated to give abstracts a realistic length
FILLER = (
    "Regional planners compared coastal and inland communities over several seasons "
    "to document how households, farms and local agencies respond to changing conditions. "
)

TOPICS = [
    "Climate adaptation in coastal cities",
    "Adaptation strategies for smallholder farmers under climate stress",
    "Urban heat and community resilience planning",
    "Flood insurance and household adaptation decisions",
    "Drought governance in river basins",
]


@pytest.fixture(scope="session", autouse=True)
def set_test_environment():
    """Set environment variables for testing."""
    os.environ["EMBEDDING_PROVIDER"] = "hashing"
    os.environ["EMBEDDING_PERSISTENT_CACHE"] = "false"
    os.environ["REDIS_HOST"] = "localhost"
    os.environ["REDIS_PORT"] = "6379"
    yield


@pytest.fixture
def make_candidate():
    """Factory for Candidate objects with sensible defaults."""
    from literature_ranker.schemas.candidate import Candidate
    
    def _make(**overrides):
        data = {
            "title": "Climate adaptation in coastal cities",
            "abstract": FILLER * 12,
            "year": 2019,
            "citation_count": 0,
            "source": "openalex",
        }
        data.update(overrides)
        return Candidate(**data)
    
    return _make


@pytest.fixture
def climate_pool(make_candidate):
    """50 candidates loosely about climate adaptation, with ~270-word texts."""
    pool = []
    for i in range(50):
        topic = TOPICS[i % len(TOPICS)]
        pool.append(make_candidate(
            title=f"{topic} ({i + 1})",
            abstract=(f"This study examines {topic.lower()}. " if i % 2 == 0 else "") + FILLER * 12,
            doi=f"10.1000/climate.{i + 1}",
            year=2010 + (i % 12),
            citation_count=i * 3,
            source=["openalex", "pubmed", "crossref"][i % 3],
            domains=[["environmental science"], ["geography"], ["economics"]][i % 3],
        ))
    return pool


@pytest.fixture
def embedding_service():
    """Deterministic hashing embedding service with a private cache."""
    from literature_ranker.services.embedding import EmbeddingCache, EmbeddingService, HashingEncoder
    
    return EmbeddingService(
        HashingEncoder(dimensions=64),
        cache=EmbeddingCache(max_entries=1000),
        max_workers=4,
        timeout_seconds=5.0,
    )


@pytest.fixture
def pipeline(embedding_service):
    """Ranking pipeline around the deterministic embedding service."""
    from literature_ranker.services.ranking import RankingPipeline
    
    return RankingPipeline(embedding_service)


@pytest.fixture
def test_client():
    """Create a test client for API testing."""
    # Import here to avoid circular imports
    from literature_ranker.main import app
    
    with TestClient(app) as client:
        yield client
