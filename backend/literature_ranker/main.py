"""
FastAPI Application Entry Point

Literature Ranking API
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from literature_ranker import __version__
from literature_ranker.core.config import settings
from literature_ranker.core.dependencies import (
    close_services,
    get_embedding_service,
    get_purpose_table,
    get_ranking_pipeline,
)
from literature_ranker.core.logging import setup_logging
from literature_ranker.core.rate_limit import limiter, rate_limit_exceeded_handler
from literature_ranker.api.ranking import router as ranking_router

setup_logging(settings.LOG_LEVEL)

# An invalid purpose table stops the process here, before any request
get_purpose_table()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: build the shared services so configuration errors surface now
    get_purpose_table()
    get_ranking_pipeline()
    yield
    # Shutdown
    close_services()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Progressive, purpose-aware ranking of literature candidate pools",
    version=__version__,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

app.include_router(ranking_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)


@app.get("/")
async def health_check():
    """Root endpoint to verify the server is running."""
    embedding_service = get_embedding_service()
    cache_stats = embedding_service.cache_stats()
    return {
        "status": "active",
        "project": settings.PROJECT_NAME,
        "version": __version__,
        "embedding": {
            "model": embedding_service.model_id,
            "dimensions": embedding_service.dimensions,
        },
        "cache": {
            "type": "redis" if cache_stats.persistent_connected else "in-memory",
            "connected": cache_stats.persistent_connected,
            "entries": cache_stats.size,
            "hit_rate": round(cache_stats.hit_rate, 4),
        },
        "endpoints": {
            "run": "/api/ranking/run",
            "stream": "/api/ranking/stream",
            "purposes": "/api/ranking/purposes"
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
