"""
Rate Limiting

slowapi limits for the ranking routes. A run request carries a whole
candidate pool and ties up embedding workers, so runs and streams get
their own, tighter limits than the default; all of them come from
settings. Counters live in the same Redis as the embedding cache when it
answers, otherwise in process memory.
"""
import redis
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from literature_ranker.core.config import Settings, settings
from literature_ranker.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_RETRY_AFTER = 60


def client_key(request: Request, trust_forwarded: bool = False) -> str:
    """
    Identify the caller for rate limiting.

    The first X-Forwarded-For hop is used only when the service runs
    behind a proxy that sets it; otherwise clients could pick their own key.
    """
    if trust_forwarded:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return get_remote_address(request)


def _key_func(request: Request) -> str:
    return client_key(request, settings.rate_limit_trust_forwarded)


def storage_uri(config: Settings) -> str:
    """Redis when it answers a ping, in-memory counters otherwise."""
    if not config.rate_limit_enabled:
        return "memory://"
    try:
        client = redis.Redis(host=config.REDIS_HOST, port=config.REDIS_PORT, socket_connect_timeout=2)
        client.ping()
    except (redis.ConnectionError, redis.TimeoutError):
        logger.warning("Redis not available for rate limiting, counting in memory")
        return "memory://"
    logger.info(f"Rate limiter counting in Redis at {config.REDIS_HOST}:{config.REDIS_PORT}")
    return f"redis://{config.REDIS_HOST}:{config.REDIS_PORT}"


limiter = Limiter(
    key_func=_key_func,
    storage_uri=storage_uri(settings),
    default_limits=[settings.rate_limit_default],
    strategy="fixed-window",
    enabled=settings.rate_limit_enabled,
)

RANKING_RUN_LIMIT = settings.rate_limit_run
RANKING_STREAM_LIMIT = settings.rate_limit_stream


def retry_after(exc: RateLimitExceeded) -> int:
    """Length of the exceeded limit's window in seconds."""
    item = getattr(getattr(exc, "limit", None), "limit", None)
    if item is None:
        return DEFAULT_RETRY_AFTER
    return int(item.get_expiry())


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 with the exceeded limit and when to try again."""
    wait = retry_after(exc)
    logger.warning(f"Rate limit hit on {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded",
            "detail": f"Too many ranking requests ({exc.detail})",
            "path": request.url.path,
            "retry_after": wait,
        },
        headers={"Retry-After": str(wait)},
    )
