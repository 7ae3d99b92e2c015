"""
Logging Configuration

One root handler for the whole service. Records carry the pipeline stage
that was running when they were emitted, so a ranking run reads as a
sequence of stage blocks:

    2026-01-05 10:12:03 | INFO     | semantic      | literature_ranker.services.ranking.semantic | SEMANTIC RERANKING top 1200 of 4000 candidates
"""
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterable, Iterator

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(stage)-13s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
NO_STAGE = "-"

# Chatty client libraries used by the embedding and cache tiers
QUIET_LOGGERS = ("httpx", "httpcore", "urllib3", "openai", "flashrank")

_current_stage: ContextVar[str] = ContextVar("ranking_stage", default=NO_STAGE)


class StageFilter(logging.Filter):
    """Adds the running pipeline stage to every record as `stage`."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "stage"):
            record.stage = _current_stage.get()
        return True


@contextmanager
def stage_context(stage: str) -> Iterator[None]:
    """Tag log records emitted inside the block with a stage name."""
    token = _current_stage.set(stage)
    try:
        yield
    finally:
        _current_stage.reset(token)


def current_stage() -> str:
    return _current_stage.get()


def setup_logging(level: str = "INFO", quiet: Iterable[str] = QUIET_LOGGERS) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level name; unknown names fall back to INFO
        quiet: Loggers raised to WARNING
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    console_handler.addFilter(StageFilter())
    console_handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


setup_logging()
