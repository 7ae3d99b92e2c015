"""
Custom Exceptions

Error types raised by the ranking core. Per-candidate problems are
recovered locally; only these surface to callers.
"""


class RankingCoreError(Exception):
    """Base exception for all ranking errors."""
    pass


# === Input Errors ===

class InvalidInputError(RankingCoreError):
    """Malformed query, candidate list or text handed to the core."""
    def __init__(self, message: str, field: str = None):
        self.field = field
        self.message = message
        if field:
            super().__init__(f"Invalid {field}: {message}")
        else:
            super().__init__(message)


class ScoreOwnershipError(RankingCoreError):
    """A stage tried to overwrite a score written by another stage."""
    def __init__(self, field: str, owner: str, stage: str):
        self.field = field
        self.owner = owner
        self.stage = stage
        super().__init__(f"{field} was written by '{owner}', '{stage}' may only read it")


# === Embedding Errors ===

class EmbeddingError(RankingCoreError):
    """Base exception for embedding generation errors."""
    pass


class EmbeddingFailedError(EmbeddingError):
    """One item could not be embedded after retry and in-process fallback."""
    def __init__(self, item_id: str, reason: str):
        self.item_id = item_id
        self.reason = reason
        super().__init__(f"Embedding failed for {item_id}: {reason}")


class EmbeddingDimensionError(EmbeddingError):
    """Model returned a vector of the wrong length."""
    def __init__(self, model: str, expected: int, actual: int):
        self.model = model
        self.expected = expected
        self.actual = actual
        super().__init__(f"{model} returned {actual} dimensions, expected {expected}")


# === Configuration Errors ===

class ConfigurationInvalidError(RankingCoreError):
    """Purpose table or settings failed validation at load time."""
    def __init__(self, section: str, message: str):
        self.section = section
        self.message = message
        super().__init__(f"Invalid configuration in {section}: {message}")


# === Pipeline Errors ===

class PipelineCancelledError(RankingCoreError):
    """The run was cancelled before the named stage started."""
    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"Pipeline cancelled before stage '{stage}'")


# === Cache Errors ===

class CacheError(RankingCoreError):
    """Base exception for cache-related errors."""
    pass


class CacheConnectionError(CacheError):
    """Failed to connect to cache backend."""
    def __init__(self, host: str, port: int = None, detail: str = None):
        if port:
            msg = f"Failed to connect to cache at {host}:{port}"
        else:
            msg = f"Failed to connect to {host} cache"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)
        self.host = host
        self.port = port
