"""
Text encoders behind the embedding service.

An encoder is the injectable text-to-vector function: it must be
deterministic for a given model id and always return `dimensions` floats.
"""
import hashlib
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence

import numpy as np

from literature_ranker.core.text import tokenize


class TextEncoder(ABC):
    """
    Abstract base class for text encoders.
    
    To add a new encoder:
    1. Subclass TextEncoder
    2. Implement model_id, dimensions and encode
    3. Register it in create_encoder()
    """
    
    @property
    @abstractmethod
    def model_id(self) -> str:
        """Identifier of the model version; part of every cache key."""
        pass
    
    @property
    @abstractmethod
    def dimensions(self) -> int:
        pass
    
    @abstractmethod
    def encode(self, text: str) -> Sequence[float]:
        """Encode one non-empty text."""
        pass


class HashingEncoder(TextEncoder):
    """
    Deterministic feature-hashing encoder.
    
    Unigrams and bigrams are hashed into a fixed number of signed buckets
    and the result is L2-normalized. Texts sharing vocabulary land close
    together, which is enough for reranking without a model download.
    """
    
    BIGRAM_WEIGHT = 0.5
    
    def __init__(self, dimensions: int = 384, model_id: str = "hashing-v1"):
        if dimensions < 8:
            raise ValueError("dimensions must be at least 8")
        self._dimensions = dimensions
        self._model_id = model_id
    
    @property
    def model_id(self) -> str:
        return self._model_id
    
    @property
    def dimensions(self) -> int:
        return self._dimensions
    
    def encode(self, text: str) -> List[float]:
        tokens = tokenize(text)
        if not tokens:
            return _digest_vector(text, self._dimensions)
        
        vector = np.zeros(self._dimensions, dtype=np.float64)
        for token in tokens:
            self._add_feature(vector, token, 1.0)
        for left, right in zip(tokens, tokens[1:]):
            self._add_feature(vector, f"{left} {right}", self.BIGRAM_WEIGHT)
        
        norm = np.linalg.norm(vector)
        if norm == 0.0:
            return _digest_vector(text, self._dimensions)
        return (vector / norm).tolist()
    
    def _add_feature(self, vector: np.ndarray, feature: str, weight: float) -> None:
        digest = hashlib.blake2b(feature.encode("utf-8"), digest_size=8).digest()
        value = int.from_bytes(digest, "big")
        index = value % self._dimensions
        sign = 1.0 if (value >> 63) & 1 else -1.0
        vector[index] += sign * weight


def _digest_vector(text: str, dimensions: int) -> List[float]:
    # Fallback for texts without word tokens (punctuation, symbols)
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    values = np.array([(digest[i % len(digest)] / 127.5) - 1.0 for i in range(dimensions)])
    norm = np.linalg.norm(values)
    if norm <= 0:
        return values.tolist()
    return (values / norm).tolist()


class OpenAIEncoder(TextEncoder):
    """OpenAI embeddings through the cached langchain client."""
    
    def __init__(self, model: str = "text-embedding-3-small", dimensions: int = 384):
        self._model = model
        self._dimensions = dimensions
    
    @property
    def model_id(self) -> str:
        return f"openai:{self._model}:{self._dimensions}"
    
    @property
    def dimensions(self) -> int:
        return self._dimensions
    
    def encode(self, text: str) -> List[float]:
        from literature_ranker.services.llm import get_embeddings
        
        return get_embeddings(self._model, self._dimensions).embed_query(text)


class CallableEncoder(TextEncoder):
    """Wraps any deterministic `text -> vector` function."""
    
    def __init__(self, fn: Callable[[str], Sequence[float]], model_id: str, dimensions: int):
        self._fn = fn
        self._model_id = model_id
        self._dimensions = dimensions
    
    @property
    def model_id(self) -> str:
        return self._model_id
    
    @property
    def dimensions(self) -> int:
        return self._dimensions
    
    def encode(self, text: str) -> Sequence[float]:
        return self._fn(text)


def create_encoder(
    provider: str,
    model: Optional[str] = None,
    dimensions: int = 384
) -> TextEncoder:
    if provider == "hashing":
        return HashingEncoder(dimensions=dimensions, model_id=model or "hashing-v1")
    if provider == "openai":
        return OpenAIEncoder(model=model or "text-embedding-3-small", dimensions=dimensions)
    raise ValueError(f"Unknown embedding provider: {provider}")
