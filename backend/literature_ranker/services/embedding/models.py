"""
Embedding value type and similarity math.
"""
import json
from typing import Sequence

import numpy as np
from pydantic import BaseModel, ConfigDict

from literature_ranker.core.exceptions import EmbeddingDimensionError


class Embedding(BaseModel):
    """
    A vector with its precomputed L2 norm.
    
    The norm is stored so that cosine similarity never has to reduce the
    raw array again.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)
    
    vector: np.ndarray
    norm: float
    model: str
    dimensions: int
    
    @classmethod
    def from_vector(cls, values: Sequence[float], model: str, dimensions: int = None) -> "Embedding":
        """
        Build an embedding, checking dimensionality when it is declared.
        
        Raises:
            EmbeddingDimensionError: vector length differs from `dimensions`
        """
        vector = np.asarray(values, dtype=np.float64).reshape(-1)
        if dimensions is not None and vector.shape[0] != dimensions:
            raise EmbeddingDimensionError(model, dimensions, vector.shape[0])
        vector.setflags(write=False)
        return cls(
            vector=vector,
            norm=float(np.linalg.norm(vector)),
            model=model,
            dimensions=int(vector.shape[0]),
        )
    
    def to_json(self) -> str:
        return json.dumps({
            "model": self.model,
            "dimensions": self.dimensions,
            "norm": self.norm,
            "vector": self.vector.tolist(),
        })
    
    @classmethod
    def from_json(cls, data: str) -> "Embedding":
        payload = json.loads(data)
        vector = np.asarray(payload["vector"], dtype=np.float64)
        vector.setflags(write=False)
        return cls(
            vector=vector,
            norm=float(payload["norm"]),
            model=payload["model"],
            dimensions=int(payload["dimensions"]),
        )


def cosine_similarity(a: Embedding, b: Embedding) -> float:
    """Dot product over the product of the stored norms; 0.0 for zero vectors."""
    if a.norm == 0.0 or b.norm == 0.0:
        return 0.0
    if a.dimensions != b.dimensions:
        raise EmbeddingDimensionError(b.model, a.dimensions, b.dimensions)
    return float(np.dot(a.vector, b.vector) / (a.norm * b.norm))
