"""
Cross-encoder pair scoring for the semantic reranker.

Wraps a FlashRank ranker as a (query, text) -> [0, 1] scorer. The model
is loaded on first use, so building the pipeline stays cheap when the
cross-encoder is switched off.
"""
import threading
from typing import Optional

from flashrank import Ranker, RerankRequest

from literature_ranker.core.logging import get_logger

logger = get_logger(__name__)


class FlashRankPairScorer:
    """Scores one query/passage pair with a FlashRank cross-encoder."""

    def __init__(self, model_name: Optional[str] = None, max_length: int = 512):
        self.model_name = model_name
        self.max_length = max_length
        self._ranker: Optional[Ranker] = None
        self._lock = threading.Lock()

    def _get_ranker(self) -> Ranker:
        with self._lock:
            if self._ranker is None:
                if self.model_name:
                    self._ranker = Ranker(model_name=self.model_name, max_length=self.max_length)
                else:
                    self._ranker = Ranker(max_length=self.max_length)
                logger.info(f"Loaded cross-encoder {self.model_name or 'default'}")
            return self._ranker

    def __call__(self, query: str, text: str) -> float:
        request = RerankRequest(query=query, passages=[{"id": 0, "text": text}])
        results = self._get_ranker().rerank(request)
        if not results:
            return 0.0
        return float(results[0]["score"])
