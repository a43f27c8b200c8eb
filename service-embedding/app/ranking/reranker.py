"""Embedding-similarity reranker."""

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np
import structlog

from libs.common.errors import InvalidRequestError
from ..encoders.lifecycle import ModelLifecycleManager
from ..pipelines.prefixes import RolePrefixes

logger = structlog.get_logger("embedding_service.reranker")


@dataclass(frozen=True)
class RankedIndex:
    """A document's position in the caller's list and its similarity score."""
    index: int
    score: float


def cosine_similarities(query: np.ndarray, documents: np.ndarray) -> np.ndarray:
    """Cosine similarity of one query vector against each document row.

    Zero-norm vectors score 0.0 instead of producing NaN.
    """
    query = np.asarray(query, dtype=np.float64)
    documents = np.asarray(documents, dtype=np.float64)

    dots = documents @ query
    denominators = np.linalg.norm(documents, axis=1) * np.linalg.norm(query)
    return np.divide(
        dots,
        denominators,
        out=np.zeros_like(dots),
        where=denominators > 0,
    )


def rank_by_score(scores: np.ndarray) -> List[RankedIndex]:
    """Order indices by descending score; ties keep input order."""
    scores = np.asarray(scores, dtype=np.float64)
    order = np.argsort(-scores, kind="stable")
    return [RankedIndex(index=int(i), score=float(scores[i])) for i in order]


class Reranker:
    """Ranks documents by cosine similarity to a query.

    The query and the documents are encoded in one batch (query first) at the
    model's native dimension; no dimensionality reduction is ever applied
    here. The result is always a full ranking of every document.
    """

    def __init__(self, model_manager: ModelLifecycleManager, prefixes: RolePrefixes):
        self.model_manager = model_manager
        self.prefixes = prefixes

    async def score(self, query: str, documents: Sequence[str]) -> List[RankedIndex]:
        """Return every document index with its score, best first."""
        documents = list(documents)
        if not documents:
            raise InvalidRequestError("Documents array cannot be empty", param="documents")

        texts = [self.prefixes.for_query(query)] + self.prefixes.for_documents(documents)
        vectors = await self.model_manager.encode(texts)

        ranking = rank_by_score(cosine_similarities(vectors[0], vectors[1:]))
        logger.debug(
            "Documents reranked",
            documents=len(documents),
            top_index=ranking[0].index,
            top_score=ranking[0].score,
        )
        return ranking

    async def rerank(self, query: str, documents: Sequence[str]) -> List[int]:
        """Return a permutation of ``range(len(documents))``, best first."""
        return [item.index for item in await self.score(query, documents)]
