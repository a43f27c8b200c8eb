"""Document ranking.

Exports the ``Reranker`` that orders candidate documents by cosine
similarity to a query, and the ``RankedIndex`` result type.
"""

from .reranker import RankedIndex, Reranker

__all__ = ["RankedIndex", "Reranker"]
