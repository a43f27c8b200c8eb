"""Embedding pipeline: prefix, encode, optionally reduce."""

from typing import List, Optional, Sequence

import structlog

from libs.common.errors import InvalidRequestError
from ..encoders.lifecycle import ModelLifecycleManager
from .prefixes import RolePrefixes
from .reduction import reduce_dimensions, validate_target_dimension

logger = structlog.get_logger("embedding_service.pipeline")


class EmbeddingPipeline:
    """Turns caller texts into embedding vectors.

    Every text gets the document prefix before encoding. The caller never sees
    the prefix; vectors come back in input order, one per text.

    Parameters
    - model_manager: lifecycle manager owning the encoder
    - prefixes: role prefixes to apply
    - configured_dimension: native dimension to validate against before the
      model is loaded (the loaded encoder's dimension wins afterwards)
    """

    def __init__(
        self,
        model_manager: ModelLifecycleManager,
        prefixes: RolePrefixes,
        configured_dimension: int,
    ):
        self.model_manager = model_manager
        self.prefixes = prefixes
        self.configured_dimension = configured_dimension

    @property
    def native_dimension(self) -> int:
        return self.model_manager.dimension or self.configured_dimension

    async def embed(
        self,
        texts: Sequence[str],
        dimensions: Optional[int] = None,
    ) -> List[List[float]]:
        """Embed ``texts``; reduce to ``dimensions`` when given."""
        texts = list(texts)
        if not texts:
            raise InvalidRequestError("Input array cannot be empty", param="input")
        if dimensions is not None:
            # Reject bad values before paying for inference
            validate_target_dimension(dimensions, self.native_dimension)

        vectors = await self.model_manager.encode(self.prefixes.for_documents(texts))

        if dimensions is not None and dimensions != vectors.shape[1]:
            vectors = reduce_dimensions(vectors, dimensions)

        logger.debug(
            "Embedding pipeline completed",
            count=len(texts),
            dimensions=int(vectors.shape[1]),
        )
        return vectors.tolist()
