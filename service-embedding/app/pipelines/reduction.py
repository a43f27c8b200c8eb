"""Matryoshka (MRL) dimensionality reduction.

Models trained with Matryoshka Representation Learning pack coarser semantic
information into the leading dimensions, so a prefix of the vector is itself
a usable embedding. Reduction is done in this order:

1. layer-normalise each full native-dimension row (statistics over the whole
   row, before truncation),
2. keep the first ``target_dim`` components,
3. L2-normalise the truncated row.

Truncating first and normalising afterwards gives different, worse vectors.
"""

from typing import Tuple

import numpy as np
import structlog

from libs.common.errors import InvalidRequestError

logger = structlog.get_logger("embedding_service.reduction")

RECOMMENDED_DIMENSIONS: Tuple[int, ...] = (768, 512, 256, 128)
LAYER_NORM_EPS = 1e-5
_MIN_NORM = 1e-12


def validate_target_dimension(target_dim: int, native_dim: int) -> int:
    """Check ``1 <= target_dim <= native_dim``.

    Dimensions outside ``RECOMMENDED_DIMENSIONS`` are accepted but logged,
    since output quality is only known for the recommended sizes.
    """
    if isinstance(target_dim, bool) or not isinstance(target_dim, (int, np.integer)):
        raise InvalidRequestError("dimensions must be an integer", param="dimensions")
    if not 1 <= target_dim <= native_dim:
        raise InvalidRequestError(
            f"dimensions must be between 1 and {native_dim}",
            param="dimensions",
            code="invalid_dimensions",
        )
    if target_dim not in RECOMMENDED_DIMENSIONS:
        logger.warning(
            "Requested dimensions outside the recommended set",
            dimensions=int(target_dim),
            recommended=list(RECOMMENDED_DIMENSIONS),
        )
    return int(target_dim)


def layer_norm(vectors: np.ndarray, eps: float = LAYER_NORM_EPS) -> np.ndarray:
    """Per-row layer normalisation without affine parameters."""
    mean = vectors.mean(axis=1, keepdims=True)
    var = vectors.var(axis=1, keepdims=True)
    return (vectors - mean) / np.sqrt(var + eps)


def l2_normalize(vectors: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(vectors, axis=1, keepdims=True)
    return vectors / np.maximum(norms, _MIN_NORM)


def reduce_dimensions(vectors: np.ndarray, target_dim: int) -> np.ndarray:
    """Reduce an ``(N, D_native)`` batch to ``(N, target_dim)``.

    ``target_dim == D_native`` returns the input unchanged.
    """
    vectors = np.asarray(vectors, dtype=np.float32)
    if vectors.ndim != 2:
        raise ValueError(f"expected a 2-D batch of vectors, got shape {vectors.shape}")

    native_dim = vectors.shape[1]
    target_dim = validate_target_dimension(target_dim, native_dim)
    if target_dim == native_dim:
        return vectors

    normalized = layer_norm(vectors)
    truncated = normalized[:, :target_dim]
    return l2_normalize(truncated).astype(np.float32, copy=False)
