"""SentenceTransformer adapter implementing the ``TextEncoder`` interface."""

from functools import partial
from typing import Any, Optional, Sequence

import numpy as np
import structlog

from libs.common.config import EmbeddingConfig
from .base import EncoderLoader, TextEncoder

logger = structlog.get_logger("embedding_service.sentence_transformer")


class SentenceTransformerEncoder(TextEncoder):
    """Wraps a loaded ``SentenceTransformer`` model.

    Role prefixes are applied by the callers; the model's built-in prompts are
    not used so the encoder sees exactly the text it is given.
    """

    def __init__(self, model: Any, model_name: str, batch_size: int = 32):
        self._model = model
        self.model_name = model_name
        self.batch_size = batch_size

    @classmethod
    def load(
        cls,
        model_name: str,
        device: str = "auto",
        cache_dir: Optional[str] = None,
        batch_size: int = 32,
    ) -> "SentenceTransformerEncoder":
        """Download (if needed) and load a model. Slow; run off the event loop."""
        from sentence_transformers import SentenceTransformer
        from .device import select_device

        resolved_device = select_device(device)
        model = SentenceTransformer(
            model_name,
            device=resolved_device,
            cache_folder=cache_dir,
        )
        logger.info(
            "Loaded sentence-transformers model",
            model_name=model_name,
            device=resolved_device,
            dimension=model.get_sentence_embedding_dimension(),
            max_seq_length=model.max_seq_length,
        )
        return cls(model, model_name, batch_size=batch_size)

    @property
    def dimension(self) -> int:
        return int(self._model.get_sentence_embedding_dimension())

    def encode(self, texts: Sequence[str]) -> np.ndarray:
        vectors = self._model.encode(
            list(texts),
            batch_size=self.batch_size,
            convert_to_numpy=True,
            show_progress_bar=False,
        )
        return np.asarray(vectors, dtype=np.float32)


def loader_from_config(config: EmbeddingConfig) -> EncoderLoader:
    """Build the zero-argument loader the lifecycle manager calls once."""
    return partial(
        SentenceTransformerEncoder.load,
        config.ml_embedding_model,
        device=config.ml_gpu_preference,
        cache_dir=config.ml_embedding_cache_dir,
        batch_size=config.ml_max_batch_size,
    )
