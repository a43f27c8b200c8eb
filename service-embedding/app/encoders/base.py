"""Text encoder capability interface."""

from abc import ABC, abstractmethod
from typing import Callable, Sequence

import numpy as np


class TextEncoder(ABC):
    """Turns a batch of strings into a batch of native-dimension vectors.

    Implementations are synchronous and CPU/GPU bound; the lifecycle manager
    runs them in an executor thread and serialises calls.
    """

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Native dimensionality of the vectors produced by ``encode``."""
        ...

    @abstractmethod
    def encode(self, texts: Sequence[str]) -> np.ndarray:
        """Encode ``texts`` in a single call.

        Returns
        - float32 array of shape ``(len(texts), dimension)``
        """
        ...


EncoderLoader = Callable[[], TextEncoder]
