"""Model lifecycle management.

``ModelLifecycleManager`` owns the single encoder instance of the process. It
guarantees the model is loaded at most once, lets concurrent callers wait on
the same load, exposes a non-blocking readiness flag and runs inference calls
off the event loop.

State machine::

    uninitialized --first ensure_ready()--> initializing
    initializing  --load succeeded-------> ready
    initializing  --load raised----------> failed   (terminal, error cached)

A failed load is not retried. Every waiter of the attempt, and every later
caller, receives the same ``ModelInitializationError``.
"""

import asyncio
import time
from enum import Enum
from typing import Optional, Sequence

import numpy as np
import structlog

from libs.common.errors import InferenceError, ModelInitializationError
from libs.common.logging import log_performance
from .base import EncoderLoader, TextEncoder

logger = structlog.get_logger("embedding_service.lifecycle")


class ReadinessState(str, Enum):
    """Lifecycle states of the embedding model."""
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class ModelLifecycleManager:
    """Loads the encoder once and serves inference calls.

    Parameters
    - loader: zero-argument callable returning a ``TextEncoder``; it is
      called at most once, in an executor thread
    - model_name: identifier used in logs and metrics
    """

    def __init__(self, loader: EncoderLoader, model_name: str = "default"):
        self.model_name = model_name
        self.load_attempts = 0
        self.load_duration: Optional[float] = None
        self._loader = loader
        self._encoder: Optional[TextEncoder] = None
        self._state = ReadinessState.UNINITIALIZED
        self._error: Optional[ModelInitializationError] = None
        self._load_task: Optional[asyncio.Future] = None
        self._transition_lock = asyncio.Lock()
        self._inference_lock = asyncio.Lock()

    @property
    def state(self) -> ReadinessState:
        return self._state

    @property
    def is_ready(self) -> bool:
        """Non-blocking readiness query for health reporting."""
        return self._state is ReadinessState.READY

    @property
    def dimension(self) -> Optional[int]:
        """Native dimension of the loaded encoder, or None before it is ready."""
        if self._encoder is None:
            return None
        return self._encoder.dimension

    async def ensure_ready(self) -> TextEncoder:
        """Load the model if needed and return the encoder.

        Concurrent callers during the load wait on the same attempt. The load
        runs as a shielded task so a cancelled caller does not abort it.
        """
        if self._state is ReadinessState.READY:
            return self._encoder
        if self._state is ReadinessState.FAILED:
            raise self._cached_error()

        async with self._transition_lock:
            if self._load_task is None:
                self._state = ReadinessState.INITIALIZING
                self.load_attempts += 1
                self._load_task = asyncio.ensure_future(self._load())

        try:
            await asyncio.shield(self._load_task)
        except ModelInitializationError:
            raise self._cached_error() from self._error.__cause__
        return self._encoder

    def _cached_error(self) -> ModelInitializationError:
        # Each raise of the shared instance starts from an empty traceback
        return self._error.with_traceback(None)

    async def _load(self) -> None:
        loop = asyncio.get_running_loop()
        started = time.perf_counter()
        logger.info("Initializing embedding model", model_name=self.model_name)

        try:
            encoder = await loop.run_in_executor(None, self._loader)
        except Exception as e:
            self._error = ModelInitializationError("Embedding model is unavailable")
            self._state = ReadinessState.FAILED
            logger.error(
                "Failed to initialize embedding model",
                model_name=self.model_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise self._error from e

        self._encoder = encoder
        self.load_duration = time.perf_counter() - started
        self._state = ReadinessState.READY
        logger.info(
            "Embedding model initialized",
            model_name=self.model_name,
            dimension=encoder.dimension,
            duration_ms=round(self.load_duration * 1000, 1),
        )

    async def encode(self, texts: Sequence[str]) -> np.ndarray:
        """Encode ``texts`` with the loaded model in one call.

        Inference runs in the default executor; calls are serialised because
        the inference runtime gives no parallelism guarantee. Failures raise
        ``InferenceError`` and leave the readiness state untouched.
        """
        encoder = await self.ensure_ready()
        texts = list(texts)
        loop = asyncio.get_running_loop()

        async with self._inference_lock:
            started = time.perf_counter()
            try:
                vectors = await loop.run_in_executor(None, encoder.encode, texts)
            except Exception as e:
                logger.error(
                    "Inference failed",
                    model_name=self.model_name,
                    batch_size=len(texts),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise InferenceError("Model inference failed") from e

        log_performance(
            "inference",
            (time.perf_counter() - started) * 1000,
            model_name=self.model_name,
            batch_size=len(texts),
        )

        vectors = np.asarray(vectors, dtype=np.float32)
        if vectors.ndim != 2 or vectors.shape[0] != len(texts):
            logger.error(
                "Encoder returned an unexpected shape",
                model_name=self.model_name,
                expected_rows=len(texts),
                shape=list(vectors.shape),
            )
            raise InferenceError("Model inference failed")
        return vectors

    async def cleanup(self) -> None:
        """Log the final state at shutdown. The handle lives until process exit."""
        if self._load_task is not None and not self._load_task.done():
            logger.warning("Shutting down while the model is still loading", model_name=self.model_name)
        logger.info(
            "Model lifecycle manager cleanup completed",
            model_name=self.model_name,
            state=self._state.value,
        )
