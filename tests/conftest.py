"""Shared fixtures: a deterministic encoder and a wired test application."""

import hashlib
import re
import threading
from typing import List, Sequence

import numpy as np
import pytest
from fastapi.testclient import TestClient

from app.encoders.base import TextEncoder
from app.encoders.lifecycle import ModelLifecycleManager
from app.main import create_app
from libs.common.config import EmbeddingConfig

API_KEY = "test-api-key"

RED_PLANET_QUERY = "Which planet is known as the Red Planet?"
RED_PLANET_DOCUMENTS = [
    "Venus is often called Earth's twin because of its similar size and proximity.",
    "Mars, known for its reddish appearance, is often referred to as the Red Planet.",
    "Jupiter, the largest planet in our solar system, has a prominent red spot.",
]


class HashingEncoder(TextEncoder):
    """Bag-of-words encoder: each token bumps one hashed dimension.

    Texts sharing words get similar vectors, which is enough to exercise
    ranking and reduction without downloading a model.
    """

    def __init__(self, dimension: int = 768):
        self._dimension = dimension
        self.calls: List[List[str]] = []
        self._lock = threading.Lock()

    @property
    def dimension(self) -> int:
        return self._dimension

    def encode(self, texts: Sequence[str]) -> np.ndarray:
        with self._lock:
            self.calls.append(list(texts))
        vectors = np.zeros((len(texts), self._dimension), dtype=np.float32)
        for row, text in enumerate(texts):
            for token in re.findall(r"[a-z0-9]+", text.lower()):
                digest = hashlib.md5(token.encode("utf-8")).digest()
                vectors[row, int.from_bytes(digest[:4], "little") % self._dimension] += 1.0
        norms = np.linalg.norm(vectors, axis=1, keepdims=True)
        return vectors / np.maximum(norms, 1e-12)


class FailingEncoder(HashingEncoder):
    """Loads fine, fails every inference call."""

    def encode(self, texts: Sequence[str]) -> np.ndarray:
        raise RuntimeError("CUDA out of memory at /opt/models/secret/path")


@pytest.fixture
def encoder() -> HashingEncoder:
    return HashingEncoder()


@pytest.fixture
def model_manager(encoder: HashingEncoder) -> ModelLifecycleManager:
    return ModelLifecycleManager(lambda: encoder, model_name="hashing-test")


@pytest.fixture
def config() -> EmbeddingConfig:
    return EmbeddingConfig(
        ml_api_key=API_KEY,
        ml_use_ssl=False,
        ml_log_format="console",
    )


@pytest.fixture
def app(config: EmbeddingConfig, encoder: HashingEncoder):
    return create_app(config, encoder_loader=lambda: encoder)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {API_KEY}"}
