"""Text encoders and the model lifecycle.

Exports the ``TextEncoder`` interface and the ``ModelLifecycleManager`` that
loads it once and runs inference. The sentence-transformers adapter lives in
``sentence_transformer``; torch and sentence-transformers are imported inside
its loader so importing this package stays cheap.
"""

from .base import EncoderLoader, TextEncoder
from .lifecycle import ModelLifecycleManager, ReadinessState

__all__ = [
    "EncoderLoader",
    "ModelLifecycleManager",
    "ReadinessState",
    "TextEncoder",
]
