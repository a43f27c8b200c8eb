"""Embedding service package.

Layout:
- ``api``: FastAPI route handlers and request/response models.
- ``encoders``: ``TextEncoder`` interface, sentence-transformers adapter and
  the ``ModelLifecycleManager`` that loads the model once.
- ``pipelines``: role prefixes, Matryoshka reduction, ``EmbeddingPipeline``.
- ``ranking``: cosine-similarity ``Reranker``.
- ``runtime``: metrics facade, transport resolution and server wiring.

Run with ``gemma-embedding`` (or ``python -m app.main``); for a plain uvicorn
launch use ``uvicorn --factory app.main:create_app``.
"""
