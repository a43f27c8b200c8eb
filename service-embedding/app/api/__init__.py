"""API subpackage for the embedding service.

Contains the FastAPI router that exposes endpoints for:
- OpenAI-compatible embeddings (``/v1/embeddings``)
- Legacy embeddings (``/embed``)
- Reranking (``/rerank``)
- Model discovery (``/models``, ``/v1/models``)
"""
