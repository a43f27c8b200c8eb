"""Embedding pipeline stages.

- ``prefixes``: query/document role prefixes.
- ``reduction``: Matryoshka dimensionality reduction.
- ``embedding``: ``EmbeddingPipeline`` tying prefixing, encoding and reduction.
"""
