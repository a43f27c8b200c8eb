"""Shared libraries for the embedding service.

Subpackages:
- ``libs.common``: configuration, logging, errors, authentication,
  security helpers and metrics.

Notes:
- Avoid route- or model-specific logic here; keep modules cohesive and
  reusable by any entrypoint.
"""
