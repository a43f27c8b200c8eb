"""Tests for the embedding service.

Everything here runs against an in-process hashing encoder, so no model
weights are downloaded. Contract tests are marked ``contract``.
"""
