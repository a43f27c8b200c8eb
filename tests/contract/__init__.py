"""API contract tests.

These tests validate that public endpoints conform to the OpenAPI document
the service publishes and that error bodies keep their structured shape.
"""
