"""Displacement Atlas analysis modules: pure normalization and aggregation."""
