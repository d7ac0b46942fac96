"""Displacement Atlas utility modules: country identity, dates, similarity, logging."""
