"""Batch analysis jobs: the worker, its persistence adapter, and the single-consumer queue."""
