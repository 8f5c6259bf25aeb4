"""Incremental dx conversion task."""

__version__ = "0.1.0"
