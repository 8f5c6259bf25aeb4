"""Shared exception base for the dex task."""

from __future__ import annotations


class DexTaskError(Exception):
    """Base class for every error raised by the dex task."""
