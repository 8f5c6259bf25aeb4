"""Dependency file persistence and staleness evaluation."""

from .models import DependencySnapshot
from .staleness import StalenessVerdict, evaluate_staleness, is_stale
from .store import (
    DEPFILE_SCHEMA_VERSION,
    DependencyStore,
    DependencyStoreCorruptError,
    DependencyStoreWriteError,
)

__all__ = [
    "DEPFILE_SCHEMA_VERSION",
    "DependencySnapshot",
    "DependencyStore",
    "DependencyStoreCorruptError",
    "DependencyStoreWriteError",
    "StalenessVerdict",
    "evaluate_staleness",
    "is_stale",
]
