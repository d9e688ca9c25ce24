"""
State management for Commit Watch.

This package provides the persistent key-value store with pluggable backends,
the user settings manager, and one-time state migrations.
"""

from .manager import (
    InMemoryStateStore,
    JsonFileStateStore,
    StateStore,
    StateStoreFactory,
    StorageKeys,
)
from .migrations import migrate_legacy_keys
from .settings import SettingsManager

__all__ = [
    "StateStore",
    "StateStoreFactory",
    "InMemoryStateStore",
    "JsonFileStateStore",
    "StorageKeys",
    "SettingsManager",
    "migrate_legacy_keys",
]
