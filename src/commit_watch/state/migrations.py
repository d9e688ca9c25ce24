"""
One-time migrations of persisted state.

Older state used plain ``owner/repo`` keys, which always referred to GitHub
repositories. Keys are rewritten to the composite ``platform:owner/repo``
form once, at load time, so no reader ever has to check both forms.
"""

import logging
from typing import Any

from ..models import Platform, make_repo_key
from .manager import StateStore, StorageKeys

logger = logging.getLogger(__name__)

CURRENT_SCHEMA_VERSION = 2

_PLATFORM_PREFIXES = tuple(f"{platform.value}:" for platform in Platform)


def normalize_repo_keys(mapping: dict[str, Any]) -> dict[str, Any]:
    """
    Rewrite legacy repository keys to their composite form.

    When both forms exist for the same repository the composite entry wins.
    """
    normalized = {
        key: value for key, value in mapping.items() if key.startswith(_PLATFORM_PREFIXES)
    }
    for key, value in mapping.items():
        if key.startswith(_PLATFORM_PREFIXES):
            continue
        normalized.setdefault(make_repo_key(Platform.GITHUB, key), value)
    return normalized


async def migrate_legacy_keys(store: StateStore) -> bool:
    """
    Normalize repository keys in settings and watch state.

    Returns:
        True if a migration ran, False if the store was already current
    """
    values = await store.get(
        [
            StorageKeys.SCHEMA_VERSION,
            StorageKeys.SETTINGS,
            StorageKeys.LAST_COMMITS,
            StorageKeys.LAST_RELEASES,
        ]
    )
    if values.get(StorageKeys.SCHEMA_VERSION, 1) >= CURRENT_SCHEMA_VERSION:
        return False

    updates: dict[str, Any] = {StorageKeys.SCHEMA_VERSION: CURRENT_SCHEMA_VERSION}

    settings = values.get(StorageKeys.SETTINGS)
    if isinstance(settings, dict) and isinstance(settings.get("enabled_repos"), dict):
        settings = dict(settings)
        settings["enabled_repos"] = normalize_repo_keys(settings["enabled_repos"])
        updates[StorageKeys.SETTINGS] = settings

    for key in (StorageKeys.LAST_COMMITS, StorageKeys.LAST_RELEASES):
        state = values.get(key)
        if isinstance(state, dict):
            updates[key] = normalize_repo_keys(state)

    await store.set(updates)
    logger.info(f"Migrated state to schema version {CURRENT_SCHEMA_VERSION}")
    return True
