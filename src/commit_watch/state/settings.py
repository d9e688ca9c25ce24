"""
Persistence of the user's monitoring preferences.
"""

from typing import Any

import structlog
from pydantic import ValidationError

from ..config import MonitorSettings
from ..exceptions import ConfigurationError
from .manager import StateStore, StorageKeys

logger = structlog.get_logger(__name__)


class SettingsManager:
    """Loads and updates ``MonitorSettings`` stored in the state store."""

    def __init__(self, store: StateStore, defaults: MonitorSettings | None = None):
        self.store = store
        self.defaults = defaults or MonitorSettings()

    async def load(self) -> MonitorSettings:
        """Stored settings merged over the defaults."""
        stored = await self.store.get_value(StorageKeys.SETTINGS) or {}
        merged = {**self.defaults.model_dump(), **stored}
        try:
            return MonitorSettings.model_validate(merged)
        except ValidationError as e:
            logger.warning(
                "Stored settings are invalid, using defaults", error=str(e)
            )
            return self.defaults.model_copy(deep=True)

    async def update(self, partial: dict[str, Any]) -> MonitorSettings:
        """
        Apply a partial update.

        Args:
            partial: Subset of ``MonitorSettings`` fields

        Returns:
            The settings after the update

        Raises:
            ConfigurationError: If the update contains unknown or invalid fields
        """
        unknown = set(partial) - set(MonitorSettings.model_fields)
        if unknown:
            raise ConfigurationError(
                f"Unknown settings: {', '.join(sorted(unknown))}",
                context={"fields": sorted(unknown)},
            )

        current = await self.load()
        try:
            updated = MonitorSettings.model_validate(
                {**current.model_dump(), **partial}
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid settings: {e}") from e

        await self.store.set({StorageKeys.SETTINGS: updated.model_dump()})
        logger.info("Settings updated", fields=sorted(partial))
        return updated
