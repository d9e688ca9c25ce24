"""
Credential and identity storage for Commit Watch.

Tokens are opaque personal access tokens handed over by the configuration
surface; this module only stores them and the identity they resolve to.
"""

import structlog

from .models import Identity, Platform
from .state.manager import StateStore, StorageKeys

logger = structlog.get_logger(__name__)


class AuthManager:
    """Per-platform token and identity store."""

    def __init__(self, store: StateStore):
        self.store = store

    async def get_token(self, platform: Platform) -> str | None:
        token = await self.store.get_value(StorageKeys.token(platform))
        return token or None

    async def set_token(self, platform: Platform, token: str) -> None:
        await self.store.set({StorageKeys.token(platform): token})

    async def is_authenticated(self, platform: Platform) -> bool:
        """A stored token counts; it is validated when API calls are made."""
        return await self.get_token(platform) is not None

    async def authenticated_platforms(self) -> list[Platform]:
        keys = [StorageKeys.token(platform) for platform in Platform]
        stored = await self.store.get(keys)
        return [p for p in Platform if stored.get(StorageKeys.token(p))]

    async def is_any_authenticated(self) -> bool:
        return bool(await self.authenticated_platforms())

    async def get_identity(self, platform: Platform) -> Identity | None:
        data = await self.store.get_value(StorageKeys.identity(platform))
        return Identity.model_validate(data) if data else None

    async def set_identity(self, identity: Identity) -> None:
        await self.store.set(
            {StorageKeys.identity(identity.platform): identity.model_dump(mode="json")}
        )

    async def get_identities(self) -> dict[Platform, Identity]:
        """Identities of all platforms that have one stored."""
        keys = [StorageKeys.identity(platform) for platform in Platform]
        stored = await self.store.get(keys)
        return {
            platform: Identity.model_validate(stored[StorageKeys.identity(platform)])
            for platform in Platform
            if stored.get(StorageKeys.identity(platform))
        }

    async def deauthenticate(self, platform: Platform) -> None:
        """
        Forget everything tied to a platform's credential.

        Removes the token, identity, cached repository list and rate limit
        telemetry, and drops that platform's watch state entries so a later
        login starts from a fresh baseline instead of notifying about
        everything that changed in between.
        """
        await self.store.remove(
            [
                StorageKeys.token(platform),
                StorageKeys.identity(platform),
                StorageKeys.repositories(platform),
                StorageKeys.rate_limit(platform),
            ]
        )

        prefix = f"{platform.value}:"
        watch_keys = [StorageKeys.LAST_COMMITS, StorageKeys.LAST_RELEASES]
        stored = await self.store.get(watch_keys)
        pruned = {
            key: {k: v for k, v in state.items() if not k.startswith(prefix)}
            for key, state in stored.items()
        }
        if pruned:
            await self.store.set(pruned)

        logger.info("Platform de-authenticated", platform=platform.value)
