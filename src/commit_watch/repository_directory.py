"""
Repository directory for Commit Watch.

This module lists the repositories each authenticated identity can see and
keeps the merged list cached in the state store with a staleness window.
"""

import time
from collections.abc import Callable, Mapping
from typing import Any

import structlog

from .auth import AuthManager
from .config import PollingConfig
from .exceptions import CommitWatchError
from .models import Platform, RepositoryRef
from .platforms.base import PlatformClient
from .state.manager import StateStore, StorageKeys
from .state.settings import SettingsManager

logger = structlog.get_logger(__name__)


class RepositoryDirectory:
    """
    Cached listing of watchable repositories across platforms.

    The fork filter is applied when a platform's list is fetched, so the
    cache only ever holds repositories that should be watched.
    """

    def __init__(
        self,
        clients: Mapping[Platform, PlatformClient],
        auth_manager: AuthManager,
        store: StateStore,
        settings_manager: SettingsManager,
        config: PollingConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the repository directory.

        Args:
            clients: Platform clients keyed by platform
            auth_manager: Used to skip platforms without credentials
            store: State store holding the cached lists
            settings_manager: Source of the ``ignore_forks`` preference
            config: Pagination limits and cache TTL
            clock: Source of the current epoch time in seconds
        """
        self.clients = clients
        self.auth_manager = auth_manager
        self.store = store
        self.settings_manager = settings_manager
        self.config = config or PollingConfig()
        self.clock = clock

    async def list_repositories(self, platform: Platform | None = None) -> list[RepositoryRef]:
        """
        List repositories for one platform, or for every authenticated one.

        When aggregating, a platform without a credential or whose fetch
        fails contributes no entries instead of failing the call.
        """
        if platform is not None:
            return await self._list_platform(platform)

        repositories: list[RepositoryRef] = []
        for authenticated in await self.auth_manager.authenticated_platforms():
            try:
                repositories.extend(await self._list_platform(authenticated))
            except CommitWatchError as e:
                logger.error(
                    "Failed to list repositories",
                    platform=authenticated.value,
                    error=str(e),
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.error(
                    "Malformed repository page",
                    platform=authenticated.value,
                    error=str(e),
                )
        return repositories

    async def refresh(self, platform: Platform | None = None) -> list[RepositoryRef]:
        """Refetch, ignoring the cache."""
        await self.invalidate(platform)
        return await self.list_repositories(platform)

    async def invalidate(self, platform: Platform | None = None) -> None:
        platforms = [platform] if platform is not None else list(Platform)
        await self.store.remove([StorageKeys.repositories(p) for p in platforms])

    async def _list_platform(self, platform: Platform) -> list[RepositoryRef]:
        if not await self.auth_manager.is_authenticated(platform):
            return []

        cache_key = StorageKeys.repositories(platform)
        cached = await self.store.get_value(cache_key)
        if cached and not self._is_stale(cached):
            return [RepositoryRef.model_validate(item) for item in cached["repositories"]]

        settings = await self.settings_manager.load()
        repositories = await self._fetch_all(platform, settings.ignore_forks)

        await self.store.set(
            {
                cache_key: {
                    "repositories": [r.model_dump(mode="json") for r in repositories],
                    "updated_at": self.clock(),
                }
            }
        )
        return repositories

    def _is_stale(self, cached: dict[str, Any]) -> bool:
        updated_at = cached.get("updated_at") or 0
        return self.clock() - updated_at > self.config.repository_cache_ttl_seconds

    async def _fetch_all(self, platform: Platform, ignore_forks: bool) -> list[RepositoryRef]:
        """Walk the platform's pages until an empty or short page, or the cap."""
        client = self.clients[platform]
        per_page = self.config.repository_page_size
        repositories: list[RepositoryRef] = []

        for page in range(1, self.config.repository_max_pages + 1):
            page_items = await client.list_repository_page(page, per_page)
            repositories.extend(
                repo for repo in page_items if not (ignore_forks and repo.is_fork)
            )
            if len(page_items) < per_page:
                break
        else:
            logger.warning(
                "Repository pagination cap reached",
                platform=platform.value,
                max_pages=self.config.repository_max_pages,
            )

        logger.info(
            "Fetched repositories",
            platform=platform.value,
            count=len(repositories),
            ignore_forks=ignore_forks,
        )
        return repositories
