"""
Service facade for Commit Watch.

This module wires the state store, platform clients, polling engine and
notification dispatcher together and exposes the operations used by the
HTTP surface.
"""

from typing import Any

import httpx
import structlog

from .auth import AuthManager
from .config import MonitorSettings, Settings, get_settings
from .exceptions import CommitWatchError, UnauthorizedError
from .models import ChangeKind, Identity, NotificationRecord, Platform
from .notifications import LoggingNotificationSink, NotificationDispatcher, NotificationSink
from .platforms import PlatformClient, PlatformClientFactory, RateLimitManager
from .polling import (
    ALARM_NAME,
    CommitChangeDetector,
    NotificationFeedChecker,
    PollingOrchestrator,
    ReleaseChangeDetector,
    SweepScheduler,
)
from .repository_directory import RepositoryDirectory
from .state import (
    SettingsManager,
    StateStore,
    StateStoreFactory,
    StorageKeys,
    migrate_legacy_keys,
)

logger = structlog.get_logger(__name__)


def home_urls(settings: Settings) -> dict[Platform, str]:
    """Pages opened for notifications without a URL of their own."""
    return {
        Platform.GITHUB: f"{settings.github_web_url}/notifications",
        Platform.GITLAB: settings.gitlab_web_url,
    }


class CommitWatchService:
    """
    Top-level service object.

    Build it with ``create`` and call ``start`` once inside the event loop;
    ``stop`` waits for a running sweep before releasing HTTP resources.
    """

    def __init__(
        self,
        settings: Settings,
        store: StateStore,
        auth_manager: AuthManager,
        settings_manager: SettingsManager,
        rate_limiter: RateLimitManager,
        clients: dict[Platform, PlatformClient],
        directory: RepositoryDirectory,
        dispatcher: NotificationDispatcher,
        orchestrator: PollingOrchestrator,
        scheduler: SweepScheduler,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings
        self.store = store
        self.auth_manager = auth_manager
        self.settings_manager = settings_manager
        self.rate_limiter = rate_limiter
        self.clients = clients
        self.directory = directory
        self.dispatcher = dispatcher
        self.orchestrator = orchestrator
        self.scheduler = scheduler
        self._http_client = http_client
        self._started = False

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        store: StateStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        sink: NotificationSink | None = None,
    ) -> "CommitWatchService":
        """
        Build a service with all components wired.

        Args:
            settings: Application settings (defaults to the global instance)
            store: State store (defaults to the configured backend)
            http_client: Shared HTTP client; created and owned when omitted
            sink: Notification sink (defaults to logging)

        Returns:
            A service that has not been started yet
        """
        settings = settings or get_settings()
        polling_config = settings.polling_config
        store = store or StateStoreFactory.create_state_store(
            settings.state_backend, settings.state_file_path
        )
        owns_http = http_client is None
        http_client = http_client or httpx.AsyncClient()

        auth_manager = AuthManager(store)
        settings_manager = SettingsManager(store, settings.default_monitor_settings())
        rate_limiter = RateLimitManager(store, threshold=polling_config.rate_limit_threshold)
        clients = PlatformClientFactory.create_clients(
            settings, auth_manager, rate_limiter, http_client
        )
        directory = RepositoryDirectory(
            clients, auth_manager, store, settings_manager, polling_config
        )
        dispatcher = NotificationDispatcher(
            store,
            sink or LoggingNotificationSink(),
            home_urls=home_urls(settings),
            history_limit=polling_config.history_limit,
        )
        orchestrator = PollingOrchestrator(
            detectors={
                ChangeKind.COMMITS: CommitChangeDetector(clients),
                ChangeKind.RELEASES: ReleaseChangeDetector(clients),
            },
            directory=directory,
            auth_manager=auth_manager,
            settings_manager=settings_manager,
            dispatcher=dispatcher,
            store=store,
            config=polling_config,
        )
        feed_checker = NotificationFeedChecker(
            clients[Platform.GITHUB],
            auth_manager,
            settings_manager,
            dispatcher,
            store,
        )
        scheduler = SweepScheduler(
            orchestrator, auth_manager, polling_config, feed_checker=feed_checker
        )

        service = cls(
            settings=settings,
            store=store,
            auth_manager=auth_manager,
            settings_manager=settings_manager,
            rate_limiter=rate_limiter,
            clients=clients,
            directory=directory,
            dispatcher=dispatcher,
            orchestrator=orchestrator,
            scheduler=scheduler,
            http_client=http_client if owns_http else None,
        )
        orchestrator.on_unauthorized = service._deauthenticate
        feed_checker.on_unauthorized = service._deauthenticate
        return service

    async def start(self) -> None:
        """Migrate state, restore credentials and arm the scheduler."""
        if self._started:
            return

        if await migrate_legacy_keys(self.store):
            logger.info("Legacy state migrated")
        await self.rate_limiter.load()
        await self._seed_tokens()

        if await self.auth_manager.is_any_authenticated():
            await self._arm()
        else:
            logger.info("No platform authenticated, scheduler idle")

        self._started = True
        logger.info(
            "Commit Watch started",
            platforms=[p.value for p in await self.auth_manager.authenticated_platforms()],
        )

    async def stop(self) -> None:
        await self.scheduler.shutdown()
        if self._http_client is not None:
            await self._http_client.aclose()
        self._started = False
        logger.info("Commit Watch stopped")

    async def _seed_tokens(self) -> None:
        """Store tokens provided through configuration and verify them."""
        for platform in Platform:
            token = self.settings.platform_config(platform).token
            if not token:
                continue

            stored = await self.auth_manager.get_token(platform)
            identity = await self.auth_manager.get_identity(platform)
            if stored == token and identity is not None:
                continue

            try:
                await self.authenticate(platform, token, arm=False)
            except CommitWatchError as e:
                logger.warning(
                    "Configured token could not be verified",
                    platform=platform.value,
                    error=e.message,
                )

    async def _arm(self) -> None:
        if not self.settings.polling_config.enabled:
            return
        monitor_settings = await self.settings_manager.load()
        self.scheduler.arm(ALARM_NAME, monitor_settings.check_interval_minutes)

    async def authenticate(self, platform: Platform, token: str, arm: bool = True) -> Identity:
        """
        Store a token and verify it against the platform.

        Args:
            platform: Platform the token belongs to
            token: Personal access token
            arm: Arm the scheduler once verified

        Returns:
            The identity the token belongs to

        Raises:
            UnauthorizedError: If the platform rejects the token (it is not kept)
        """
        await self.auth_manager.set_token(platform, token)
        try:
            identity = await self.clients[platform].get_identity()
        except UnauthorizedError:
            await self._deauthenticate(platform)
            raise
        await self.auth_manager.set_identity(identity)

        try:
            await self.directory.refresh(platform)
        except CommitWatchError as e:
            logger.warning(
                "Could not prime repository list", platform=platform.value, error=e.message
            )

        if arm and not self.scheduler.is_armed():
            await self._arm()
        logger.info("Authenticated", platform=platform.value, login=identity.login)
        return identity

    async def logout(self, platform: Platform | None = None) -> None:
        """Sign out of one platform, or of all of them."""
        platforms = [platform] if platform is not None else list(Platform)
        for p in platforms:
            await self._deauthenticate(p)

    async def _deauthenticate(self, platform: Platform) -> None:
        await self.auth_manager.deauthenticate(platform)
        await self.rate_limiter.clear(platform)
        if not await self.auth_manager.is_any_authenticated():
            self.scheduler.disarm(ALARM_NAME)

    async def get_status(self) -> dict[str, Any]:
        authenticated = await self.auth_manager.authenticated_platforms()
        identities = await self.auth_manager.get_identities()
        stored = await self.store.get([StorageKeys.LAST_SWEEP_TIME, StorageKeys.LAST_ERROR])
        unread = await self.dispatcher.get_unread_count()
        return {
            "authenticated": bool(authenticated),
            "platforms": {
                p.value: {
                    "authenticated": p in authenticated,
                    "user": identities[p].model_dump(mode="json") if p in identities else None,
                }
                for p in Platform
            },
            "rate_limits": self.rate_limiter.get_status(),
            "last_sweep_time": stored.get(StorageKeys.LAST_SWEEP_TIME),
            "last_error": stored.get(StorageKeys.LAST_ERROR),
            "unread_count": unread,
            "badge_text": await self.dispatcher.get_badge_text(),
            "scheduler": {
                "armed": self.scheduler.is_armed(),
                "timers": self.scheduler.get_status(),
                "sweeping": self.orchestrator.is_sweeping(),
            },
        }

    async def get_repositories(self, platform: Platform | None = None) -> list[dict[str, Any]]:
        """Watchable repositories with their enabled toggle."""
        monitor_settings = await self.settings_manager.load()
        return [
            {
                **repo.model_dump(mode="json"),
                "key": repo.key,
                "enabled": monitor_settings.is_repo_enabled(repo.key),
            }
            for repo in await self.directory.list_repositories(platform)
        ]

    async def get_settings(self) -> MonitorSettings:
        return await self.settings_manager.load()

    async def update_settings(self, partial: dict[str, Any]) -> MonitorSettings:
        """
        Apply a partial settings update.

        A new interval re-arms the scheduler; a changed fork filter drops the
        cached repository lists.

        Raises:
            ConfigurationError: If the update is invalid
        """
        previous = await self.settings_manager.load()
        updated = await self.settings_manager.update(partial)

        if updated.ignore_forks != previous.ignore_forks:
            await self.directory.invalidate()

        if (
            updated.check_interval_minutes != previous.check_interval_minutes
            and self.scheduler.is_armed()
        ):
            self.scheduler.arm(ALARM_NAME, updated.check_interval_minutes)
        return updated

    async def trigger_sweep(self) -> bool:
        """Run a commit and a release sweep now."""
        return await self.scheduler.trigger()

    async def get_notification_history(self) -> list[NotificationRecord]:
        return await self.dispatcher.get_history()

    async def clear_unread(self) -> None:
        await self.dispatcher.clear_unread()

    async def clear_notification_history(self) -> None:
        await self.dispatcher.clear_history()
        logger.info("Notification history cleared")

    async def reset_release_cache(self) -> None:
        """Forget recorded releases; the next sweep re-baselines silently."""
        await self.store.set({StorageKeys.LAST_RELEASES: {}})
        logger.info("Release cache cleared")

    async def handle_notification_click(self, notification_id: str) -> str | None:
        return await self.dispatcher.handle_click(notification_id)

    async def handle_notification_action(
        self, notification_id: str, action_index: int
    ) -> str | None:
        return await self.dispatcher.handle_action(notification_id, action_index)
