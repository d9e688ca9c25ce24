"""
Polling orchestrator for Commit Watch.

This module runs one sweep over every watched repository: it checks
repositories in small concurrent batches, advances the watch state and
emits notifications for the changes found.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import structlog

from ..auth import AuthManager
from ..config import PollingConfig
from ..exceptions import FatalSweepError, UnauthorizedError
from ..models import ChangeKind, Platform
from ..notifications.dispatcher import NotificationDispatcher
from ..repository_directory import RepositoryDirectory
from ..state.manager import StateStore, StorageKeys
from ..state.settings import SettingsManager
from .detector import ChangeDetector, DetectionResult

logger = structlog.get_logger(__name__)

WATCH_STATE_KEYS = {
    ChangeKind.COMMITS: StorageKeys.LAST_COMMITS,
    ChangeKind.RELEASES: StorageKeys.LAST_RELEASES,
}


@dataclass
class SweepSummary:
    """Metrics for a single sweep."""

    kind: ChangeKind
    start_time: datetime
    end_time: datetime | None = None
    repositories_checked: int = 0
    changes_observed: int = 0
    notifications_sent: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        if self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return 0.0


class PollingOrchestrator:
    """
    Runs commit and release sweeps across all watched repositories.

    Sweeps of the same kind are serialized by a lock, and watch state is
    written by re-reading the stored map and applying only the keys this
    sweep touched, so recorded identifiers never move backwards.
    """

    def __init__(
        self,
        detectors: Mapping[ChangeKind, ChangeDetector],
        directory: RepositoryDirectory,
        auth_manager: AuthManager,
        settings_manager: SettingsManager,
        dispatcher: NotificationDispatcher,
        store: StateStore,
        config: PollingConfig | None = None,
        on_unauthorized: Callable[[Platform], Awaitable[None]] | None = None,
    ):
        """
        Initialize the polling orchestrator.

        Args:
            detectors: Change detector per sweep kind
            directory: Source of the repositories to check
            auth_manager: Credential and identity store
            settings_manager: Source of the monitoring preferences
            dispatcher: Receives every new change
            store: State store holding watch state and sweep status
            config: Batch size and pacing
            on_unauthorized: Called when a platform rejects its credential;
                defaults to de-authenticating the platform
        """
        self.detectors = detectors
        self.directory = directory
        self.auth_manager = auth_manager
        self.settings_manager = settings_manager
        self.dispatcher = dispatcher
        self.store = store
        self.config = config or PollingConfig()
        self.on_unauthorized = on_unauthorized or auth_manager.deauthenticate
        self._locks = {kind: asyncio.Lock() for kind in ChangeKind}

    def is_sweeping(self, kind: ChangeKind | None = None) -> bool:
        kinds = [kind] if kind is not None else list(ChangeKind)
        return any(self._locks[k].locked() for k in kinds)

    async def run_sweep(self, kind: ChangeKind) -> SweepSummary | None:
        """
        Run one sweep.

        Failures that escape per-repository isolation abort the sweep and
        are stored as the last error; they are never raised to the caller.

        Args:
            kind: Whether to look for commits or releases

        Returns:
            The sweep summary, or None if the sweep was skipped or aborted
        """
        async with self._locks[kind]:
            try:
                return await self._sweep(kind)
            except Exception as e:
                logger.error("Sweep failed", kind=kind.value, error=str(e))
                await self.record_error(e, kind)
                return None

    async def _sweep(self, kind: ChangeKind) -> SweepSummary | None:
        settings = await self.settings_manager.load()
        if not settings.notifications_enabled:
            logger.debug("Notifications disabled, skipping sweep", kind=kind.value)
            return None
        if kind is ChangeKind.RELEASES and not settings.release_notifications_enabled:
            logger.debug("Release notifications disabled, skipping sweep")
            return None

        if not await self.auth_manager.is_any_authenticated():
            raise FatalSweepError("No platform is authenticated")

        summary = SweepSummary(kind=kind, start_time=datetime.now(UTC))
        logger.info("Sweep started", kind=kind.value)

        identities = await self.auth_manager.get_identities()
        repositories = [
            repo
            for repo in await self.directory.list_repositories()
            if settings.is_repo_enabled(repo.key)
        ]

        state_key = WATCH_STATE_KEYS[kind]
        watch_state: dict[str, str] = await self.store.get_value(state_key) or {}
        detector = self.detectors[kind]

        updates: dict[str, str] = {}
        pending: list[DetectionResult] = []
        batch_size = self.config.batch_size

        for start in range(0, len(repositories), batch_size):
            if start:
                await asyncio.sleep(self.config.batch_delay_seconds)

            batch = repositories[start : start + batch_size]
            results = await asyncio.gather(
                *(
                    detector.detect(
                        repo,
                        watch_state.get(repo.key),
                        identities.get(repo.platform),
                        settings,
                    )
                    for repo in batch
                ),
                return_exceptions=True,
            )

            for repo, result in zip(batch, results):
                summary.repositories_checked += 1
                if isinstance(result, UnauthorizedError):
                    logger.warning(
                        "Credential rejected, signing out",
                        platform=repo.platform.value,
                        repository=repo.key,
                    )
                    await self.on_unauthorized(repo.platform)
                    raise FatalSweepError(
                        f"{repo.platform.display_name} rejected the credential",
                        context={"platform": repo.platform.value},
                    ) from result
                if isinstance(result, BaseException):
                    logger.error(
                        "Repository check failed",
                        repository=repo.key,
                        error=str(result),
                    )
                    summary.errors.append(f"{repo.key}: {result}")
                    continue
                if result is None:
                    continue

                updates[repo.key] = result.record_id
                summary.changes_observed += 1
                if result.is_new:
                    pending.append(result)

        await self._merge_watch_state(state_key, updates)

        for result in pending:
            try:
                await self.dispatcher.notify(
                    kind,
                    result.repo,
                    result.record,
                    priority=result.priority,
                    commit_type=result.commit_type,
                )
                summary.notifications_sent += 1
            except Exception as e:
                logger.error(
                    "Notification failed",
                    repository=result.repo.key,
                    record_id=result.record_id,
                    error=str(e),
                )

        summary.end_time = datetime.now(UTC)
        await self.store.set({StorageKeys.LAST_SWEEP_TIME: time.time()})
        await self.store.remove(StorageKeys.LAST_ERROR)

        logger.info(
            "Sweep completed",
            kind=kind.value,
            repositories=summary.repositories_checked,
            changes=summary.changes_observed,
            notifications=summary.notifications_sent,
            errors=len(summary.errors),
            duration_seconds=summary.duration_seconds,
        )
        return summary

    async def _merge_watch_state(self, state_key: str, updates: dict[str, str]) -> None:
        """Apply this sweep's identifiers over the currently stored map."""
        if not updates:
            return

        # Entries of platforms signed out mid-sweep must stay pruned
        authenticated = {p.value for p in await self.auth_manager.authenticated_platforms()}
        current: dict[str, Any] = await self.store.get_value(state_key) or {}
        current.update(
            {
                key: value
                for key, value in updates.items()
                if key.split(":", 1)[0] in authenticated
            }
        )
        await self.store.set({state_key: current})

    async def record_error(self, error: Exception, kind: ChangeKind | None = None) -> None:
        """Store a failure as the last error. Storage failures are only logged."""
        last_error = {
            "message": str(error),
            "code": getattr(error, "code", type(error).__name__),
            "kind": kind.value if kind is not None else None,
            "timestamp": time.time(),
        }
        try:
            await self.store.set({StorageKeys.LAST_ERROR: last_error})
        except Exception as e:
            logger.error("Failed to record sweep error", error=str(e))
