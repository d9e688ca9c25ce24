"""
Notification dispatcher for Commit Watch.

The dispatcher turns detected changes into rendered notifications, hands
them to a sink, and keeps the bounded history feed and unread counter in the
state store.
"""

import asyncio
import time
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

import structlog

from ..classifier import analyze_commit, classify_commit
from ..models import (
    ChangeKind,
    CommitRecord,
    CommitType,
    FeedItem,
    NotificationRecord,
    Platform,
    Priority,
    ReleaseRecord,
    RepositoryRef,
)
from ..state.manager import StateStore, StorageKeys
from .formatting import render_commit, render_feed_item, render_release
from .sink import NotificationMessage, NotificationSink

logger = structlog.get_logger(__name__)

DEFAULT_HISTORY_LIMIT = 100
BADGE_MAX = 99


def commit_notification_id(repo: RepositoryRef, commit: CommitRecord) -> str:
    return f"{repo.platform.value}-commit-{repo.full_name}-{commit.short_sha}"


def release_notification_id(repo: RepositoryRef, release: ReleaseRecord) -> str:
    return f"{repo.platform.value}-release-{repo.full_name}-{release.id}"


def feed_notification_id(item: FeedItem) -> str:
    return f"{Platform.GITHUB.value}-{item.id}"


def badge_text(count: int) -> str:
    """Badge label for an unread count."""
    if count <= 0:
        return ""
    return f"{BADGE_MAX}+" if count > BADGE_MAX else str(count)


class NotificationDispatcher:
    """Emits notifications and maintains history and unread state."""

    def __init__(
        self,
        store: StateStore,
        sink: NotificationSink,
        home_urls: Mapping[Platform, str] | None = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the dispatcher.

        Args:
            store: State store for history and the unread counter
            sink: Destination for rendered notifications
            home_urls: Per-platform page opened when an entry has no URL
            history_limit: Number of history entries kept
            clock: Source of the current epoch time in seconds
        """
        self.store = store
        self.sink = sink
        self.home_urls = dict(home_urls or {})
        self.history_limit = history_limit
        self.clock = clock
        self._lock = asyncio.Lock()

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self.clock(), UTC)

    async def notify(
        self,
        kind: ChangeKind,
        repo: RepositoryRef,
        record: CommitRecord | ReleaseRecord,
        priority: Priority | None = None,
        commit_type: CommitType | None = None,
    ) -> NotificationRecord:
        """
        Emit a notification for a detected change.

        A failing sink is logged; the history entry and unread counter are
        recorded regardless.

        Args:
            kind: Whether ``record`` is a commit or a release
            repo: Repository the change belongs to
            record: The new commit or release
            priority: Commit priority; classified here when omitted
            commit_type: Structural commit type; derived here when omitted

        Returns:
            The history entry that was stored
        """
        now = self._now()
        if kind is ChangeKind.COMMITS and isinstance(record, CommitRecord):
            if commit_type is None or priority is None:
                analysis = analyze_commit(record)
                commit_type = commit_type or analysis.type
                priority = priority or classify_commit(record, analysis)
            notification_id = commit_notification_id(repo, record)
            message = render_commit(repo, record, priority, commit_type, now)
            entry = NotificationRecord(
                id=notification_id,
                type="commit",
                platform=repo.platform,
                repo=repo.full_name,
                priority=priority,
                message=record.title,
                url=record.url,
                timestamp=now,
                author=record.author.display_name,
                commit_type=commit_type,
                sha=record.sha,
                files_changed=len(record.files),
                additions=record.stats.additions,
                deletions=record.stats.deletions,
            )
        elif kind is ChangeKind.RELEASES and isinstance(record, ReleaseRecord):
            notification_id = release_notification_id(repo, record)
            message = render_release(repo, record, now)
            entry = NotificationRecord(
                id=notification_id,
                type="tag" if record.is_tag_fallback else "release",
                platform=repo.platform,
                repo=repo.full_name,
                priority=Priority.HIGH,
                message=record.display_name,
                url=record.url,
                timestamp=now,
                author=record.author,
                tag_name=record.tag_name,
                is_prerelease=record.is_prerelease,
            )
        else:
            raise ValueError(f"Record does not match change kind '{kind.value}'")

        return await self._deliver(notification_id, message, entry)

    async def notify_feed_item(self, item: FeedItem) -> NotificationRecord:
        """
        Emit a notification for an entry of the GitHub notifications feed.

        Returns:
            The history entry that was stored
        """
        now = self._now()
        notification_id = feed_notification_id(item)
        message = render_feed_item(item, now)
        entry = NotificationRecord(
            id=notification_id,
            type="github",
            platform=Platform.GITHUB,
            repo=item.repo,
            priority=Priority.HIGH if item.reason == "security_alert" else Priority.MEDIUM,
            message=item.subject_title,
            url=item.url,
            timestamp=now,
            subject_type=item.subject_type,
            reason=item.reason,
        )
        return await self._deliver(notification_id, message, entry)

    async def _deliver(
        self, notification_id: str, message: NotificationMessage, entry: NotificationRecord
    ) -> NotificationRecord:
        try:
            await self.sink.emit(notification_id, message)
        except Exception as e:
            logger.error(
                "Failed to emit notification",
                notification_id=notification_id,
                error=str(e),
            )

        async with self._lock:
            await self._record(entry)

        logger.info(
            "Notification sent",
            notification_id=notification_id,
            urgency=message.urgency.value,
        )
        return entry

    async def _record(self, entry: NotificationRecord) -> None:
        stored = await self.store.get(
            [StorageKeys.NOTIFICATION_HISTORY, StorageKeys.UNREAD_COUNT]
        )
        history = [
            item
            for item in stored.get(StorageKeys.NOTIFICATION_HISTORY) or []
            if item.get("id") != entry.id
        ]
        history.insert(0, entry.to_storage())
        unread = (stored.get(StorageKeys.UNREAD_COUNT) or 0) + 1
        await self.store.set(
            {
                StorageKeys.NOTIFICATION_HISTORY: history[: self.history_limit],
                StorageKeys.UNREAD_COUNT: unread,
            }
        )

    async def get_history(self) -> list[NotificationRecord]:
        """History entries, newest first."""
        stored = await self.store.get_value(StorageKeys.NOTIFICATION_HISTORY) or []
        return [NotificationRecord.model_validate(item) for item in stored]

    async def clear_history(self) -> None:
        async with self._lock:
            await self.store.remove(StorageKeys.NOTIFICATION_HISTORY)

    async def get_unread_count(self) -> int:
        return await self.store.get_value(StorageKeys.UNREAD_COUNT, 0) or 0

    async def clear_unread(self) -> None:
        async with self._lock:
            await self.store.set({StorageKeys.UNREAD_COUNT: 0})

    async def get_badge_text(self) -> str:
        return badge_text(await self.get_unread_count())

    async def _find(self, notification_id: str) -> dict[str, Any] | None:
        stored = await self.store.get_value(StorageKeys.NOTIFICATION_HISTORY) or []
        return next((item for item in stored if item.get("id") == notification_id), None)

    def _home_url(self, notification_id: str) -> str | None:
        prefix = notification_id.split("-", 1)[0]
        try:
            platform = Platform(prefix)
        except ValueError:
            return None
        return self.home_urls.get(platform)

    async def resolve_url(self, notification_id: str) -> str | None:
        """URL of the history entry, else the platform's home page."""
        entry = await self._find(notification_id)
        if entry and entry.get("url"):
            return entry["url"]
        return self._home_url(notification_id)

    async def handle_click(self, notification_id: str) -> str | None:
        """
        Handle a click on a notification body.

        Returns:
            The URL to open, if one can be resolved
        """
        url = await self.resolve_url(notification_id)
        await self.sink.dismiss(notification_id)
        return url

    async def handle_action(self, notification_id: str, action_index: int) -> str | None:
        """
        Handle a notification action button.

        Action 0 opens the entry; every action dismisses it.

        Returns:
            The URL to open for action 0, otherwise None
        """
        url = await self.resolve_url(notification_id) if action_index == 0 else None
        await self.sink.dismiss(notification_id)
        return url
