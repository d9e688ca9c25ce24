"""
GitHub notifications feed checker for Commit Watch.

Each pass reads the user's unread GitHub notifications, keeps the ones worth
interrupting for (review requests, mentions, CI and security activity on
pull requests, issues and check suites) and forwards a few new ones to the
dispatcher. Ids already forwarded are remembered in the state store.
"""

from collections.abc import Awaitable, Callable

import structlog

from ..auth import AuthManager
from ..exceptions import CommitWatchError, UnauthorizedError
from ..models import FeedItem, Platform
from ..notifications.dispatcher import NotificationDispatcher
from ..platforms.github import GitHubClient
from ..state.manager import StateStore, StorageKeys
from ..state.settings import SettingsManager

logger = structlog.get_logger(__name__)

IMPORTANT_SUBJECT_TYPES = frozenset({"PullRequest", "Issue", "CheckSuite"})
IMPORTANT_REASONS = frozenset(
    {"review_requested", "mention", "ci_activity", "security_alert"}
)

FEED_PAGE_SIZE = 50
MAX_PER_PASS = 5
SEEN_LIMIT = 1000


def is_important(item: FeedItem) -> bool:
    return item.subject_type in IMPORTANT_SUBJECT_TYPES or item.reason in IMPORTANT_REASONS


class NotificationFeedChecker:
    """Forwards important GitHub feed entries as notifications."""

    def __init__(
        self,
        client: GitHubClient,
        auth_manager: AuthManager,
        settings_manager: SettingsManager,
        dispatcher: NotificationDispatcher,
        store: StateStore,
        on_unauthorized: Callable[[Platform], Awaitable[None]] | None = None,
    ):
        """
        Initialize the feed checker.

        Args:
            client: GitHub client used to read the feed
            auth_manager: Used to skip the pass when GitHub is signed out
            settings_manager: Source of the notifications toggle
            dispatcher: Receives every new important entry
            store: State store holding the seen ids
            on_unauthorized: Called when GitHub rejects the credential;
                defaults to de-authenticating GitHub
        """
        self.client = client
        self.auth_manager = auth_manager
        self.settings_manager = settings_manager
        self.dispatcher = dispatcher
        self.store = store
        self.on_unauthorized = on_unauthorized or auth_manager.deauthenticate

    async def check(self) -> int:
        """
        Run one pass over the feed.

        Failures are logged and end the pass; the next pass retries.

        Returns:
            Number of notifications emitted
        """
        if not await self.auth_manager.is_authenticated(Platform.GITHUB):
            return 0
        settings = await self.settings_manager.load()
        if not settings.notifications_enabled:
            return 0

        try:
            items = await self.client.list_notifications(FEED_PAGE_SIZE)
        except UnauthorizedError as e:
            logger.warning("Credential rejected while reading feed", error=e.message)
            await self.on_unauthorized(Platform.GITHUB)
            return 0
        except CommitWatchError as e:
            logger.warning("Failed to read notifications feed", error=e.message, code=e.code)
            return 0
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Malformed notifications feed", error=str(e))
            return 0

        seen: list[str] = await self.store.get_value(StorageKeys.SEEN_NOTIFICATIONS) or []
        seen_ids = set(seen)
        fresh = [item for item in items if item.id not in seen_ids and is_important(item)]
        if not fresh:
            logger.debug("No new feed entries", entries=len(items))
            return 0

        emitted = 0
        for item in fresh[:MAX_PER_PASS]:
            try:
                await self.dispatcher.notify_feed_item(item)
                seen.append(item.id)
                emitted += 1
            except Exception as e:
                logger.error("Feed notification failed", feed_id=item.id, error=str(e))

        if emitted:
            await self.store.set({StorageKeys.SEEN_NOTIFICATIONS: seen[-SEEN_LIMIT:]})

        logger.info(
            "Notifications feed checked",
            entries=len(items),
            important=len(fresh),
            emitted=emitted,
        )
        return emitted
