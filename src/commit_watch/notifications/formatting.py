"""
Text rendering helpers for notifications.
"""

from datetime import datetime

from ..classifier import type_label
from ..models import (
    CommitRecord,
    CommitType,
    FeedItem,
    Platform,
    Priority,
    ReleaseRecord,
    RepositoryRef,
)
from .sink import NotificationMessage, Urgency

TITLE_REPO_MAX_LENGTH = 40
DESCRIPTION_MAX_LENGTH = 100

COMMIT_ACTIONS = ["View Commit", "Mark as Read"]
FEED_ACTIONS = ["View on GitHub", "Mark as Read"]
URGENT_FEED_REASONS = frozenset({"security_alert", "review_requested"})

FEED_SUBJECT_LABELS = {
    "PullRequest": "PR",
    "Issue": "ISSUE",
    "CheckSuite": "CI/CD",
}

PRIORITY_URGENCY = {
    Priority.HIGH: Urgency.URGENT,
    Priority.MEDIUM: Urgency.NORMAL,
    Priority.LOW: Urgency.SILENT,
}


def truncate(text: str, max_length: int = TITLE_REPO_MAX_LENGTH) -> str:
    """Shorten ``text`` to ``max_length`` characters, ending in an ellipsis."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 1] + "…"


def format_time(moment: datetime) -> str:
    """Local wall clock time as HH:MM."""
    return moment.astimezone().strftime("%H:%M")


def notification_title(platform: Platform, full_name: str) -> str:
    return f"[{platform.display_name}] {truncate(full_name)}"


def commit_stats_text(commit: CommitRecord) -> str:
    if not commit.files:
        return ""
    return f"{len(commit.files)} files · +{commit.stats.additions} -{commit.stats.deletions}"


def render_commit(
    repo: RepositoryRef,
    commit: CommitRecord,
    priority: Priority,
    commit_type: CommitType,
    moment: datetime,
) -> NotificationMessage:
    """
    Render a commit notification.

    The body leads with ``author: first line``, followed by the file stats
    when known and the start of the remaining message.
    """
    lines = [f"{commit.author.display_name}: {commit.title}"]
    stats = commit_stats_text(commit)
    if stats:
        lines.append(stats)
    description = commit.description[:DESCRIPTION_MAX_LENGTH]
    if description:
        lines.append(description)

    return NotificationMessage(
        title=notification_title(repo.platform, repo.full_name),
        body="\n".join(lines),
        context=f"{format_time(moment)} · {type_label(commit_type)} · {commit.short_sha}",
        urgency=PRIORITY_URGENCY[priority],
        actions=list(COMMIT_ACTIONS),
        url=commit.url,
    )


def render_release(
    repo: RepositoryRef, release: ReleaseRecord, moment: datetime
) -> NotificationMessage:
    """Render a release or tag notification. These are always urgent."""
    heading = release.display_name
    if release.is_prerelease:
        heading += " (Pre-release)"
    version = f"Version: {release.tag_name}"
    if release.author:
        version += f" by {release.author}"

    channel = "Pre-release" if release.is_prerelease else "Stable"
    return NotificationMessage(
        title=notification_title(repo.platform, repo.full_name),
        body=f"{heading}\n{version}",
        context=f"{format_time(moment)} · {channel}",
        urgency=Urgency.URGENT,
        actions=["View Tag" if release.is_tag_fallback else "View Release", "Dismiss"],
        url=release.url,
    )


def render_feed_item(item: FeedItem, moment: datetime) -> NotificationMessage:
    """
    Render an entry of the GitHub notifications feed.

    Security alerts and review requests stay on screen until handled.
    """
    urgent = item.reason in URGENT_FEED_REASONS

    label = FEED_SUBJECT_LABELS.get(item.subject_type, "NOTIFICATION")
    return NotificationMessage(
        title=notification_title(Platform.GITHUB, item.repo),
        body=f"{item.subject_title}\n{item.reason_text}",
        context=f"{format_time(moment)} · {label}",
        urgency=Urgency.URGENT if urgent else Urgency.NORMAL,
        actions=list(FEED_ACTIONS),
        url=item.url,
    )
