"""
Canonical data model for Commit Watch.

Every platform adapter converts its API payloads into these records, so the
classifier, detectors and dispatcher never see platform-specific shapes.
"""

import math
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Platform(str, Enum):
    """Supported hosting platforms."""

    GITHUB = "github"
    GITLAB = "gitlab"

    @property
    def display_name(self) -> str:
        return "GitLab" if self is Platform.GITLAB else "GitHub"


class ChangeKind(str, Enum):
    """The two things a sweep can look for."""

    COMMITS = "commits"
    RELEASES = "releases"


class CommitType(str, Enum):
    """Structural commit type produced by the classifier."""

    MERGE = "merge"
    DOCS = "docs"
    CONFIG = "config"
    CI = "ci"
    TESTS = "tests"
    LOCALIZATION = "localization"
    CODE = "code"


class Priority(str, Enum):
    """Notification priority tier."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def make_repo_key(platform: Platform | str, full_name: str) -> str:
    """Build the composite identity key used by settings and watch state."""
    value = platform.value if isinstance(platform, Platform) else platform
    return f"{value}:{full_name}"


class RepositoryRef(BaseModel):
    """A repository visible to the authenticated identity."""

    model_config = ConfigDict(frozen=True)

    platform: Platform
    full_name: str
    default_branch: str = "main"
    visibility: str = "public"
    is_fork: bool = False
    owner: str
    html_url: str | None = None

    @property
    def key(self) -> str:
        return make_repo_key(self.platform, self.full_name)

    @property
    def name(self) -> str:
        return self.full_name.rsplit("/", 1)[-1]


class CommitAuthor(BaseModel):
    name: str | None = None
    login: str | None = None
    email: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.login or "Unknown"


class CommitFile(BaseModel):
    filename: str
    additions: int = 0
    deletions: int = 0

    @property
    def changes(self) -> int:
        return self.additions + self.deletions


class CommitStats(BaseModel):
    additions: int = 0
    deletions: int = 0

    @property
    def total(self) -> int:
        return self.additions + self.deletions


class CommitRecord(BaseModel):
    """Platform independent commit, optionally with file details."""

    sha: str
    message: str = ""
    author: CommitAuthor = Field(default_factory=CommitAuthor)
    parent_shas: list[str] = Field(default_factory=list)
    files: list[CommitFile] = Field(default_factory=list)
    stats: CommitStats = Field(default_factory=CommitStats)
    url: str | None = None

    @property
    def is_merge(self) -> bool:
        return len(self.parent_shas) >= 2

    @property
    def short_sha(self) -> str:
        return self.sha[:7]

    @property
    def message_lines(self) -> list[str]:
        return [line.strip() for line in self.message.splitlines() if line.strip()]

    @property
    def title(self) -> str:
        lines = self.message_lines
        return lines[0] if lines else "No message"

    @property
    def description(self) -> str:
        return " ".join(self.message_lines[1:])


class ReleaseRecord(BaseModel):
    """A formal release, or the latest tag promoted into release shape."""

    id: str
    tag_name: str
    name: str | None = None
    is_prerelease: bool = False
    is_tag_fallback: bool = False
    author: str | None = None
    url: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.tag_name


class FeedItem(BaseModel):
    """One entry of the GitHub notifications feed."""

    id: str
    subject_type: str
    subject_title: str
    reason: str
    repo: str
    url: str

    @property
    def reason_text(self) -> str:
        return self.reason.replace("_", " ")


class Identity(BaseModel):
    """The authenticated user on one platform."""

    platform: Platform
    login: str
    name: str | None = None
    email: str | None = None
    id: int | str | None = None

    def matches(self, author: CommitAuthor) -> bool:
        """
        Check whether a commit author is this identity.

        GitLab commits only carry the author's display name and email, so the
        name is compared against both the login and the profile name.
        """
        login = self.login.casefold()
        if author.login and author.login.casefold() == login:
            return True
        if author.email and self.email and author.email.casefold() == self.email.casefold():
            return True
        if self.platform is Platform.GITLAB and author.name:
            name = author.name.casefold()
            return name == login or bool(self.name and name == self.name.casefold())
        return False


class RateLimitState(BaseModel):
    """Request budget for one platform, as last reported by its API."""

    platform: Platform
    remaining: int
    limit: int
    reset_epoch_seconds: int = 0

    def is_exhausted(self, now: float, threshold: int = 10) -> bool:
        return self.remaining <= threshold and now < self.reset_epoch_seconds

    def retry_after_minutes(self, now: float) -> int:
        return max(1, math.ceil((self.reset_epoch_seconds - now) / 60))


class NotificationRecord(BaseModel):
    """One entry of the notification history feed."""

    id: str
    type: str
    platform: Platform
    repo: str
    priority: Priority | None = None
    message: str
    url: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    author: str | None = None
    commit_type: CommitType | None = None
    sha: str | None = None
    tag_name: str | None = None
    is_prerelease: bool | None = None
    subject_type: str | None = None
    reason: str | None = None
    files_changed: int | None = None
    additions: int | None = None
    deletions: int | None = None

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
