"""
Change detection for Commit Watch.

A detector compares the newest commit or release of one repository with the
last identifier recorded for it and reports what changed. Per-repository
failures are logged and reported as "nothing observed" so one repository
cannot fail a whole sweep; only credential rejections propagate.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass

import structlog

from ..classifier import analyze_commit, classify_commit
from ..config import MonitorSettings
from ..exceptions import CommitWatchError, NotFoundError, UnauthorizedError
from ..models import (
    ChangeKind,
    CommitRecord,
    CommitType,
    Identity,
    Platform,
    Priority,
    ReleaseRecord,
    RepositoryRef,
)
from ..platforms.base import PlatformClient

logger = structlog.get_logger(__name__)


@dataclass
class DetectionResult:
    """Outcome of checking one repository."""

    repo: RepositoryRef
    kind: ChangeKind
    record: CommitRecord | ReleaseRecord
    is_new: bool
    priority: Priority | None = None
    commit_type: CommitType | None = None

    @property
    def record_id(self) -> str:
        if isinstance(self.record, CommitRecord):
            return self.record.sha
        return self.record.id


class ChangeDetector(ABC):
    """Base class for commit and release detectors."""

    kind: ChangeKind

    def __init__(self, clients: Mapping[Platform, PlatformClient]):
        self.clients = clients

    async def detect(
        self,
        repo: RepositoryRef,
        last_known_id: str | None,
        identity: Identity | None,
        settings: MonitorSettings,
    ) -> DetectionResult | None:
        """
        Check one repository for a change.

        Args:
            repo: Repository to check
            last_known_id: Identifier recorded by the previous sweep, if any
            identity: Authenticated identity on the repository's platform
            settings: Current monitoring preferences

        Returns:
            A DetectionResult when the newest identifier differs from
            ``last_known_id``, otherwise None

        Raises:
            UnauthorizedError: If the platform rejected the credential
        """
        try:
            return await self._detect(repo, last_known_id, identity, settings)
        except UnauthorizedError:
            raise
        except CommitWatchError as e:
            logger.warning(
                "Change detection failed",
                kind=self.kind.value,
                repository=repo.key,
                error=e.message,
                code=e.code,
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(
                "Malformed platform payload",
                kind=self.kind.value,
                repository=repo.key,
                error=str(e),
            )
        return None

    @abstractmethod
    async def _detect(
        self,
        repo: RepositoryRef,
        last_known_id: str | None,
        identity: Identity | None,
        settings: MonitorSettings,
    ) -> DetectionResult | None:
        """Platform calls and comparison, without error isolation."""


class CommitChangeDetector(ChangeDetector):
    """Detects new commits on a repository's default branch."""

    kind = ChangeKind.COMMITS

    async def _detect(
        self,
        repo: RepositoryRef,
        last_known_id: str | None,
        identity: Identity | None,
        settings: MonitorSettings,
    ) -> DetectionResult | None:
        client = self.clients[repo.platform]
        latest = await client.get_latest_commit(repo)
        if latest is None or latest.sha == last_known_id:
            return None

        if last_known_id is None:
            logger.debug("First observation", repository=repo.key, sha=latest.short_sha)
            return DetectionResult(repo, self.kind, latest, is_new=False)

        if (
            settings.ignore_own_commits
            and identity is not None
            and identity.matches(latest.author)
        ):
            logger.debug("Own commit suppressed", repository=repo.key, sha=latest.short_sha)
            return DetectionResult(repo, self.kind, latest, is_new=False)

        detailed = await client.get_commit_details(repo, latest)
        analysis = analyze_commit(detailed)
        priority = classify_commit(detailed, analysis)

        logger.info(
            "New commit detected",
            repository=repo.key,
            sha=detailed.short_sha,
            commit_type=analysis.type.value,
            priority=priority.value,
        )
        return DetectionResult(
            repo,
            self.kind,
            detailed,
            is_new=True,
            priority=priority,
            commit_type=analysis.type,
        )


class ReleaseChangeDetector(ChangeDetector):
    """Detects new releases, falling back to tags for repositories without any."""

    kind = ChangeKind.RELEASES

    async def _latest(self, repo: RepositoryRef) -> ReleaseRecord | None:
        client = self.clients[repo.platform]
        try:
            release = await client.get_latest_release(repo)
        except NotFoundError:
            release = None
        if release is not None:
            return release
        return await client.get_latest_tag(repo)

    async def _detect(
        self,
        repo: RepositoryRef,
        last_known_id: str | None,
        identity: Identity | None,
        settings: MonitorSettings,
    ) -> DetectionResult | None:
        latest = await self._latest(repo)
        if latest is None or latest.id == last_known_id:
            return None

        if last_known_id is None:
            logger.debug("First observation", repository=repo.key, release=latest.id)
            return DetectionResult(repo, self.kind, latest, is_new=False)

        logger.info(
            "New release detected",
            repository=repo.key,
            tag=latest.tag_name,
            is_tag=latest.is_tag_fallback,
        )
        return DetectionResult(repo, self.kind, latest, is_new=True)
