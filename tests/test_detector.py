"""
Tests for commit and release change detection.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from commit_watch.config import MonitorSettings
from commit_watch.exceptions import (
    NetworkError,
    NotFoundError,
    RateLimitError,
    UnauthorizedError,
)
from commit_watch.models import (
    ChangeKind,
    CommitAuthor,
    CommitType,
    Identity,
    Platform,
    Priority,
    ReleaseRecord,
)
from commit_watch.polling.detector import CommitChangeDetector, ReleaseChangeDetector

IDENTITY = Identity(platform=Platform.GITHUB, login="OctoCat", email="octo@example.com")


def commit_client(latest, detailed=None):
    client = Mock()
    client.get_latest_commit = AsyncMock(return_value=latest)
    client.get_commit_details = AsyncMock(return_value=detailed or latest)
    return client


class TestCommitChangeDetector:
    """Test new commit detection."""

    @pytest.mark.asyncio
    async def test_unchanged_commit_returns_none(self, make_repo, make_commit):
        commit = make_commit(sha="aaa111")
        client = commit_client(commit)
        detector = CommitChangeDetector({Platform.GITHUB: client})

        result = await detector.detect(make_repo(), "aaa111", IDENTITY, MonitorSettings())

        assert result is None
        client.get_commit_details.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_first_observation_is_not_new(self, make_repo, make_commit):
        """The first commit seen for a repository only establishes a baseline."""
        client = commit_client(make_commit(sha="aaa111"))
        detector = CommitChangeDetector({Platform.GITHUB: client})

        result = await detector.detect(make_repo(), None, IDENTITY, MonitorSettings())

        assert result is not None
        assert result.is_new is False
        assert result.record_id == "aaa111"
        assert result.priority is None
        client.get_commit_details.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_new_commit_is_classified(self, make_repo, make_commit):
        summary = make_commit(sha="bbb222", message="Tidy", files=[])
        detailed = make_commit(sha="bbb222", message="Tidy", files=[("auth/login.go", 5, 1)])
        client = commit_client(summary, detailed)
        detector = CommitChangeDetector({Platform.GITHUB: client})

        result = await detector.detect(make_repo(), "aaa111", IDENTITY, MonitorSettings())

        assert result.is_new is True
        assert result.kind is ChangeKind.COMMITS
        assert result.priority is Priority.HIGH
        assert result.commit_type is CommitType.CODE
        assert result.record is detailed
        client.get_commit_details.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_own_commit_is_suppressed(self, make_repo, make_commit):
        """Own commits advance the state without a notification."""
        commit = make_commit(sha="bbb222", author=CommitAuthor(name="Octo", login="octocat"))
        client = commit_client(commit)
        detector = CommitChangeDetector({Platform.GITHUB: client})
        settings = MonitorSettings(ignore_own_commits=True)

        result = await detector.detect(make_repo(), "aaa111", IDENTITY, settings)

        assert result.is_new is False
        assert result.record_id == "bbb222"
        client.get_commit_details.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_own_commit_notifies_when_not_ignored(self, make_repo, make_commit):
        commit = make_commit(sha="bbb222", author=CommitAuthor(login="octocat"))
        detector = CommitChangeDetector({Platform.GITHUB: commit_client(commit)})

        result = await detector.detect(make_repo(), "aaa111", IDENTITY, MonitorSettings())

        assert result.is_new is True

    @pytest.mark.asyncio
    async def test_gitlab_own_commit_matched_by_name(self, make_repo, make_commit):
        identity = Identity(platform=Platform.GITLAB, login="jdoe", name="Jane Doe")
        commit = make_commit(sha="bbb222", author=CommitAuthor(name="jane doe"))
        detector = CommitChangeDetector({Platform.GITLAB: commit_client(commit)})
        repo = make_repo("group/project", platform=Platform.GITLAB)

        result = await detector.detect(
            repo, "aaa111", identity, MonitorSettings(ignore_own_commits=True)
        )

        assert result.is_new is False

    @pytest.mark.asyncio
    async def test_empty_branch_returns_none(self, make_repo):
        detector = CommitChangeDetector({Platform.GITHUB: commit_client(None)})

        assert await detector.detect(make_repo(), None, IDENTITY, MonitorSettings()) is None

    @pytest.mark.parametrize(
        "error",
        [
            NotFoundError("empty repository", status_code=409),
            RateLimitError("exhausted", retry_after_minutes=5),
            NetworkError("timeout"),
            KeyError("sha"),
        ],
    )
    @pytest.mark.asyncio
    async def test_errors_degrade_to_none(self, make_repo, error):
        client = Mock()
        client.get_latest_commit = AsyncMock(side_effect=error)
        detector = CommitChangeDetector({Platform.GITHUB: client})

        assert await detector.detect(make_repo(), "aaa111", IDENTITY, MonitorSettings()) is None

    @pytest.mark.asyncio
    async def test_unauthorized_propagates(self, make_repo):
        client = Mock()
        client.get_latest_commit = AsyncMock(side_effect=UnauthorizedError("bad token"))
        detector = CommitChangeDetector({Platform.GITHUB: client})

        with pytest.raises(UnauthorizedError):
            await detector.detect(make_repo(), "aaa111", IDENTITY, MonitorSettings())


class TestReleaseChangeDetector:
    """Test new release detection with tag fallback."""

    @pytest.mark.asyncio
    async def test_new_release(self, make_repo, sample_release):
        client = Mock()
        client.get_latest_release = AsyncMock(return_value=sample_release)
        client.get_latest_tag = AsyncMock()
        detector = ReleaseChangeDetector({Platform.GITHUB: client})

        result = await detector.detect(make_repo(), "999", IDENTITY, MonitorSettings())

        assert result.is_new is True
        assert result.kind is ChangeKind.RELEASES
        assert result.record_id == "1001"
        client.get_latest_tag.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_falls_back_to_tag_when_no_release(self, make_repo):
        tag = ReleaseRecord(id="feedbeef", tag_name="v0.1", name="v0.1", is_tag_fallback=True)
        client = Mock()
        client.get_latest_release = AsyncMock(side_effect=NotFoundError("no releases"))
        client.get_latest_tag = AsyncMock(return_value=tag)
        detector = ReleaseChangeDetector({Platform.GITHUB: client})

        result = await detector.detect(make_repo(), "cafe", IDENTITY, MonitorSettings())

        assert result.is_new is True
        assert result.record.is_tag_fallback

    @pytest.mark.asyncio
    async def test_falls_back_to_tag_on_empty_list(self, make_repo):
        tag = ReleaseRecord(id="feedbeef", tag_name="v0.1", is_tag_fallback=True)
        client = Mock()
        client.get_latest_release = AsyncMock(return_value=None)
        client.get_latest_tag = AsyncMock(return_value=tag)
        detector = ReleaseChangeDetector({Platform.GITLAB: client})
        repo = make_repo("group/project", platform=Platform.GITLAB)

        result = await detector.detect(repo, None, None, MonitorSettings())

        assert result.is_new is False
        assert result.record_id == "feedbeef"

    @pytest.mark.asyncio
    async def test_no_release_and_no_tag(self, make_repo):
        client = Mock()
        client.get_latest_release = AsyncMock(side_effect=NotFoundError("no releases"))
        client.get_latest_tag = AsyncMock(return_value=None)
        detector = ReleaseChangeDetector({Platform.GITHUB: client})

        assert await detector.detect(make_repo(), "1", IDENTITY, MonitorSettings()) is None

    @pytest.mark.asyncio
    async def test_unchanged_release(self, make_repo, sample_release):
        client = Mock()
        client.get_latest_release = AsyncMock(return_value=sample_release)
        detector = ReleaseChangeDetector({Platform.GITHUB: client})

        assert await detector.detect(make_repo(), "1001", IDENTITY, MonitorSettings()) is None
