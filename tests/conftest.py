"""
Pytest configuration and fixtures for Commit Watch tests.
"""

from collections.abc import Callable
from typing import Any

import pytest
import pytest_asyncio

from commit_watch.auth import AuthManager
from commit_watch.config import MonitorSettings, Settings
from commit_watch.models import (
    CommitAuthor,
    CommitFile,
    CommitRecord,
    CommitStats,
    Identity,
    Platform,
    ReleaseRecord,
    RepositoryRef,
)
from commit_watch.state.manager import InMemoryStateStore
from commit_watch.state.settings import SettingsManager


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        github_token="",
        gitlab_token="",
        state_backend="memory",
        log_level="DEBUG",
        log_format="console",
        first_sweep_delay_minutes=0.1,
        sweep_batch_delay_ms=0,
    )


@pytest.fixture
def store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest_asyncio.fixture
async def auth_manager(store: InMemoryStateStore) -> AuthManager:
    """Auth manager with a GitHub token and identity stored."""
    manager = AuthManager(store)
    await manager.set_token(Platform.GITHUB, "gh-token")
    await manager.set_identity(
        Identity(platform=Platform.GITHUB, login="octocat", email="octocat@example.com")
    )
    return manager


@pytest.fixture
def settings_manager(store: InMemoryStateStore) -> SettingsManager:
    return SettingsManager(store, MonitorSettings())


@pytest.fixture
def make_repo() -> Callable[..., RepositoryRef]:
    """Factory for repository references."""

    def _make(
        full_name: str = "octo-org/hello-world",
        platform: Platform = Platform.GITHUB,
        **kwargs: Any,
    ) -> RepositoryRef:
        return RepositoryRef(
            platform=platform,
            full_name=full_name,
            owner=full_name.split("/")[0],
            **kwargs,
        )

    return _make


@pytest.fixture
def make_commit() -> Callable[..., CommitRecord]:
    """Factory for commit records; files are (filename, additions, deletions)."""

    def _make(
        sha: str = "abc1234def5678",
        message: str = "Add feature",
        files: list[tuple[str, int, int]] | None = None,
        parents: int = 1,
        author: CommitAuthor | None = None,
        stats: tuple[int, int] | None = None,
    ) -> CommitRecord:
        commit_files = [
            CommitFile(filename=name, additions=additions, deletions=deletions)
            for name, additions, deletions in files or []
        ]
        if stats is None:
            stats = (
                sum(f.additions for f in commit_files),
                sum(f.deletions for f in commit_files),
            )
        return CommitRecord(
            sha=sha,
            message=message,
            author=author or CommitAuthor(name="Jane Doe", login="jdoe"),
            parent_shas=[f"parent{i}" for i in range(parents)],
            files=commit_files,
            stats=CommitStats(additions=stats[0], deletions=stats[1]),
            url=f"https://github.com/octo-org/hello-world/commit/{sha}",
        )

    return _make


@pytest.fixture
def sample_release() -> ReleaseRecord:
    return ReleaseRecord(
        id="1001",
        tag_name="v1.2.0",
        name="Version 1.2.0",
        author="octocat",
        url="https://github.com/octo-org/hello-world/releases/tag/v1.2.0",
    )


@pytest.fixture
def github_repo_payload() -> dict[str, Any]:
    """Repository item as returned by GitHub's /user/repos."""
    return {
        "full_name": "octo-org/hello-world",
        "default_branch": "main",
        "private": False,
        "visibility": "public",
        "fork": False,
        "owner": {"login": "octo-org"},
        "html_url": "https://github.com/octo-org/hello-world",
    }


@pytest.fixture
def github_commit_payload() -> dict[str, Any]:
    """Commit detail as returned by GitHub's /repos/{repo}/commits/{sha}."""
    return {
        "sha": "abc1234def5678",
        "commit": {
            "message": "Fix login redirect\n\nHandles expired sessions.",
            "author": {"name": "Jane Doe", "email": "jane@example.com"},
        },
        "author": {"login": "jdoe"},
        "parents": [{"sha": "0000000"}],
        "stats": {"additions": 12, "deletions": 3},
        "files": [
            {"filename": "src/auth/login.py", "additions": 12, "deletions": 3},
        ],
        "html_url": "https://github.com/octo-org/hello-world/commit/abc1234def5678",
    }
