"""
GitLab API client for Commit Watch.

GitLab addresses projects by URL-encoded ``namespace/path`` and does not
return per-file line counts with commits, so they are derived from the diff.
"""

from typing import Any
from urllib.parse import quote

import structlog

from ..exceptions import PlatformAPIError, UnauthorizedError
from ..models import (
    CommitAuthor,
    CommitFile,
    CommitRecord,
    CommitStats,
    Identity,
    Platform,
    ReleaseRecord,
    RepositoryRef,
)
from .base import PlatformAdapter, PlatformClient

logger = structlog.get_logger(__name__)


def count_diff_lines(diff: str | None) -> tuple[int, int]:
    """
    Count added and removed lines in a unified diff hunk.

    Returns:
        Tuple of (additions, deletions)
    """
    additions = deletions = 0
    for line in (diff or "").splitlines():
        if line.startswith("+") and not line.startswith("+++"):
            additions += 1
        elif line.startswith("-") and not line.startswith("---"):
            deletions += 1
    return additions, deletions


def project_id(repo: RepositoryRef) -> str:
    return quote(repo.full_name, safe="")


class GitLabAdapter(PlatformAdapter):
    """Maps GitLab REST v4 payloads to canonical records."""

    platform = Platform.GITLAB

    @staticmethod
    def to_repository(data: dict[str, Any]) -> RepositoryRef:
        full_name = data["path_with_namespace"]
        namespace = data.get("namespace") or {}
        return RepositoryRef(
            platform=Platform.GITLAB,
            full_name=full_name,
            default_branch=data.get("default_branch") or "main",
            visibility=data.get("visibility") or "private",
            is_fork=bool(data.get("forked_from_project")),
            owner=namespace.get("path") or full_name.split("/")[0],
            html_url=data.get("web_url"),
        )

    @staticmethod
    def to_commit(data: dict[str, Any]) -> CommitRecord:
        return CommitRecord(
            sha=data["id"],
            message=data.get("message") or data.get("title") or "",
            author=CommitAuthor(
                name=data.get("author_name"),
                email=data.get("author_email"),
            ),
            parent_shas=list(data.get("parent_ids") or []),
            url=data.get("web_url"),
        )

    @staticmethod
    def to_release(data: dict[str, Any], repo: RepositoryRef, web_url: str) -> ReleaseRecord:
        tag_name = data["tag_name"]
        links = data.get("_links") or {}
        return ReleaseRecord(
            # GitLab releases have no numeric id of their own
            id=tag_name,
            tag_name=tag_name,
            name=data.get("name") or tag_name,
            is_prerelease=bool(data.get("upcoming_release")),
            author=(data.get("author") or {}).get("username"),
            url=links.get("self") or f"{web_url}/{repo.full_name}/-/releases/{tag_name}",
        )

    @staticmethod
    def tag_to_release(data: dict[str, Any], repo: RepositoryRef, web_url: str) -> ReleaseRecord:
        return ReleaseRecord(
            id=data["commit"]["id"],
            tag_name=data["name"],
            name=data["name"],
            is_tag_fallback=True,
            url=f"{web_url}/{repo.full_name}/-/tags/{data['name']}",
        )

    @staticmethod
    def to_identity(data: dict[str, Any]) -> Identity:
        return Identity(
            platform=Platform.GITLAB,
            login=data["username"],
            name=data.get("name"),
            email=data.get("email") or data.get("public_email") or None,
            id=data.get("id"),
        )

    @staticmethod
    def to_files(diffs: list[dict[str, Any]]) -> list[CommitFile]:
        files = []
        for diff in diffs:
            additions, deletions = count_diff_lines(diff.get("diff"))
            files.append(
                CommitFile(
                    filename=diff.get("new_path") or diff.get("old_path") or "",
                    additions=additions,
                    deletions=deletions,
                )
            )
        return files


class GitLabClient(PlatformClient):
    """GitLab REST client authenticated with a personal access token."""

    platform = Platform.GITLAB
    adapter = GitLabAdapter
    rate_limit_headers = ("RateLimit-Remaining", "RateLimit-Reset", "RateLimit-Limit")

    def _auth_headers(self, token: str) -> dict[str, str]:
        return {"PRIVATE-TOKEN": token}

    async def list_repository_page(self, page: int, per_page: int) -> list[RepositoryRef]:
        data = await self.fetch_json(
            "/projects", {"membership": "true", "per_page": per_page, "page": page}
        )
        return [self.adapter.to_repository(item) for item in data]

    async def get_latest_commit(self, repo: RepositoryRef) -> CommitRecord | None:
        commits = await self.fetch_json(
            f"/projects/{project_id(repo)}/repository/commits",
            {"ref_name": repo.default_branch, "per_page": 1},
        )
        if not commits:
            return None
        return self.adapter.to_commit(commits[0])

    async def get_commit_details(
        self, repo: RepositoryRef, commit: CommitRecord
    ) -> CommitRecord:
        try:
            diffs = await self.fetch_json(
                f"/projects/{project_id(repo)}/repository/commits/{commit.sha}/diff"
            )
        except UnauthorizedError:
            raise
        except PlatformAPIError as e:
            logger.warning(
                "Could not fetch diff",
                repository=repo.full_name,
                sha=commit.short_sha,
                error=str(e),
            )
            return commit

        files = GitLabAdapter.to_files(diffs or [])
        stats = CommitStats(
            additions=sum(f.additions for f in files),
            deletions=sum(f.deletions for f in files),
        )
        return commit.model_copy(update={"files": files, "stats": stats})

    async def get_latest_release(self, repo: RepositoryRef) -> ReleaseRecord | None:
        releases = await self.fetch_json(
            f"/projects/{project_id(repo)}/releases", {"per_page": 1}
        )
        if not releases:
            return None
        return self.adapter.to_release(releases[0], repo, self.config.web_url)

    async def get_latest_tag(self, repo: RepositoryRef) -> ReleaseRecord | None:
        tags = await self.fetch_json(
            f"/projects/{project_id(repo)}/repository/tags", {"per_page": 1}
        )
        if not tags:
            return None
        return self.adapter.tag_to_release(tags[0], repo, self.config.web_url)
