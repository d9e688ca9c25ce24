"""
GitHub API client for Commit Watch.
"""

from typing import Any

import structlog

from ..exceptions import PlatformAPIError, UnauthorizedError
from ..models import (
    CommitAuthor,
    CommitFile,
    CommitRecord,
    CommitStats,
    FeedItem,
    Identity,
    Platform,
    ReleaseRecord,
    RepositoryRef,
)
from .base import PlatformAdapter, PlatformClient

logger = structlog.get_logger(__name__)


class GitHubAdapter(PlatformAdapter):
    """Maps GitHub REST v3 payloads to canonical records."""

    platform = Platform.GITHUB

    @staticmethod
    def to_repository(data: dict[str, Any]) -> RepositoryRef:
        owner = (data.get("owner") or {}).get("login") or data["full_name"].split("/")[0]
        visibility = data.get("visibility") or ("private" if data.get("private") else "public")
        return RepositoryRef(
            platform=Platform.GITHUB,
            full_name=data["full_name"],
            default_branch=data.get("default_branch") or "main",
            visibility=visibility,
            is_fork=bool(data.get("fork")),
            owner=owner,
            html_url=data.get("html_url"),
        )

    @staticmethod
    def to_commit(data: dict[str, Any]) -> CommitRecord:
        git_commit = data.get("commit") or {}
        git_author = git_commit.get("author") or {}
        account = data.get("author") or {}
        stats = data.get("stats") or {}
        files = [
            CommitFile(
                filename=f["filename"],
                additions=f.get("additions") or 0,
                deletions=f.get("deletions") or 0,
            )
            for f in data.get("files") or []
        ]
        return CommitRecord(
            sha=data["sha"],
            message=git_commit.get("message") or "",
            author=CommitAuthor(
                name=git_author.get("name"),
                login=account.get("login"),
                email=git_author.get("email"),
            ),
            parent_shas=[p["sha"] for p in data.get("parents") or []],
            files=files,
            stats=CommitStats(
                additions=stats.get("additions") or 0,
                deletions=stats.get("deletions") or 0,
            ),
            url=data.get("html_url"),
        )

    @staticmethod
    def to_release(data: dict[str, Any], repo: RepositoryRef, web_url: str) -> ReleaseRecord:
        tag_name = data.get("tag_name") or ""
        return ReleaseRecord(
            id=str(data["id"]),
            tag_name=tag_name,
            name=data.get("name") or tag_name,
            is_prerelease=bool(data.get("prerelease")),
            author=(data.get("author") or {}).get("login"),
            url=data.get("html_url")
            or f"{web_url}/{repo.full_name}/releases/tag/{tag_name}",
        )

    @staticmethod
    def tag_to_release(data: dict[str, Any], repo: RepositoryRef, web_url: str) -> ReleaseRecord:
        return ReleaseRecord(
            id=data["commit"]["sha"],
            tag_name=data["name"],
            name=data["name"],
            is_tag_fallback=True,
            url=f"{web_url}/{repo.full_name}/releases/tag/{data['name']}",
        )

    @staticmethod
    def to_feed_item(data: dict[str, Any], web_url: str, api_url: str) -> FeedItem:
        subject = data["subject"]
        repo = data["repository"]["full_name"]
        api_repos = f"{api_url}/repos"
        subject_url = subject.get("url")
        if subject_url and subject_url.startswith(api_repos):
            url = web_url + subject_url[len(api_repos) :]
        else:
            url = f"{web_url}/{repo}"
        return FeedItem(
            id=str(data["id"]),
            subject_type=subject.get("type") or "",
            subject_title=subject.get("title") or "",
            reason=data.get("reason") or "",
            repo=repo,
            url=url,
        )

    @staticmethod
    def to_identity(data: dict[str, Any]) -> Identity:
        return Identity(
            platform=Platform.GITHUB,
            login=data["login"],
            name=data.get("name"),
            email=data.get("email"),
            id=data.get("id"),
        )


class GitHubClient(PlatformClient):
    """GitHub REST client authenticated with a personal access token."""

    platform = Platform.GITHUB
    adapter = GitHubAdapter
    rate_limit_headers = ("X-RateLimit-Remaining", "X-RateLimit-Reset", "X-RateLimit-Limit")

    def _auth_headers(self, token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github.v3+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def list_repository_page(self, page: int, per_page: int) -> list[RepositoryRef]:
        data = await self.fetch_json(
            "/user/repos",
            {
                "affiliation": "owner,collaborator,organization_member",
                "per_page": per_page,
                "page": page,
            },
        )
        return [self.adapter.to_repository(item) for item in data]

    async def get_latest_commit(self, repo: RepositoryRef) -> CommitRecord | None:
        commits = await self.fetch_json(
            f"/repos/{repo.full_name}/commits",
            {"sha": repo.default_branch, "per_page": 1},
        )
        if not commits:
            return None
        return self.adapter.to_commit(commits[0])

    async def get_commit_details(
        self, repo: RepositoryRef, commit: CommitRecord
    ) -> CommitRecord:
        try:
            data = await self.fetch_json(f"/repos/{repo.full_name}/commits/{commit.sha}")
        except UnauthorizedError:
            raise
        except PlatformAPIError as e:
            # Classify with what the list endpoint returned
            logger.warning(
                "Failed to fetch commit details",
                repository=repo.full_name,
                sha=commit.short_sha,
                error=str(e),
            )
            return commit
        return self.adapter.to_commit(data)

    async def get_latest_release(self, repo: RepositoryRef) -> ReleaseRecord | None:
        data = await self.fetch_json(f"/repos/{repo.full_name}/releases/latest")
        if not data:
            return None
        return self.adapter.to_release(data, repo, self.config.web_url)

    async def get_latest_tag(self, repo: RepositoryRef) -> ReleaseRecord | None:
        tags = await self.fetch_json(f"/repos/{repo.full_name}/tags", {"per_page": 1})
        if not tags:
            return None
        return self.adapter.tag_to_release(tags[0], repo, self.config.web_url)

    async def list_notifications(self, per_page: int = 50) -> list[FeedItem]:
        """Unread entries of the authenticated user's notifications feed."""
        data = await self.fetch_json(
            "/notifications", {"all": "false", "per_page": per_page}
        )
        return [
            self.adapter.to_feed_item(item, self.config.web_url, self.config.api_url)
            for item in data
        ]
