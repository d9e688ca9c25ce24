"""
Base classes for hosting platform API clients.

A client owns the HTTP discipline (authentication, rate limit enforcement,
status mapping); an adapter owns the pure conversion of platform payloads
into canonical records.
"""

from abc import ABC, abstractmethod
from typing import Any

import httpx
import structlog

from ..auth import AuthManager
from ..config import PlatformConfig
from ..exceptions import (
    NetworkError,
    NotFoundError,
    PlatformAPIError,
    RateLimitError,
    UnauthorizedError,
)
from ..models import CommitRecord, Identity, Platform, ReleaseRecord, RepositoryRef
from .rate_limiter import RateLimitManager

logger = structlog.get_logger(__name__)


class PlatformAdapter(ABC):
    """Conversion contract from platform payloads to canonical records."""

    platform: Platform

    @staticmethod
    @abstractmethod
    def to_repository(data: dict[str, Any]) -> RepositoryRef:
        """Convert a repository/project payload."""

    @staticmethod
    @abstractmethod
    def to_commit(data: dict[str, Any]) -> CommitRecord:
        """Convert a commit payload (list item or detail)."""

    @staticmethod
    @abstractmethod
    def to_release(data: dict[str, Any], repo: RepositoryRef, web_url: str) -> ReleaseRecord:
        """Convert a formal release payload."""

    @staticmethod
    @abstractmethod
    def tag_to_release(data: dict[str, Any], repo: RepositoryRef, web_url: str) -> ReleaseRecord:
        """Promote a tag payload into release shape."""

    @staticmethod
    @abstractmethod
    def to_identity(data: dict[str, Any]) -> Identity:
        """Convert the authenticated user payload."""


class PlatformClient(ABC):
    """
    Authenticated REST client for one hosting platform.

    Every request goes through ``fetch``, which consults the shared
    ``RateLimitManager`` before touching the network and refreshes it from
    the response headers afterwards.
    """

    platform: Platform
    adapter: type[PlatformAdapter]
    rate_limit_headers: tuple[str, str, str]
    identity_endpoint = "/user"

    def __init__(
        self,
        config: PlatformConfig,
        auth_manager: AuthManager,
        rate_limiter: RateLimitManager,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Platform connection settings
            auth_manager: Source of the bearer credential
            rate_limiter: Shared per-platform rate limit state
            http_client: Optional preconfigured httpx client
        """
        self.config = config
        self.auth_manager = auth_manager
        self.rate_limiter = rate_limiter
        self._http = http_client or httpx.AsyncClient()
        self._owns_http = http_client is None

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    @abstractmethod
    def _auth_headers(self, token: str) -> dict[str, str]:
        """Headers carrying the credential."""

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith("http"):
            return endpoint
        return f"{self.config.api_url}{endpoint}"

    async def fetch(
        self, endpoint: str, params: dict[str, Any] | None = None
    ) -> httpx.Response:
        """
        Issue an authenticated GET request.

        Args:
            endpoint: API path (or absolute URL)
            params: Query parameters

        Returns:
            The raw response, whatever its status

        Raises:
            UnauthorizedError: If no token is stored
            RateLimitError: If the budget is exhausted (no request is made)
            NetworkError: On transport failures
        """
        token = await self.auth_manager.get_token(self.platform)
        if not token:
            raise UnauthorizedError(
                f"Not authenticated to {self.platform.display_name}",
                platform=self.platform.value,
            )

        self.rate_limiter.check(self.platform)

        url = self._url(endpoint)
        try:
            response = await self._http.get(
                url, params=params, headers=self._auth_headers(token)
            )
        except httpx.HTTPError as e:
            logger.warning(
                "Request failed", platform=self.platform.value, url=url, error=str(e)
            )
            raise NetworkError(
                f"{self.platform.display_name} request failed: {e}",
                platform=self.platform.value,
                context={"url": url},
            ) from e

        await self.rate_limiter.update_from_headers(
            self.platform,
            response.headers,
            self.rate_limit_headers,
            self.config.default_rate_limit,
        )
        return response

    def _raise_for_status(self, response: httpx.Response, endpoint: str) -> None:
        """Map non-success statuses to the error taxonomy."""
        status = response.status_code
        if 200 <= status < 300:
            return

        context = {"endpoint": endpoint, "status": status}
        name = self.platform.display_name
        if status == 401 or (status == 403 and endpoint == self.identity_endpoint):
            raise UnauthorizedError(
                f"{name} rejected the credential ({status})",
                status_code=status,
                platform=self.platform.value,
                context=context,
            )
        if status in (404, 409):
            raise NotFoundError(
                f"{name} resource not found: {endpoint}",
                status_code=status,
                platform=self.platform.value,
                context=context,
            )

        state = self.rate_limiter.get_state(self.platform)
        if status in (403, 429) and state is not None and state.remaining == 0:
            retry_after = state.retry_after_minutes(self.rate_limiter.clock())
            raise RateLimitError(
                f"{name} rate limit exceeded. Resets in {retry_after} minutes.",
                retry_after_minutes=retry_after,
                platform=self.platform.value,
                reset_time=float(state.reset_epoch_seconds),
                context=context,
            )

        raise PlatformAPIError(
            f"{name} API error: {status}",
            status_code=status,
            platform=self.platform.value,
            context=context,
        )

    async def fetch_json(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        """Fetch and decode a JSON body, raising on error statuses."""
        response = await self.fetch(endpoint, params)
        self._raise_for_status(response, endpoint)
        try:
            return response.json()
        except ValueError as e:
            raise PlatformAPIError(
                f"{self.platform.display_name} returned invalid JSON for {endpoint}",
                status_code=response.status_code,
                platform=self.platform.value,
            ) from e

    async def get_identity(self) -> Identity:
        """
        Verify the credential and return the identity it belongs to.

        Raises:
            UnauthorizedError: If the platform rejects the credential
        """
        data = await self.fetch_json(self.identity_endpoint)
        identity = self.adapter.to_identity(data)
        logger.info(
            "Identity verified", platform=self.platform.value, login=identity.login
        )
        return identity

    @abstractmethod
    async def list_repository_page(self, page: int, per_page: int) -> list[RepositoryRef]:
        """One page of repositories the identity can see."""

    @abstractmethod
    async def get_latest_commit(self, repo: RepositoryRef) -> CommitRecord | None:
        """
        Latest commit on the default branch, without file details.

        Returns:
            The commit, or None if the branch has no commits
        """

    @abstractmethod
    async def get_commit_details(
        self, repo: RepositoryRef, commit: CommitRecord
    ) -> CommitRecord:
        """Return ``commit`` enriched with changed files and stats."""

    @abstractmethod
    async def get_latest_release(self, repo: RepositoryRef) -> ReleaseRecord | None:
        """
        Latest formal release.

        Raises:
            NotFoundError: If the repository has no releases
        """

    @abstractmethod
    async def get_latest_tag(self, repo: RepositoryRef) -> ReleaseRecord | None:
        """Latest tag promoted into release shape, or None if there are no tags."""
