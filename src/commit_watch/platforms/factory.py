"""
Factory for platform clients and adapters.
"""

import httpx
import structlog

from ..auth import AuthManager
from ..config import Settings
from ..models import Platform
from .base import PlatformAdapter, PlatformClient
from .github import GitHubAdapter, GitHubClient
from .gitlab import GitLabAdapter, GitLabClient
from .rate_limiter import RateLimitManager

logger = structlog.get_logger(__name__)


class PlatformClientFactory:
    """Creates the client and adapter for each supported platform."""

    _clients: dict[Platform, type[PlatformClient]] = {
        Platform.GITHUB: GitHubClient,
        Platform.GITLAB: GitLabClient,
    }
    _adapters: dict[Platform, type[PlatformAdapter]] = {
        Platform.GITHUB: GitHubAdapter,
        Platform.GITLAB: GitLabAdapter,
    }

    @classmethod
    def get_adapter(cls, platform: Platform | str) -> type[PlatformAdapter]:
        """
        Get the payload adapter for a platform.

        Raises:
            ValueError: If the platform is not supported
        """
        try:
            return cls._adapters[Platform(platform)]
        except (KeyError, ValueError) as e:
            raise ValueError(f"Unsupported platform: {platform}") from e

    @classmethod
    def create_client(
        cls,
        platform: Platform,
        settings: Settings,
        auth_manager: AuthManager,
        rate_limiter: RateLimitManager,
        http_client: httpx.AsyncClient | None = None,
    ) -> PlatformClient:
        client_class = cls._clients[platform]
        return client_class(
            settings.platform_config(platform),
            auth_manager,
            rate_limiter,
            http_client=http_client,
        )

    @classmethod
    def create_clients(
        cls,
        settings: Settings,
        auth_manager: AuthManager,
        rate_limiter: RateLimitManager,
        http_client: httpx.AsyncClient | None = None,
    ) -> dict[Platform, PlatformClient]:
        """Create one client per supported platform, sharing the HTTP client."""
        clients = {
            platform: cls.create_client(
                platform, settings, auth_manager, rate_limiter, http_client
            )
            for platform in cls._clients
        }
        logger.debug("Platform clients created", platforms=[p.value for p in clients])
        return clients

    @classmethod
    def get_supported_platforms(cls) -> list[str]:
        return [platform.value for platform in cls._clients]
