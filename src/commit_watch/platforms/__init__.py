"""
Hosting platform API clients for Commit Watch.

This package contains one REST client and one payload adapter per platform,
plus the shared rate limit manager.
"""

from .base import PlatformAdapter, PlatformClient
from .factory import PlatformClientFactory
from .github import GitHubAdapter, GitHubClient
from .gitlab import GitLabAdapter, GitLabClient
from .rate_limiter import RateLimitManager

__all__ = [
    "PlatformAdapter",
    "PlatformClient",
    "PlatformClientFactory",
    "GitHubAdapter",
    "GitHubClient",
    "GitLabAdapter",
    "GitLabClient",
    "RateLimitManager",
]
