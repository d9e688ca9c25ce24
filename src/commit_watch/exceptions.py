"""
Custom exceptions for Commit Watch.

This module defines the error taxonomy shared by the platform clients,
the polling engine and the HTTP surface.
"""

from typing import Any


class CommitWatchError(Exception):
    """Base exception for Commit Watch errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "COMMIT_WATCH_ERROR"
        self.context = context or {}


class PlatformAPIError(CommitWatchError):
    """Exception for hosting platform API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        platform: str | None = None,
        context: dict[str, Any] | None = None,
        code: str = "PLATFORM_API_ERROR",
    ):
        super().__init__(message, code, context)
        self.status_code = status_code
        self.platform = platform


class UnauthorizedError(PlatformAPIError):
    """Exception for missing, invalid or expired credentials."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        platform: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(
            message, status_code, platform, context, code="AUTHENTICATION_ERROR"
        )


class NotFoundError(PlatformAPIError):
    """Exception for resources that do not exist (empty repository, no releases)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = 404,
        platform: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, status_code, platform, context, code="NOT_FOUND")


class NetworkError(PlatformAPIError):
    """Exception for transport level failures."""

    def __init__(
        self,
        message: str,
        platform: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, None, platform, context, code="NETWORK_ERROR")


class RateLimitError(CommitWatchError):
    """Exception raised when a platform's request budget is exhausted."""

    def __init__(
        self,
        message: str,
        retry_after_minutes: int,
        platform: str | None = None,
        reset_time: float | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, "RATE_LIMIT_ERROR", context)
        self.retry_after_minutes = retry_after_minutes
        self.platform = platform
        self.reset_time = reset_time


class FatalSweepError(CommitWatchError):
    """Exception for failures that abort a whole sweep."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, "FATAL_SWEEP_ERROR", context)


class ConfigurationError(CommitWatchError):
    """Exception for configuration related errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, "CONFIGURATION_ERROR", context)


class StorageError(CommitWatchError):
    """Exception for persistent state store errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, "STORAGE_ERROR", context)
