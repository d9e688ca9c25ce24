"""
Configuration management for Commit Watch.

This module handles environment variables, settings validation, and configuration
management using Pydantic Settings for type safety and validation. User-facing
monitoring preferences live in the state store and are modelled by
``MonitorSettings``.
"""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import Platform

DEFAULT_CHECK_INTERVAL_MINUTES = 5


class PlatformConfig(BaseModel):
    """Connection settings for one hosting platform."""

    platform: Platform
    api_url: str = Field(..., description="REST API base URL")
    web_url: str = Field(..., description="Web UI base URL")
    token: str = Field(default="", description="Seed personal access token")
    default_rate_limit: int = Field(..., description="Assumed hourly budget")


class ServerConfig(BaseModel):
    """Web server configuration settings."""

    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")


class PollingConfig(BaseModel):
    """Polling configuration settings."""

    enabled: bool = Field(default=True, description="Run the sweep scheduler")
    default_interval_minutes: float = Field(
        default=DEFAULT_CHECK_INTERVAL_MINUTES,
        description="Default sweep interval in minutes",
    )
    first_sweep_delay_minutes: float = Field(
        default=0.1, description="Delay before the first sweep after arming"
    )
    batch_size: int = Field(default=10, description="Repositories per batch")
    batch_delay_seconds: float = Field(
        default=0.1, description="Pause between batches in seconds"
    )
    rate_limit_threshold: int = Field(
        default=10, description="Remaining requests at which calls fail fast"
    )
    repository_cache_ttl_seconds: int = Field(
        default=3600, description="Repository directory staleness window"
    )
    repository_page_size: int = Field(default=100, description="Items per page")
    repository_max_pages: int = Field(default=50, description="Pagination cap")
    history_limit: int = Field(default=100, description="Notification history size")


class MonitorSettings(BaseModel):
    """User preferences persisted in the state store."""

    check_interval_minutes: float = Field(
        default=DEFAULT_CHECK_INTERVAL_MINUTES, gt=0, description="Sweep interval"
    )
    ignore_forks: bool = Field(default=True, description="Skip forked repositories")
    ignore_own_commits: bool = Field(
        default=False, description="Do not notify about the user's own commits"
    )
    enabled_repos: dict[str, bool] = Field(
        default_factory=dict,
        description="Per-repository toggles keyed by 'platform:owner/repo'",
    )
    notifications_enabled: bool = Field(default=True)
    release_notifications_enabled: bool = Field(default=True)

    def is_repo_enabled(self, repo_key: str) -> bool:
        """Missing keys count as enabled."""
        return self.enabled_repos.get(repo_key, True)


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Platform configuration
    github_token: str = Field(default="", description="GitHub personal access token")
    gitlab_token: str = Field(default="", description="GitLab personal access token")
    github_api_url: str = Field(
        default="https://api.github.com", description="GitHub API URL"
    )
    gitlab_api_url: str = Field(
        default="https://gitlab.com/api/v4", description="GitLab API URL"
    )
    github_web_url: str = Field(default="https://github.com", description="GitHub URL")
    gitlab_web_url: str = Field(default="https://gitlab.com", description="GitLab URL")

    # State store
    state_backend: str = Field(default="file", description="State backend: file, memory")
    state_file_path: str = Field(
        default=str(Path.home() / ".commit_watch" / "state.json"),
        description="Location of the JSON state file",
    )

    # Server configuration
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Logging configuration
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log format")

    # Polling configuration
    enable_scheduler: bool = Field(default=True, description="Run periodic sweeps")
    default_check_interval_minutes: float = Field(
        default=DEFAULT_CHECK_INTERVAL_MINUTES,
        description="Interval used until the user picks one",
    )
    first_sweep_delay_minutes: float = Field(
        default=0.1, description="Delay before the first sweep"
    )
    sweep_batch_size: int = Field(default=10, description="Repositories per batch")
    sweep_batch_delay_ms: int = Field(default=100, description="Pause between batches")
    rate_limit_threshold: int = Field(
        default=10, description="Remaining requests at which calls fail fast"
    )
    repository_cache_ttl_seconds: int = Field(
        default=3600, description="Repository list staleness window"
    )
    repository_page_size: int = Field(default=100, description="Repositories per page")
    repository_max_pages: int = Field(default=50, description="Maximum pages fetched")
    notification_history_limit: int = Field(
        default=100, description="Notification history length"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        if v.lower() not in {"json", "console"}:
            raise ValueError(f"Invalid log format: {v}")
        return v.lower()

    @field_validator("state_backend")
    @classmethod
    def validate_state_backend(cls, v: str) -> str:
        """Validate state backend."""
        if v.lower() not in {"file", "memory"}:
            raise ValueError(f"Invalid state backend: {v}")
        return v.lower()

    @field_validator("sweep_batch_size", "repository_page_size", "repository_max_pages")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("github_api_url", "gitlab_api_url", "github_web_url", "gitlab_web_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def server_config(self) -> ServerConfig:
        """Get server configuration."""
        return ServerConfig(host=self.host, port=self.port, debug=self.debug)

    @property
    def polling_config(self) -> PollingConfig:
        """Get polling configuration."""
        return PollingConfig(
            enabled=self.enable_scheduler,
            default_interval_minutes=self.default_check_interval_minutes,
            first_sweep_delay_minutes=self.first_sweep_delay_minutes,
            batch_size=self.sweep_batch_size,
            batch_delay_seconds=self.sweep_batch_delay_ms / 1000.0,
            rate_limit_threshold=self.rate_limit_threshold,
            repository_cache_ttl_seconds=self.repository_cache_ttl_seconds,
            repository_page_size=self.repository_page_size,
            repository_max_pages=self.repository_max_pages,
            history_limit=self.notification_history_limit,
        )

    def platform_config(self, platform: Platform) -> PlatformConfig:
        """Get connection settings for a platform."""
        if platform is Platform.GITLAB:
            return PlatformConfig(
                platform=platform,
                api_url=self.gitlab_api_url,
                web_url=self.gitlab_web_url,
                token=self.gitlab_token,
                default_rate_limit=2000,
            )
        return PlatformConfig(
            platform=platform,
            api_url=self.github_api_url,
            web_url=self.github_web_url,
            token=self.github_token,
            default_rate_limit=5000,
        )

    def default_monitor_settings(self) -> MonitorSettings:
        """Preferences used before the user has saved any."""
        return MonitorSettings(check_interval_minutes=self.default_check_interval_minutes)


# Global settings instance - initialized lazily to avoid import-time errors
_settings_instance = None


def get_settings() -> Settings:
    """Get the global settings instance, creating it if necessary."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance


def __getattr__(name: str) -> Any:
    """Allow module-level access to settings attributes."""
    if name == "settings":
        return get_settings()
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
