"""
Rate limit manager for the platform API clients.

This module tracks the request budget each hosting platform reports in its
response headers and refuses to issue requests once the budget is nearly
exhausted, instead of waiting for the reset.
"""

import time
from collections.abc import Callable, Mapping
from typing import Any

import structlog

from ..exceptions import RateLimitError
from ..models import Platform, RateLimitState
from ..state.manager import StateStore, StorageKeys

logger = structlog.get_logger(__name__)


def _parse_int(value: str | None, default: int) -> int:
    """Parse a header value, falling back to ``default`` when absent or malformed."""
    if value is None:
        return default
    try:
        return int(value.strip())
    except (AttributeError, ValueError):
        return default


class RateLimitManager:
    """
    Manager for per-platform API rate limits.

    One instance is shared by all platform clients; it holds an explicit
    ``RateLimitState`` per platform and persists it for the status surface.
    """

    def __init__(
        self,
        store: StateStore,
        threshold: int = 10,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the rate limit manager.

        Args:
            store: State store used to persist telemetry
            threshold: Remaining requests at or below which calls fail fast
            clock: Source of the current epoch time in seconds
        """
        self.store = store
        self.threshold = threshold
        self.clock = clock
        self._states: dict[Platform, RateLimitState] = {}

    async def load(self) -> None:
        """Restore persisted telemetry, e.g. after a restart."""
        keys = [StorageKeys.rate_limit(platform) for platform in Platform]
        stored = await self.store.get(keys)
        for platform in Platform:
            data = stored.get(StorageKeys.rate_limit(platform))
            if data:
                self._states[platform] = RateLimitState.model_validate(data)

    def get_state(self, platform: Platform) -> RateLimitState | None:
        return self._states.get(platform)

    def check(self, platform: Platform) -> None:
        """
        Fail fast if the platform's budget is exhausted.

        Raises:
            RateLimitError: If the budget is at or below the threshold and the
                reset time has not passed yet
        """
        state = self._states.get(platform)
        if state is None:
            return

        now = self.clock()
        if state.is_exhausted(now, self.threshold):
            retry_after = state.retry_after_minutes(now)
            logger.warning(
                "Rate limit exhausted, refusing request",
                platform=platform.value,
                remaining=state.remaining,
                retry_after_minutes=retry_after,
            )
            raise RateLimitError(
                f"{platform.display_name} rate limit exceeded. "
                f"Resets in {retry_after} minutes.",
                retry_after_minutes=retry_after,
                platform=platform.value,
                reset_time=float(state.reset_epoch_seconds),
            )

    async def update_from_headers(
        self,
        platform: Platform,
        headers: Mapping[str, str],
        header_names: tuple[str, str, str],
        default_limit: int,
    ) -> RateLimitState:
        """
        Refresh and persist a platform's state from response headers.

        Args:
            platform: Platform that produced the response
            headers: Response headers (case-insensitive mapping)
            header_names: Names of the remaining, reset and limit headers
            default_limit: Budget assumed when headers are missing

        Returns:
            The updated state
        """
        remaining_header, reset_header, limit_header = header_names
        limit = _parse_int(headers.get(limit_header), default_limit)
        state = RateLimitState(
            platform=platform,
            remaining=_parse_int(headers.get(remaining_header), limit),
            limit=limit,
            reset_epoch_seconds=_parse_int(headers.get(reset_header), 0),
        )
        self._states[platform] = state
        await self.store.set({StorageKeys.rate_limit(platform): state.model_dump(mode="json")})

        logger.debug(
            "Rate limit status",
            platform=platform.value,
            remaining=state.remaining,
            limit=state.limit,
            reset=state.reset_epoch_seconds,
        )
        return state

    async def clear(self, platform: Platform) -> None:
        self._states.pop(platform, None)
        await self.store.remove(StorageKeys.rate_limit(platform))

    def get_status(self) -> dict[str, Any]:
        """Get rate limit summary for monitoring."""
        return {
            platform.value: state.model_dump(mode="json")
            for platform, state in self._states.items()
        }
