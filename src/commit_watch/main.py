"""
Main application entry point for Commit Watch.

This module sets up the FastAPI application, configures logging, and runs
the sweep scheduler for the lifetime of the server.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import Body, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import __version__
from .config import Settings, get_settings
from .exceptions import (
    CommitWatchError,
    ConfigurationError,
    NotFoundError,
    PlatformAPIError,
    RateLimitError,
    UnauthorizedError,
)
from .models import Platform
from .service import CommitWatchService


def setup_logging(settings: Settings | None = None) -> None:
    """Configure structured logging."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level), format="%(message)s"
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            (
                structlog.processors.JSONRenderer()
                if settings.log_format == "json"
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuthRequest(BaseModel):
    token: str = Field(min_length=1, description="Personal access token")


class NotificationActionRequest(BaseModel):
    action_index: int = Field(ge=0, description="Index of the pressed action")


def _status_code(error: CommitWatchError) -> int:
    if isinstance(error, UnauthorizedError):
        return 401
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, RateLimitError):
        return 429
    if isinstance(error, ConfigurationError):
        return 422
    if isinstance(error, PlatformAPIError):
        return 502
    return 500


def create_app(service: CommitWatchService | None = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        service: Prebuilt service; built from the global settings when omitted

    Returns:
        The configured application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager."""
        logger = structlog.get_logger()
        app_service = service or CommitWatchService.create(get_settings())
        app.state.service = app_service

        logger.info("Starting Commit Watch", version=__version__)
        await app_service.start()

        yield

        logger.info("Shutting down Commit Watch")
        await app_service.stop()

    app = FastAPI(
        title="Commit Watch",
        description="Commit and release notifications for GitHub and GitLab",
        version=__version__,
        lifespan=lifespan,
    )

    @app.exception_handler(CommitWatchError)
    async def commit_watch_error_handler(
        request: Request, exc: CommitWatchError
    ) -> JSONResponse:
        body: dict[str, Any] = {"error": exc.code, "message": exc.message}
        if exc.context:
            body["context"] = exc.context
        if isinstance(exc, RateLimitError):
            body["retry_after_minutes"] = exc.retry_after_minutes
        return JSONResponse(status_code=_status_code(exc), content=body)

    def _service(request: Request) -> CommitWatchService:
        return request.app.state.service

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {"message": "Commit Watch", "version": __version__, "status": "active"}

    @app.get("/health")
    async def health_check(request: Request) -> dict[str, Any]:
        """Health check endpoint."""
        healthy = await _service(request).store.health_check()
        return {"status": "healthy" if healthy else "degraded"}

    @app.get("/status")
    async def get_status(request: Request) -> dict[str, Any]:
        return await _service(request).get_status()

    @app.get("/repositories")
    async def get_repositories(
        request: Request, platform: Platform | None = None
    ) -> dict[str, Any]:
        repositories = await _service(request).get_repositories(platform)
        return {"repositories": repositories}

    @app.get("/settings")
    async def get_monitor_settings(request: Request) -> dict[str, Any]:
        settings = await _service(request).get_settings()
        return {"settings": settings.model_dump()}

    @app.patch("/settings")
    async def update_monitor_settings(
        request: Request, partial: dict[str, Any] = Body(...)
    ) -> dict[str, Any]:
        settings = await _service(request).update_settings(partial)
        return {"settings": settings.model_dump()}

    @app.post("/sweep")
    async def trigger_sweep(request: Request) -> dict[str, Any]:
        """Run a commit and a release sweep now."""
        ran = await _service(request).trigger_sweep()
        return {"success": ran}

    @app.get("/notifications")
    async def get_notification_history(request: Request) -> dict[str, Any]:
        service = _service(request)
        history = await service.get_notification_history()
        return {
            "history": [entry.model_dump(mode="json") for entry in history],
            "unread_count": await service.dispatcher.get_unread_count(),
        }

    @app.delete("/notifications")
    async def clear_notification_history(request: Request) -> dict[str, bool]:
        await _service(request).clear_notification_history()
        return {"success": True}

    @app.post("/notifications/clear-unread")
    async def clear_unread(request: Request) -> dict[str, bool]:
        await _service(request).clear_unread()
        return {"success": True}

    @app.post("/notifications/{notification_id:path}/click")
    async def click_notification(request: Request, notification_id: str) -> dict[str, Any]:
        url = await _service(request).handle_notification_click(notification_id)
        return {"url": url}

    @app.post("/notifications/{notification_id:path}/action")
    async def notification_action(
        request: Request, notification_id: str, action: NotificationActionRequest
    ) -> dict[str, Any]:
        url = await _service(request).handle_notification_action(
            notification_id, action.action_index
        )
        return {"url": url}

    @app.post("/auth/{platform}")
    async def authenticate(
        request: Request, platform: Platform, auth: AuthRequest
    ) -> dict[str, Any]:
        identity = await _service(request).authenticate(platform, auth.token)
        return {"success": True, "user": identity.model_dump(mode="json")}

    @app.delete("/auth/{platform}")
    async def logout(request: Request, platform: Platform) -> dict[str, bool]:
        await _service(request).logout(platform)
        return {"success": True}

    @app.delete("/auth")
    async def logout_all(request: Request) -> dict[str, bool]:
        await _service(request).logout()
        return {"success": True}

    @app.post("/releases/reset")
    async def reset_release_cache(request: Request) -> dict[str, bool]:
        await _service(request).reset_release_cache()
        return {"success": True}

    return app


def main() -> None:
    """Main entry point."""
    import uvicorn

    settings = get_settings()
    setup_logging(settings)
    logger = structlog.get_logger()

    logger.info(
        "Starting server", host=settings.host, port=settings.port, debug=settings.debug
    )

    uvicorn.run(
        "commit_watch.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=None,  # We handle logging ourselves
    )


if __name__ == "__main__":
    main()
