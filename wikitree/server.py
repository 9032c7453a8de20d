"""
Main FastAPI application for wikitree.
Wires storage, services, routes, background jobs and logging together.
"""

import asyncio
import os
from typing import List, Optional

from fastapi import FastAPI, Request
from loguru import logger

from .config import (
    API_PREFIX,
    APP_DESCRIPTION,
    APP_NAME,
    DATA_DIR,
    DEV,
    FRONTEND_DIR,
    HOST,
    LOG_DIR,
    LOG_LEVEL,
    LOG_RETENTION,
    PORT,
    REFRESH_TOKEN_CLEANUP_INTERVAL_SECONDS,
    RETENTION_INTERVAL_SECONDS,
    VERSION,
)
from .errors import RateLimitedError, WikiError
from .middleware.security_headers import SecurityHeadersMiddleware
from .routes.api import app as api_app
from .routes.api import auth, pages, search, trash
from .services.scheduler import run_periodically
from .state import build_state
from .storage import FsStorage, Storage
from .utils.error_utils import error_response
from .utils.spa import SPAStaticFiles


def configure_logging() -> None:
    """Add the rotating file sinks next to loguru's default stderr sink."""
    os.makedirs(LOG_DIR, exist_ok=True)
    logger.add(
        os.path.join(LOG_DIR, "wikitree.log"),
        rotation="1 day",
        retention=LOG_RETENTION,
        level=LOG_LEVEL,
    )
    logger.add(
        os.path.join(LOG_DIR, "errors.log"),
        rotation="1 day",
        retention=LOG_RETENTION,
        level="ERROR",
    )


def create_app(storage: Optional[Storage] = None, background_jobs: bool = True) -> FastAPI:
    """
    Build the application.

    Args:
        storage: Storage driver; defaults to FsStorage over DATA_DIR
        background_jobs: Start the retention and token cleanup loops

    Returns:
        Configured FastAPI app with its WikiState on app.state.wiki
    """
    if storage is None:
        storage = FsStorage(DATA_DIR)

    app = FastAPI(title=APP_NAME, description=APP_DESCRIPTION, version=VERSION)
    app.state.wiki = build_state(storage)

    # Security headers middleware
    app.add_middleware(SecurityHeadersMiddleware)

    # API routes
    app.include_router(api_app.router, prefix=API_PREFIX)
    app.include_router(pages.router, prefix=API_PREFIX)
    app.include_router(search.router, prefix=API_PREFIX)
    app.include_router(trash.router, prefix=API_PREFIX)
    app.include_router(auth.router, prefix=API_PREFIX)

    @app.exception_handler(WikiError)
    async def wiki_error_handler(request: Request, exc: WikiError):
        headers = None
        if isinstance(exc, RateLimitedError):
            headers = {"Retry-After": str(exc.retry_after)}
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return error_response(exc.status_code, exc.message, headers)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return error_response(500, "Internal Server Error")

    background_tasks: List[asyncio.Task] = []
    # Created on the serving loop at startup
    stop_events: List[asyncio.Event] = []

    @app.on_event("startup")
    async def startup_event():
        logger.info(f"{APP_NAME} {VERSION} starting with {type(storage).__name__}")
        if not background_jobs:
            return
        state = app.state.wiki
        stop_event = asyncio.Event()
        stop_events.append(stop_event)
        background_tasks.append(
            asyncio.create_task(
                run_periodically(
                    "retention",
                    state.retention.cleanup,
                    RETENTION_INTERVAL_SECONDS,
                    stop_event,
                )
            )
        )
        background_tasks.append(
            asyncio.create_task(
                run_periodically(
                    "tokens",
                    state.refresh_tokens.cleanup_expired,
                    REFRESH_TOKEN_CLEANUP_INTERVAL_SECONDS,
                    stop_event,
                )
            )
        )

    @app.on_event("shutdown")
    async def shutdown_event():
        for stop_event in stop_events:
            stop_event.set()
        stop_events.clear()
        app.state.wiki.retention.stop()
        if background_tasks:
            await asyncio.gather(*background_tasks, return_exceptions=True)
            background_tasks.clear()
        logger.info(f"{APP_NAME} stopped")

    # Frontend, mounted last so that API routes win
    if FRONTEND_DIR:
        if os.path.isdir(FRONTEND_DIR):
            app.mount("/", SPAStaticFiles(directory=FRONTEND_DIR, html=True), name="frontend")
        else:
            logger.warning(f"FRONTEND_DIR {FRONTEND_DIR} does not exist, not serving a frontend")

    return app


def main() -> None:
    import uvicorn

    configure_logging()
    uvicorn.run("wikitree.server:create_app", factory=True, host=HOST, port=PORT, reload=DEV)


if __name__ == "__main__":
    main()
