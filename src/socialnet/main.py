# src/socialnet/main.py
"""Main entry point for the social network API."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from socialnet.api.endpoints import (
    auth_router,
    chat_router,
    comments_router,
    follow_router,
    groups_router,
    notifications_router,
    posts_router,
    realtime_router,
    users_router,
)
from socialnet.api.errors import install_error_handlers
from socialnet.core.settings import settings
from socialnet.db.migrations import run_migrations
from socialnet.services.hub import get_hub

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Social network API with follow graph, groups, chat and live events",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

install_error_handlers(app)

# Include API routers
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(follow_router)
app.include_router(posts_router)
app.include_router(comments_router)
app.include_router(groups_router)
app.include_router(chat_router)
app.include_router(notifications_router)
app.include_router(realtime_router)


def configure_logging() -> None:
    """Configure root logging from settings."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging()
    if settings.run_migrations_on_startup:
        applied = run_migrations()
        logger.info("Schema ready (%d migration files)", len(applied))


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await get_hub().close_all()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("socialnet.main:app", host="0.0.0.0", port=8080, reload=settings.debug)
