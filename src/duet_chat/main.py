# src/duet_chat/main.py
"""Main entry point for the Duet Chat application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from duet_chat.api.v1 import messages_router, realtime_router, users_router
from duet_chat.core.settings import settings
from duet_chat.db.session import create_tables
from duet_chat.services.retention import RetentionSweeper

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Duet Chat API",
    description="Two-party realtime messaging with short-lived retention",
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

# Include API routers
app.include_router(messages_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")
app.include_router(realtime_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    logging.getLogger("duet_chat").setLevel(settings.log_level.upper())

    # An unreachable store aborts startup here.
    create_tables()

    if settings.retention_sweep_enabled:
        sweeper = RetentionSweeper()
        await sweeper.start()
        app.state.retention_sweeper = sweeper
        logger.info(
            "Message retention: %d hours (sweep every %.0f seconds)",
            settings.message_retention_hours,
            settings.retention_sweep_interval_seconds,
        )
    else:
        app.state.retention_sweeper = None


@app.on_event("shutdown")
async def on_shutdown() -> None:
    sweeper: RetentionSweeper | None = getattr(app.state, "retention_sweeper", None)
    if sweeper:
        await sweeper.stop()


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
        "realtime": "/api/v1/ws",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("duet_chat.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
