# src/parley_broker/main.py
"""Main entry point for the Parley broker."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from parley_broker.api.v1 import (
    auth_router,
    blobs_router,
    messages_router,
    presence_router,
    stream_router,
    typing_router,
)
from parley_broker.core.errors import BrokerError, error_payload
from parley_broker.core.settings import settings
from parley_broker.db.session import create_tables
from parley_broker.services.broker import get_broker
from parley_broker.services.expiry import ExpiryWorker

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Parley API",
    description="Real-time message, presence and typing broker",
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
app.include_router(auth_router, prefix="/api/v1")
app.include_router(messages_router, prefix="/api/v1")
app.include_router(typing_router, prefix="/api/v1")
app.include_router(presence_router, prefix="/api/v1")
app.include_router(blobs_router, prefix="/api/v1")
app.include_router(stream_router, prefix="/api/v1")


@app.exception_handler(BrokerError)
async def broker_error_handler(request: Request, exc: BrokerError) -> JSONResponse:
    """Render broker errors with their status and machine-readable code."""
    if exc.retryable:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=error_payload(exc))


@app.on_event("startup")
async def on_startup() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if settings.auto_create_tables:
        create_tables()
    if settings.expiry_sweep_enabled:
        worker = ExpiryWorker(get_broker())
        await worker.start()
        app.state.expiry_worker = worker
    else:
        app.state.expiry_worker = None


@app.on_event("shutdown")
async def on_shutdown() -> None:
    worker: ExpiryWorker | None = getattr(app.state, "expiry_worker", None)
    if worker:
        await worker.stop()
    get_broker().engine.close_all()


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
        "description": "Real-time message, presence and typing broker",
        "docs": "/docs",
        "stream": "/api/v1/stream",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("parley_broker.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
