"""
Script: app.py
Created: 2026-10-18
Purpose: FastAPI application factory and lifespan management for BeaconHub
Keywords: fastapi, app, lifespan, cors, middleware, beaconhub
Status: active
Prerequisites:
  - fastapi
Changelog:
  - 2026-10-18: Request pipeline: CORS, headers, rate limit, filter, access gate
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from . import __version__
from .config import Settings, load_settings
from .db import DocumentStore
from .endpoints import health_router, receipts_router, users_router
from .gate import API_KEY_HEADER, AccessGate
from .log import configure_logging
from .security import RateLimiter, RequestFilter, SecurityHeaders

CLEANUP_INTERVAL = 60  # seconds between rate-window prunes


def _describe_errors(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{location}: {err.get('msg')}")
    return "; ".join(parts)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Schema failures are client errors: 400 instead of FastAPI's 422."""
    message = _describe_errors(exc)
    logger.debug(f"Validation failed for {request.method} {request.url.path}: {message}")
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Bad Request", "message": message},
    )


def create_app(settings: Optional[Settings] = None, store: Optional[DocumentStore] = None) -> FastAPI:
    """
    Build the BeaconHub app.

    Middleware runs outermost first: CORS, security headers, rate limit,
    access gate, request filter, then the route.
    """
    settings = settings or load_settings()
    store = store or DocumentStore(settings.db_path)
    limiter = RateLimiter(settings.rate_limit_max, settings.rate_limit_window)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize the store on startup; prune rate windows in the background."""
        configure_logging(settings.log_level)
        await store.init()
        if not settings.api_key:
            logger.warning("API_KEY is not set; protected routes will answer 500")

        async def cleanup_loop():
            while True:
                await asyncio.sleep(CLEANUP_INTERVAL)
                removed = limiter.prune()
                if removed:
                    logger.debug(f"Pruned {removed} idle rate-limit windows")

        cleanup_task = asyncio.create_task(cleanup_loop())

        yield

        cleanup_task.cancel()
        await store.close()
        logger.info("BeaconHub shutdown complete")

    app = FastAPI(
        title="BeaconHub",
        description=f"Users and receipts API. Protected routes require the {API_KEY_HEADER} header.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.store = store

    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # Added innermost first.
    app.middleware("http")(RequestFilter(settings))
    app.middleware("http")(AccessGate(settings))
    app.middleware("http")(limiter)
    app.middleware("http")(SecurityHeaders(settings.request_logging))
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.cors_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(users_router)
    app.include_router(receipts_router)
    return app
