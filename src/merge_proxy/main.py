# src/merge_proxy/main.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Application Entry (Adapters Bootstrap)

Synopsis:
    FastAPI bootstrap that wires middleware, exception handlers and routers.
    Provides an application factory (`create_app`) and a module-level eager
    app (`app`) for tooling.

Design:
    • Bootstrap only (no business logic): routers + middleware + handlers.
    • Lifespan initializes Redis and the stores and tears them down safely.
    • CORS is derived from ALLOWED_ORIGINS.
    • Root JSON logging configured at import time.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute
from redis.asyncio.client import Redis
from starlette.requests import Request
from starlette.responses import Response as StarletteResponse

from merge_proxy import __version__
from merge_proxy.adapters.routers import health_router, metrics_router, requests_router
from merge_proxy.config.settings import Settings, get_settings
from merge_proxy.dependencies.core.bootstrap import bootstrap
from merge_proxy.domain.exceptions.base import DomainError
from merge_proxy.infrastructure.http.errors import (
    handle_domain_error,
    handle_http_exception,
    handle_unhandled_exception,
    handle_validation_error,
)
from merge_proxy.infrastructure.logging.logger import configure_root_logging, get_json_logger
from merge_proxy.infrastructure.middleware.access_log import AccessLogMiddleware
from merge_proxy.infrastructure.middleware.request_id import REQUEST_ID_HEADER, RequestIdMiddleware

# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------
configure_root_logging()
logger = get_json_logger(__name__)


def _stable_operation_id(route: APIRoute) -> str:
    """Deterministic operationId: ``"<methods>_<path>"``."""
    methods = ",".join(sorted(route.methods or []))
    path = route.path_format.replace("/", "_").replace("{", "").replace("}", "")
    return f"{methods.lower()}_{path.lower()}"


# -----------------------------------------------------------------------------
# Middleware & CORS
# -----------------------------------------------------------------------------
def _attach_middlewares(app: FastAPI) -> None:
    """Attach core middleware; the last added runs outermost.

        1. RequestIdMiddleware (correlation IDs)
        2. AccessLogMiddleware (structured access logs)
    """
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(AccessLogMiddleware)


def _attach_cors(app: FastAPI, settings: Settings) -> None:
    """Attach CORS middleware based on settings."""
    allow_origins = settings.cors_allow_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials="*" not in allow_origins,
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["Content-Type", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
    )


def _patch_exception_handlers(app: FastAPI) -> None:
    """Patch default exception handlers with structured equivalents."""

    async def _http_error_handler(request: Request, exc: Exception) -> StarletteResponse:
        if not isinstance(exc, HTTPException):
            raise exc
        return await handle_http_exception(request, exc)

    async def _validation_error_handler(request: Request, exc: Exception) -> StarletteResponse:
        if not isinstance(exc, RequestValidationError):
            raise exc
        return await handle_validation_error(request, exc)

    async def _domain_error_handler(request: Request, exc: Exception) -> StarletteResponse:
        if not isinstance(exc, DomainError):
            raise exc
        return await handle_domain_error(request, exc)

    async def _unhandled_error_handler(request: Request, exc: Exception) -> StarletteResponse:
        return await handle_unhandled_exception(request, exc)

    app.add_exception_handler(HTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(DomainError, _domain_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)


# -----------------------------------------------------------------------------
# App factory
# -----------------------------------------------------------------------------
def create_app(settings: Settings | None = None, *, redis: Redis | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings override; defaults to :func:`get_settings`.
        redis: Pre-built Redis client (tests); otherwise one is created at startup.

    Returns:
        FastAPI: Fully configured application instance.
    """
    resolved: Settings = settings or get_settings()
    service_version = resolved.service_version or __version__

    @asynccontextmanager
    async def runtime_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        async with bootstrap(app, settings=resolved, redis=redis):
            yield

    app = FastAPI(
        title="merge-proxy",
        version=service_version,
        description="Deduplicating asynchronous request queue in front of a slow lookup.",
        lifespan=runtime_lifespan,
        generate_unique_id_function=_stable_operation_id,
        docs_url=resolved.docs_url,
        openapi_url=resolved.openapi_url,
    )

    _patch_exception_handlers(app)
    _attach_middlewares(app)
    _attach_cors(app, resolved)

    app.include_router(requests_router)
    app.include_router(health_router)
    app.include_router(metrics_router)

    logger.info(
        "service_startup",
        extra={
            "service": resolved.service_name,
            "env": resolved.environment.value,
            "version": service_version,
        },
    )
    return app


# Eager app for tools.
app: FastAPI = create_app()
