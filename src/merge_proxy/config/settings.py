# src/merge_proxy/config/settings.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""merge-proxy Configuration (Pydantic Settings, v2)

Summary:
    Typed, validated configuration shared by the HTTP intake API and the
    promotion worker. Only the bootstrap and the CLI read the process
    environment; use cases receive plain values through their constructors.

Design:
    - Pydantic v2 BaseSettings with `extra='forbid'` to catch unknown env.
    - Explicit field declarations with constrained types and ranges.
    - Cross-field validation: the promotion timeout must leave headroom
      inside the worker's execution budget for the cleanup write.
    - Singleton accessor `get_settings()` with LRU cache.
    - Safe, structured logging (no secrets).
"""

from __future__ import annotations

import logging
import os
import socket
from enum import Enum
from functools import lru_cache

from pydantic import Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Environment(str, Enum):
    """Logical deployment environment."""

    DEVELOPMENT = "development"
    TEST = "test"
    CI = "ci"
    STAGING = "staging"
    PRODUCTION = "production"


def _default_consumer_name() -> str:
    return f"{socket.gethostname()}-{os.getpid()}"


class Settings(BaseSettings):
    """Typed application configuration for merge-proxy."""

    # ---------------------------
    # Core environment
    # ---------------------------
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Logical deployment environment.",
        validation_alias="ENVIRONMENT",
    )

    # ---------------------------
    # Redis (ledger, result store, promotion stream)
    # ---------------------------
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis URL backing the request ledger, result store and promotion stream.",
        validation_alias="REDIS_URL",
    )
    redis_health_check_interval_s: int = Field(
        default=15,
        ge=1,
        le=3600,
        description="Health check interval for Redis clients in seconds.",
        validation_alias="REDIS_HEALTH_CHECK_INTERVAL_S",
    )
    redis_socket_timeout_s: float = Field(
        default=3.0,
        ge=0.1,
        le=60.0,
        description="Socket timeout in seconds for Redis commands.",
        validation_alias="REDIS_SOCKET_TIMEOUT_S",
    )
    redis_socket_connect_timeout_s: float = Field(
        default=3.0,
        ge=0.1,
        le=60.0,
        description="Socket connect timeout in seconds for Redis.",
        validation_alias="REDIS_SOCKET_CONNECT_TIMEOUT_S",
    )
    key_namespace: str = Field(
        default="merge_proxy:v1",
        min_length=1,
        description="Prefix applied to every Redis key and stream.",
        validation_alias="KEY_NAMESPACE",
    )

    # ---------------------------
    # Request lifecycle
    # ---------------------------
    retention_seconds: int = Field(
        default=60 * 60,
        ge=1,
        le=7 * 24 * 60 * 60,
        description="Lifetime of a request record (and its result) from creation.",
        validation_alias="RETENTION_SECONDS",
    )
    promotion_timeout_s: float = Field(
        default=60.0,
        gt=0.0,
        le=3600.0,
        description="Time the upstream call may take before the record is abandoned.",
        validation_alias="PROMOTION_TIMEOUT_S",
    )
    promotion_budget_s: float = Field(
        default=70.0,
        gt=0.0,
        le=3600.0,
        description="Hard execution budget for one promotion, including cleanup.",
        validation_alias="PROMOTION_BUDGET_S",
    )

    # ---------------------------
    # Promotion worker
    # ---------------------------
    promotion_group: str = Field(
        default="promotion-workers",
        min_length=1,
        description="Redis Stream consumer group shared by promotion workers.",
        validation_alias="PROMOTION_GROUP",
    )
    promotion_stream_maxlen: int = Field(
        default=10_000,
        ge=100,
        description="Approximate cap on the promotion stream length.",
        validation_alias="PROMOTION_STREAM_MAXLEN",
    )
    worker_consumer_name: str = Field(
        default_factory=_default_consumer_name,
        min_length=1,
        description="Consumer name of this worker inside the group.",
        validation_alias="WORKER_CONSUMER_NAME",
    )
    worker_concurrency: int = Field(
        default=16,
        ge=1,
        le=1024,
        description="Maximum promotions one worker process runs at once.",
        validation_alias="WORKER_CONCURRENCY",
    )
    worker_batch_size: int = Field(
        default=16,
        ge=1,
        le=1000,
        description="Maximum triggers read per stream poll.",
        validation_alias="WORKER_BATCH_SIZE",
    )
    worker_block_ms: int = Field(
        default=5_000,
        ge=1,
        le=60_000,
        description="How long a stream poll blocks waiting for triggers.",
        validation_alias="WORKER_BLOCK_MS",
    )
    worker_reclaim_idle_ms: int = Field(
        default=120_000,
        ge=1_000,
        description="Idle time after which another consumer's pending trigger is reclaimed.",
        validation_alias="WORKER_RECLAIM_IDLE_MS",
    )

    # ---------------------------
    # Upstream lookup
    # ---------------------------
    upstream_url: str = Field(
        default=(
            "https://www.medproid.com/WebID.asp"
            "?action=DeaQuery&advquery=inline&Database=Practitioner&resetQS=N"
        ),
        description="Endpoint the upstream lookup form is posted to.",
        validation_alias="UPSTREAM_URL",
    )
    upstream_lookup_field: str = Field(
        default="license",
        min_length=1,
        description="Form field carrying the sanitized lookup key.",
        validation_alias="UPSTREAM_LOOKUP_FIELD",
    )
    upstream_timeout_s: float = Field(
        default=65.0,
        ge=0.1,
        le=600.0,
        description="Transport timeout for the upstream HTTP call.",
        validation_alias="UPSTREAM_TIMEOUT_S",
    )
    upstream_accept_error_bodies: bool = Field(
        default=False,
        description=(
            "If true, non-2xx (non-redirect) upstream bodies are stored as results "
            "instead of being treated as upstream failures."
        ),
        validation_alias="UPSTREAM_ACCEPT_ERROR_BODIES",
    )
    result_media_type: str = Field(
        default="text/html",
        description="Media type used when delivering a stored result.",
        validation_alias="RESULT_MEDIA_TYPE",
    )

    # ---------------------------
    # HTTP surface
    # ---------------------------
    cors_allow_origins_raw: str | None = Field(
        default=None,
        description="Raw env for allowed CORS origins (comma-separated).",
        validation_alias="ALLOWED_ORIGINS",
    )
    cors_allow_origins: list[str] = Field(
        default_factory=list,
        description="Allowed CORS origins. Derived from ALLOWED_ORIGINS.",
    )
    docs_url: str | None = Field(
        default="/docs",
        description="Swagger UI docs URL. Set to None to disable interactive docs.",
        validation_alias="DOCS_URL",
    )
    openapi_url: str | None = Field(
        default="/openapi.json",
        description="OpenAPI JSON schema URL. Set to None to disable OpenAPI exposure.",
        validation_alias="OPENAPI_URL",
    )

    # ---------------------------
    # Service identity / logging
    # ---------------------------
    service_name: str = Field(
        default="merge-proxy",
        description="Logical service name for logging.",
        validation_alias="SERVICE_NAME",
    )
    service_version: str | None = Field(
        default=None,
        description="Service version used for logging.",
        validation_alias="SERVICE_VERSION",
    )
    log_level: str | None = Field(
        default=None,
        description="Override log level (e.g., 'DEBUG', 'INFO'). If not set, defaults are used.",
        validation_alias="LOG_LEVEL",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="forbid",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def _compute_cors(self) -> Settings:
        """Parse ALLOWED_ORIGINS into a list.

        Raises:
            ValueError: If '*' is requested outside development/test.
        """
        raw = (self.cors_allow_origins_raw or "").strip()
        entries = [e.strip() for e in raw.split(",") if e.strip()]
        if any(e == "*" for e in entries) and self.environment not in (
            Environment.DEVELOPMENT,
            Environment.TEST,
        ):
            raise ValueError("'*' CORS origin is only allowed in development/test environments.")
        self.cors_allow_origins = entries
        return self

    @model_validator(mode="after")
    def _validate_promotion_window(self) -> Settings:
        """Ensure the timeout fires while the worker can still clean up.

        Raises:
            ValueError: If ``promotion_timeout_s`` is not below ``promotion_budget_s``.
        """
        if self.promotion_timeout_s >= self.promotion_budget_s:
            raise ValueError(
                "PROMOTION_TIMEOUT_S must be strictly less than PROMOTION_BUDGET_S "
                f"(got {self.promotion_timeout_s} >= {self.promotion_budget_s}).",
            )
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton `Settings` instance.

    Raises:
        RuntimeError: If configuration is invalid.
    """
    try:
        settings = Settings()
    except ValidationError as exc:
        logger.exception("Invalid application configuration")
        raise RuntimeError(f"Invalid configuration: {exc}") from exc

    logger.info(
        "Settings initialized",
        extra={
            "environment": settings.environment.value,
            "key_namespace": settings.key_namespace,
            "retention_seconds": settings.retention_seconds,
            "promotion_timeout_s": settings.promotion_timeout_s,
            "promotion_budget_s": settings.promotion_budget_s,
            "worker_concurrency": settings.worker_concurrency,
            "upstream_accept_error_bodies": settings.upstream_accept_error_bodies,
            "cors_count": len(settings.cors_allow_origins),
        },
    )
    return settings
