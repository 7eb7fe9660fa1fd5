# Copyright (c)
# SPDX-License-Identifier: MIT
"""merge-proxy CLI: operational commands (worker, sweep, serve).

Commands:
    worker   Run the promotion worker until interrupted (SIGINT/SIGTERM).
    sweep    Delete result blobs no live record owns (one pass).
    serve    Run the HTTP intake API under uvicorn.

Environment:
    Every command reads the same settings as the API (``REDIS_URL``,
    ``KEY_NAMESPACE``, ``PROMOTION_*``, ``WORKER_*``, ``UPSTREAM_*`` ...).
"""

from __future__ import annotations

import asyncio
import signal
from contextlib import suppress

import typer

from merge_proxy.adapters.gateways.lookup_gateway import LookupGateway
from merge_proxy.adapters.queues.redis_promotion_stream import RedisPromotionStream
from merge_proxy.application.use_cases.requests.promote_request import PromoteRequest
from merge_proxy.application.use_cases.requests.sweep_orphan_results import SweepOrphanResults
from merge_proxy.config.settings import Settings, get_settings
from merge_proxy.dependencies.core.bootstrap import build_stores
from merge_proxy.infrastructure.caching.redis_client import close_redis_client, create_redis_client
from merge_proxy.infrastructure.external_apis.lookup.client import LookupClient
from merge_proxy.infrastructure.logging.logger import configure_root_logging, get_json_logger
from merge_proxy.tasks.worker import PromotionWorker

configure_root_logging()
log = get_json_logger(__name__)

app = typer.Typer(add_completion=False, no_args_is_help=True)


async def _run_worker(settings: Settings) -> None:
    redis = create_redis_client(settings)
    lookup = LookupClient(settings)
    ledger, results = build_stores(settings, redis)
    promote = PromoteRequest(
        ledger,
        results,
        LookupGateway(lookup),
        timeout_s=settings.promotion_timeout_s,
        budget_s=settings.promotion_budget_s,
    )
    worker = PromotionWorker(
        RedisPromotionStream(
            redis,
            namespace=settings.key_namespace,
            group=settings.promotion_group,
            consumer=settings.worker_consumer_name,
        ),
        promote,
        concurrency=settings.worker_concurrency,
        batch_size=settings.worker_batch_size,
        block_ms=settings.worker_block_ms,
        reclaim_idle_ms=settings.worker_reclaim_idle_ms,
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    try:
        await worker.run(stop)
    finally:
        await promote.aclose()
        await lookup.aclose()
        await close_redis_client(redis)


async def _run_sweep(settings: Settings) -> int:
    redis = create_redis_client(settings)
    try:
        ledger, results = build_stores(settings, redis)
        report = await SweepOrphanResults(ledger, results).execute()
    finally:
        await close_redis_client(redis)
    return report.deleted


@app.command("worker")
def worker() -> None:
    """Run the promotion worker consumer loop until interrupted."""
    settings = get_settings()
    configure_root_logging(settings.log_level)
    log.info(
        "worker.boot",
        extra={
            "consumer": settings.worker_consumer_name,
            "group": settings.promotion_group,
            "concurrency": settings.worker_concurrency,
        },
    )
    asyncio.run(_run_worker(settings))


@app.command("sweep")
def sweep() -> None:
    """Delete result blobs whose owning record is gone (one pass)."""
    settings = get_settings()
    configure_root_logging(settings.log_level)
    deleted = asyncio.run(_run_sweep(settings))
    typer.echo(f"deleted {deleted} orphan result(s)")


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address."),  # noqa: B008
    port: int = typer.Option(8080, envvar="PORT", help="Bind port."),  # noqa: B008
    reload: bool = typer.Option(False, help="Reload on code changes (development)."),  # noqa: B008
) -> None:
    """Run the HTTP intake API under uvicorn."""
    import uvicorn

    uvicorn.run(
        "merge_proxy.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":  # pragma: no cover
    app()
