"""
pNode Monitor Service Entrypoint

FastAPI application exposing the pNode view and refresh control.
Builds one store / pipeline / scheduler set per app and starts the refresh
loop on startup.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI

from pnodes.api import nodes, refresh
from pnodes.config import Settings, get_settings
from pnodes.decoder import strategies_for_offsets
from pnodes.pipeline import IngestionPipeline
from pnodes.scheduler import RefreshScheduler
from pnodes.store import ViewStore
from shared.prpc_client import PrpcClient

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    source: Optional[Any] = None,
    start_scheduler: bool = True,
) -> FastAPI:
    """
    Assemble the service.

    Args:
        settings: Service configuration (default: from environment)
        source: Transport to fetch from (default: PrpcClient on settings.prpc_url)
        start_scheduler: Run the background refresh loop while the app is up
    """
    settings = settings or get_settings()
    owns_source = source is None
    if source is None:
        source = PrpcClient(settings.prpc_url, timeout=settings.rpc_timeout, program_id=settings.program_id)

    store = ViewStore(page_size=settings.page_size)
    pipeline = IngestionPipeline(
        source,
        store,
        feed=settings.feed,
        strategies=strategies_for_offsets(settings.decode_offsets),
    )
    scheduler = RefreshScheduler(
        pipeline.run_cycle,
        window_ticks=settings.refresh_window,
        tick_seconds=settings.tick_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if start_scheduler:
            logger.info(f"Starting refresh scheduler against {settings.prpc_url} ({settings.feed} feed)...")
            scheduler.start(initial_fetch=True)
        logger.info("pNode monitor startup complete")
        try:
            yield
        finally:
            scheduler.stop()
            if owns_source:
                source.close()
            logger.info("pNode monitor shutdown complete")

    app = FastAPI(title="pNode Monitor", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.pipeline = pipeline
    app.state.scheduler = scheduler

    app.include_router(nodes.router)
    app.include_router(refresh.router)

    @app.get("/")
    def root():
        state = store.snapshot()
        return {
            "service": "pNode Monitor",
            "status": "degraded" if state.error else "ok",
            "feed": settings.feed,
            "nodes": len(state.dataset),
            "countdown": scheduler.countdown,
        }

    return app
