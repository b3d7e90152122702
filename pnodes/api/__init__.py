"""
HTTP read/write surface over the view store and refresh scheduler.

Components are built per application in pnodes.service.create_app and reached
through request.app.state, so each app instance owns its own store.
"""

from fastapi import Request

from pnodes.pipeline import IngestionPipeline
from pnodes.scheduler import RefreshScheduler
from pnodes.store import ViewStore


def get_store(request: Request) -> ViewStore:
    return request.app.state.store


def get_scheduler(request: Request) -> RefreshScheduler:
    return request.app.state.scheduler


def get_pipeline(request: Request) -> IngestionPipeline:
    return request.app.state.pipeline
