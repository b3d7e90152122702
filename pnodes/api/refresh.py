"""
Refresh API

Endpoints:
- GET  /refresh: Scheduler state, countdown and last cycle report
- POST /refresh: Manual refresh (dropped if one is already in flight)
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from pnodes.api import get_pipeline, get_scheduler
from pnodes.pipeline import IngestionPipeline
from pnodes.scheduler import RefreshScheduler

router = APIRouter(prefix="/refresh", tags=["refresh"])


def _status_payload(scheduler: RefreshScheduler, pipeline: IngestionPipeline) -> Dict[str, Any]:
    status = scheduler.status()
    report = pipeline.last_report
    status["last_report"] = report.to_dict() if report else None
    return status


@router.get("")
def get_refresh_status(
    scheduler: RefreshScheduler = Depends(get_scheduler),
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> Dict[str, Any]:
    return _status_payload(scheduler, pipeline)


@router.post("")
def trigger_refresh(
    scheduler: RefreshScheduler = Depends(get_scheduler),
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> Dict[str, Any]:
    """
    Run a refresh cycle now. Returns once the cycle finished; `coalesced` is
    true when another refresh was already running and this one was dropped.
    """
    started = scheduler.trigger("manual")
    payload = _status_payload(scheduler, pipeline)
    payload["coalesced"] = not started
    return payload
