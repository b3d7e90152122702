"""
pNode View API

Endpoints:
- GET  /nodes:              Current page of the filtered/sorted view
- GET  /nodes/all:          Full dataset (unfiltered)
- GET  /nodes/stats:        Aggregate figures (counts, averages, storage)
- POST /nodes/query:        Partial query/page update
- POST /nodes/sort/{key}:   Column-header sort (same key toggles direction)
- GET  /nodes/{identity}:   One node with its grades
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from pnodes.api import get_store
from pnodes.grades import grade_node
from pnodes.models import FilterStatus, PNode, SortKey, ViewState
from pnodes.store import ViewStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/nodes", tags=["nodes"])


class QueryUpdate(BaseModel):
    """Partial query update; omitted fields keep their current value"""
    status_filter: Optional[FilterStatus] = None
    search_text: Optional[str] = None
    sort_key: Optional[SortKey] = None
    sort_ascending: Optional[bool] = None
    page_index: Optional[int] = None
    page_size: Optional[int] = None


def serialize_node(node: PNode) -> Dict[str, Any]:
    payload = node.to_dict()
    payload["grades"] = grade_node(node)
    return payload


def page_payload(state: ViewState) -> Dict[str, Any]:
    return {
        "items": [serialize_node(n) for n in state.page_items],
        "page": {
            "index": state.page.index,
            "size": state.page.size,
            "total_pages": state.total_pages,
            "total_items": len(state.filtered),
        },
        "query": {
            "status_filter": state.query.status_filter.value,
            "search_text": state.query.search_text,
            "sort_key": state.query.sort_key.value,
            "sort_ascending": state.query.sort_ascending,
        },
        "error": state.error,
        "loading": state.loading,
        "last_updated": state.last_updated.isoformat() if state.last_updated else None,
        "revision": state.revision,
    }


@router.get("")
def get_page(store: ViewStore = Depends(get_store)) -> Dict[str, Any]:
    return page_payload(store.snapshot())


@router.get("/all")
def get_all_nodes(store: ViewStore = Depends(get_store)) -> Dict[str, Any]:
    state = store.snapshot()
    return {
        "items": [serialize_node(n) for n in state.dataset],
        "count": len(state.dataset),
        "last_updated": state.last_updated.isoformat() if state.last_updated else None,
        "error": state.error,
    }


@router.get("/stats")
def get_stats(store: ViewStore = Depends(get_store)) -> Dict[str, Any]:
    return store.stats()


@router.post("/query")
def update_query(update: QueryUpdate, store: ViewStore = Depends(get_store)) -> Dict[str, Any]:
    changes = update.model_dump(exclude_none=True)
    try:
        state = store.set_query(changes)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.debug(f"Query updated: {changes}")
    return page_payload(state)


@router.post("/sort/{key}")
def select_sort(key: str, store: ViewStore = Depends(get_store)) -> Dict[str, Any]:
    try:
        state = store.select_sort(key)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown sort key '{key}'")
    return page_payload(state)


@router.get("/{identity}")
def get_node(identity: str, store: ViewStore = Depends(get_store)) -> Dict[str, Any]:
    node = store.get_node(identity)
    if node is None:
        raise HTTPException(status_code=404, detail=f"pNode {identity} not found")
    return serialize_node(node)
