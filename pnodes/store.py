"""
pNode View Store

Explicit per-session state container for the dashboard:
- canonical dataset (replaced wholesale by each refresh cycle)
- query (status filter, search text, sort key/direction) and page
- derived view: filtered + sorted sequence and the current page slice
- last ingestion error / loading flag / last update time

The filtered view is always rebuilt from (dataset, query) when either changes;
a page-only change re-slices the existing view. Every mutation produces one
immutable ViewState snapshot, delivered synchronously to subscribers in
registration order.

Mutations are serialized with an RLock because the refresh thread and API
request threads both write here. Listeners run under that lock, so they must
not block; they may call back into the store.
"""

import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

from pnodes.filters import apply_query, clamp_page_index, compute_stats, paginate, total_pages
from pnodes.models import FilterStatus, Page, PNode, Query, SortKey, ViewState

logger = logging.getLogger(__name__)

Listener = Callable[[ViewState], None]

QUERY_FIELDS = ("status_filter", "search_text", "sort_key", "sort_ascending")
PAGE_FIELDS = ("page_index", "page_size")


class ViewStore:
    """Canonical dataset + query state with subscriber fan-out."""

    def __init__(self, page_size: int = 10, query: Optional[Query] = None):
        if page_size < 1:
            raise ValueError("page_size must be at least 1")

        self._lock = threading.RLock()
        self._dataset: Tuple[PNode, ...] = ()
        self._query = query or Query()
        self._page = Page(index=0, size=page_size)
        self._filtered: Tuple[PNode, ...] = ()
        self._error: Optional[str] = None
        self._last_updated: Optional[datetime] = None
        self._loading = False
        self._revision = 0

        # Listener arena: handle -> callback (dicts keep registration order)
        self._listeners: Dict[int, Listener] = {}
        self._next_handle = 1

        self._state = self._build_state()

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe(self, callback: Listener) -> int:
        with self._lock:
            handle = self._next_handle
            self._next_handle += 1
            self._listeners[handle] = callback
            return handle

    def unsubscribe(self, handle: int) -> bool:
        with self._lock:
            return self._listeners.pop(handle, None) is not None

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self) -> ViewState:
        return self._state

    def stats(self) -> Dict[str, Any]:
        return compute_stats(self._state.dataset)

    def get_node(self, identity: str) -> Optional[PNode]:
        for node in self._state.dataset:
            if node.identity == identity:
                return node
        return None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def replace_dataset(self, nodes: Iterable[PNode], updated_at: Optional[datetime] = None) -> ViewState:
        """Swap in a fresh dataset after a successful refresh cycle."""
        with self._lock:
            self._dataset = tuple(nodes)
            self._error = None
            self._loading = False
            self._last_updated = updated_at or datetime.now(timezone.utc)
            self._filtered = apply_query(self._dataset, self._query)

            # Dataset may have shrunk under the current page
            index = clamp_page_index(self._page.index, len(self._filtered), self._page.size)
            self._page = replace(self._page, index=index)

            return self._commit()

    def set_query(self, partial: Optional[Mapping[str, Any]] = None, **changes: Any) -> ViewState:
        """
        Merge a partial query/page update.

        Accepted keys: status_filter, search_text, sort_key, sort_ascending,
        page_index, page_size. Changing any query field (or the page size)
        resets the page to 0 before an explicit page_index is applied.

        Raises:
            ValueError: Unknown key, unknown status/sort key, bad page values
        """
        merged = {**(partial or {}), **changes}
        unknown = set(merged) - set(QUERY_FIELDS) - set(PAGE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown query fields: {', '.join(sorted(unknown))}")

        with self._lock:
            query = self._parse_query(merged)
            page = self._page

            if "page_size" in merged:
                size = int(merged["page_size"])
                if size < 1:
                    raise ValueError("page_size must be at least 1")
                page = replace(page, size=size)

            query_changed = query != self._query
            if query_changed or page.size != self._page.size:
                page = replace(page, index=0)

            if "page_index" in merged:
                index = int(merged["page_index"])
                if index < 0:
                    raise ValueError("page_index must be >= 0")
                page = replace(page, index=index)

            if query_changed:
                self._filtered = apply_query(self._dataset, query)

            self._query = query
            self._page = page
            return self._commit()

    def select_sort(self, key: Any) -> ViewState:
        """Column-header behaviour: same key toggles direction, new key starts ascending."""
        sort_key = SortKey(key)
        with self._lock:
            if sort_key == self._query.sort_key:
                ascending = not self._query.sort_ascending
            else:
                ascending = True
            return self.set_query(sort_key=sort_key, sort_ascending=ascending)

    def set_error(self, message: Optional[str]) -> ViewState:
        """Record an ingestion failure; the last good dataset stays visible."""
        with self._lock:
            self._error = message
            self._loading = False
            return self._commit()

    def set_loading(self, loading: bool) -> ViewState:
        with self._lock:
            self._loading = bool(loading)
            return self._commit()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _parse_query(self, merged: Mapping[str, Any]) -> Query:
        changes: Dict[str, Any] = {}
        if "status_filter" in merged:
            changes["status_filter"] = FilterStatus(merged["status_filter"])
        if "search_text" in merged:
            changes["search_text"] = str(merged["search_text"] or "")
        if "sort_key" in merged:
            changes["sort_key"] = SortKey(merged["sort_key"])
        if "sort_ascending" in merged:
            changes["sort_ascending"] = bool(merged["sort_ascending"])
        return replace(self._query, **changes)

    def _build_state(self) -> ViewState:
        return ViewState(
            dataset=self._dataset,
            query=self._query,
            page=self._page,
            filtered=self._filtered,
            page_items=paginate(self._filtered, self._page),
            total_pages=total_pages(len(self._filtered), self._page.size),
            error=self._error,
            last_updated=self._last_updated,
            loading=self._loading,
            revision=self._revision,
        )

    def _commit(self) -> ViewState:
        self._revision += 1
        self._state = self._build_state()
        self._notify(self._state)
        return self._state

    def _notify(self, state: ViewState):
        for handle, callback in list(self._listeners.items()):
            try:
                callback(state)
            except Exception as e:
                logger.error(f"Store listener {handle} failed: {e}", exc_info=True)
