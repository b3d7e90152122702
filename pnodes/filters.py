"""
View stages for the pNode table.

Each stage is a pure function over a sequence of PNodes, applied in order:
status filter -> search -> stable sort -> pagination slice.
"""

import enum
import locale
import math
from collections import Counter
from typing import Any, Dict, Sequence, Tuple

from pnodes.models import FilterStatus, Page, PNode, PNodeStatus, Query, SortKey


def filter_by_status(nodes: Sequence[PNode], status_filter: FilterStatus) -> Tuple[PNode, ...]:
    if status_filter is FilterStatus.ALL:
        return tuple(nodes)
    return tuple(n for n in nodes if n.status.value == status_filter.value)


def filter_by_search(nodes: Sequence[PNode], search_text: str) -> Tuple[PNode, ...]:
    needle = search_text.casefold()
    if not needle:
        return tuple(nodes)
    return tuple(
        n for n in nodes
        if needle in n.identity.casefold() or needle in n.peer_id.casefold()
    )


def _sort_value(node: PNode, key: SortKey) -> Any:
    value = getattr(node, key.value)
    if isinstance(value, enum.Enum):
        value = value.value
    if isinstance(value, str):
        return locale.strxfrm(value.casefold())
    return value


def sort_nodes(nodes: Sequence[PNode], key: SortKey, ascending: bool = True) -> Tuple[PNode, ...]:
    # sorted() is stable in both directions: equal keys keep their input order
    return tuple(sorted(nodes, key=lambda n: _sort_value(n, key), reverse=not ascending))


def apply_query(nodes: Sequence[PNode], query: Query) -> Tuple[PNode, ...]:
    filtered = filter_by_status(nodes, query.status_filter)
    filtered = filter_by_search(filtered, query.search_text)
    return sort_nodes(filtered, query.sort_key, query.sort_ascending)


def total_pages(count: int, page_size: int) -> int:
    return math.ceil(count / page_size) if page_size > 0 else 0


def clamp_page_index(index: int, count: int, page_size: int) -> int:
    """Largest valid page index not above `index` (0 for an empty view)."""
    last = max(0, total_pages(count, page_size) - 1)
    return max(0, min(index, last))


def paginate(nodes: Sequence[PNode], page: Page) -> Tuple[PNode, ...]:
    """Slice [index*size, (index+1)*size); out-of-range pages are simply empty."""
    start = max(0, page.index) * page.size
    return tuple(nodes[start:start + page.size])


def compute_stats(nodes: Sequence[PNode]) -> Dict[str, Any]:
    """Aggregate figures for the dashboard header cards and charts."""
    total = len(nodes)
    by_status = Counter(n.status for n in nodes)
    active = by_status.get(PNodeStatus.ACTIVE, 0)

    def _mean(attr: str) -> float:
        if not total:
            return 0.0
        return round(sum(getattr(n, attr) for n in nodes) / total, 2)

    return {
        "total": total,
        "active": active,
        "inactive": by_status.get(PNodeStatus.INACTIVE, 0),
        "syncing": by_status.get(PNodeStatus.SYNCING, 0),
        "online_percent": round(active / total * 100, 1) if total else 0.0,
        "avg_uptime": _mean("uptime"),
        "avg_performance": _mean("performance"),
        "avg_reputation": _mean("reputation"),
        "storage_used_gb": round(sum(n.storage_used_gb for n in nodes), 1),
        "storage_cap_gb": round(sum(n.storage_cap_gb for n in nodes), 1),
        "versions": dict(Counter(n.version for n in nodes).most_common()),
    }
