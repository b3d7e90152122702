from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Protocol, Tuple, Union

# ============================================================================
# ENUM DEFINITIONS
# ============================================================================

class PNodeStatus(str, enum.Enum):
    """Operational status shown for a pNode"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    SYNCING = "syncing"


class FilterStatus(str, enum.Enum):
    """Status filter applied by the view store"""
    ALL = "all"
    ACTIVE = "active"
    INACTIVE = "inactive"
    SYNCING = "syncing"


class SortKey(str, enum.Enum):
    """PNode fields the view can be sorted by"""
    IDENTITY = "identity"
    STATUS = "status"
    UPTIME = "uptime"
    PERFORMANCE = "performance"
    REPUTATION = "reputation"
    LAST_HEARTBEAT = "last_heartbeat"
    STORAGE_USED_GB = "storage_used_gb"
    STORAGE_CAP_GB = "storage_cap_gb"
    SLOTS_PRODUCED = "slots_produced"
    SLOTS_SKIPPED = "slots_skipped"
    PEER_ID = "peer_id"
    VERSION = "version"


# ============================================================================
# NUMERIC COERCION
# ============================================================================

def to_float(value: Any, default: float = 0.0) -> float:
    """Best-effort float: numbers and numeric strings pass, anything else is `default`."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        result = float(value)
    elif isinstance(value, str):
        try:
            result = float(value.strip())
        except ValueError:
            return default
    else:
        return default
    return result if math.isfinite(result) else default


def to_int(value: Any, default: int = 0) -> int:
    """Best-effort non-negative integer for u64-style fields."""
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value if value >= 0 else default
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    number = to_float(value, -1.0)
    return int(number) if number >= 0 else default


# ============================================================================
# RAW INPUT RECORDS
# ============================================================================

@dataclass(frozen=True)
class RawAccountRecord:
    """
    One account as handed over by the transport.

    Exactly one of `parsed` / `data` is expected. `data` is either the raw
    bytes or the base64 text the RPC returned; the decoder handles both.
    """
    key: str
    parsed: Optional[Dict[str, Any]] = None
    data: Union[bytes, str, None] = None

    @classmethod
    def from_rpc(cls, account: Dict[str, Any]) -> "RawAccountRecord":
        """
        Build from a program-account entry. Accepted `account.data` shapes:
        ["<base64>", "base64"], "<base64>", or {"parsed": {...}}.
        """
        key = str(account.get("pubkey") or "")
        body = account.get("account")
        data = body.get("data") if isinstance(body, dict) else None

        if isinstance(data, dict):
            parsed = data.get("parsed")
            return cls(key=key, parsed=parsed if isinstance(parsed, dict) and parsed else None)
        if isinstance(data, (list, tuple)) and data and isinstance(data[0], str):
            return cls(key=key, data=data[0])
        if isinstance(data, str):
            return cls(key=key, data=data)
        return cls(key=key)


class RawTelemetryRecord(Protocol):
    """What the deduplicator needs from either upstream record variant."""

    @property
    def identity_key(self) -> str: ...

    @property
    def last_seen_epoch(self) -> float: ...


@dataclass(frozen=True)
class RawNodeRecord:
    """Decoded pNode account (binary / parsed feed). Never mutated."""
    identity: str = ""
    status_code: int = 0
    uptime_raw: float = 0.0
    performance_raw: float = 0.0
    reputation_raw: float = 0.0
    storage_used: int = 0
    storage_cap: int = 0
    slots_produced: int = 0
    slots_skipped: int = 0
    peer_id: str = ""
    version: str = ""
    last_heartbeat_epoch: int = 0
    source_key: str = ""  # account pubkey the record was decoded from

    @property
    def identity_key(self) -> str:
        """Identity the node is published under; unnamed accounts use their key prefix."""
        identity = self.identity.strip()
        if identity:
            return identity
        key = self.source_key.strip()
        return f"pNode-{key[:8]}" if key else ""

    @property
    def last_seen_epoch(self) -> float:
        return float(self.last_heartbeat_epoch)


@dataclass(frozen=True)
class PodRecord:
    """One entry of `get-pods-with-stats` (pod feed)."""
    pubkey: str = ""
    address: str = ""
    is_public: bool = False
    last_seen_timestamp: float = 0.0
    version: str = ""
    rpc_port: int = 0
    storage_committed: int = 0
    storage_usage_percent: Optional[float] = None
    storage_used: int = 0
    uptime: float = 0.0

    @classmethod
    def from_dict(cls, pod: Dict[str, Any]) -> "PodRecord":
        usage = pod.get("storage_usage_percent")
        return cls(
            pubkey=str(pod.get("pubkey") or ""),
            address=str(pod.get("address") or ""),
            is_public=bool(pod.get("is_public")),
            last_seen_timestamp=to_float(pod.get("last_seen_timestamp")),
            version=str(pod.get("version") or ""),
            rpc_port=to_int(pod.get("rpc_port")),
            storage_committed=to_int(pod.get("storage_committed")),
            storage_usage_percent=None if usage is None else to_float(usage),
            storage_used=to_int(pod.get("storage_used")),
            uptime=to_float(pod.get("uptime")),
        )

    @property
    def identity_key(self) -> str:
        return self.pubkey.strip()

    @property
    def last_seen_epoch(self) -> float:
        return self.last_seen_timestamp


# ============================================================================
# DOMAIN ENTITY
# ============================================================================

@dataclass(frozen=True)
class PNode:
    """Scored pNode as shown to the presentation layer"""
    identity: str
    status: PNodeStatus
    uptime: float  # 0-100
    performance: float  # 0-100
    reputation: float  # 0-10
    last_heartbeat: datetime
    storage_used_gb: float
    storage_cap_gb: float
    slots_produced: int
    slots_skipped: int
    peer_id: str
    version: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity,
            "status": self.status.value,
            "uptime": self.uptime,
            "performance": self.performance,
            "reputation": self.reputation,
            "last_heartbeat": self.last_heartbeat.isoformat(),
            "storage_used_gb": self.storage_used_gb,
            "storage_cap_gb": self.storage_cap_gb,
            "slots_produced": self.slots_produced,
            "slots_skipped": self.slots_skipped,
            "peer_id": self.peer_id,
            "version": self.version,
        }


# ============================================================================
# VIEW STATE
# ============================================================================

@dataclass(frozen=True)
class Query:
    status_filter: FilterStatus = FilterStatus.ALL
    search_text: str = ""
    sort_key: SortKey = SortKey.IDENTITY
    sort_ascending: bool = True


@dataclass(frozen=True)
class Page:
    index: int = 0  # 0-based
    size: int = 10


@dataclass(frozen=True)
class ViewState:
    """Immutable snapshot handed to store subscribers."""
    dataset: Tuple[PNode, ...] = ()
    query: Query = field(default_factory=Query)
    page: Page = field(default_factory=Page)
    filtered: Tuple[PNode, ...] = ()
    page_items: Tuple[PNode, ...] = ()
    total_pages: int = 0
    error: Optional[str] = None
    last_updated: Optional[datetime] = None
    loading: bool = False
    revision: int = 0
