"""
pNode Metric Transformer

Maps one upstream record onto a PNode:
- RawNodeRecord (decoded program account): status comes from the status code,
  scores are the decoded raw values clamped to range.
- PodRecord (get-pods-with-stats): status, uptime %, performance and
  reputation are derived from last-seen time, uptime seconds, storage figures
  and the public flag.

Pure and deterministic for a given `now` (epoch seconds); missing numbers are
already 0 on the records, and nothing here raises for odd values.

Performance (0-100) is the mean of the factors whose gate holds:
    storage  100 - |usage% - 50| * 2 (>= 0)    only when 0 < usage% < 100
    uptime   min(100, uptime_s / 86400 * 100)  only when uptime_s > 0
    recency  max(0, 100 - minutes_since * 2)   always
    public   100                               only when is_public

Reputation (0-10) is a capped sum:
    min(10, uptime_days * 0.1) + min(5, committed_GB / 20)
    + max(0, 5 - hours_since * 0.5) + 2 if public + 1 if version present
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union

from pnodes.errors import TransformError
from pnodes.models import PNode, PNodeStatus, PodRecord, RawNodeRecord

logger = logging.getLogger(__name__)

BYTES_PER_GB = 1024 ** 3

_STATUS_CODES = {
    0: PNodeStatus.INACTIVE,
    1: PNodeStatus.ACTIVE,
    2: PNodeStatus.SYNCING,
}


@dataclass(frozen=True)
class ScoringParams:
    """Scoring constants. Defaults reproduce the dashboard's published formulas."""

    # Status / uptime
    active_window_seconds: float = 300.0
    uptime_reference_seconds: float = 86400.0

    # Performance
    optimal_storage_percent: float = 50.0
    storage_penalty_per_percent: float = 2.0
    recency_decay_per_minute: float = 2.0
    public_performance_score: float = 100.0

    # Reputation
    reputation_cap: float = 10.0
    uptime_points_per_day: float = 0.1
    uptime_points_cap: float = 10.0
    storage_gb_per_point: float = 20.0
    storage_points_cap: float = 5.0
    recency_points_max: float = 5.0
    recency_decay_per_hour: float = 0.5
    public_reputation_bonus: float = 2.0
    version_reputation_bonus: float = 1.0


DEFAULT_PARAMS = ScoringParams()


# ============================================================================
# HELPERS
# ============================================================================

def _clamp(value: float, low: float, high: float) -> float:
    if value != value:  # NaN
        return low
    return max(low, min(high, value))


def bytes_to_gb(num_bytes: Union[int, float]) -> float:
    """Bytes -> GB (2^30), rounded to one decimal place."""
    return round(max(0, num_bytes) / BYTES_PER_GB, 1)


def _epoch_to_datetime(epoch: float, now: float) -> datetime:
    try:
        return datetime.fromtimestamp(epoch, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        logger.debug(f"Unrepresentable timestamp {epoch}, using now")
        return datetime.fromtimestamp(now, tz=timezone.utc)


def status_from_code(code: int) -> PNodeStatus:
    return _STATUS_CODES.get(code, PNodeStatus.INACTIVE)


def status_from_last_seen(last_seen: float, now: float, params: ScoringParams = DEFAULT_PARAMS) -> PNodeStatus:
    if now - last_seen < params.active_window_seconds:
        return PNodeStatus.ACTIVE
    return PNodeStatus.INACTIVE


def uptime_percentage(uptime_seconds: float, params: ScoringParams = DEFAULT_PARAMS) -> float:
    if not uptime_seconds or uptime_seconds <= 0:
        return 0.0
    return min(100.0, uptime_seconds / params.uptime_reference_seconds * 100)


# ============================================================================
# POD FEED SCORES
# ============================================================================

def performance_score(pod: PodRecord, now: float, params: ScoringParams = DEFAULT_PARAMS) -> float:
    factors = []

    usage = pod.storage_usage_percent
    if usage is not None and 0 < usage < 100:
        deviation = abs(usage - params.optimal_storage_percent)
        factors.append(max(0.0, 100 - deviation * params.storage_penalty_per_percent))

    if pod.uptime > 0:
        factors.append(uptime_percentage(pod.uptime, params))

    minutes_since = (now - pod.last_seen_timestamp) / 60
    recency = 100 - minutes_since * params.recency_decay_per_minute
    factors.append(_clamp(recency, 0.0, 100.0))

    if pod.is_public:
        factors.append(params.public_performance_score)

    if not factors:
        return 0.0
    return _clamp(sum(factors) / len(factors), 0.0, 100.0)


def reputation_score(pod: PodRecord, now: float, params: ScoringParams = DEFAULT_PARAMS) -> float:
    score = 0.0

    if pod.uptime > 0:
        uptime_days = pod.uptime / 86400
        score += min(params.uptime_points_cap, uptime_days * params.uptime_points_per_day)

    if pod.storage_committed > 0:
        committed_gb = pod.storage_committed / BYTES_PER_GB
        score += min(params.storage_points_cap, committed_gb / params.storage_gb_per_point)

    hours_since = (now - pod.last_seen_timestamp) / 3600
    recency = params.recency_points_max - hours_since * params.recency_decay_per_hour
    score += max(0.0, recency)

    if pod.is_public:
        score += params.public_reputation_bonus

    if pod.version:
        score += params.version_reputation_bonus

    return _clamp(score, 0.0, params.reputation_cap)


# ============================================================================
# TRANSFORMS
# ============================================================================

def transform_pod(pod: PodRecord, now: Optional[float] = None, params: ScoringParams = DEFAULT_PARAMS) -> PNode:
    now = time.time() if now is None else now
    identity = pod.identity_key or "unknown"
    if identity == "unknown":
        logger.warning("Pod without pubkey reached the transformer")

    return PNode(
        identity=identity,
        status=status_from_last_seen(pod.last_seen_timestamp, now, params),
        uptime=uptime_percentage(pod.uptime, params),
        performance=performance_score(pod, now, params),
        reputation=reputation_score(pod, now, params),
        last_heartbeat=_epoch_to_datetime(pod.last_seen_timestamp, now),
        storage_used_gb=bytes_to_gb(pod.storage_used),
        storage_cap_gb=bytes_to_gb(pod.storage_committed),
        slots_produced=0,  # not reported by the pod feed
        slots_skipped=0,
        peer_id=pod.address or identity,
        version=pod.version or "unknown",
    )


def transform_raw(raw: RawNodeRecord, now: Optional[float] = None, params: ScoringParams = DEFAULT_PARAMS) -> PNode:
    now = time.time() if now is None else now
    key = raw.source_key
    heartbeat = raw.last_heartbeat_epoch

    return PNode(
        identity=raw.identity_key or "unknown",
        status=status_from_code(raw.status_code),
        uptime=_clamp(raw.uptime_raw, 0.0, 100.0),
        performance=_clamp(raw.performance_raw, 0.0, 100.0),
        reputation=_clamp(raw.reputation_raw, 0.0, params.reputation_cap),
        last_heartbeat=_epoch_to_datetime(heartbeat if heartbeat else now, now),
        storage_used_gb=bytes_to_gb(raw.storage_used),
        storage_cap_gb=bytes_to_gb(raw.storage_cap),
        slots_produced=raw.slots_produced,
        slots_skipped=raw.slots_skipped,
        peer_id=raw.peer_id or key,
        version=raw.version or "unknown",
    )


def transform_record(
    record: Union[PodRecord, RawNodeRecord],
    now: Optional[float] = None,
    params: ScoringParams = DEFAULT_PARAMS,
) -> PNode:
    """Dispatch on the record variant."""
    if isinstance(record, PodRecord):
        return transform_pod(record, now, params)
    if isinstance(record, RawNodeRecord):
        return transform_raw(record, now, params)
    raise TransformError(f"Unsupported record type: {type(record).__name__}")
