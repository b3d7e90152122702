"""
Record de-duplication by node identity.

Upstream feeds repeat the same node (gossip fan-in, re-registered accounts).
Keep one record per identity: the most recently seen, first one on ties.
Records without a usable identity are dropped, which is a filtering policy,
not an error.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple, TypeVar

from pnodes.models import RawTelemetryRecord

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=RawTelemetryRecord)


@dataclass
class DedupStats:
    seen: int = 0
    dropped_no_identity: int = 0
    duplicates: int = 0

    @property
    def unique(self) -> int:
        return self.seen - self.dropped_no_identity - self.duplicates


def deduplicate_with_stats(records: Iterable[R]) -> Tuple[List[R], DedupStats]:
    stats = DedupStats()
    latest: Dict[str, R] = {}

    for record in records:
        stats.seen += 1
        key = record.identity_key
        if not key:
            stats.dropped_no_identity += 1
            continue

        current = latest.get(key)
        if current is None:
            latest[key] = record
            continue

        stats.duplicates += 1
        if record.last_seen_epoch > current.last_seen_epoch:
            latest[key] = record

    if stats.dropped_no_identity or stats.duplicates:
        logger.debug(
            f"Dedup: {stats.seen} in, {stats.unique} unique, "
            f"{stats.duplicates} duplicates, {stats.dropped_no_identity} without identity"
        )
    # Output order is not part of the contract
    return list(latest.values()), stats


def deduplicate(records: Iterable[R]) -> List[R]:
    unique, _ = deduplicate_with_stats(records)
    return unique