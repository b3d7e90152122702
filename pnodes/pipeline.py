"""
pNode Ingestion Pipeline

One refresh cycle: fetch -> (decode) -> dedup -> transform -> store replace.

Two upstream feeds share everything after the fetch:
- "pods":     get-pods-with-stats entries -> PodRecord
- "accounts": program accounts -> RawAccountRecord -> decode -> RawNodeRecord

Per-record problems (undecodable bytes, a transform blowing up) drop the record
and the cycle goes on. A failed fetch leaves the previous dataset in place,
records the error on the store and raises IngestionError for the scheduler.
"""

import enum
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

from pnodes.decoder import DEFAULT_STRATEGIES, DecodeStrategy, decode_accounts
from pnodes.dedup import deduplicate_with_stats
from pnodes.errors import IngestionError, TransformError
from pnodes.models import PNode, PodRecord, RawAccountRecord, RawNodeRecord
from pnodes.store import ViewStore
from pnodes.transform import DEFAULT_PARAMS, ScoringParams, transform_record

logger = logging.getLogger(__name__)


class Feed(str, enum.Enum):
    PODS = "pods"
    ACCOUNTS = "accounts"


@dataclass
class CycleReport:
    feed: str
    fetched: int = 0
    decoded: int = 0
    decode_failures: int = 0
    unique: int = 0
    duplicates: int = 0
    dropped_no_identity: int = 0
    transformed: int = 0
    transform_failures: int = 0
    duration_ms: float = 0.0

    def to_dict(self) -> dict:
        return dict(self.__dict__)


class IngestionPipeline:
    """
    Runs refresh cycles against a transport source and publishes into a store.

    `source` needs `get_pods()` for the pods feed and `get_program_accounts()`
    for the accounts feed (see shared.prpc_client.PrpcClient).
    """

    def __init__(
        self,
        source: Any,
        store: ViewStore,
        feed: Union[Feed, str] = Feed.PODS,
        params: ScoringParams = DEFAULT_PARAMS,
        strategies: Sequence[DecodeStrategy] = DEFAULT_STRATEGIES,
        clock: Callable[[], float] = time.time,
    ):
        self.source = source
        self.store = store
        self.feed = Feed(feed)
        self.params = params
        self.strategies = tuple(strategies)
        self.clock = clock
        self.last_report: Optional[CycleReport] = None

    def run_cycle(self) -> CycleReport:
        """
        Execute one full refresh cycle.

        Raises:
            IngestionError: The fetch failed; store keeps its dataset and shows the error
        """
        started = time.perf_counter()
        report = CycleReport(feed=self.feed.value)
        self.store.set_loading(True)
        try:
            return self._run(report, started)
        finally:
            # set_error / replace_dataset clear it; anything else must not leave it set
            if self.store.snapshot().loading:
                self.store.set_loading(False)

    # ------------------------------------------------------------------

    def _run(self, report: CycleReport, started: float) -> CycleReport:
        try:
            records = self._fetch(report)
        except Exception as e:
            # requests errors, PrpcError, socket timeouts, malformed payloads
            message = f"Failed to fetch pNodes: {str(e) or type(e).__name__}"
            logger.error(message)
            self.store.set_error(message)
            raise IngestionError(message) from e

        now = self.clock()
        unique, stats = deduplicate_with_stats(records)
        report.unique = stats.unique
        report.duplicates = stats.duplicates
        report.dropped_no_identity = stats.dropped_no_identity

        nodes: List[PNode] = []
        for record in unique:
            node = _transform_or_none(record, now, self.params)
            if node is None:
                report.transform_failures += 1
            else:
                nodes.append(node)
        report.transformed = len(nodes)

        self.store.replace_dataset(nodes, updated_at=datetime.fromtimestamp(now, tz=timezone.utc))

        report.duration_ms = round((time.perf_counter() - started) * 1000, 1)
        self.last_report = report
        logger.info(
            f"Refresh cycle ({report.feed}): fetched={report.fetched} unique={report.unique} "
            f"published={report.transformed} decode_failures={report.decode_failures} "
            f"transform_failures={report.transform_failures} in {report.duration_ms}ms"
        )
        return report

    def _fetch(self, report: CycleReport) -> List[Union[PodRecord, RawNodeRecord]]:
        if self.feed is Feed.PODS:
            return self._fetch_pods(report)
        return self._fetch_accounts(report)

    def _fetch_pods(self, report: CycleReport) -> List[PodRecord]:
        response = self.source.get_pods()
        pods = response.get("pods") if isinstance(response, dict) else None
        if not isinstance(pods, list):
            raise IngestionError("Invalid response format: pods array not found")

        report.fetched = len(pods)
        records = [PodRecord.from_dict(pod) for pod in pods if isinstance(pod, dict)]
        skipped = len(pods) - len(records)
        if skipped:
            logger.warning(f"Skipped {skipped} pod entries that are not objects")
        report.decoded = len(records)
        return records

    def _fetch_accounts(self, report: CycleReport) -> List[RawNodeRecord]:
        accounts = self.source.get_program_accounts()
        if not isinstance(accounts, list):
            raise IngestionError("Invalid response format: result is not an array")

        report.fetched = len(accounts)
        raw_accounts = [RawAccountRecord.from_rpc(a) for a in accounts if isinstance(a, dict)]
        decoded, failures = decode_accounts(raw_accounts, self.strategies)
        report.decoded = len(decoded)
        report.decode_failures = len(failures) + (len(accounts) - len(raw_accounts))
        return decoded


def build_nodes(
    records: Sequence[Union[PodRecord, RawNodeRecord]],
    now: Optional[float] = None,
    params: ScoringParams = DEFAULT_PARAMS,
) -> Tuple[PNode, ...]:
    """Dedup + transform without a store (scripts, one-off checks)."""
    now = time.time() if now is None else now
    unique, _ = deduplicate_with_stats(records)
    nodes = (_transform_or_none(record, now, params) for record in unique)
    return tuple(node for node in nodes if node is not None)


def _transform_or_none(
    record: Union[PodRecord, RawNodeRecord], now: float, params: ScoringParams
) -> Optional[PNode]:
    try:
        return transform_record(record, now, params)
    except TransformError as e:
        logger.error(f"Dropping record {record.identity_key}: {e}")
    except Exception as e:
        logger.error(f"Unexpected transform failure for {record.identity_key}: {e}", exc_info=True)
    return None
