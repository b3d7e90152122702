"""
Integration tests for one refresh cycle against a fake transport.
"""

import base64

import pytest
import requests

from pnodes.decoder import encode_node
from pnodes.errors import IngestionError
from pnodes.models import PNodeStatus, RawNodeRecord
from pnodes.pipeline import Feed, IngestionPipeline, build_nodes
from pnodes.scheduler import RefreshScheduler
from pnodes.store import ViewStore
from pnodes.transform import transform_record
from shared.prpc_client import PrpcError

from conftest import FakeSource


def _account(pubkey, blob):
    return {"pubkey": pubkey, "account": {"data": [base64.b64encode(blob).decode(), "base64"]}}


class TestPodsFeed:

    def test_cycle_publishes_deduplicated_nodes(self, pods_payload, now):
        store = ViewStore()
        pipeline = IngestionPipeline(FakeSource(pods=pods_payload), store, feed="pods", clock=lambda: now)

        report = pipeline.run_cycle()
        state = store.snapshot()

        assert sorted(n.identity for n in state.dataset) == ["N1", "N2"]
        n1 = store.get_node("N1")
        assert n1.status is PNodeStatus.ACTIVE
        assert n1.peer_id == "10.0.0.1:9001"
        assert store.get_node("N2").status is PNodeStatus.INACTIVE

        assert report.fetched == 4
        assert report.duplicates == 1
        assert report.dropped_no_identity == 1
        assert report.transformed == 2
        assert pipeline.last_report is report
        assert state.loading is False
        assert state.last_updated.timestamp() == pytest.approx(now)

    def test_missing_pods_array(self):
        store = ViewStore()
        pipeline = IngestionPipeline(FakeSource(pods={"total_count": 0}), store)

        with pytest.raises(IngestionError):
            pipeline.run_cycle()
        assert "pods array not found" in store.snapshot().error

    @pytest.mark.parametrize("error", [
        PrpcError("Request timed out after 5.0s"),
        requests.ConnectionError("refused"),
        TimeoutError("read timed out"),
        OSError("connection reset"),
        KeyError("pods"),
    ])
    def test_any_fetch_failure_recorded_on_store(self, error):
        store = ViewStore()
        pipeline = IngestionPipeline(FakeSource(error=error), store)
        scheduler = RefreshScheduler(pipeline.run_cycle, window_ticks=5)

        scheduler.trigger()

        state = store.snapshot()
        assert state.error.startswith("Failed to fetch pNodes:")
        assert state.loading is False
        assert scheduler.cycles_failed == 1
        assert scheduler.last_error == state.error

    def test_unexpected_store_failure_clears_loading(self, pods_payload, now, monkeypatch):
        store = ViewStore()
        pipeline = IngestionPipeline(FakeSource(pods=pods_payload), store, clock=lambda: now)

        def broken(*args, **kwargs):
            raise RuntimeError("listener exploded")

        monkeypatch.setattr(store, "replace_dataset", broken)
        with pytest.raises(RuntimeError):
            pipeline.run_cycle()
        assert store.snapshot().loading is False

    @pytest.mark.parametrize("error", [
        PrpcError("Request timed out after 5.0s"),
        requests.ConnectionError("refused"),
        TimeoutError("read timed out"),
        OSError("connection reset"),
        KeyError("pods"),
    ])
    def test_transport_failure_keeps_previous_dataset(self, pods_payload, now, error):
        source = FakeSource(pods=pods_payload)
        store = ViewStore()
        pipeline = IngestionPipeline(source, store, clock=lambda: now)
        pipeline.run_cycle()

        source.error = error
        with pytest.raises(IngestionError):
            pipeline.run_cycle()

        state = store.snapshot()
        assert len(state.dataset) == 2
        assert state.error.startswith("Failed to fetch pNodes:")
        assert state.loading is False


class TestAccountsFeed:

    def test_mixed_accounts(self, raw_node, now):
        accounts = [
            _account("acc1", encode_node(raw_node)),
            _account("acc2", encode_node(raw_node, prefix=b"\xff" * 8)),  # same identity
            _account("acc3", b"\x00\x01"),
            {"pubkey": "acc4", "account": {"data": {"parsed": {"identity": "Parsed", "status": 2}}}},
        ]
        store = ViewStore()
        pipeline = IngestionPipeline(FakeSource(accounts=accounts), store, feed=Feed.ACCOUNTS, clock=lambda: now)

        report = pipeline.run_cycle()

        assert report.fetched == 4
        assert report.decoded == 3
        assert report.decode_failures == 1
        assert report.duplicates == 1
        assert sorted(n.identity for n in store.snapshot().dataset) == ["NodeAlpha", "Parsed"]
        assert store.get_node("Parsed").status is PNodeStatus.SYNCING

    def test_unnamed_accounts_sharing_key_prefix_publish_one_node(self, now):
        """Unnamed accounts are published as pNode-<key[:8]>, so the prefix is the identity."""
        blob = encode_node(RawNodeRecord(status_code=1, last_heartbeat_epoch=int(now)))
        accounts = [_account("AAAAAAAAxyz1", blob), _account("AAAAAAAAxyz2", blob)]
        store = ViewStore()
        pipeline = IngestionPipeline(FakeSource(accounts=accounts), store, feed="accounts", clock=lambda: now)

        report = pipeline.run_cycle()

        assert [n.identity for n in store.snapshot().dataset] == ["pNode-AAAAAAAA"]
        assert report.duplicates == 1
        assert store.get_node("pNode-AAAAAAAA") is not None

    def test_empty_account_list(self):
        store = ViewStore()
        report = IngestionPipeline(FakeSource(accounts=[]), store, feed="accounts").run_cycle()
        assert report.fetched == 0
        assert store.snapshot().dataset == ()


def test_unknown_feed_rejected():
    with pytest.raises(ValueError):
        IngestionPipeline(FakeSource(), ViewStore(), feed="gossip")


def test_build_nodes_without_store(now):
    records = [
        RawNodeRecord(identity="A", status_code=1, last_heartbeat_epoch=50),
        RawNodeRecord(identity="A", status_code=0, last_heartbeat_epoch=80),
    ]
    (node,) = build_nodes(records, now)
    assert node.status is PNodeStatus.INACTIVE


def test_build_nodes_drops_failing_records(now, monkeypatch):
    def flaky(record, now, params):
        if record.identity_key == "bad":
            raise AttributeError("missing field")
        return transform_record(record, now, params)

    monkeypatch.setattr("pnodes.pipeline.transform_record", flaky)
    records = [RawNodeRecord(identity="bad"), RawNodeRecord(identity="good")]

    assert [n.identity for n in build_nodes(records, now)] == ["good"]


def test_build_nodes_empty_for_keyless_record(now):
    assert build_nodes([RawNodeRecord()], now) == ()
