"""Shared fixtures for pNode monitor tests."""

from datetime import datetime, timezone

import pytest

from pnodes.models import PNode, PNodeStatus, RawNodeRecord

NOW = 1_700_000_000.0


def make_node(identity: str, status: PNodeStatus = PNodeStatus.ACTIVE, **overrides) -> PNode:
    fields = dict(
        identity=identity,
        status=status,
        uptime=99.0,
        performance=90.0,
        reputation=8.0,
        last_heartbeat=datetime.fromtimestamp(NOW, tz=timezone.utc),
        storage_used_gb=10.0,
        storage_cap_gb=100.0,
        slots_produced=0,
        slots_skipped=0,
        peer_id=f"10.0.0.{len(identity)}:9001",
        version="0.7.0",
    )
    fields.update(overrides)
    return PNode(**fields)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def raw_node():
    """A fully populated decoded account record."""
    return RawNodeRecord(
        identity="NodeAlpha",
        status_code=1,
        uptime_raw=99.5,
        performance_raw=92.25,
        reputation_raw=8.5,
        storage_used=5 * 1024 ** 3,
        storage_cap=100 * 1024 ** 3,
        slots_produced=1200,
        slots_skipped=3,
        peer_id="12D3KooWpeer",
        version="0.7.1",
        last_heartbeat_epoch=int(NOW) - 30,
        source_key="Acc1111111111111",
    )


@pytest.fixture
def fleet():
    """Small mixed-status dataset, deliberately not in identity order."""
    return [
        make_node("charlie", PNodeStatus.INACTIVE, uptime=40.0, performance=20.0, reputation=2.0),
        make_node("alpha", PNodeStatus.ACTIVE, uptime=99.0, performance=95.0, reputation=9.0),
        make_node("Bravo", PNodeStatus.SYNCING, uptime=70.0, performance=80.0, reputation=6.0),
        make_node("delta", PNodeStatus.ACTIVE, uptime=99.0, performance=60.0, reputation=5.0),
    ]


class FakeSource:
    """Stand-in for PrpcClient with canned responses or errors."""

    def __init__(self, pods=None, accounts=None, error=None):
        self.pods = pods if pods is not None else {"pods": [], "total_count": 0}
        self.accounts = accounts if accounts is not None else []
        self.error = error
        self.calls = 0

    def get_pods(self):
        self.calls += 1
        if self.error:
            raise self.error
        return self.pods

    def get_program_accounts(self):
        self.calls += 1
        if self.error:
            raise self.error
        return self.accounts

    def close(self):
        pass


@pytest.fixture
def pods_payload(now):
    return {
        "pods": [
            {
                "pubkey": "N1",
                "address": "10.0.0.1:9001",
                "is_public": True,
                "last_seen_timestamp": now - 60,
                "uptime": 43200,
                "storage_usage_percent": 50,
                "storage_committed": 40 * 1024 ** 3,
                "storage_used": 20 * 1024 ** 3,
                "version": "0.7.0",
            },
            {
                "pubkey": "N2",
                "address": "10.0.0.2:9001",
                "is_public": False,
                "last_seen_timestamp": now - 3600,
                "uptime": 0,
                "version": "",
            },
            # Older sighting of N1 from another gossip peer
            {"pubkey": "N1", "last_seen_timestamp": now - 900, "uptime": 10},
            {"pubkey": "", "last_seen_timestamp": now},
        ],
        "total_count": 4,
    }
