"""
Unit tests for the pNode record decoder.

Tests:
- Parsed-object mapping and defaults
- Binary layout at offset 0 and behind an 8-byte discriminator
- Layout mismatch, bad base64 and missing-data failures
- Buffer inspection helper
"""

import base64
import pytest
from borsh_construct import U32

from pnodes.decoder import (
    DEFAULT_STRATEGIES,
    decode_account,
    decode_accounts,
    decode_bytes,
    encode_node,
    inspect_buffer,
    map_parsed,
    strategies_for_offsets,
)
from pnodes.errors import DecodeError
from pnodes.models import RawAccountRecord


class TestParsedMapping:
    """Pre-parsed account objects."""

    def test_partial_object_defaults_missing_fields(self):
        """Only identity and status given: everything else is zero / empty."""
        raw = map_parsed({"identity": "X", "status": 1}, key="acc")

        assert raw.identity == "X"
        assert raw.status_code == 1
        assert raw.uptime_raw == 0
        assert raw.performance_raw == 0
        assert raw.storage_used == 0
        assert raw.slots_skipped == 0
        assert raw.peer_id == ""
        assert raw.version == ""
        assert raw.last_heartbeat_epoch == 0
        assert raw.source_key == "acc"

    def test_snake_case_and_numeric_strings(self):
        raw = map_parsed({"identity": "Y", "storage_used": "2048", "last_heartbeat": "1700000000"})

        assert raw.storage_used == 2048
        assert raw.last_heartbeat_epoch == 1700000000

    def test_wrong_types_fall_back_to_defaults(self):
        raw = map_parsed({"identity": 42, "uptime": "n/a", "slotsProduced": -5})

        assert raw.identity == ""
        assert raw.uptime_raw == 0
        assert raw.slots_produced == 0

    def test_decode_account_prefers_parsed(self):
        record = RawAccountRecord(key="acc", parsed={"identity": "X", "status": 2})
        assert decode_account(record).status_code == 2


class TestBinaryDecode:
    """Byte blobs in the pNode layout."""

    def test_offset_zero(self, raw_node):
        decoded = decode_bytes(encode_node(raw_node), key=raw_node.source_key)

        assert decoded.identity == "NodeAlpha"
        assert decoded.status_code == 1
        assert decoded.uptime_raw == pytest.approx(99.5)
        assert decoded.performance_raw == pytest.approx(92.25)
        assert decoded.storage_cap == 100 * 1024 ** 3
        assert decoded.slots_produced == 1200
        assert decoded.peer_id == "12D3KooWpeer"
        assert decoded.version == "0.7.1"
        assert decoded.last_heartbeat_epoch == raw_node.last_heartbeat_epoch

    def test_discriminator_prefix_falls_through_to_offset_eight(self, raw_node):
        """A huge first length prefix rejects offset 0; offset 8 decodes."""
        blob = encode_node(raw_node, prefix=b"\xff" * 8)

        decoded = decode_bytes(blob, key="acc", strategies=DEFAULT_STRATEGIES)

        assert decoded.identity == "NodeAlpha"
        assert decoded.version == "0.7.1"

    def test_trailing_bytes_ignored(self, raw_node):
        decoded = decode_bytes(encode_node(raw_node) + b"\x00" * 32)
        assert decoded.identity == "NodeAlpha"

    def test_truncated_blob_is_layout_mismatch(self, raw_node):
        blob = encode_node(raw_node)[:30]

        with pytest.raises(DecodeError) as exc:
            decode_bytes(blob, key="acc")

        assert exc.value.reason == "layout-mismatch"
        assert exc.value.key == "acc"

    def test_tiny_blob_is_layout_mismatch(self):
        with pytest.raises(DecodeError) as exc:
            decode_bytes(b"\x01\x02\x03", key="acc")
        assert exc.value.reason == "layout-mismatch"
        assert "too small" in exc.value.detail

    def test_invalid_utf8_identity_is_layout_mismatch(self):
        blob = U32.build(2) + b"\xff\xfe" + b"\x00" * 6

        with pytest.raises(DecodeError) as exc:
            decode_bytes(blob, key="acc", strategies=strategies_for_offsets([0]))
        assert exc.value.reason == "layout-mismatch"

    def test_configurable_strategy_list(self, raw_node):
        blob = encode_node(raw_node, prefix=U32.build(9999) + b"\x00" * 4)

        with pytest.raises(DecodeError):
            decode_bytes(blob, strategies=strategies_for_offsets([0]))
        assert decode_bytes(blob, strategies=strategies_for_offsets([0, 8])).identity == "NodeAlpha"

    def test_base64_account(self, raw_node):
        text = base64.b64encode(encode_node(raw_node)).decode()
        decoded = decode_account(RawAccountRecord(key="acc", data=text))
        assert decoded.identity == "NodeAlpha"
        assert decoded.source_key == "acc"


class TestDecodeFailures:
    """Failure reasons for unusable records."""

    def test_no_data(self):
        with pytest.raises(DecodeError) as exc:
            decode_account(RawAccountRecord(key="acc"))
        assert exc.value.reason == "no-data"

    def test_empty_parsed_and_empty_data(self):
        with pytest.raises(DecodeError) as exc:
            decode_account(RawAccountRecord(key="acc", parsed={}, data=""))
        assert exc.value.reason == "no-data"

    def test_both_forms_is_ambiguous(self):
        with pytest.raises(DecodeError) as exc:
            decode_account(RawAccountRecord(key="acc", parsed={"identity": "X"}, data="AAAA"))
        assert exc.value.reason == "ambiguous"

    def test_invalid_base64(self):
        with pytest.raises(DecodeError) as exc:
            decode_account(RawAccountRecord(key="acc", data="not base64!!"))
        assert exc.value.reason == "bad-encoding"

    def test_batch_collects_failures(self, raw_node):
        records = [
            RawAccountRecord(key="good", data=encode_node(raw_node)),
            RawAccountRecord(key="bad", data=b"\x00" * 4),
            RawAccountRecord(key="parsed", parsed={"identity": "P"}),
        ]

        decoded, failures = decode_accounts(records)

        assert [r.identity for r in decoded] == ["NodeAlpha", "P"]
        assert [f.key for f in failures] == ["bad"]


class TestRpcShapes:
    """RawAccountRecord.from_rpc accepts the getProgramAccounts shapes."""

    def test_base64_pair(self):
        record = RawAccountRecord.from_rpc({"pubkey": "K", "account": {"data": ["AAEC", "base64"]}})
        assert record.key == "K"
        assert record.data == "AAEC"
        assert record.parsed is None

    def test_parsed(self):
        record = RawAccountRecord.from_rpc({"pubkey": "K", "account": {"data": {"parsed": {"identity": "X"}}}})
        assert record.parsed == {"identity": "X"}
        assert record.data is None

    def test_missing_account(self):
        record = RawAccountRecord.from_rpc({"pubkey": "K"})
        assert record.parsed is None and record.data is None


class TestInspectBuffer:

    def test_reports_discriminator_and_string(self):
        blob = b"\x01" * 8 + U32.build(5) + b"hello" + b"\x00" * 10

        info = inspect_buffer(blob)

        assert info["size"] == len(blob)
        assert info["discriminator"] == [1] * 8
        assert info["length_at_8"] == 5
        assert info["string_at_12"] == "hello"
        assert info["head_decimal"][:2] == [1, 1]

    def test_short_buffer(self):
        info = inspect_buffer(b"\x00\x01")
        assert info["discriminator"] is None
        assert info["length_at_8"] is None


def test_encode_round_trip_preserves_record(raw_node):
    assert decode_bytes(encode_node(raw_node), key=raw_node.source_key) == raw_node
