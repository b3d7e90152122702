"""
pNode Record Decoder

Turns one RawAccountRecord into a RawNodeRecord.

Two input forms:
- Pre-parsed object (RPC `jsonParsed` encoding): named fields are mapped
  directly, missing ones default to 0 / "". Never fails.
- Byte blob (RPC `base64` encoding): Borsh layout

      string identity | u8 status | f32 uptime | f32 performance |
      f32 reputation | u64 storageUsed | u64 storageCap | u64 slotsProduced |
      u64 slotsSkipped | string peerId | string version | u64 lastHeartbeat

  where a string is a u32 length prefix followed by UTF-8 bytes.

The account program is unversioned and may or may not prefix an 8-byte
discriminator, so decoding walks a list of DecodeStrategy(offset, layout)
candidates and keeps the first one that is structurally valid.
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from borsh_construct import F32, U8, U32, U64, CStruct, String
from construct import ConstructError

from pnodes.errors import DecodeError
from pnodes.models import RawAccountRecord, RawNodeRecord, to_float, to_int

logger = logging.getLogger(__name__)

PNODE_LAYOUT = CStruct(
    "identity" / String,
    "status" / U8,
    "uptime" / F32,
    "performance" / F32,
    "reputation" / F32,
    "storageUsed" / U64,
    "storageCap" / U64,
    "slotsProduced" / U64,
    "slotsSkipped" / U64,
    "peerId" / String,
    "version" / String,
    "lastHeartbeat" / U64,
)

# Raised by construct for short buffers, oversized length prefixes and bad UTF-8
LAYOUT_ERRORS = (ConstructError, UnicodeDecodeError)


@dataclass(frozen=True)
class DecodeStrategy:
    """Try `layout` on the bytes starting at `offset`; trailing bytes are ignored."""
    offset: int
    layout: CStruct = PNODE_LAYOUT
    name: str = "pnode-v1"
    min_size: int = 10


def strategies_for_offsets(
    offsets: Iterable[int], layout: CStruct = PNODE_LAYOUT
) -> Tuple[DecodeStrategy, ...]:
    return tuple(DecodeStrategy(offset=int(o), layout=layout) for o in offsets)


DEFAULT_STRATEGIES = strategies_for_offsets((0, 8))

# Parsed-object field name -> accepted spellings
_FIELD_ALIASES = {
    "identity": ("identity",),
    "status": ("status", "status_code"),
    "uptime": ("uptime",),
    "performance": ("performance",),
    "reputation": ("reputation",),
    "storageUsed": ("storageUsed", "storage_used"),
    "storageCap": ("storageCap", "storage_cap"),
    "slotsProduced": ("slotsProduced", "slots_produced"),
    "slotsSkipped": ("slotsSkipped", "slots_skipped"),
    "peerId": ("peerId", "peer_id"),
    "version": ("version",),
    "lastHeartbeat": ("lastHeartbeat", "last_heartbeat"),
}


def _lookup(fields: Dict[str, Any], name: str) -> Any:
    for alias in _FIELD_ALIASES[name]:
        if fields.get(alias) is not None:
            return fields[alias]
    return None


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _record_from_fields(fields: Dict[str, Any], key: str) -> RawNodeRecord:
    return RawNodeRecord(
        identity=_text(_lookup(fields, "identity")),
        status_code=to_int(_lookup(fields, "status")),
        uptime_raw=to_float(_lookup(fields, "uptime")),
        performance_raw=to_float(_lookup(fields, "performance")),
        reputation_raw=to_float(_lookup(fields, "reputation")),
        storage_used=to_int(_lookup(fields, "storageUsed")),
        storage_cap=to_int(_lookup(fields, "storageCap")),
        slots_produced=to_int(_lookup(fields, "slotsProduced")),
        slots_skipped=to_int(_lookup(fields, "slotsSkipped")),
        peer_id=_text(_lookup(fields, "peerId")),
        version=_text(_lookup(fields, "version")),
        last_heartbeat_epoch=to_int(_lookup(fields, "lastHeartbeat")),
        source_key=key,
    )


def map_parsed(parsed: Dict[str, Any], key: str = "") -> RawNodeRecord:
    """Best-effort mapping of a pre-parsed account object; never raises."""
    return _record_from_fields(parsed, key)


def decode_bytes(
    buffer: bytes,
    key: str = "",
    strategies: Sequence[DecodeStrategy] = DEFAULT_STRATEGIES,
) -> RawNodeRecord:
    """
    Decode a byte blob, trying each strategy in priority order.

    Raises:
        DecodeError: reason 'layout-mismatch' when no strategy fits; detail
            carries the last structural error
    """
    last_error: Optional[str] = None

    for strategy in strategies:
        window = buffer[strategy.offset:]
        if len(window) < strategy.min_size:
            last_error = f"offset {strategy.offset}: buffer too small ({len(window)} bytes)"
            logger.debug(f"{key[:8]}: {last_error}")
            continue
        try:
            fields = strategy.layout.parse(window)
        except LAYOUT_ERRORS as e:
            last_error = f"offset {strategy.offset}: {e}"
            logger.debug(f"{key[:8]}: {strategy.name} rejected, {last_error}")
            continue

        logger.debug(f"{key[:8]}: decoded {len(buffer)} bytes with {strategy.name}@{strategy.offset}")
        return _record_from_fields(fields, key)

    raise DecodeError(key, "layout-mismatch", last_error or "no decode strategies configured")


def _account_bytes(record: RawAccountRecord) -> bytes:
    if isinstance(record.data, (bytes, bytearray)):
        return bytes(record.data)
    try:
        return base64.b64decode(str(record.data), validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(record.key, "bad-encoding", str(e)) from e


def decode_account(
    record: RawAccountRecord,
    strategies: Sequence[DecodeStrategy] = DEFAULT_STRATEGIES,
) -> RawNodeRecord:
    """
    Decode one account record.

    Raises:
        DecodeError: 'no-data' / 'ambiguous' when not exactly one form is
            present, 'bad-encoding' for invalid base64, 'layout-mismatch'
            when no strategy fits the bytes
    """
    has_parsed = isinstance(record.parsed, dict) and bool(record.parsed)
    has_data = record.data is not None and len(record.data) > 0

    if has_parsed and has_data:
        raise DecodeError(record.key, "ambiguous", "both parsed fields and raw data present")
    if has_parsed:
        return map_parsed(record.parsed, record.key)
    if not has_data:
        raise DecodeError(record.key, "no-data")

    return decode_bytes(_account_bytes(record), record.key, strategies)


def decode_accounts(
    records: Iterable[RawAccountRecord],
    strategies: Sequence[DecodeStrategy] = DEFAULT_STRATEGIES,
) -> Tuple[List[RawNodeRecord], List[DecodeError]]:
    """Decode a batch; failures are logged and returned, never raised."""
    decoded: List[RawNodeRecord] = []
    failures: List[DecodeError] = []

    for record in records:
        try:
            decoded.append(decode_account(record, strategies))
        except DecodeError as e:
            logger.warning(f"Dropping undecodable account {e}")
            failures.append(e)

    logger.info(f"Decoded {len(decoded)} accounts ({len(failures)} dropped)")
    return decoded, failures


def encode_node(raw: RawNodeRecord, prefix: bytes = b"", layout: CStruct = PNODE_LAYOUT) -> bytes:
    """Serialize a RawNodeRecord in `layout`, optionally behind a discriminator prefix."""
    values = {
        "identity": raw.identity,
        "status": raw.status_code,
        "uptime": raw.uptime_raw,
        "performance": raw.performance_raw,
        "reputation": raw.reputation_raw,
        "storageUsed": raw.storage_used,
        "storageCap": raw.storage_cap,
        "slotsProduced": raw.slots_produced,
        "slotsSkipped": raw.slots_skipped,
        "peerId": raw.peer_id,
        "version": raw.version,
        "lastHeartbeat": raw.last_heartbeat_epoch,
    }
    return prefix + layout.build(values)


def inspect_buffer(data: bytes, head: int = 100) -> Dict[str, Any]:
    """
    Describe a raw account buffer for layout debugging: size, leading bytes,
    a candidate 8-byte discriminator and the u32 found right after it.
    """
    info: Dict[str, Any] = {
        "size": len(data),
        "head_hex": data[:head].hex(" "),
        "head_decimal": list(data[:head]),
        "discriminator": list(data[:8]) if len(data) >= 8 else None,
        "length_at_8": None,
        "string_at_12": None,
    }
    if len(data) >= 12:
        length = U32.parse(data[8:12])
        info["length_at_8"] = length
        if length < 1000 and len(data) >= 12 + length:
            info["string_at_12"] = data[12:12 + length].decode("utf-8", errors="replace")
    return info
