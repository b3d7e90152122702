"""
Inspect raw pNode account buffers.

Dumps the leading bytes of each account and the outcome of decoding it, to
help line up the binary layout with what the program actually stores.

Usage:
    python scripts/inspect_accounts.py                      # fetch from PNODE_PRPC_URL
    python scripts/inspect_accounts.py --limit 3
    python scripts/inspect_accounts.py --b64 <base64 blob>  # offline
"""
import argparse
import base64
import binascii
import json
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from pnodes.config import get_settings
from pnodes.decoder import decode_account, inspect_buffer, strategies_for_offsets
from pnodes.errors import DecodeError
from pnodes.models import RawAccountRecord
from pnodes.pipeline import build_nodes
from shared.logging_config import setup_logging
from shared.prpc_client import PrpcClient, PrpcError


def _report(record: RawAccountRecord, strategies) -> dict:
    result = {"pubkey": record.key}
    if isinstance(record.data, str):
        try:
            result["buffer"] = inspect_buffer(base64.b64decode(record.data))
        except (binascii.Error, ValueError) as e:
            result["buffer"] = {"error": f"invalid base64: {e}"}
    elif record.parsed:
        result["parsed_fields"] = sorted(record.parsed)

    try:
        raw = decode_account(record, strategies)
    except DecodeError as e:
        result["decode"] = {"ok": False, "reason": e.reason, "detail": e.detail}
        return result

    nodes = build_nodes([raw])
    if not nodes:
        result["decode"] = {"ok": False, "reason": "no-identity", "detail": "neither identity nor account key present"}
        return result
    result["decode"] = {"ok": True, "node": nodes[0].to_dict()}
    return result


def main() -> int:
    parser = argparse.ArgumentParser(description="Inspect raw pNode program accounts")
    parser.add_argument("--b64", help="Inspect one base64 account blob instead of fetching")
    parser.add_argument("--limit", type=int, default=5, help="Accounts to inspect when fetching")
    args = parser.parse_args()

    settings = get_settings()
    setup_logging("inspect", level=settings.log_level)
    strategies = strategies_for_offsets(settings.decode_offsets)

    if args.b64:
        records = [RawAccountRecord(key="cli", data=args.b64)]
    else:
        client = PrpcClient(settings.prpc_url, timeout=settings.rpc_timeout, program_id=settings.program_id)
        try:
            accounts = client.get_program_accounts(use_json_parsed=False)
        except PrpcError as e:
            print(f"✗ Fetch failed: {e}")
            return 1
        finally:
            client.close()
        records = [RawAccountRecord.from_rpc(a) for a in accounts[:args.limit]]

    for record in records:
        print(json.dumps(_report(record, strategies), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
