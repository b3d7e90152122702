"""
pNode Monitor Service Launcher

Starts the pNode monitor API with its background refresh loop.

This service provides:
- Periodic ingestion from the pRPC endpoint (pods or program-accounts feed)
- Filtered / sorted / paginated pNode view over HTTP
- Aggregate fleet statistics
- Manual refresh with in-flight coalescing

Usage:
    python scripts/run_monitor_service.py --host 0.0.0.0 --port 8080

Environment Variables:
    PNODE_PRPC_URL: pRPC endpoint base URL (default: http://127.0.0.1:6000)
    PNODE_FEED: 'pods' or 'accounts' (default: pods)
    PNODE_API_HOST / PNODE_API_PORT: Bind address (default: 0.0.0.0:8080)
    PNODE_REFRESH_WINDOW: Countdown ticks between refreshes (default: 59)
    PNODE_LOG_LEVEL / PNODE_LOG_FILE: Logging (default: INFO, stdout only)
"""
import argparse
import os
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import uvicorn

from pnodes.config import get_settings
from shared.logging_config import setup_logging


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the pNode monitor API service")
    parser.add_argument("--host", default=os.getenv("PNODE_API_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("PNODE_API_PORT", "8080")))
    parser.add_argument("--prpc-url", default=None, help="Override PNODE_PRPC_URL")
    parser.add_argument("--feed", choices=["pods", "accounts"], default=None, help="Override PNODE_FEED")
    args = parser.parse_args()

    # Settings are read from the environment inside the app factory
    os.environ["PNODE_API_HOST"] = args.host
    os.environ["PNODE_API_PORT"] = str(args.port)
    if args.prpc_url:
        os.environ["PNODE_PRPC_URL"] = args.prpc_url
    if args.feed:
        os.environ["PNODE_FEED"] = args.feed

    try:
        settings = get_settings()
    except ValueError as e:
        print(f"✗ Invalid configuration: {e}")
        return 1

    setup_logging("monitor", level=settings.log_level, log_file=settings.log_file)

    print("=" * 60)
    print("pNode Monitor Service")
    print("=" * 60)
    print(f"API Address: {settings.api_host}:{settings.api_port}")
    print(f"pRPC Endpoint: {settings.prpc_url}")
    print(f"Feed: {settings.feed}")
    print(f"Refresh: every {settings.refresh_window + 1} ticks of {settings.tick_seconds}s")
    print(f"Decode offsets: {', '.join(str(o) for o in settings.decode_offsets)}")
    print("=" * 60)
    print("\nEndpoints:")
    print(f"  • Current page:  http://{settings.api_host}:{settings.api_port}/nodes")
    print(f"  • Fleet stats:   http://{settings.api_host}:{settings.api_port}/nodes/stats")
    print(f"  • Refresh state: http://{settings.api_host}:{settings.api_port}/refresh")
    print("\nPress Ctrl+C to stop\n")

    uvicorn.run(
        "pnodes.service:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
        log_config=None,  # keep the logging set up above
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
