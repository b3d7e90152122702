"""
Shared utilities for the pNode monitor.

This package contains functionality that sits outside the ingestion core:
- logging_config: Consistent logging setup for the service and scripts
- prpc_client: JSON-RPC client for the remote pRPC endpoint
"""
