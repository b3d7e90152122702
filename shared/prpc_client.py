"""
pRPC Client

JSON-RPC 2.0 client for the remote pNode endpoint. This is the transport
collaborator of the ingestion pipeline: it knows how to reach the endpoint and
unwrap responses, nothing about decoding or scoring.

Usage:
    client = PrpcClient("http://127.0.0.1:6000", timeout=5.0)

    pods = client.get_pods()                  # {"pods": [...], "total_count": N}
    stats = client.get_stats()                # single node stats
    accounts = client.get_program_accounts()  # [{"pubkey": ..., "account": {...}}]
"""

import logging
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)


class PrpcError(Exception):
    """Transport-level failure talking to the pRPC endpoint."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


class PrpcClient:
    """
    Thin JSON-RPC client over a pooled requests.Session.

    There is no retry loop here: the refresh scheduler owns pacing, and a
    failed call simply fails the current refresh cycle.
    """

    PODS_METHOD = "get-pods-with-stats"
    STATS_METHOD = "get-stats"
    ACCOUNTS_METHOD = "getProgramAccounts"

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        program_id: str = "",
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize pRPC client.

        Args:
            base_url: Endpoint base URL (e.g., 'http://10.0.0.5:6000'); '/rpc' is appended
            timeout: Per-request timeout in seconds
            program_id: Program whose accounts hold pNode records (accounts feed only)
            session: Optional pre-built session (tests, connection reuse)
        """
        self.base_url = base_url.rstrip("/")
        self.rpc_url = f"{self.base_url}/rpc"
        self.timeout = timeout
        self.program_id = program_id
        self._session = session or requests.Session()
        self._request_id = 0

    def close(self):
        self._session.close()

    def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """
        Perform one JSON-RPC call and return its `result`.

        Raises:
            PrpcError: On timeout, network failure, non-200 status, RPC error
                object, undecodable body or a missing result
        """
        self._request_id += 1
        payload: Dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
        }
        if params is not None:
            payload["params"] = params

        try:
            response = self._session.post(
                self.rpc_url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise PrpcError(f"Request timed out after {self.timeout}s ({method})") from e
        except requests.RequestException as e:
            raise PrpcError(f"Network error: {e}") from e

        if response.status_code != 200:
            raise PrpcError(f"HTTP error: {response.status_code}", code=response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            raise PrpcError("Invalid JSON in pRPC response") from e

        if not isinstance(body, dict):
            raise PrpcError("Invalid pRPC response: expected a JSON object")

        error = body.get("error")
        if error:
            if isinstance(error, dict):
                raise PrpcError(f"RPC error: {error.get('message', 'Unknown error')}", code=error.get("code"))
            raise PrpcError(f"RPC error: {error}")

        if body.get("result") is None:
            raise PrpcError("No result in response")

        logger.debug(f"pRPC {method} ok ({len(response.content)} bytes)")
        return body["result"]

    def get_pods(self) -> Dict[str, Any]:
        """Fetch every known pod along with its storage/uptime stats."""
        return self.call(self.PODS_METHOD)

    def get_stats(self) -> Dict[str, Any]:
        """Fetch stats of the node serving the endpoint."""
        return self.call(self.STATS_METHOD)

    def get_program_accounts(self, use_json_parsed: bool = True) -> List[Dict[str, Any]]:
        """
        Fetch raw pNode program accounts.

        Asks for `jsonParsed` encoding first and falls back to `base64` once if
        the endpoint rejects it or hands back unparsed data.
        """
        encoding = "jsonParsed" if use_json_parsed else "base64"
        params: List[Any] = [self.program_id, {"encoding": encoding, "commitment": "confirmed"}]

        try:
            result = self.call(self.ACCOUNTS_METHOD, params)
        except PrpcError as e:
            if not use_json_parsed:
                raise
            logger.warning(f"jsonParsed request failed ({e}), falling back to base64")
            return self.get_program_accounts(use_json_parsed=False)

        if not isinstance(result, list):
            raise PrpcError("Invalid response format: result is not an array")

        if use_json_parsed and result and not _has_parsed_data(result[0]):
            logger.warning("jsonParsed encoding returned unparsed data, falling back to base64")
            return self.get_program_accounts(use_json_parsed=False)

        logger.info(f"Fetched {len(result)} program accounts ({encoding})")
        return result


def _has_parsed_data(account: Any) -> bool:
    if not isinstance(account, dict):
        return False
    data = (account.get("account") or {}).get("data")
    return isinstance(data, dict) and "parsed" in data
