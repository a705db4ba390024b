"""
JSON-RPC client bound to a single EVM endpoint.

Features:
- One JSON-RPC request per HTTP POST (no batching)
- Fixed chain ID, no dynamic network discovery
- Request timeout on every call
- Structured RPC error reporting
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from apex_core.logging_config import mask_url

logger = logging.getLogger(__name__)


class RPCError(Exception):
    """Raised when the endpoint answers with a JSON-RPC error object."""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        self.code = code
        self.data = data
        super().__init__(message)


class ChainIDMismatchError(Exception):
    """Raised when the endpoint serves a different network than configured."""

    def __init__(self, url: str, expected: int, received: int):
        self.url = url
        self.expected = expected
        self.received = received
        super().__init__(
            f"Chain ID mismatch for {mask_url(url)}: expected {expected}, got {received}"
        )


def _to_int(value: Any, method: str) -> int:
    if value is None:
        raise RPCError(f"{method} returned an empty result")
    if isinstance(value, int):
        return value
    return int(value, 16)


class ChainRPCClient:
    """JSON-RPC client for blockchain interaction."""

    def __init__(
        self,
        rpc_url: str,
        chain_id: int,
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._rpc_url = rpc_url
        self._chain_id = chain_id
        self._timeout_seconds = timeout_seconds
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None
        self._request_id = 0

    @property
    def url(self) -> str:
        return self._rpc_url

    @property
    def chain_id(self) -> int:
        return self._chain_id

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(
                    self._timeout_seconds,
                    connect=min(10.0, self._timeout_seconds),
                ),
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
                transport=self._transport,
            )
        return self._http_client

    async def _call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Make a single (unbatched) JSON-RPC call."""
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }

        client = await self._get_client()
        start_time = time.perf_counter()
        # httpx error messages carry the full URL, which may embed an API key.
        try:
            response = await client.post(
                self._rpc_url,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RPCError(
                f"HTTP {e.response.status_code} from {mask_url(self._rpc_url)}",
                code=e.response.status_code,
            ) from None
        except httpx.HTTPError as e:
            raise RPCError(
                f"{type(e).__name__} calling {method} on {mask_url(self._rpc_url)}"
            ) from None
        result = response.json()
        latency_ms = (time.perf_counter() - start_time) * 1000

        if "error" in result and result["error"]:
            error = result["error"]
            if isinstance(error, dict):
                raise RPCError(
                    message=str(error.get("message", error)),
                    code=error.get("code"),
                    data=error.get("data"),
                )
            raise RPCError(str(error))

        logger.debug(
            f"RPC call {method} to {mask_url(self._rpc_url)} succeeded in {latency_ms:.0f}ms"
        )
        return result.get("result")

    async def get_block_number(self) -> int:
        """Get current block number."""
        return _to_int(await self._call("eth_blockNumber"), "eth_blockNumber")

    async def get_chain_id(self) -> int:
        """Chain ID as reported by the endpoint."""
        return _to_int(await self._call("eth_chainId"), "eth_chainId")

    async def verify_chain_id(self) -> None:
        """Raise ChainIDMismatchError unless the endpoint serves our chain."""
        received = await self.get_chain_id()
        if received != self._chain_id:
            raise ChainIDMismatchError(self._rpc_url, self._chain_id, received)

    async def get_balance(self, address: str, block: str = "latest") -> int:
        """Get native token balance for address in wei."""
        return _to_int(await self._call("eth_getBalance", [address, block]), "eth_getBalance")

    async def get_gas_price(self) -> int:
        """Get current gas price in wei."""
        return _to_int(await self._call("eth_gasPrice"), "eth_gasPrice")

    async def get_nonce(self, address: str, block: str = "pending") -> int:
        """Get transaction count (nonce) for address."""
        result = await self._call("eth_getTransactionCount", [address, block])
        return _to_int(result, "eth_getTransactionCount")

    async def send_raw_transaction(self, signed_tx: str) -> str:
        """Broadcast signed transaction."""
        if not signed_tx.startswith("0x"):
            signed_tx = "0x" + signed_tx
        return await self._call("eth_sendRawTransaction", [signed_tx])

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        """Get transaction receipt."""
        return await self._call("eth_getTransactionReceipt", [tx_hash])

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> "ChainRPCClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
