"""
JSON-RPC provider — Ethereum node access over HTTP.

Implements the `Provider` protocol with plain JSON-RPC 2.0 POSTs.

Design decisions:
- Uses async httpx, same as the explorer client.
- One request per call; no batching, no retries (the DataFetcher retries).
- Integer block numbers are sent as hex quantities, tags ("latest") as-is.
"""

from __future__ import annotations

import itertools
from typing import Any

import httpx

from chainsentry.exceptions import ConnectionFailedError, NetworkTimeoutError, RPCError


def _block_param(block: int | str) -> str:
    return hex(block) if isinstance(block, int) else block


class JsonRpcProvider:
    """
    Async JSON-RPC client for an EVM node.

    Usage:
        provider = JsonRpcProvider("https://cloudflare-eth.com")
        code = await provider.get_code("0x...")
        await provider.close()
    """

    def __init__(self, url: str, timeout: float = 30.0) -> None:
        self.url = url
        self._client = httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)

    async def get_code(self, address: str, block: int | str = "latest") -> str:
        return await self._request("eth_getCode", [address, _block_param(block)])

    async def get_storage_at(self, address: str, slot: int, block: int | str = "latest") -> str:
        return await self._request(
            "eth_getStorageAt", [address, hex(slot), _block_param(block)]
        )

    async def get_transaction_count(self, address: str, block: int | str = "latest") -> int:
        result = await self._request("eth_getTransactionCount", [address, _block_param(block)])
        return int(result, 16)

    async def get_balance(self, address: str, block: int | str = "latest") -> int:
        result = await self._request("eth_getBalance", [address, _block_param(block)])
        return int(result, 16)

    async def call(self, to: str, data: str, block: int | str = "latest") -> str:
        return await self._request("eth_call", [{"to": to, "data": data}, _block_param(block)])

    async def close(self) -> None:
        await self._client.aclose()

    # ──────────────────────────────────────────────────────────────
    # Private helpers
    # ──────────────────────────────────────────────────────────────

    async def _request(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            resp = await self._client.post(self.url, json=payload)
        except httpx.TimeoutException as e:
            raise NetworkTimeoutError(f"RPC timeout on {method}: {e}") from e
        except httpx.ConnectError as e:
            raise ConnectionFailedError(f"Cannot connect to RPC node: {e}") from e

        if resp.status_code != 200:
            raise RPCError(f"RPC {method} failed: HTTP {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as e:
            raise RPCError(f"RPC {method} returned non-JSON body") from e

        if not isinstance(data, dict):
            raise RPCError(f"RPC {method} returned unexpected payload")
        if data.get("error"):
            err = data["error"]
            message = err.get("message", err) if isinstance(err, dict) else err
            raise RPCError(f"RPC {method} error: {message}", details={"error": err})
        if "result" not in data:
            raise RPCError(f"RPC {method} response has no result")
        return data["result"]
