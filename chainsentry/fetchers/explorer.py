"""
Block explorer client — Etherscan-family REST APIs.

Covers every chain the bots run on; all these explorers share the Etherscan
query interface (module/action/address/startblock/endblock/page/offset/sort).

API docs: https://docs.etherscan.io/api-endpoints/accounts

Design decisions:
- Uses async httpx for all HTTP calls.
- One request per call, page 1 only; callers size the page with `offset`.
- A body whose message starts with NOTOK, Query Timeout or
  "No transactions found" raises ExplorerError so the caller's retry loop
  treats it as a failed attempt.
- When several API keys are configured for a chain, each request picks one
  at random to spread rate limits.
"""

from __future__ import annotations

import random
from typing import Any

import httpx

from chainsentry.config import APIConfig
from chainsentry.exceptions import (
    ConnectionFailedError,
    ExplorerError,
    NetworkTimeoutError,
    RateLimitError,
)

# chain id → explorer API base URL
EXPLORER_APIS: dict[int, str] = {
    1: "https://api.etherscan.io/api",
    10: "https://api-optimistic.etherscan.io/api",
    56: "https://api.bscscan.com/api",
    137: "https://api.polygonscan.com/api",
    250: "https://api.ftmscan.com/api",
    42161: "https://api.arbiscan.io/api",
    43114: "https://api.snowtrace.io/api",
}

# chain id → APIConfig attribute holding that explorer's keys
_KEY_FIELDS: dict[int, str] = {
    10: "optimistic_etherscan_api_keys",
    56: "bscscan_api_keys",
    137: "polygonscan_api_keys",
    250: "fantomscan_api_keys",
    42161: "arbiscan_api_keys",
    43114: "snowtrace_api_keys",
}

PLACEHOLDER_API_KEY = "YourApiKeyToken"

SOFT_FAILURE_PREFIXES = ("NOTOK", "Query Timeout", "No transactions found")

MAX_BLOCK = 99999999


def is_soft_failure(message: str) -> bool:
    return message.startswith(SOFT_FAILURE_PREFIXES)


class ExplorerClient:
    """
    Async Etherscan-family API client.

    Returns the raw `result` payload; parsing into records is left to the
    DataFetcher so that a malformed record counts as a failed attempt there.
    """

    def __init__(self, api_keys: APIConfig | None = None, timeout: float = 30.0) -> None:
        self._api_keys = api_keys or APIConfig()
        self._client = httpx.AsyncClient(timeout=timeout)

    def select_api_key(self, chain_id: int) -> str:
        """Pick one configured key for the chain, uniformly at random."""
        keys: list[str] = getattr(
            self._api_keys, _KEY_FIELDS.get(chain_id, "etherscan_api_keys")
        )
        return random.choice(keys) if keys else PLACEHOLDER_API_KEY

    def base_url(self, chain_id: int) -> str:
        return EXPLORER_APIS.get(chain_id, EXPLORER_APIS[1])

    async def get_account_txs(
        self,
        address: str,
        chain_id: int,
        offset: int,
        internal: bool = False,
    ) -> list[dict[str, Any]]:
        """
        Fetch the first `offset + 1` transactions of `address`, oldest first.

        Args:
            internal: Query internal transactions (txlistinternal) instead of txlist.
        """
        result = await self._get(
            chain_id,
            {
                "module": "account",
                "action": "txlistinternal" if internal else "txlist",
                "address": address,
                "startblock": 0,
                "endblock": MAX_BLOCK,
                "page": 1,
                "offset": offset + 1,
                "sort": "asc",
            },
        )
        if not isinstance(result, list):
            raise ExplorerError(f"Unexpected txlist result for {address}: {result!r}")
        return result

    async def get_source_code(self, address: str, chain_id: int) -> list[dict[str, Any]]:
        """Fetch verified source code entries for a contract."""
        result = await self._get(
            chain_id,
            {"module": "contract", "action": "getsourcecode", "address": address},
        )
        if not isinstance(result, list):
            raise ExplorerError(f"Unexpected getsourcecode result for {address}: {result!r}")
        return result

    async def get_logs(self, address: str, to_block: int, chain_id: int) -> list[dict[str, Any]]:
        """Fetch up to two logs emitted by `address` from genesis to `to_block`."""
        result = await self._get(
            chain_id,
            {
                "module": "logs",
                "action": "getLogs",
                "address": address,
                "fromBlock": 0,
                "toBlock": to_block,
                "page": 1,
                "offset": 2,
            },
        )
        if not isinstance(result, list):
            raise ExplorerError(f"Unexpected getLogs result for {address}: {result!r}")
        return result

    async def close(self) -> None:
        await self._client.aclose()

    # ──────────────────────────────────────────────────────────────
    # Private helpers
    # ──────────────────────────────────────────────────────────────

    async def _get(self, chain_id: int, params: dict[str, Any]) -> Any:
        params = {**params, "apikey": self.select_api_key(chain_id)}
        try:
            resp = await self._client.get(self.base_url(chain_id), params=params)
        except httpx.TimeoutException as e:
            raise NetworkTimeoutError(f"Explorer timeout: {e}") from e
        except httpx.ConnectError as e:
            raise ConnectionFailedError(f"Cannot connect to explorer: {e}") from e

        if resp.status_code == 429:
            raise RateLimitError("Explorer rate limit exceeded", retry_after=1)

        try:
            data = resp.json()
        except ValueError as e:
            raise ExplorerError(f"Explorer returned non-JSON body (HTTP {resp.status_code})") from e

        if not isinstance(data, dict) or "result" not in data:
            raise ExplorerError("Explorer response has no result field")

        message = str(data.get("message", ""))
        if is_soft_failure(message):
            raise ExplorerError(
                f"Explorer soft failure: {message}",
                details={"message": message, "result": data.get("result")},
            )
        return data["result"]
