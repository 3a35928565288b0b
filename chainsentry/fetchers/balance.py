"""Native and ERC-20 balance lookups at a given block."""

from __future__ import annotations

import logging

from eth_abi import decode, encode
from eth_utils import decode_hex

from chainsentry.config import FetcherConfig
from chainsentry.fetchers.base import Provider
from chainsentry.retry import retry_async

logger = logging.getLogger(__name__)

BALANCE_OF_SELECTOR = "0x70a08231"   # balanceOf(address)


class BalanceFetcher:
    """
    Balance queries with the same retry policy as the DataFetcher.

    Both methods return None once every attempt has failed, so callers can
    tell "unknown" apart from a zero balance.
    """

    def __init__(self, provider: Provider, config: FetcherConfig | None = None) -> None:
        self.provider = provider
        self.config = config or FetcherConfig()

    async def get_native_balance(self, address: str, block: int) -> int | None:
        return await retry_async(
            lambda: self.provider.get_balance(address, block),
            attempts=self.config.max_attempts,
            delay=self.config.retry_delay_seconds,
            description=f"native balance of {address}@{block}",
        )

    async def get_token_balance(self, token: str, address: str, block: int) -> int | None:
        data = BALANCE_OF_SELECTOR + encode(["address"], [address]).hex()

        async def call_balance_of() -> int:
            result = await self.provider.call(token, data, block)
            return decode(["uint256"], decode_hex(result))[0]

        return await retry_async(
            call_balance_of,
            attempts=self.config.max_attempts,
            delay=self.config.retry_delay_seconds,
            description=f"balanceOf {address} on {token}@{block}",
        )
