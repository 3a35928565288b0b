"""
Fetch layer for chainsentry.

`build_data_fetcher()` wires the JSON-RPC provider, the explorer client and
the DataFetcher together from a loaded config.

Usage:
    from chainsentry.fetchers import build_data_fetcher
    async with build_data_fetcher(config) as fetcher:
        eoa = await fetcher.is_eoa(address)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chainsentry.config import ChainsentryConfig
    from chainsentry.error_cache import ErrorCollector
    from chainsentry.fetchers.data import DataFetcher


def build_data_fetcher(
    config: ChainsentryConfig,
    error_collector: ErrorCollector | None = None,
) -> DataFetcher:
    """
    Factory: return a DataFetcher backed by the configured RPC node and explorers.

    The caller owns the returned fetcher and must close it.
    """
    from chainsentry.fetchers.data import DataFetcher
    from chainsentry.fetchers.explorer import ExplorerClient
    from chainsentry.fetchers.rpc import JsonRpcProvider

    provider = JsonRpcProvider(config.rpc.url, timeout=config.rpc.timeout_seconds)
    explorer = ExplorerClient(api_keys=config.api, timeout=config.rpc.timeout_seconds)
    return DataFetcher(
        provider,
        explorer,
        config=config.fetcher,
        error_collector=error_collector,
    )
