"""Pytest fixtures shared across all chainsentry tests."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio

from chainsentry.bots.base import BotContext
from chainsentry.config import ChainsentryConfig, DatabaseConfig, FetcherConfig
from chainsentry.error_cache import ErrorCollector
from chainsentry.fetchers.balance import BalanceFetcher
from chainsentry.fetchers.data import DataFetcher
from chainsentry.models import TransactionEvent
from chainsentry.store import BotStore

ATTACKER = "0x00000000000000000000000000000000000000aa"
VICTIM_1 = "0x0000000000000000000000000000000000000001"
VICTIM_2 = "0x0000000000000000000000000000000000000002"
VICTIM_3 = "0x0000000000000000000000000000000000000003"
VICTIM_4 = "0x0000000000000000000000000000000000000004"
OTHER = "0x00000000000000000000000000000000000000ff"


# ── Config fixtures ───────────────────────────────────────────────────────────


@pytest.fixture
def fetcher_config() -> FetcherConfig:
    """Default retry policy with no sleeping between attempts."""
    return FetcherConfig(retry_delay_seconds=0.0)


@pytest.fixture
def sample_config(fetcher_config: FetcherConfig) -> ChainsentryConfig:
    """Minimal valid ChainsentryConfig for tests."""
    return ChainsentryConfig(
        fetcher=fetcher_config,
        database=DatabaseConfig(path=":memory:"),
    )


# ── Fetch layer fixtures ──────────────────────────────────────────────────────


@pytest.fixture
def mock_provider() -> AsyncMock:
    """RPC provider double; every method is an AsyncMock."""
    provider = AsyncMock()
    provider.get_code.return_value = "0x"
    provider.get_transaction_count.return_value = 1
    provider.get_balance.return_value = 0
    return provider


@pytest.fixture
def mock_explorer() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def errors() -> ErrorCollector:
    return ErrorCollector()


@pytest_asyncio.fixture
async def data_fetcher(
    mock_provider: AsyncMock,
    mock_explorer: AsyncMock,
    fetcher_config: FetcherConfig,
    errors: ErrorCollector,
) -> DataFetcher:
    fetcher = DataFetcher(
        mock_provider,
        mock_explorer,
        config=fetcher_config,
        error_collector=errors,
        http_client=httpx.AsyncClient(),
    )
    yield fetcher
    await fetcher.close()


@pytest.fixture
def mock_fetcher() -> AsyncMock:
    """DataFetcher double for bot tests."""
    return AsyncMock(spec=DataFetcher)


@pytest.fixture
def mock_balances() -> AsyncMock:
    return AsyncMock(spec=BalanceFetcher)


@pytest.fixture
def bot_context(
    sample_config: ChainsentryConfig,
    mock_fetcher: AsyncMock,
    mock_balances: AsyncMock,
    errors: ErrorCollector,
) -> BotContext:
    return BotContext(
        config=sample_config,
        fetcher=mock_fetcher,
        balances=mock_balances,
        errors=errors,
    )


@pytest_asyncio.fixture
async def store() -> BotStore:
    """Fresh in-memory state store for each test."""
    bot_store = BotStore(":memory:")
    await bot_store.connect()
    yield bot_store
    await bot_store.close()


# ── Data helpers ──────────────────────────────────────────────────────────────


def make_explorer_tx(
    tx_hash: str,
    from_addr: str,
    to_addr: str,
    value: str = "1000",
    block_number: int = 100,
) -> dict[str, Any]:
    """One record in the shape returned by txlist / txlistinternal."""
    return {
        "hash": tx_hash,
        "from": from_addr,
        "to": to_addr,
        "value": value,
        "blockNumber": str(block_number),
        "timeStamp": "1706906640",
        "isError": "0",
    }


def make_event(**overrides: Any) -> TransactionEvent:
    raw: dict[str, Any] = {
        "hash": "0xabc",
        "from": VICTIM_1,
        "to": ATTACKER,
        "chain_id": 1,
        "value": 0,
        "data": "0x",
        "block_number": 100,
    }
    raw.update(overrides)
    return TransactionEvent.from_dict(raw)
