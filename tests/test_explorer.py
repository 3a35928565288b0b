"""Tests for chainsentry/fetchers/explorer.py — Etherscan-family client.

Uses respx to mock httpx calls (no real network I/O).
"""

from __future__ import annotations

import httpx
import pytest
import respx

from chainsentry.config import APIConfig
from chainsentry.exceptions import ExplorerError, RateLimitError
from chainsentry.fetchers.explorer import (
    EXPLORER_APIS,
    PLACEHOLDER_API_KEY,
    ExplorerClient,
    is_soft_failure,
)

ETHERSCAN = EXPLORER_APIS[1]
ADDR = "0xd8da6bf26964af9d7eed9e03e53415d37aa96045"


def make_explorer_resp(result, message: str = "OK", status: str = "1") -> dict:
    return {"status": status, "message": message, "result": result}


# ── Key selection and routing ─────────────────────────────────────────────────


def test_placeholder_key_when_none_configured() -> None:
    assert ExplorerClient().select_api_key(1) == PLACEHOLDER_API_KEY


def test_key_selected_from_chain_specific_list() -> None:
    client = ExplorerClient(APIConfig(etherscan_api_keys=["eth"], bscscan_api_keys=["b1", "b2"]))
    assert client.select_api_key(1) == "eth"
    assert {client.select_api_key(56) for _ in range(50)} <= {"b1", "b2"}


def test_base_url_by_chain() -> None:
    client = ExplorerClient()
    assert client.base_url(137) == "https://api.polygonscan.com/api"
    assert client.base_url(999999) == ETHERSCAN


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("NOTOK", True),
        ("Query Timeout occured. Please select a smaller result dataset", True),
        ("No transactions found", True),
        ("OK", False),
        ("", False),
    ],
)
def test_is_soft_failure(message: str, expected: bool) -> None:
    assert is_soft_failure(message) is expected


# ── get_account_txs ───────────────────────────────────────────────────────────


@pytest.mark.asyncio
@respx.mock
async def test_get_account_txs_params() -> None:
    route = respx.get(ETHERSCAN).mock(
        return_value=httpx.Response(200, json=make_explorer_resp([{"hash": "0x1"}]))
    )

    client = ExplorerClient(APIConfig(etherscan_api_keys=["k1"]))
    result = await client.get_account_txs(ADDR, 1, 10)
    await client.close()

    assert result == [{"hash": "0x1"}]
    params = route.calls.last.request.url.params
    assert params["action"] == "txlist"
    assert params["address"] == ADDR
    assert params["offset"] == "11"
    assert params["page"] == "1"
    assert params["sort"] == "asc"
    assert params["apikey"] == "k1"


@pytest.mark.asyncio
@respx.mock
async def test_get_account_txs_internal() -> None:
    route = respx.get(EXPLORER_APIS[250]).mock(
        return_value=httpx.Response(200, json=make_explorer_resp([]))
    )

    client = ExplorerClient()
    await client.get_account_txs(ADDR, 250, 0, internal=True)
    await client.close()

    params = route.calls.last.request.url.params
    assert params["action"] == "txlistinternal"
    assert params["offset"] == "1"


@pytest.mark.asyncio
@respx.mock
async def test_notok_is_explorer_error() -> None:
    respx.get(ETHERSCAN).mock(
        return_value=httpx.Response(
            200, json=make_explorer_resp("Max rate limit reached", message="NOTOK", status="0")
        )
    )

    client = ExplorerClient()
    with pytest.raises(ExplorerError, match="NOTOK"):
        await client.get_account_txs(ADDR, 1, 5)
    await client.close()


@pytest.mark.asyncio
@respx.mock
async def test_no_transactions_found_is_explorer_error() -> None:
    respx.get(ETHERSCAN).mock(
        return_value=httpx.Response(
            200, json=make_explorer_resp([], message="No transactions found", status="0")
        )
    )

    client = ExplorerClient()
    with pytest.raises(ExplorerError):
        await client.get_account_txs(ADDR, 1, 5)
    await client.close()


@pytest.mark.asyncio
@respx.mock
async def test_rate_limited() -> None:
    respx.get(ETHERSCAN).mock(return_value=httpx.Response(429))

    client = ExplorerClient()
    with pytest.raises(RateLimitError):
        await client.get_account_txs(ADDR, 1, 5)
    await client.close()


@pytest.mark.asyncio
@respx.mock
async def test_non_json_body() -> None:
    respx.get(ETHERSCAN).mock(return_value=httpx.Response(503, text="Service Unavailable"))

    client = ExplorerClient()
    with pytest.raises(ExplorerError, match="non-JSON"):
        await client.get_account_txs(ADDR, 1, 5)
    await client.close()


@pytest.mark.asyncio
@respx.mock
async def test_non_list_result() -> None:
    respx.get(ETHERSCAN).mock(
        return_value=httpx.Response(200, json=make_explorer_resp("Invalid address format"))
    )

    client = ExplorerClient()
    with pytest.raises(ExplorerError):
        await client.get_account_txs(ADDR, 1, 5)
    await client.close()


# ── get_source_code / get_logs ────────────────────────────────────────────────


@pytest.mark.asyncio
@respx.mock
async def test_get_source_code() -> None:
    route = respx.get(ETHERSCAN).mock(
        return_value=httpx.Response(200, json=make_explorer_resp([{"SourceCode": "contract A {}"}]))
    )

    client = ExplorerClient()
    result = await client.get_source_code(ADDR, 1)
    await client.close()

    assert result[0]["SourceCode"] == "contract A {}"
    params = route.calls.last.request.url.params
    assert params["module"] == "contract"
    assert params["action"] == "getsourcecode"


@pytest.mark.asyncio
@respx.mock
async def test_get_logs_params() -> None:
    route = respx.get(ETHERSCAN).mock(
        return_value=httpx.Response(200, json=make_explorer_resp([{}, {}]))
    )

    client = ExplorerClient()
    result = await client.get_logs(ADDR, 1_000, 1)
    await client.close()

    assert len(result) == 2
    params = route.calls.last.request.url.params
    assert params["module"] == "logs"
    assert params["toBlock"] == "1000"
    assert params["offset"] == "2"
