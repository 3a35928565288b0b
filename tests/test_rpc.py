"""Tests for chainsentry/fetchers/rpc.py — JSON-RPC provider.

Uses respx to mock httpx calls (no real network I/O).
"""

from __future__ import annotations

import json

import httpx
import pytest
import respx

from chainsentry.exceptions import ConnectionFailedError, NetworkTimeoutError, RPCError
from chainsentry.fetchers.base import Provider
from chainsentry.fetchers.rpc import JsonRpcProvider

RPC_URL = "https://rpc.test/"
ADDR = "0xd8da6bf26964af9d7eed9e03e53415d37aa96045"


def rpc_result(result) -> httpx.Response:
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": result})


def sent_payload(route: respx.Route) -> dict:
    return json.loads(route.calls.last.request.content)


def test_provider_satisfies_protocol() -> None:
    assert isinstance(JsonRpcProvider(RPC_URL), Provider)


@pytest.mark.asyncio
@respx.mock
async def test_get_code() -> None:
    route = respx.post(RPC_URL).mock(return_value=rpc_result("0x6080"))

    provider = JsonRpcProvider(RPC_URL)
    code = await provider.get_code(ADDR)
    await provider.close()

    assert code == "0x6080"
    payload = sent_payload(route)
    assert payload["jsonrpc"] == "2.0"
    assert payload["method"] == "eth_getCode"
    assert payload["params"] == [ADDR, "latest"]


@pytest.mark.asyncio
@respx.mock
async def test_integer_block_sent_as_hex_quantity() -> None:
    route = respx.post(RPC_URL).mock(return_value=rpc_result("0x1a"))

    provider = JsonRpcProvider(RPC_URL)
    nonce = await provider.get_transaction_count(ADDR, 100)
    await provider.close()

    assert nonce == 26
    assert sent_payload(route)["params"] == [ADDR, "0x64"]


@pytest.mark.asyncio
@respx.mock
async def test_get_storage_at_and_balance() -> None:
    route = respx.post(RPC_URL).mock(
        side_effect=[rpc_result("0x" + "00" * 31 + "05"), rpc_result("0xde0b6b3a7640000")]
    )

    provider = JsonRpcProvider(RPC_URL)
    word = await provider.get_storage_at(ADDR, 3, 200)
    balance = await provider.get_balance(ADDR)
    await provider.close()

    assert word.endswith("05")
    assert balance == 10**18
    first = json.loads(route.calls[0].request.content)
    assert first["method"] == "eth_getStorageAt"
    assert first["params"] == [ADDR, "0x3", "0xc8"]


@pytest.mark.asyncio
@respx.mock
async def test_eth_call_payload() -> None:
    route = respx.post(RPC_URL).mock(return_value=rpc_result("0x"))

    provider = JsonRpcProvider(RPC_URL)
    await provider.call(ADDR, "0x8da5cb5b", 15)
    await provider.close()

    payload = sent_payload(route)
    assert payload["method"] == "eth_call"
    assert payload["params"] == [{"to": ADDR, "data": "0x8da5cb5b"}, "0xf"]


@pytest.mark.asyncio
@respx.mock
async def test_request_ids_increase() -> None:
    route = respx.post(RPC_URL).mock(return_value=rpc_result("0x"))

    provider = JsonRpcProvider(RPC_URL)
    await provider.get_code(ADDR)
    await provider.get_code(ADDR)
    await provider.close()

    ids = [json.loads(call.request.content)["id"] for call in route.calls]
    assert ids == [1, 2]


# ── Error mapping ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
@respx.mock
async def test_error_object_raises_rpc_error() -> None:
    respx.post(RPC_URL).mock(
        return_value=httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "header not found"}},
        )
    )

    provider = JsonRpcProvider(RPC_URL)
    with pytest.raises(RPCError, match="header not found") as exc_info:
        await provider.get_code(ADDR, 1)
    await provider.close()

    assert exc_info.value.details["error"]["code"] == -32000


@pytest.mark.asyncio
@respx.mock
async def test_http_error_raises_rpc_error() -> None:
    respx.post(RPC_URL).mock(return_value=httpx.Response(502, text="bad gateway"))

    provider = JsonRpcProvider(RPC_URL)
    with pytest.raises(RPCError, match="HTTP 502"):
        await provider.get_code(ADDR)
    await provider.close()


@pytest.mark.asyncio
@respx.mock
async def test_missing_result_raises_rpc_error() -> None:
    respx.post(RPC_URL).mock(return_value=httpx.Response(200, json={"jsonrpc": "2.0", "id": 1}))

    provider = JsonRpcProvider(RPC_URL)
    with pytest.raises(RPCError):
        await provider.get_balance(ADDR)
    await provider.close()


@pytest.mark.asyncio
@respx.mock
async def test_non_json_body_raises_rpc_error() -> None:
    respx.post(RPC_URL).mock(return_value=httpx.Response(200, text="<html>"))

    provider = JsonRpcProvider(RPC_URL)
    with pytest.raises(RPCError, match="non-JSON"):
        await provider.get_code(ADDR)
    await provider.close()


@pytest.mark.asyncio
@respx.mock
async def test_timeout_raises_network_timeout() -> None:
    respx.post(RPC_URL).mock(side_effect=httpx.ReadTimeout("timed out"))

    provider = JsonRpcProvider(RPC_URL)
    with pytest.raises(NetworkTimeoutError):
        await provider.get_code(ADDR)
    await provider.close()


@pytest.mark.asyncio
@respx.mock
async def test_connect_error_raises_connection_failed() -> None:
    respx.post(RPC_URL).mock(side_effect=httpx.ConnectError("refused"))

    provider = JsonRpcProvider(RPC_URL)
    with pytest.raises(ConnectionFailedError):
        await provider.get_code(ADDR)
    await provider.close()
