"""Tests for chainsentry/bots/private_key_compromise.py."""

from __future__ import annotations

import pytest
from eth_abi import encode

from chainsentry.abi import parse_fragment
from chainsentry.bots.private_key_compromise import (
    ERC20_TRANSFER_FUNCTION,
    VICTIMS_KEY,
    PrivateKeyCompromiseBot,
)
from chainsentry.models import EntityType, FindingSeverity, FindingType

from conftest import ATTACKER, VICTIM_1, VICTIM_2, VICTIM_3, VICTIM_4, make_event

VICTIM_5 = "0x0000000000000000000000000000000000000005"
TOKEN = "0x0000000000000000000000000000000000000099"
VICTIMS = [VICTIM_1, VICTIM_2, VICTIM_3, VICTIM_4]


@pytest.fixture
def pkc_context(bot_context, mock_fetcher, mock_balances):
    mock_balances.get_native_balance.return_value = 0
    mock_balances.get_token_balance.return_value = 0
    mock_fetcher.is_eoa.return_value = True
    mock_fetcher.have_interacted_again.return_value = False
    mock_fetcher.have_interacted_with_same_address.return_value = False
    return bot_context


def native_transfer(sender: str, receiver: str = ATTACKER, tx_hash: str = "0xabc"):
    return make_event(**{"from": sender, "to": receiver, "value": 1, "hash": tx_hash})


def token_transfer(sender: str, receiver: str = ATTACKER):
    data = parse_fragment(ERC20_TRANSFER_FUNCTION).selector + encode(
        ["address", "uint256"], [receiver, 1_000_000]
    ).hex()
    return make_event(**{"from": sender, "to": TOKEN, "data": data, "block_number": 1})


async def feed(bot, events):
    findings = []
    for event in events:
        findings.extend(await bot.handle_transaction(event))
    return findings


@pytest.mark.asyncio
async def test_no_transfers(pkc_context) -> None:
    bot = PrivateKeyCompromiseBot(pkc_context)
    assert await bot.handle_transaction(make_event()) == []


@pytest.mark.asyncio
async def test_three_victims_do_not_alert(pkc_context) -> None:
    bot = PrivateKeyCompromiseBot(pkc_context)
    assert await feed(bot, [native_transfer(v) for v in VICTIMS[:3]]) == []


@pytest.mark.asyncio
async def test_fourth_victim_alerts(pkc_context) -> None:
    bot = PrivateKeyCompromiseBot(pkc_context)

    assert await feed(bot, [native_transfer(v) for v in VICTIMS[:3]]) == []
    findings = await bot.handle_transaction(native_transfer(VICTIM_4, tx_hash="0xfeed"))

    assert len(findings) == 1
    finding = findings[0]
    assert finding.name == "Possible private key compromise"
    assert finding.alert_id == "PKC-1"
    assert finding.severity == FindingSeverity.High
    assert finding.type == FindingType.Suspicious
    assert finding.description == f"{','.join(VICTIMS)} transferred funds to {ATTACKER}"
    assert finding.metadata == {
        "attacker": ATTACKER,
        "victims": ",".join(VICTIMS),
        "transferredAssets": "ETH",
        "anomalyScore": "0.25",
    }
    assert [(l.entity, l.entity_type, l.label) for l in finding.labels] == [
        ("0xfeed", EntityType.Transaction, "Attack"),
        (ATTACKER, EntityType.Address, "Attacker"),
        *[(v, EntityType.Address, "Victim") for v in VICTIMS],
    ]
    assert all(l.confidence == 0.6 for l in finding.labels)


@pytest.mark.asyncio
async def test_attacker_alerted_only_once(pkc_context) -> None:
    bot = PrivateKeyCompromiseBot(pkc_context)
    findings = await feed(bot, [native_transfer(v) for v in VICTIMS])
    assert len(findings) == 1
    assert await bot.handle_transaction(native_transfer(VICTIM_5)) == []


@pytest.mark.asyncio
async def test_token_transfers_count(pkc_context, mock_balances) -> None:
    bot = PrivateKeyCompromiseBot(pkc_context)
    events = [native_transfer(v) for v in VICTIMS[:3]] + [token_transfer(VICTIM_4)]

    findings = await feed(bot, events)

    assert len(findings) == 1
    assert findings[0].metadata["transferredAssets"] == f"ETH,{TOKEN}"
    mock_balances.get_token_balance.assert_awaited_with(TOKEN, VICTIM_4, 1)


@pytest.mark.asyncio
async def test_repeat_victim_counts_once(pkc_context) -> None:
    bot = PrivateKeyCompromiseBot(pkc_context)
    events = [native_transfer(VICTIM_1)] * 2 + [native_transfer(v) for v in VICTIMS[1:3]]
    assert await feed(bot, events) == []


@pytest.mark.asyncio
async def test_sender_with_remaining_balance_is_not_a_victim(pkc_context, mock_balances) -> None:
    mock_balances.get_native_balance.return_value = 10**18
    bot = PrivateKeyCompromiseBot(pkc_context)
    assert await feed(bot, [native_transfer(v) for v in VICTIMS]) == []
    assert bot.transfers == {}


@pytest.mark.asyncio
async def test_unknown_balance_is_not_a_victim(pkc_context, mock_balances) -> None:
    mock_balances.get_native_balance.return_value = None
    bot = PrivateKeyCompromiseBot(pkc_context)
    assert await feed(bot, [native_transfer(v) for v in VICTIMS]) == []


@pytest.mark.asyncio
async def test_token_sender_with_balance_left(pkc_context, mock_balances) -> None:
    mock_balances.get_token_balance.return_value = 5
    bot = PrivateKeyCompromiseBot(pkc_context)
    assert await feed(bot, [token_transfer(v) for v in VICTIMS]) == []


@pytest.mark.asyncio
async def test_contract_receiver_is_not_alerted(pkc_context, mock_fetcher) -> None:
    mock_fetcher.is_eoa.return_value = False
    bot = PrivateKeyCompromiseBot(pkc_context)
    assert await feed(bot, [native_transfer(v) for v in VICTIMS]) == []


@pytest.mark.asyncio
async def test_repeated_interaction_suppresses(pkc_context, mock_fetcher) -> None:
    mock_fetcher.have_interacted_again.return_value = True
    bot = PrivateKeyCompromiseBot(pkc_context)
    assert await feed(bot, [native_transfer(v) for v in VICTIMS]) == []
    mock_fetcher.have_interacted_again.assert_awaited_with(ATTACKER, VICTIMS, 1)


@pytest.mark.asyncio
async def test_common_counterparty_suppresses(pkc_context, mock_fetcher) -> None:
    mock_fetcher.have_interacted_with_same_address.return_value = True
    bot = PrivateKeyCompromiseBot(pkc_context)
    assert await feed(bot, [native_transfer(v) for v in VICTIMS]) == []


@pytest.mark.asyncio
async def test_interaction_checks_can_be_disabled(pkc_context, mock_fetcher) -> None:
    pkc_context.config.bots.pkc_interaction_checks = False
    mock_fetcher.have_interacted_again.return_value = True
    bot = PrivateKeyCompromiseBot(pkc_context)

    assert len(await feed(bot, [native_transfer(v) for v in VICTIMS])) == 1
    mock_fetcher.have_interacted_again.assert_not_awaited()


@pytest.mark.asyncio
async def test_state_survives_restart(pkc_context, store) -> None:
    pkc_context.store = store

    bot = PrivateKeyCompromiseBot(pkc_context)
    await bot.initialize()
    assert len(await feed(bot, [native_transfer(v) for v in VICTIMS])) == 1
    await bot.handle_transaction(native_transfer(VICTIM_1, receiver=VICTIM_5))
    await bot.persist()

    restarted = PrivateKeyCompromiseBot(pkc_context)
    await restarted.initialize()

    assert ATTACKER in restarted.alerted
    assert restarted.transfers[VICTIM_5]["victims"] == [VICTIM_1]
    assert restarted.transfers_seen == 5
    assert await restarted.handle_transaction(native_transfer(VICTIM_5)) == []
    assert VICTIM_5 in (await store.load(VICTIMS_KEY))
