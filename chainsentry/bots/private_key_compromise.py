"""
Private key compromise: many accounts drained into one EOA.

A transfer counts as a drain when it leaves the sender (nearly) empty:
- native transfer: sender's balance at the block is below the chain threshold
- ERC-20 `transfer` call: sender's token balance at the block is zero

The bot keeps, per receiver, the unique drained senders ("victims") and the
assets moved. Once a receiver has more than `pkc_transfer_threshold` victims
it is checked:
  1. the receiver must be an EOA
  2. (optional) no victim sent to it more than once, and the victims do not
     share a majority counterparty, both of which point at a user moving
     their own funds rather than an attacker

A receiver raises at most one finding. Victim map and alerted receivers are
persisted through the BotStore when the run has one.
"""

from __future__ import annotations

import logging

from chainsentry.bots.base import BaseBot, BotContext
from chainsentry.models import (
    EntityType,
    Finding,
    FindingSeverity,
    FindingType,
    Label,
    TransactionEvent,
)

logger = logging.getLogger(__name__)

ERC20_TRANSFER_FUNCTION = "function transfer(address to, uint256 value)"

# chain id → (native balance threshold in wei, native token symbol)
NATIVE_THRESHOLDS: dict[int, tuple[int, str]] = {
    1: (5 * 10**16, "ETH"),
    10: (5 * 10**16, "ETH"),
    56: (25 * 10**16, "BNB"),
    137: (50 * 10**18, "MATIC"),
    250: (50 * 10**18, "FTM"),
    42161: (5 * 10**16, "ETH"),
    43114: (2 * 10**18, "AVAX"),
}

VICTIMS_KEY = "private-key-compromise:victims"
COUNTERS_KEY = "private-key-compromise:counters"

LABEL_CONFIDENCE = 0.6


def create_pkc_finding(
    tx_hash: str,
    victims: list[str],
    attacker: str,
    assets: list[str],
    anomaly_score: float,
) -> Finding:
    unique_assets = list(dict.fromkeys(assets))
    labels = [
        Label(tx_hash, EntityType.Transaction, "Attack", LABEL_CONFIDENCE),
        Label(attacker, EntityType.Address, "Attacker", LABEL_CONFIDENCE),
    ]
    labels.extend(Label(v, EntityType.Address, "Victim", LABEL_CONFIDENCE) for v in victims)
    return Finding(
        name="Possible private key compromise",
        description=f"{','.join(victims)} transferred funds to {attacker}",
        alert_id="PKC-1",
        severity=FindingSeverity.High,
        type=FindingType.Suspicious,
        metadata={
            "attacker": attacker,
            "victims": ",".join(victims),
            "transferredAssets": ",".join(unique_assets),
            "anomalyScore": str(anomaly_score),
        },
        labels=labels,
    )


class PrivateKeyCompromiseBot(BaseBot):
    name = "private-key-compromise"

    def __init__(self, context: BotContext) -> None:
        super().__init__(context)
        # receiver → {"victims": [...], "assets": [...]}
        self.transfers: dict[str, dict[str, list[str]]] = {}
        self.alerted: set[str] = set()
        self.transfers_seen = 0
        self.alerts_emitted = 0

    async def initialize(self) -> None:
        store = self.context.store
        if store is None:
            return
        self.transfers = await store.load(VICTIMS_KEY, default={})
        self.alerted = set(await store.list_alerted(self.name))
        counters = await store.load(COUNTERS_KEY, default={})
        self.transfers_seen = counters.get("transfers", 0)
        self.alerts_emitted = counters.get("alerts", 0)
        logger.info(
            "loaded %d tracked receivers, %d alerted", len(self.transfers), len(self.alerted)
        )

    async def persist(self) -> None:
        store = self.context.store
        if store is None:
            return
        await store.persist(VICTIMS_KEY, self.transfers)
        await store.persist(
            COUNTERS_KEY, {"transfers": self.transfers_seen, "alerts": self.alerts_emitted}
        )

    async def handle_transaction(self, event: TransactionEvent) -> list[Finding]:
        findings: list[Finding] = []
        for victim, receiver, asset in await self._drain_transfers(event):
            self.transfers_seen += 1
            if receiver in self.alerted:
                continue

            entry = self.transfers.setdefault(receiver, {"victims": [], "assets": []})
            if victim not in entry["victims"]:
                entry["victims"].append(victim)
            entry["assets"].append(asset)

            if len(entry["victims"]) <= self.config.bots.pkc_transfer_threshold:
                continue
            if not await self._is_attacker(receiver, entry["victims"], event.chain_id):
                continue

            self.alerted.add(receiver)
            if self.context.store is not None:
                await self.context.store.add_alerted(self.name, receiver)
            self.alerts_emitted += 1
            findings.append(
                create_pkc_finding(
                    event.hash,
                    list(entry["victims"]),
                    receiver,
                    entry["assets"],
                    self.alerts_emitted / self.transfers_seen,
                )
            )
        return findings

    # ──────────────────────────────────────────────────────────────
    # Private helpers
    # ──────────────────────────────────────────────────────────────

    async def _drain_transfers(self, event: TransactionEvent) -> list[tuple[str, str, str]]:
        """(victim, receiver, asset) for each transfer that emptied its sender."""
        balances = self.context.balances
        drains: list[tuple[str, str, str]] = []

        native = NATIVE_THRESHOLDS.get(event.chain_id)
        if native and event.to_addr and event.value > 0:
            threshold, symbol = native
            balance = await balances.get_native_balance(event.from_addr, event.block_number)
            if balance is not None and balance < threshold:
                drains.append((event.from_addr, event.to_addr, symbol))

        for call in event.filter_function([ERC20_TRANSFER_FUNCTION]):
            receiver = call.args["to"].lower()
            balance = await balances.get_token_balance(
                call.address, event.from_addr, event.block_number
            )
            if balance == 0:
                drains.append((event.from_addr, receiver, call.address))

        return drains

    async def _is_attacker(self, receiver: str, victims: list[str], chain_id: int) -> bool:
        fetcher = self.context.fetcher
        if not await fetcher.is_eoa(receiver):
            return False
        if not self.config.bots.pkc_interaction_checks:
            return True
        if await fetcher.have_interacted_again(receiver, victims, chain_id):
            logger.debug("%s: victims interacted with receiver again", receiver)
            return False
        if await fetcher.have_interacted_with_same_address(receiver, victims, chain_id):
            logger.debug("%s: victims share a common counterparty", receiver)
            return False
        return True
