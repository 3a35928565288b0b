"""
Native ice phishing with a social engineering component.

The victim is talked into sending native tokens to an EOA together with
call data that looks like a legitimate function call (e.g. `claim()`).
An EOA ignores call data, so the input only makes sense as a lure.

Checks, cheapest first:
  - EOA to EOA, non-empty call data with a selector
  - the selector resolves to a known function signature
  - first interaction between the two accounts, receiver has a short history
"""

from __future__ import annotations

import logging

from chainsentry.bots.base import BaseBot
from chainsentry.exceptions import SignatureLookupError
from chainsentry.models import (
    EntityType,
    Finding,
    FindingSeverity,
    FindingType,
    Label,
    TransactionEvent,
)

logger = logging.getLogger(__name__)


def create_nip_finding(
    victim: str, attacker: str, signature: str, victim_nonce: int, attacker_label: str
) -> Finding:
    metadata = {
        "attacker": attacker,
        "victim": victim,
        "funcSig": signature,
        "victimNonce": str(victim_nonce),
    }
    if attacker_label:
        metadata["attackerLabel"] = attacker_label
    return Finding(
        name="Possible native ice phishing with social engineering component attack",
        description=f"{victim} sent funds to {attacker} with {signature} as input data",
        alert_id="NIP-1",
        severity=FindingSeverity.Medium,
        type=FindingType.Suspicious,
        metadata=metadata,
        labels=[
            Label(attacker, EntityType.Address, "Attacker", 0.6),
            Label(victim, EntityType.Address, "Victim", 0.6),
        ],
    )


class NativeIcePhishingBot(BaseBot):
    name = "native-ice-phishing"

    async def handle_transaction(self, event: TransactionEvent) -> list[Finding]:
        fetcher = self.context.fetcher
        victim, attacker = event.from_addr, event.to_addr
        if not attacker or attacker == victim or len(event.data) < 10 or event.value == 0:
            return []

        if not await fetcher.is_eoa(attacker) or not await fetcher.is_eoa(victim):
            return []

        try:
            signature = await fetcher.get_signature(event.data)
        except SignatureLookupError as e:
            logger.warning("skipping %s: %s", event.hash, e)
            return []
        if not signature:
            return []

        first_interaction, high_tx_count = await fetcher.get_address_info(
            attacker, victim, event.chain_id, event.hash
        )
        if first_interaction is not True or high_tx_count is not False:
            return []

        if await fetcher.get_nonce(attacker) >= self.config.bots.nip_tx_count_threshold:
            return []

        victim_nonce = await fetcher.get_nonce(victim)
        label = await fetcher.get_label(attacker, event.chain_id)
        return [create_nip_finding(victim, attacker, signature, victim_nonce, label)]
