"""Curve: claim_many reward claims on a watched gauge."""

from __future__ import annotations

from chainsentry.abi import parse_fragment
from chainsentry.bots.base import BaseBot
from chainsentry.models import Finding, FindingSeverity, FindingType, TransactionEvent

CLAIM_MANY = parse_fragment("function claim_many(address[20] _receivers)")


class ClaimManyBot(BaseBot):
    name = "curve-claim-many"

    async def handle_transaction(self, event: TransactionEvent) -> list[Finding]:
        bots = self.config.bots
        if bots.claim_many_address.lower() not in event.addresses:
            return []
        if not event.data.lower().startswith(CLAIM_MANY.selector):
            return []
        return [
            Finding(
                name="Claim Rewards function called",
                description="Claim Rewards function called on pool",
                alert_id=bots.claim_many_alert_id,
                severity=FindingSeverity.Low,
                type=FindingType.Suspicious,
                protocol="ethereum",
            )
        ]
