"""PancakeSwap lottery: operator, treasury and injector address changes."""

from __future__ import annotations

from chainsentry.bots.base import BaseBot
from chainsentry.models import Finding, FindingSeverity, FindingType, TransactionEvent

NEW_ADDRESSES_EVENT = (
    "event NewOperatorAndTreasuryAndInjectorAddresses"
    "(address operator, address treasury, address injector)"
)


class LotteryAddressesBot(BaseBot):
    name = "lottery-addresses"

    async def handle_transaction(self, event: TransactionEvent) -> list[Finding]:
        findings = []
        for log in event.filter_log(NEW_ADDRESSES_EVENT, self.config.bots.lottery_address):
            findings.append(
                Finding(
                    name="New Operator And Treasury And Injector Addresses",
                    description="New Operator And Treasury And Injector Addresses",
                    alert_id="PCSLottery-2",
                    severity=FindingSeverity.Info,
                    type=FindingType.Info,
                    metadata={
                        "operator": log.args["operator"].lower(),
                        "treasury": log.args["treasury"].lower(),
                        "injector": log.args["injector"].lower(),
                    },
                )
            )
        return findings
