"""Alpaca Finance: large leveraged positions opened on a vault."""

from __future__ import annotations

from chainsentry.bots.base import BaseBot, BotContext
from chainsentry.models import Finding, FindingSeverity, FindingType, TransactionEvent

WORK_EVENT = "event Work(uint256 id, uint256 loan)"

# vault address → loan threshold (token base units)
VAULT_THRESHOLDS: dict[str, int] = {
    "0x7c9e73d4c71dae564d41f78d56439bb4ba87592f": 100_000 * 10**18,   # BUSD
    "0xbff4a34a4644a113e8200d7f1d79b3555f723afe": 30 * 10**18,        # ETH
    "0x08fc9ba2cac74742177e0afc3dc8aed6961c24e7": 100_000 * 10**18,   # USDT
    "0xf1be8ecc990cbcb90e166b71e368299f0116d421": 200_000 * 10**18,   # ALPACA
    "0x3282d2a151ca00bfe7ed17aa16e42880248cd3cd": 100_000 * 10**18,   # TUSD
}


def create_large_position_finding(position_id: int, loan: int, vault: str) -> Finding:
    return Finding(
        name="Large Position Event",
        description="Large Position Has Been Taken",
        alert_id="ALPACA-1",
        severity=FindingSeverity.Info,
        type=FindingType.Info,
        metadata={
            "positionId": str(position_id),
            "loanAmount": str(loan),
            "vault": vault,
        },
    )


class LargePositionBot(BaseBot):
    name = "large-position"

    def __init__(self, context: BotContext, thresholds: dict[str, int] | None = None) -> None:
        super().__init__(context)
        self.thresholds = {k.lower(): v for k, v in (thresholds or VAULT_THRESHOLDS).items()}

    async def handle_transaction(self, event: TransactionEvent) -> list[Finding]:
        findings: list[Finding] = []
        for work in event.filter_log(WORK_EVENT):
            threshold = self.thresholds.get(work.address)
            if threshold is None:
                continue
            loan = work.args["loan"]
            if loan > threshold:
                findings.append(create_large_position_finding(work.args["id"], loan, work.address))
        return findings
