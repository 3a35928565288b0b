"""PancakeSwap Auto-CAKE vault: admin function calls."""

from __future__ import annotations

from chainsentry.abi import stringify
from chainsentry.bots.base import BaseBot
from chainsentry.models import Finding, FindingSeverity, FindingType, TransactionEvent

ADMIN_FUNCTIONS = [
    "function setAdmin(address _admin)",
    "function setTreasury(address _treasury)",
    "function setPerformanceFee(uint256 _performanceFee)",
    "function setCallFee(uint256 _callFee)",
    "function setWithdrawFee(uint256 _withdrawFee)",
    "function setWithdrawFeePeriod(uint256 _withdrawFeePeriod)",
    "function emergencyWithdraw()",
    "function inCaseTokensGetStuck(address _token)",
    "function pause()",
    "function unpause()",
]


class AutoCakeAdminBot(BaseBot):
    """One finding per admin call, named after the function, arguments as metadata."""

    name = "auto-cake-admin"

    async def handle_transaction(self, event: TransactionEvent) -> list[Finding]:
        calls = event.filter_function(ADMIN_FUNCTIONS, self.config.bots.auto_cake_address)
        return [
            Finding(
                name=call.name,
                description=call.name,
                alert_id="CAKE-ADMIN",
                severity=FindingSeverity.Info,
                type=FindingType.Info,
                metadata={key: stringify(value) for key, value in call.args.items()},
            )
            for call in calls
        ]
