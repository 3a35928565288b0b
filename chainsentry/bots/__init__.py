"""
Detection bots.

Each bot is a BaseBot subclass registered here under its CLI name.

Usage:
    from chainsentry.bots import build_bots
    bots = build_bots(["large-position"], context)
"""

from __future__ import annotations

from chainsentry.bots.auto_cake_admin import AutoCakeAdminBot
from chainsentry.bots.base import BaseBot, BotContext
from chainsentry.bots.claim_many import ClaimManyBot
from chainsentry.bots.large_position import LargePositionBot
from chainsentry.bots.lottery_addresses import LotteryAddressesBot
from chainsentry.bots.native_ice_phishing import NativeIcePhishingBot
from chainsentry.bots.private_key_compromise import PrivateKeyCompromiseBot
from chainsentry.exceptions import UnknownBotError

BOTS: dict[str, type[BaseBot]] = {
    bot.name: bot
    for bot in (
        LargePositionBot,
        LotteryAddressesBot,
        AutoCakeAdminBot,
        ClaimManyBot,
        PrivateKeyCompromiseBot,
        NativeIcePhishingBot,
    )
}


def get_bot(name: str) -> type[BaseBot]:
    """
    Return the bot class registered under `name`.

    Raises:
        UnknownBotError: No bot with that name.
    """
    try:
        return BOTS[name]
    except KeyError:
        raise UnknownBotError(
            f"Unknown bot {name!r}. Available: {sorted(BOTS)}",
            details={"bot": name},
        ) from None


def build_bots(names: list[str], context: BotContext) -> list[BaseBot]:
    return [get_bot(name)(context) for name in names]


__all__ = ["BOTS", "BaseBot", "BotContext", "build_bots", "get_bot"]
