"""Bot interface and the shared context bots are built with."""

from __future__ import annotations

from dataclasses import dataclass, field

from chainsentry.config import ChainsentryConfig
from chainsentry.error_cache import ErrorCollector
from chainsentry.fetchers.balance import BalanceFetcher
from chainsentry.fetchers.data import DataFetcher
from chainsentry.models import Finding, TransactionEvent
from chainsentry.store import BotStore


@dataclass
class BotContext:
    """
    Everything a bot may depend on.

    One context is shared by all bots of a run; `store` is None when the
    run has no state database.
    """

    config: ChainsentryConfig
    fetcher: DataFetcher
    balances: BalanceFetcher
    errors: ErrorCollector = field(default_factory=ErrorCollector)
    store: BotStore | None = None


class BaseBot:
    """
    A detection rule invoked once per transaction event.

    Subclasses set `name` and implement `handle_transaction`. Stateful bots
    also override `initialize` (load state) and `persist` (save state).
    """

    name: str = ""

    def __init__(self, context: BotContext) -> None:
        self.context = context

    @property
    def config(self) -> ChainsentryConfig:
        return self.context.config

    async def initialize(self) -> None:
        """Load persisted state. Called once before the first event."""

    async def handle_transaction(self, event: TransactionEvent) -> list[Finding]:
        raise NotImplementedError

    async def persist(self) -> None:
        """Save state that must survive a restart. Called after the last event."""
