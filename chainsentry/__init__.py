"""chainsentry: transaction detection bots and a cache-backed on-chain data fetcher."""

__version__ = "0.1.0"
