"""Provider protocol and explorer record model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass
class ExplorerTransaction:
    """
    One record of an address's history as returned by an Etherscan-family API.

    `value` stays a decimal string: predicates compare it against "0" and
    against other records' values verbatim.
    """

    hash: str
    from_addr: str
    to_addr: str
    value: str
    block_number: int

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> "ExplorerTransaction":
        """
        Parse a `txlist` / `txlistinternal` record.

        Raises:
            KeyError, ValueError, TypeError: record is malformed.
        """
        return cls(
            hash=raw["hash"].lower(),
            from_addr=(raw.get("from") or "").lower(),
            to_addr=(raw.get("to") or "").lower(),
            value=str(raw.get("value", "0")),
            block_number=int(raw.get("blockNumber", 0)),
        )


@runtime_checkable
class Provider(Protocol):
    """
    JSON-RPC operations the DataFetcher and bots depend on.

    Implementations raise ChainsentryError subclasses on failure; retrying
    and fallback values are the caller's job.
    """

    async def get_code(self, address: str, block: int | str = "latest") -> str:
        """Return deployed bytecode as hex, "0x" when there is none."""
        ...

    async def get_storage_at(self, address: str, slot: int, block: int | str = "latest") -> str:
        """Return the 32-byte storage word at `slot` as hex."""
        ...

    async def get_transaction_count(self, address: str, block: int | str = "latest") -> int:
        """Return the account nonce."""
        ...

    async def get_balance(self, address: str, block: int | str = "latest") -> int:
        """Return the native balance in wei."""
        ...

    async def call(self, to: str, data: str, block: int | str = "latest") -> str:
        """Execute eth_call and return the raw hex result."""
        ...
