"""
DataFetcher — cached, retrying answers to on-chain questions the bots ask.

Combines an RPC provider, an explorer client and two plain HTTP lookups
(function signature database, label service) behind one object.

Retry policy (all remote calls): up to `max_attempts` tries with a fixed
`retry_delay_seconds` between them. On exhaustion every operation resolves
to its own fallback value, listed on the method. The single exception is
`get_signature`, which raises SignatureLookupError.

Caches are `cachetools.LRUCache` instances owned by the fetcher. Only
successful lookups are cached; a failure is retried on the next query.
History predicates (explorer-backed) are never cached.

Known quirks kept on purpose:
- `get_nonce` falls back to 100000, which callers cannot tell apart from a
  genuinely busy account.
- `get_signature` propagates failure while every other lookup falls back.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Awaitable, Callable, TypeVar

import httpx
from cachetools import LRUCache
from eth_abi import decode
from eth_abi.exceptions import DecodingError
from eth_utils import decode_hex

from chainsentry import bytecode
from chainsentry.config import FetcherConfig
from chainsentry.error_cache import ErrorCollector
from chainsentry.exceptions import (
    APIError,
    ChainsentryError,
    ConnectionFailedError,
    NetworkTimeoutError,
    SignatureLookupError,
)
from chainsentry.fetchers.base import ExplorerTransaction, Provider
from chainsentry.fetchers.explorer import ExplorerClient
from chainsentry.retry import retry_async

logger = logging.getLogger(__name__)

T = TypeVar("T")

NONCE_FALLBACK = 100_000
LOGS_FALLBACK = 10

# Explorer page sizes (the request asks for offset + 1 records)
INTERACTED_AGAIN_OFFSET = 9_999
SAME_ADDRESS_OFFSET = 100
RECENT_TRANSFER_OFFSET = 1_000
VALUE_UNIQUE_OFFSET = 100
RECENT_TRANSFER_BLOCKS = 10
VALID_ENTRIES_LOOKBACK = 3

OWNER_SELECTOR = "0x8da5cb5b"       # owner()
GET_OWNER_SELECTOR = "0x893d20e8"   # getOwner()

# chain id → label source prefix
LABEL_SOURCES: dict[int, str] = {1: "etherscan", 137: "polygon", 250: "fantom"}


class DataFetcher:
    """
    Cache-backed, retrying access to RPC, explorer, signature and label data.

    Usage:
        fetcher = DataFetcher(provider, explorer, config.fetcher, ErrorCollector())
        if await fetcher.is_eoa(address):
            ...
        await fetcher.close()
    """

    def __init__(
        self,
        provider: Provider,
        explorer: ExplorerClient,
        config: FetcherConfig | None = None,
        error_collector: ErrorCollector | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.provider = provider
        self.explorer = explorer
        self.config = config or FetcherConfig()
        self.errors = (
            error_collector
            if error_collector is not None
            else ErrorCollector(self.config.error_buffer_size)
        )
        self._client = http_client or httpx.AsyncClient(timeout=30.0)

        self.eoa_cache: LRUCache[str, bool] = LRUCache(maxsize=self.config.eoa_cache_size)
        self.code_cache: LRUCache[str, str] = LRUCache(maxsize=self.config.code_cache_size)
        self.nonce_cache: LRUCache[str, int] = LRUCache(maxsize=self.config.nonce_cache_size)
        self.signature_cache: LRUCache[str, str] = LRUCache(
            maxsize=self.config.signature_cache_size
        )
        self.owner_cache: LRUCache[str, str] = LRUCache(maxsize=self.config.owner_cache_size)

    async def close(self) -> None:
        close = getattr(self.provider, "close", None)
        if close is not None:
            await close()
        await self.explorer.close()
        await self._client.aclose()

    async def __aenter__(self) -> "DataFetcher":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # ──────────────────────────────────────────────────────────────
    # RPC-backed lookups
    # ──────────────────────────────────────────────────────────────

    async def get_code(self, address: str) -> str | None:
        """
        Bytecode at `address` ("0x" for none).

        Returns None after all attempts fail and records an error finding.
        Non-empty code is cached; "0x" is not, so an address that gets a
        contract deployed later is picked up.
        """
        address = address.lower()
        if address in self.code_cache:
            return self.code_cache[address]

        code = await self._retry(
            lambda: self.provider.get_code(address),
            on_exhausted=lambda e: self.errors.record_exception(e, "fetcher.get_code"),
            description=f"get_code {address}",
        )
        if code and code != "0x":
            self.code_cache[address] = code
        return code

    async def is_eoa(self, address: str) -> bool | None:
        """True when `address` has no code; None when code could not be fetched."""
        address = address.lower()
        if address in self.eoa_cache:
            return self.eoa_cache[address]

        code = await self.get_code(address)
        if code is None:
            return None
        is_eoa = code == "0x"
        self.eoa_cache[address] = is_eoa
        return is_eoa

    async def get_nonce(self, address: str) -> int:
        """Transaction count of `address`; 100000 after all attempts fail."""
        address = address.lower()
        if address in self.nonce_cache:
            return self.nonce_cache[address]

        nonce = await self._retry(
            lambda: self.provider.get_transaction_count(address),
            fallback=lambda: None,
            on_exhausted=lambda e: self.errors.record_exception(e, "fetcher.get_nonce"),
            description=f"get_nonce {address}",
        )
        if nonce is None:
            return NONCE_FALLBACK
        self.nonce_cache[address] = nonce
        return nonce

    async def get_storage_slot(self, address: str, slot: int, block_number: int) -> str | None:
        """Raw storage word; None after all attempts fail."""
        return await self._retry(
            lambda: self.provider.get_storage_at(address, slot, block_number),
            on_exhausted=lambda e: self.errors.record_exception(e, "fetcher.get_storage_slot"),
            description=f"get_storage_slot {address}[{slot}]@{block_number}",
        )

    async def get_owner(self, address: str, block: int | str) -> str:
        """
        Owner of a contract at `block` via owner(), falling back to getOwner().

        Returns "" when neither accessor answers. Ownership changes over
        time, so the cache key includes the block; lookups at a block tag
        such as "latest" are not cached.
        """
        address = address.lower()
        key = f"{address} - {block}"
        if key in self.owner_cache:
            return self.owner_cache[key]

        owner = ""
        for selector in (OWNER_SELECTOR, GET_OWNER_SELECTOR):
            try:
                owner = await self._call_address_accessor(address, selector, block)
                break
            except (ChainsentryError, ValueError) as e:
                logger.debug("owner accessor %s failed on %s: %s", selector, address, e)

        if owner and isinstance(block, int):
            self.owner_cache[key] = owner
        return owner

    # ──────────────────────────────────────────────────────────────
    # Signature database and labels
    # ──────────────────────────────────────────────────────────────

    async def get_signature(self, data: str) -> str | None:
        """
        Human-readable signature(s) for the 4-byte selector at the start of `data`.

        Returns None for an unknown selector.

        Raises:
            SignatureLookupError: the database could not be reached after all attempts.
        """
        selector = "0x" + data[2:10].lower()
        if selector in self.signature_cache:
            return self.signature_cache[selector]

        url = self.config.signature_db_url + selector[2:]
        try:
            text = await self._retry(
                lambda: self._get_signature_text(url),
                propagate=True,
                description=f"get_signature {selector}",
            )
        except ChainsentryError as e:
            raise SignatureLookupError(
                f"Signature lookup failed for {selector}: {e}",
                details={"selector": selector},
            ) from e

        if text and not text.startswith("404"):
            self.signature_cache[selector] = text
            return text
        return None

    async def get_label(self, address: str, chain_id: int) -> str:
        """Community label for `address`; "" for unsupported chains, no label, or failure."""
        source = LABEL_SOURCES.get(chain_id)
        if source is None:
            return ""

        params = {"entities": address, "sourceIds": f"{source}-tags", "limit": 1}

        async def fetch_label() -> str:
            resp = await self._client.get(self.config.labels_url, params=params)
            resp.raise_for_status()
            events = resp.json()["events"]
            return events[0]["label"]["label"] if events else ""

        label = await self._retry(
            fetch_label,
            fallback=lambda: "",
            description=f"get_label {address}",
        )
        return label or ""

    # ──────────────────────────────────────────────────────────────
    # Explorer-backed history predicates (never cached)
    # ──────────────────────────────────────────────────────────────

    async def get_address_info(
        self, tx_to: str, tx_from: str, chain_id: int, hash: str
    ) -> tuple[bool | None, bool | None]:
        """
        (is first interaction between the pair, receiver has a high tx count).

        Returns (None, None) when the explorer is unavailable.
        """
        tx_from = tx_from.lower()
        threshold = self.config.to_tx_count_threshold
        records = await self._history(tx_to, chain_id, threshold)
        if records is None:
            return None, None

        interactions = sum(
            1
            for tx in records
            if tx.to_addr == tx_from or (tx.from_addr == tx_from and tx.hash != hash.lower())
        )
        return interactions == 0, len(records) > threshold

    async def have_interacted_again(
        self, attacker: str, victims: list[str], chain_id: int
    ) -> bool:
        """True if any victim sent to `attacker` more than once; True when the explorer is unavailable."""
        attacker = attacker.lower()
        records = await self._history(attacker, chain_id, INTERACTED_AGAIN_OFFSET)
        if records is None:
            return True

        for victim in (v.lower() for v in victims):
            count = 0
            for tx in records:
                if tx.to_addr == attacker and tx.from_addr == victim:
                    count += 1
                if count > 1:
                    return True
        return False

    async def have_interacted_with_same_address(
        self, attacker: str, victims: list[str], chain_id: int
    ) -> bool:
        """
        True if at least half of the victims (rounded up) sent to one common
        counterparty other than the attacker.

        Victim histories are fetched concurrently, bounded by
        `fanout_concurrency`. If any victim's history cannot be fetched the
        answer is True.
        """
        attacker = attacker.lower()
        victims = [v.lower() for v in victims]
        semaphore = asyncio.Semaphore(self.config.fanout_concurrency)

        async def counterparties(victim: str) -> set[str] | None:
            async with semaphore:
                records = await self._history(victim, chain_id, SAME_ADDRESS_OFFSET)
            if records is None:
                return None
            return {
                tx.to_addr for tx in records if tx.to_addr and tx.to_addr not in (attacker, victim)
            }

        results = await asyncio.gather(*(counterparties(v) for v in victims))
        if any(r is None for r in results):
            return True

        frequency: dict[str, set[str]] = {}
        for victim, to_addrs in zip(victims, results):
            for to_addr in to_addrs or ():
                frequency.setdefault(to_addr, set()).add(victim)

        majority = math.ceil(len(victims) / 2)
        return any(len(senders) >= majority for senders in frequency.values())

    async def is_recently_involved_in_transfer(
        self, address: str, hash: str, chain_id: int, block_number: int
    ) -> bool:
        """
        True if `address` moved non-zero value in one of the 10 blocks before
        `block_number` (other than `hash`); True when the explorer is unavailable.
        """
        records = await self._history(address, chain_id, RECENT_TRANSFER_OFFSET)
        if records is None:
            return True
        return any(
            tx.hash != hash.lower()
            and tx.value != "0"
            and block_number - RECENT_TRANSFER_BLOCKS <= tx.block_number < block_number
            for tx in records
        )

    async def has_valid_entries(self, address: str, chain_id: int, hash: str) -> bool:
        """
        True if the three records preceding `hash` in the history have no
        zero-value transfer and no repeated sender; False when the explorer
        is unavailable.
        """
        records = await self._history(address, chain_id, self.config.to_tx_count_threshold)
        if records is None:
            return False

        valid = False
        for i, entry in enumerate(records):
            if entry.hash != hash.lower() or i < VALID_ENTRIES_LOOKBACK:
                continue
            previous = records[i - VALID_ENTRIES_LOOKBACK : i]
            has_zero_value = any(tx.value == "0" for tx in previous)
            senders = [tx.from_addr for tx in previous]
            has_duplicate_from = len(set(senders)) != len(senders)
            if not has_zero_value and not has_duplicate_from:
                valid = True
        return valid

    async def get_addresses(
        self, address: str, chain_id: int, hash: str
    ) -> tuple[str | None, str | None]:
        """
        (funding address, latest `to` sent by `address` before `hash`).

        The funding address is the sender of the first incoming transaction,
        or of the first internal transaction when the history starts with an
        outgoing one. Returns (None, None) when the explorer is unavailable.
        """
        address = address.lower()
        records = await self._history(address, chain_id, self.config.from_tx_count_threshold)
        if not records:
            return None, None

        latest_to = ""
        for i in range(len(records) - 1, -1, -1):
            if records[i].hash == hash.lower():
                for j in range(i - 1, -1, -1):
                    if records[j].from_addr == address:
                        latest_to = records[j].to_addr
                        break
                break

        if records[0].to_addr == address:
            return records[0].from_addr, latest_to

        internal = await self._history(address, chain_id, 1, internal=True)
        if not internal:
            return None, None
        return internal[0].from_addr, latest_to

    async def is_value_unique(self, address: str, chain_id: int, hash: str, value: str) -> bool:
        """False if another transaction of `address` carries the same value; False when the explorer is unavailable."""
        records = await self._history(address, chain_id, VALUE_UNIQUE_OFFSET)
        if records is None:
            return False
        return not any(tx.hash != hash.lower() and tx.value == value for tx in records)

    async def get_number_of_logs(self, address: str, block_number: int, chain_id: int) -> int:
        """Logs emitted by `address` up to `block_number` (page of 2); 10 when the explorer is unavailable."""

        async def count_logs() -> int:
            return len(await self.explorer.get_logs(address, block_number, chain_id))

        return await self._retry(
            count_logs,
            fallback=lambda: LOGS_FALLBACK,
            description=f"explorer log check for {address}",
        )

    async def get_source_code(self, address: str, chain_id: int) -> str:
        """Verified source of a contract; "" when unverified or the explorer is unavailable."""

        async def fetch_source() -> str:
            entries = await self.explorer.get_source_code(address, chain_id)
            return entries[0]["SourceCode"]

        return await self._retry(
            fetch_source,
            fallback=lambda: "",
            description=f"explorer source code check for {address}",
        )

    # ──────────────────────────────────────────────────────────────
    # Bytecode inspection
    # ──────────────────────────────────────────────────────────────

    def get_function_selectors(self, code: str) -> list[str]:
        return bytecode.function_selectors(code)

    def get_event_topics(self, code: str) -> list[str]:
        return bytecode.event_topics(code)

    # ──────────────────────────────────────────────────────────────
    # Private helpers
    # ──────────────────────────────────────────────────────────────

    def _retry(self, operation: Callable[[], Awaitable[T]], **kwargs: Any) -> Awaitable[Any]:
        return retry_async(
            operation,
            attempts=self.config.max_attempts,
            delay=self.config.retry_delay_seconds,
            **kwargs,
        )

    async def _history(
        self, address: str, chain_id: int, offset: int, internal: bool = False
    ) -> list[ExplorerTransaction] | None:
        """Fetch and parse one history page; None after all attempts fail."""

        async def fetch_page() -> list[ExplorerTransaction]:
            raw = await self.explorer.get_account_txs(address, chain_id, offset, internal=internal)
            return [ExplorerTransaction.from_api(r) for r in raw]

        return await self._retry(
            fetch_page,
            description=f"explorer history check for {address}",
        )

    async def _call_address_accessor(self, address: str, selector: str, block: int) -> str:
        result = await self.provider.call(address, selector, block)
        payload = decode_hex(result or "0x")
        if len(payload) < 32:
            raise ValueError(f"short return data from {selector}")
        try:
            return decode(["address"], payload[:32])[0].lower()
        except DecodingError as e:
            raise ValueError(str(e)) from e

    async def _get_signature_text(self, url: str) -> str:
        try:
            resp = await self._client.get(url)
        except httpx.TimeoutException as e:
            raise NetworkTimeoutError(f"Signature database timeout: {e}") from e
        except httpx.HTTPError as e:
            raise ConnectionFailedError(f"Cannot reach signature database: {e}") from e

        if resp.status_code == 404:
            return "404: Not Found"
        if resp.status_code != 200:
            raise APIError(f"Signature database returned HTTP {resp.status_code}")
        return resp.text.strip()
