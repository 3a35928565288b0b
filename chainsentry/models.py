"""
Shared data models for chainsentry.

These dataclasses are the canonical data shapes used across all modules:
the runner parses TransactionEvent, bots produce Finding, output renders them.
The finding schema mirrors what the alert pipeline consumes; this package
only produces it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from chainsentry.abi import DecodedCall, DecodedLog, decode_call, decode_log, parse_fragment
from chainsentry.exceptions import InvalidEventError


class FindingSeverity(IntEnum):
    Unknown = 0
    Info = 1
    Low = 2
    Medium = 3
    High = 4
    Critical = 5


class FindingType(IntEnum):
    Unknown = 0
    Exploit = 1
    Suspicious = 2
    Degraded = 3
    Info = 4


class EntityType(IntEnum):
    Unknown = 0
    Address = 1
    Transaction = 2
    Block = 3
    Url = 4


@dataclass
class Label:
    """An entity label attached to a finding (attacker, victim, ...)."""

    entity: str
    entity_type: EntityType
    label: str
    confidence: float
    remove: bool = False

    def to_dict(self) -> dict:
        return {
            "entity": self.entity,
            "entityType": self.entity_type.name,
            "label": self.label,
            "confidence": self.confidence,
            "remove": self.remove,
        }


@dataclass
class Finding:
    """A structured alert emitted by a bot."""

    name: str
    description: str
    alert_id: str
    severity: FindingSeverity
    type: FindingType
    metadata: dict[str, str] = field(default_factory=dict)
    labels: list[Label] = field(default_factory=list)
    protocol: str = "ethereum"

    def to_dict(self) -> dict:
        """Serialize for JSON output."""
        return {
            "name": self.name,
            "description": self.description,
            "alertId": self.alert_id,
            "protocol": self.protocol,
            "severity": self.severity.name,
            "type": self.type.name,
            "metadata": dict(self.metadata),
            "labels": [label.to_dict() for label in self.labels],
        }


@dataclass
class LogEntry:
    address: str
    topics: list[str]
    data: str = "0x"
    log_index: int = 0


@dataclass
class TraceEntry:
    """A call frame from the transaction trace."""

    from_addr: str
    to_addr: str
    input: str = "0x"
    value: int = 0


@dataclass
class TransactionEvent:
    """
    A single transaction as delivered to the bots.

    Addresses are lower-cased on parse so bots can compare them directly.
    """

    hash: str
    from_addr: str
    to_addr: str | None
    chain_id: int = 1
    value: int = 0                  # wei
    data: str = "0x"
    block_number: int = 0
    timestamp: int = 0
    logs: list[LogEntry] = field(default_factory=list)
    traces: list[TraceEntry] = field(default_factory=list)

    @property
    def addresses(self) -> set[str]:
        """Every address touched by the transaction, its logs and traces."""
        addrs = {self.from_addr}
        if self.to_addr:
            addrs.add(self.to_addr)
        addrs.update(log.address for log in self.logs)
        for trace in self.traces:
            addrs.add(trace.from_addr)
            addrs.add(trace.to_addr)
        return addrs

    def filter_log(self, event: str, address: str | None = None) -> list[DecodedLog]:
        """
        Decode logs matching the event fragment, optionally only those emitted by `address`.

        Logs whose payload does not decode are skipped.
        """
        fragment = parse_fragment(event)
        wanted = address.lower() if address else None
        decoded: list[DecodedLog] = []
        for log in self.logs:
            if wanted and log.address != wanted:
                continue
            try:
                args = decode_log(fragment, log.topics, log.data)
            except ValueError:
                continue
            decoded.append(
                DecodedLog(name=fragment.name, address=log.address, args=args, log_index=log.log_index)
            )
        return decoded

    def filter_function(self, functions: list[str], address: str | None = None) -> list[DecodedCall]:
        """
        Decode calls to any of `functions`, optionally only those made to `address`.

        Looks at trace frames when the event carries traces, otherwise at the
        top-level call data.
        """
        fragments = [parse_fragment(f) for f in functions]
        wanted = address.lower() if address else None

        frames: list[tuple[str, str]]
        if self.traces:
            frames = [(t.to_addr, t.input) for t in self.traces]
        elif self.to_addr:
            frames = [(self.to_addr, self.data)]
        else:
            frames = []

        calls: list[DecodedCall] = []
        for to_addr, call_data in frames:
            if wanted and to_addr != wanted:
                continue
            for fragment in fragments:
                try:
                    args = decode_call(fragment, call_data)
                except ValueError:
                    continue
                calls.append(
                    DecodedCall(
                        name=fragment.name, address=to_addr, args=args, selector=fragment.selector
                    )
                )
                break
        return calls

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "TransactionEvent":
        """
        Build an event from its JSON form.

        Accepts `from`/`to` or `from_addr`/`to_addr`, `data` or `input`,
        and hex or decimal numbers.

        Raises:
            InvalidEventError: required fields missing or malformed.
        """
        try:
            from_addr = (raw.get("from") or raw.get("from_addr") or "").lower()
            to_raw = raw.get("to", raw.get("to_addr"))
            logs = [
                LogEntry(
                    address=(log.get("address") or "").lower(),
                    topics=[t.lower() for t in log.get("topics", [])],
                    data=log.get("data") or "0x",
                    log_index=_to_int(log.get("logIndex", log.get("log_index", i))),
                )
                for i, log in enumerate(raw.get("logs", []))
            ]
            traces = [
                TraceEntry(
                    from_addr=(t.get("from") or t.get("from_addr") or "").lower(),
                    to_addr=(t.get("to") or t.get("to_addr") or "").lower(),
                    input=t.get("input") or t.get("data") or "0x",
                    value=_to_int(t.get("value", 0)),
                )
                for t in raw.get("traces", [])
            ]
            return cls(
                hash=raw.get("hash", "0x"),
                from_addr=from_addr,
                to_addr=to_raw.lower() if to_raw else None,
                chain_id=_to_int(raw.get("chain_id", raw.get("chainId", 1))),
                value=_to_int(raw.get("value", 0)),
                data=raw.get("data") or raw.get("input") or "0x",
                block_number=_to_int(raw.get("block_number", raw.get("blockNumber", 0))),
                timestamp=_to_int(raw.get("timestamp", 0)),
                logs=logs,
                traces=traces,
            )
        except (AttributeError, TypeError, ValueError) as e:
            raise InvalidEventError(f"Malformed transaction event: {e}") from e


def _to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    if value is None or value == "":
        return 0
    text = str(value)
    return int(text, 16) if text.startswith("0x") else int(text)
