"""Human-readable ABI fragments and log / call-data decoding.

Bots declare the events and functions they watch the way they appear in
Solidity, e.g. ``"event Work(uint256 id, uint256 loan)"`` or
``"function setAdmin(address _admin)"``. This module turns those fragments
into topic hashes / selectors and decodes matching logs and call data with
eth-abi.

Indexed dynamic parameters (string, bytes, arrays) are only available as
their keccak hash; they are returned as the raw 0x-prefixed topic.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from eth_utils import (
    decode_hex,
    event_signature_to_log_topic,
    function_signature_to_4byte_selector,
)

_FRAGMENT_RE = re.compile(r"^\s*(event|function)\s+(\w+)\s*\((.*)\)\s*(.*)$")

_STATIC_RE = re.compile(r"^(u?int\d*|address|bool|bytes([1-9]|[12]\d|3[0-2]))$")


@dataclass(frozen=True)
class Param:
    type: str
    name: str
    indexed: bool = False

    @property
    def is_dynamic(self) -> bool:
        return not _STATIC_RE.match(self.type)


@dataclass(frozen=True)
class Fragment:
    """A parsed event or function declaration."""

    kind: str                      # "event" | "function"
    name: str
    params: tuple[Param, ...] = field(default_factory=tuple)

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(p.type for p in self.params)})"

    @property
    def topic(self) -> str:
        """keccak256 of the canonical signature, as used in topics[0]."""
        return "0x" + event_signature_to_log_topic(self.signature).hex()

    @property
    def selector(self) -> str:
        """First 4 bytes of keccak256 of the canonical signature."""
        return "0x" + function_signature_to_4byte_selector(self.signature).hex()


@dataclass
class DecodedLog:
    name: str
    address: str
    args: dict[str, Any]
    log_index: int = 0


@dataclass
class DecodedCall:
    name: str
    address: str
    args: dict[str, Any]
    selector: str = ""


def parse_fragment(text: str) -> Fragment:
    """
    Parse ``event Name(type [indexed] name, ...)`` or ``function Name(...)``.

    Raises:
        ValueError: text is not an event or function declaration.
    """
    m = _FRAGMENT_RE.match(text)
    if not m:
        raise ValueError(f"Not an event or function fragment: {text!r}")
    kind, name, body, _ = m.groups()

    params: list[Param] = []
    for i, raw in enumerate(p.strip() for p in body.split(",") if p.strip()):
        parts = raw.split()
        ptype = _canonical_type(parts[0])
        indexed = "indexed" in parts[1:]
        rest = [p for p in parts[1:] if p not in ("indexed", "memory", "calldata", "storage")]
        pname = rest[0] if rest else f"arg{i}"
        params.append(Param(type=ptype, name=pname, indexed=indexed))

    return Fragment(kind=kind, name=name, params=tuple(params))


def decode_log(fragment: Fragment, topics: list[str], data: str) -> dict[str, Any]:
    """
    Decode a log emitted by ``fragment``.

    Returns:
        Mapping of parameter name to decoded value.

    Raises:
        ValueError: topic0 does not match or the payload does not decode.
    """
    if not topics or topics[0].lower() != fragment.topic:
        raise ValueError(f"topic0 does not match {fragment.signature}")

    indexed = [p for p in fragment.params if p.indexed]
    plain = [p for p in fragment.params if not p.indexed]
    if len(topics) - 1 != len(indexed):
        raise ValueError(f"expected {len(indexed)} indexed topics, got {len(topics) - 1}")

    args: dict[str, Any] = {}
    for param, topic in zip(indexed, topics[1:]):
        if param.is_dynamic:
            args[param.name] = topic.lower()
        else:
            args[param.name] = _decode_values([param.type], decode_hex(topic))[0]

    values = _decode_values([p.type for p in plain], decode_hex(data or "0x"))
    for param, value in zip(plain, values):
        args[param.name] = value
    return args


def decode_call(fragment: Fragment, call_data: str) -> dict[str, Any]:
    """
    Decode call data for ``fragment``.

    Raises:
        ValueError: the selector does not match or arguments do not decode.
    """
    raw = (call_data or "").lower()
    if not raw.startswith(fragment.selector):
        raise ValueError(f"selector does not match {fragment.signature}")
    values = _decode_values([p.type for p in fragment.params], decode_hex(raw[10:] or "0x"))
    return {p.name: v for p, v in zip(fragment.params, values)}


def stringify(value: Any) -> str:
    """Render a decoded ABI value as the string used in finding metadata."""
    if isinstance(value, bytes):
        return "0x" + value.hex()
    if isinstance(value, (list, tuple)):
        return ",".join(stringify(v) for v in value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# ──────────────────────────────────────────────────────────────
# Private helpers
# ──────────────────────────────────────────────────────────────


def _canonical_type(ptype: str) -> str:
    if ptype == "uint" or ptype.startswith("uint["):
        return "uint256" + ptype[4:]
    if ptype == "int" or ptype.startswith("int["):
        return "int256" + ptype[3:]
    return ptype


def _decode_values(types: list[str], payload: bytes) -> tuple[Any, ...]:
    if not types:
        return ()
    try:
        return decode(types, payload)
    except (DecodingError, OverflowError) as e:
        raise ValueError(f"could not decode {types}: {e}") from e
