"""JSONL replay runner for chainsentry.

Feeds transaction events (JSON lines or one JSON array) through the enabled
bots, one event at a time, and emits one JSON object per line to stdout.

Event types emitted:
  run_start  — bots initialised, before the first event
  finding    — a bot (or the fetch layer, bot="fetcher") raised a finding
  bot_error  — a bot failed on one event; the run continues
  run_end    — all events processed, bot state persisted

stdout is flushed after each write (critical for pipe consumers).
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterable, Iterator
from datetime import datetime, timezone
from typing import Any, TextIO

from chainsentry.bots.base import BaseBot
from chainsentry.error_cache import ErrorCollector
from chainsentry.exceptions import ChainsentryError, InvalidEventError
from chainsentry.models import Finding, TransactionEvent
from chainsentry.output import DecimalEncoder

logger = logging.getLogger(__name__)


def emit_event(event: dict[str, Any]) -> None:
    """
    Write a single JSONL event to stdout and flush.

    Never use print() — buffered output breaks pipe consumers.
    """
    sys.stdout.write(json.dumps(event, cls=DecimalEncoder) + "\n")
    sys.stdout.flush()


def _now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


def read_events(stream: TextIO) -> Iterator[dict[str, Any]]:
    """
    Yield raw event dicts from JSON lines, or from a single JSON array.

    Blank lines are skipped.

    Raises:
        InvalidEventError: A line (or the array) is not valid JSON objects.
    """
    first = ""
    skipped = 0
    for first in stream:
        if first.strip():
            break
        skipped += 1
    else:
        return

    if first.lstrip().startswith("["):
        text = first + stream.read()
        try:
            items = json.loads(text)
        except ValueError as e:
            raise InvalidEventError(f"Invalid JSON array of events: {e}") from e
        for i, item in enumerate(items):
            yield _require_object(item, f"item {i}")
        return

    for lineno, line in enumerate(_chain_first(first, stream), start=skipped + 1):
        if not line.strip():
            continue
        try:
            item = json.loads(line)
        except ValueError as e:
            raise InvalidEventError(f"Invalid JSON on line {lineno}: {e}") from e
        yield _require_object(item, f"line {lineno}")


async def run_events(
    events: Iterable[dict[str, Any]],
    bots: list[BaseBot],
    errors: ErrorCollector,
) -> dict[str, int]:
    """
    Run every event through every bot, in order.

    Bot state is loaded before the first event and persisted after the
    last one, also when reading the input fails half-way.

    Returns:
        Summary counts: events processed, findings emitted, bot errors.
    """
    summary = {"events_processed": 0, "findings": 0, "bot_errors": 0}

    for bot in bots:
        await bot.initialize()

    emit_event({
        "type": "run_start",
        "timestamp": _now_iso(),
        "bots": [bot.name for bot in bots],
    })

    try:
        for raw in events:
            event = TransactionEvent.from_dict(raw)
            summary["events_processed"] += 1

            for bot in bots:
                try:
                    findings = await bot.handle_transaction(event)
                except ChainsentryError as e:
                    logger.warning("%s failed on %s: %s", bot.name, event.hash, e)
                    summary["bot_errors"] += 1
                    emit_event({
                        "type": "bot_error",
                        "timestamp": _now_iso(),
                        "bot": bot.name,
                        "tx_hash": event.hash,
                        "error_code": e.error_code,
                        "message": str(e),
                    })
                    continue
                for finding in findings:
                    _emit_finding(bot.name, event, finding)
                summary["findings"] += len(findings)

            drained = errors.drain()
            for finding in drained:
                _emit_finding("fetcher", event, finding)
            summary["findings"] += len(drained)
    finally:
        for bot in bots:
            await bot.persist()

    emit_event({"type": "run_end", "timestamp": _now_iso(), **summary})
    return summary


# ──────────────────────────────────────────────────────────────
# Private helpers
# ──────────────────────────────────────────────────────────────


def _emit_finding(source: str, event: TransactionEvent, finding: Finding) -> None:
    emit_event({
        "type": "finding",
        "timestamp": _now_iso(),
        "bot": source,
        "tx_hash": event.hash,
        "block_number": event.block_number,
        "finding": finding.to_dict(),
    })


def _chain_first(first: str, rest: TextIO) -> Iterator[str]:
    yield first
    yield from rest


def _require_object(item: Any, where: str) -> dict[str, Any]:
    if not isinstance(item, dict):
        raise InvalidEventError(f"Event at {where} is not a JSON object")
    return item
