"""Output format routing for chainsentry.

Converts findings (or any result dict) to the requested format: json, jsonl, table.

Design rules:
- JSON: 2-space indent, utf-8
- JSONL: one JSON object per line, no trailing whitespace
- Table: Rich-formatted, coloured by severity

All functions return strings. The caller writes to stdout.
"""

from __future__ import annotations

import io
import json
from decimal import Decimal
from typing import Any

from rich.console import Console
from rich.table import Table
from rich.text import Text

from chainsentry.models import Finding

VALID_FORMATS = {"json", "jsonl", "table"}

_SEVERITY_STYLES = {
    "Critical": "bold red",
    "High": "red",
    "Medium": "yellow",
    "Low": "cyan",
    "Info": "dim",
}


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal values and findings."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, Finding):
            return obj.to_dict()
        return super().default(obj)


def format_output(data: Any, fmt: str) -> str:
    """
    Format data for stdout output.

    Args:
        data: A list of findings, a result dict, or any JSON-serialisable value.
        fmt: "json" | "jsonl" | "table"

    Raises:
        ValueError: If fmt is not a recognised format.
    """
    fmt = fmt.lower()
    if fmt not in VALID_FORMATS:
        raise ValueError(f"Unknown format {fmt!r}. Valid: {sorted(VALID_FORMATS)}")

    if fmt == "jsonl":
        return format_jsonl(data)
    if fmt == "table":
        return format_table(data)
    return format_json(data)


def format_json(data: Any) -> str:
    return json.dumps(data, indent=2, cls=DecimalEncoder, ensure_ascii=False)


def format_jsonl(data: Any) -> str:
    """One line per list item; anything else is a single line."""
    items = data if isinstance(data, list) else [data]
    return "\n".join(json.dumps(item, cls=DecimalEncoder) for item in items)


def format_table(data: Any) -> str:
    """
    Format as a Rich terminal table.

    Handles a list of findings (Finding objects or their dicts) and
    falls back to pretty JSON for anything else.
    """
    buf = io.StringIO()
    console = Console(file=buf, highlight=False, markup=True, width=120)

    rows = _finding_rows(data)
    if rows is None:
        console.print_json(json.dumps(data, cls=DecimalEncoder))
    else:
        _render_findings_table(console, rows)

    return buf.getvalue()


# ──────────────────────────────────────────────────────────────
# Private helpers
# ──────────────────────────────────────────────────────────────


def _finding_rows(data: Any) -> list[dict[str, Any]] | None:
    if not isinstance(data, list):
        return None
    rows = [item.to_dict() if isinstance(item, Finding) else item for item in data]
    if not all(isinstance(r, dict) and "alertId" in r for r in rows):
        return None
    return rows


def _render_findings_table(console: Console, rows: list[dict[str, Any]]) -> None:
    table = Table(title="Findings", show_header=True, header_style="bold blue")
    table.add_column("Alert ID", style="cyan", no_wrap=True)
    table.add_column("Severity", justify="center")
    table.add_column("Type", justify="center")
    table.add_column("Name")
    table.add_column("Metadata")

    for r in rows:
        severity = r.get("severity", "Unknown")
        metadata = ", ".join(f"{k}={_shorten(str(v))}" for k, v in r.get("metadata", {}).items())
        table.add_row(
            r.get("alertId", ""),
            Text(severity, style=_SEVERITY_STYLES.get(severity, "")),
            r.get("type", ""),
            r.get("name", ""),
            metadata or "—",
        )

    console.print(table)
    console.print(f"Findings: [bold]{len(rows)}[/bold]")


def _shorten(value: str, limit: int = 48) -> str:
    return value if len(value) <= limit else f"{value[: limit - 1]}…"


def mask_api_key(key: str) -> str:
    """
    Mask an API key for safe display.

    'abcdefg123' → 'abcd****'
    '' → '****'
    """
    if len(key) <= 4:
        return "****"
    return key[:4] + "****"
