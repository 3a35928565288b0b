"""Click CLI entry point for chainsentry.

All commands are thin orchestration wrappers — business logic lives in
config, fetchers, bots, store, runner and output modules.

Exit codes:
  0 — success
  1 — generic error
  2 — API error (explorer, RPC, signature database)
  3 — network error
  4 — data error (invalid address, malformed event, unknown bot)
  5 — config error
  6 — database error
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, TextIO

import click

from chainsentry import __version__
from chainsentry.bots import BOTS, BotContext, build_bots
from chainsentry.config import (
    ChainsentryConfig,
    get_default_config_path,
    load_config,
    save_config,
    validate_config,
)
from chainsentry.error_cache import ErrorCollector
from chainsentry.exceptions import (
    ChainsentryError,
    ConfigInvalidError,
    DataError,
    InvalidAddressError,
)
from chainsentry.fetchers import build_data_fetcher
from chainsentry.fetchers.balance import BalanceFetcher
from chainsentry.fetchers.data import DataFetcher
from chainsentry.output import format_output, mask_api_key
from chainsentry.runner import read_events, run_events
from chainsentry.store import BotStore

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


# ── Error handler ─────────────────────────────────────────────────────────────


def _output_error(err: ChainsentryError | Exception) -> None:
    """Write error JSON to stderr and exit with the error's code."""
    if isinstance(err, ChainsentryError):
        payload = err.to_dict()
        exit_code = err.exit_code
    else:
        payload = {"error": "unknown_error", "message": str(err), "details": {}}
        exit_code = 1
    sys.stderr.write(json.dumps(payload) + "\n")
    sys.stderr.flush()
    sys.exit(exit_code)


def _validate_address(address: str) -> str:
    if not _ADDRESS_RE.match(address):
        raise InvalidAddressError(
            f"Invalid address: {address!r}",
            details={"address": address},
        )
    return address.lower()


def _store_from_config(config: ChainsentryConfig) -> BotStore:
    db_path = config.database.path
    if db_path and db_path != ":memory:":
        db_path = str(Path(db_path).expanduser())
    return BotStore(db_path)


# ── Root group ────────────────────────────────────────────────────────────────


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "config_path",
    envvar="CHAINSENTRY_CONFIG_PATH",
    default=None,
    help="Config file path (default: ~/.chainsentry/config.toml)",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "jsonl", "table"]),
    default=None,
    help="Output format (overrides config default)",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Log level for stderr diagnostics (overrides config default)",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: str | None,
    output_format: str | None,
    log_level: str | None,
) -> None:
    """chainsentry — on-chain threat detection bots and the data fetcher they share."""
    ctx.ensure_object(dict)
    config_error: ChainsentryError | None = None
    try:
        config = load_config(config_path)
    except ChainsentryError as e:
        # Fall back to defaults so `config init` still works
        config = ChainsentryConfig()
        config_error = e

    logging.basicConfig(
        stream=sys.stderr,
        level=(log_level or config.output.log_level).upper(),
        format=LOG_FORMAT,
    )
    if config_error is not None:
        logging.getLogger(__name__).warning("using default config: %s", config_error)

    ctx.obj["config"] = config
    ctx.obj["format"] = output_format or config.output.default_format
    ctx.obj["config_path"] = config_path
    ctx.obj["config_error"] = config_error


# ── Run command ───────────────────────────────────────────────────────────────


@cli.command("run")
@click.argument("events_file", type=click.File("r"), default="-")
@click.option(
    "--bot",
    "bot_names",
    multiple=True,
    type=click.Choice(sorted(BOTS)),
    help="Bot to run (repeatable; default: bots.enabled from config)",
)
@click.option("--no-state", is_flag=True, help="Do not load or persist bot state")
@click.pass_context
def run_command(
    ctx: click.Context,
    events_file: TextIO,
    bot_names: tuple[str, ...],
    no_state: bool,
) -> None:
    """Replay transaction events (JSONL or a JSON array) through the bots."""
    config: ChainsentryConfig = ctx.obj["config"]
    names = list(bot_names) or config.bots.enabled

    async def _run() -> None:
        errors = ErrorCollector(config.fetcher.error_buffer_size)
        async with build_data_fetcher(config, errors) as fetcher:
            context = BotContext(
                config=config,
                fetcher=fetcher,
                balances=BalanceFetcher(fetcher.provider, config.fetcher),
                errors=errors,
            )
            bots = build_bots(names, context)
            if no_state:
                await run_events(read_events(events_file), bots, errors)
                return
            async with _store_from_config(config) as store:
                context.store = store
                await run_events(read_events(events_file), bots, errors)

    try:
        asyncio.run(_run())
    except ChainsentryError as e:
        _output_error(e)


# ── Bot commands ──────────────────────────────────────────────────────────────


@cli.group("bots")
def bots_group() -> None:
    """Inspect available detection bots."""


@bots_group.command("list")
@click.option("--format", "fmt", type=click.Choice(["json", "table"]), default=None)
@click.pass_context
def bots_list(ctx: click.Context, fmt: str | None) -> None:
    """List registered bots and whether the config enables them."""
    config: ChainsentryConfig = ctx.obj["config"]
    fmt = fmt or ctx.obj.get("format", "json")
    if fmt == "jsonl":
        fmt = "json"

    bots = [
        {
            "name": name,
            "enabled": name in config.bots.enabled,
            "description": _first_line(BOTS[name]),
        }
        for name in sorted(BOTS)
    ]
    click.echo(format_output({"count": len(bots), "bots": bots}, fmt))


def _first_line(bot_cls: type) -> str:
    module = sys.modules.get(bot_cls.__module__)
    doc = (module.__doc__ if module else None) or bot_cls.__doc__ or ""
    return doc.strip().splitlines()[0] if doc.strip() else ""


# ── Lookup commands ───────────────────────────────────────────────────────────


@cli.group("lookup")
def lookup_group() -> None:
    """Query the data fetcher directly (debugging aid)."""


def _lookup(
    config: ChainsentryConfig,
    query: Callable[[DataFetcher], Awaitable[dict[str, Any]]],
) -> None:
    async def _run() -> dict[str, Any]:
        errors = ErrorCollector(config.fetcher.error_buffer_size)
        async with build_data_fetcher(config, errors) as fetcher:
            result = await query(fetcher)
        recorded = errors.drain()
        if recorded:
            result["errors"] = [f.to_dict() for f in recorded]
        return result

    try:
        click.echo(format_output(asyncio.run(_run()), "json"))
    except ChainsentryError as e:
        _output_error(e)


@lookup_group.command("eoa")
@click.argument("address")
@click.pass_context
def lookup_eoa(ctx: click.Context, address: str) -> None:
    """Is ADDRESS an externally owned account (no code)?"""
    try:
        address = _validate_address(address)
    except ChainsentryError as e:
        _output_error(e)

    async def query(fetcher: DataFetcher) -> dict[str, Any]:
        return {"address": address, "is_eoa": await fetcher.is_eoa(address)}

    _lookup(ctx.obj["config"], query)


@lookup_group.command("nonce")
@click.argument("address")
@click.pass_context
def lookup_nonce(ctx: click.Context, address: str) -> None:
    """Transaction count of ADDRESS."""
    try:
        address = _validate_address(address)
    except ChainsentryError as e:
        _output_error(e)

    async def query(fetcher: DataFetcher) -> dict[str, Any]:
        return {"address": address, "nonce": await fetcher.get_nonce(address)}

    _lookup(ctx.obj["config"], query)


@lookup_group.command("owner")
@click.argument("address")
@click.option("--block", default="latest", show_default=True, help="Block number or tag")
@click.pass_context
def lookup_owner(ctx: click.Context, address: str, block: str) -> None:
    """Owner of contract ADDRESS via owner() or getOwner()."""
    try:
        address = _validate_address(address)
    except ChainsentryError as e:
        _output_error(e)
    block_param: Any = int(block) if block.isdigit() else block

    async def query(fetcher: DataFetcher) -> dict[str, Any]:
        owner = await fetcher.get_owner(address, block_param)
        return {"address": address, "block": block, "owner": owner}

    _lookup(ctx.obj["config"], query)


@lookup_group.command("signature")
@click.argument("data")
@click.pass_context
def lookup_signature(ctx: click.Context, data: str) -> None:
    """Function signature for the selector at the start of DATA."""
    if not re.match(r"^0x[0-9a-fA-F]{8}", data):
        _output_error(
            DataError(
                f"DATA must start with 0x and a 4-byte selector, got {data!r}",
                details={"data": data},
            )
        )

    async def query(fetcher: DataFetcher) -> dict[str, Any]:
        return {"selector": data[:10].lower(), "signature": await fetcher.get_signature(data)}

    _lookup(ctx.obj["config"], query)


@lookup_group.command("label")
@click.argument("address")
@click.option("--chain-id", default=1, type=int, show_default=True)
@click.pass_context
def lookup_label(ctx: click.Context, address: str, chain_id: int) -> None:
    """Community label of ADDRESS (chains 1, 137, 250)."""
    try:
        address = _validate_address(address)
    except ChainsentryError as e:
        _output_error(e)

    async def query(fetcher: DataFetcher) -> dict[str, Any]:
        label = await fetcher.get_label(address, chain_id)
        return {"address": address, "chain_id": chain_id, "label": label}

    _lookup(ctx.obj["config"], query)


# ── Config commands ───────────────────────────────────────────────────────────


@cli.group("config")
def config_group() -> None:
    """Manage chainsentry configuration."""


@config_group.command("init")
@click.option("--force", is_flag=True, help="Overwrite existing config")
@click.pass_context
def config_init(ctx: click.Context, force: bool) -> None:
    """Initialize default config at ~/.chainsentry/config.toml."""
    provided = ctx.obj.get("config_path")
    config_path = Path(provided) if provided else get_default_config_path()

    if config_path.exists() and not force:
        click.echo(
            json.dumps(
                {
                    "status": "already_exists",
                    "config_path": str(config_path),
                    "hint": "Use --force to reinitialize",
                }
            )
        )
        return

    status = "reinitialized" if config_path.exists() else "initialized"
    save_config(ChainsentryConfig(), str(config_path))
    click.echo(json.dumps({"status": status, "config_path": str(config_path)}))


@config_group.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """Set a config value by dotted key path (e.g. rpc.url)."""
    config: ChainsentryConfig = ctx.obj["config"]
    # a file that failed to load must not be overwritten with defaults
    if ctx.obj.get("config_error") is not None:
        _output_error(ctx.obj["config_error"])

    section_name, _, field_name = key.partition(".")
    section = getattr(config, section_name, None) if field_name else None
    if section is None or not hasattr(section, field_name):
        _output_error(ConfigInvalidError(f"Unknown config key: {key!r}", details={"key": key}))

    current = getattr(section, field_name)
    try:
        if isinstance(current, bool):
            typed_value: Any = value.lower() in ("1", "true", "yes")
        elif isinstance(current, int):
            typed_value = int(value)
        elif isinstance(current, float):
            typed_value = float(value)
        elif isinstance(current, list):
            typed_value = [v.strip() for v in value.split(",") if v.strip()]
        else:
            typed_value = value
    except ValueError as e:
        _output_error(ConfigInvalidError(f"Invalid value for {key}: {e}", details={"key": key}))
    setattr(section, field_name, typed_value)

    try:
        validate_config(config)
    except ConfigInvalidError as e:
        _output_error(e)
    save_config(config, ctx.obj.get("config_path"))

    if "api_keys" in field_name:
        display_value: Any = [mask_api_key(k) for k in typed_value]
    else:
        display_value = typed_value
    click.echo(json.dumps({"status": "updated", "key": key, "value": display_value}))


@config_group.command("show")
@click.option("--format", "fmt", type=click.Choice(["json", "table"]), default=None)
@click.pass_context
def config_show(ctx: click.Context, fmt: str | None) -> None:
    """Show current configuration (API keys masked)."""
    config: ChainsentryConfig = ctx.obj["config"]
    fmt = fmt or ctx.obj.get("format", "json")
    if fmt == "jsonl":
        fmt = "json"

    provided = ctx.obj.get("config_path")
    result = {
        "config_path": str(Path(provided) if provided else get_default_config_path()),
        "api": {name: [mask_api_key(k) for k in keys] for name, keys in vars(config.api).items()},
        "rpc": dict(vars(config.rpc)),
        "fetcher": dict(vars(config.fetcher)),
        "bots": dict(vars(config.bots)),
        "database": dict(vars(config.database)),
        "output": dict(vars(config.output)),
    }
    click.echo(format_output(result, fmt))


if __name__ == "__main__":
    cli()
