"""
Config loading for chainsentry.

Sources (in precedence order, highest first):
  1. Environment variables (CHAINSENTRY_*)
  2. ~/.chainsentry/config.toml
  3. Built-in defaults

Explorer API keys are lists; in environment variables they are
comma-separated (CHAINSENTRY_ETHERSCAN_API_KEYS="key1,key2").

Usage:
    from chainsentry.config import load_config
    config = load_config()
    print(config.rpc.url)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import toml

from chainsentry.exceptions import ConfigInvalidError

# Default config directory and file
DEFAULT_CONFIG_DIR = Path.home() / ".chainsentry"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.toml"


def _key_list(value: str) -> list[str]:
    return [k.strip() for k in value.split(",") if k.strip()]


def _bool(value: str) -> bool:
    return value.lower() in ("1", "true", "yes")


# Environment variable → config key mapping
# Format: (env_var_name, dotted_config_path, type_converter)
_ENV_OVERRIDES: list[tuple[str, str, object]] = [
    ("CHAINSENTRY_ETHERSCAN_API_KEYS", "api.etherscan_api_keys", _key_list),
    ("CHAINSENTRY_OPTIMISTIC_ETHERSCAN_API_KEYS", "api.optimistic_etherscan_api_keys", _key_list),
    ("CHAINSENTRY_BSCSCAN_API_KEYS", "api.bscscan_api_keys", _key_list),
    ("CHAINSENTRY_POLYGONSCAN_API_KEYS", "api.polygonscan_api_keys", _key_list),
    ("CHAINSENTRY_FANTOMSCAN_API_KEYS", "api.fantomscan_api_keys", _key_list),
    ("CHAINSENTRY_ARBISCAN_API_KEYS", "api.arbiscan_api_keys", _key_list),
    ("CHAINSENTRY_SNOWTRACE_API_KEYS", "api.snowtrace_api_keys", _key_list),
    ("CHAINSENTRY_RPC_URL", "rpc.url", str),
    ("CHAINSENTRY_RPC_TIMEOUT", "rpc.timeout_seconds", float),
    ("CHAINSENTRY_CHAIN_ID", "rpc.chain_id", int),
    ("CHAINSENTRY_MAX_ATTEMPTS", "fetcher.max_attempts", int),
    ("CHAINSENTRY_RETRY_DELAY", "fetcher.retry_delay_seconds", float),
    ("CHAINSENTRY_FANOUT_CONCURRENCY", "fetcher.fanout_concurrency", int),
    ("CHAINSENTRY_ERROR_BUFFER_SIZE", "fetcher.error_buffer_size", int),
    ("CHAINSENTRY_LABELS_URL", "fetcher.labels_url", str),
    ("CHAINSENTRY_SIGNATURE_DB_URL", "fetcher.signature_db_url", str),
    ("CHAINSENTRY_BOTS", "bots.enabled", _key_list),
    ("CHAINSENTRY_PKC_TRANSFER_THRESHOLD", "bots.pkc_transfer_threshold", int),
    ("CHAINSENTRY_PKC_INTERACTION_CHECKS", "bots.pkc_interaction_checks", _bool),
    ("CHAINSENTRY_DB_PATH", "database.path", str),
    ("CHAINSENTRY_OUTPUT_FORMAT", "output.default_format", str),
    ("CHAINSENTRY_LOG_LEVEL", "output.log_level", str),
]

VALID_FORMATS = {"json", "jsonl", "table"}
VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class APIConfig:
    """Block explorer API keys, one list per explorer family."""

    etherscan_api_keys: list[str] = field(default_factory=list)
    optimistic_etherscan_api_keys: list[str] = field(default_factory=list)
    bscscan_api_keys: list[str] = field(default_factory=list)
    polygonscan_api_keys: list[str] = field(default_factory=list)
    fantomscan_api_keys: list[str] = field(default_factory=list)
    arbiscan_api_keys: list[str] = field(default_factory=list)
    snowtrace_api_keys: list[str] = field(default_factory=list)


@dataclass
class RPCConfig:
    """JSON-RPC node connection."""

    url: str = "https://cloudflare-eth.com"
    timeout_seconds: float = 30.0
    chain_id: int = 1


@dataclass
class FetcherConfig:
    """Retry policy, cache capacities and remote endpoints of the DataFetcher."""

    max_attempts: int = 3
    retry_delay_seconds: float = 1.0
    eoa_cache_size: int = 50_000
    code_cache_size: int = 10_000
    nonce_cache_size: int = 50_000
    signature_cache_size: int = 10_000
    owner_cache_size: int = 10_000
    error_buffer_size: int = 1_000
    fanout_concurrency: int = 10
    to_tx_count_threshold: int = 2_000
    from_tx_count_threshold: int = 9_999
    signature_db_url: str = (
        "https://raw.githubusercontent.com/ethereum-lists/4bytes/master/signatures/"
    )
    labels_url: str = "https://api.forta.network/labels/state"


@dataclass
class BotsConfig:
    """Which bots run, and their per-bot knobs."""

    enabled: list[str] = field(
        default_factory=lambda: [
            "large-position",
            "lottery-addresses",
            "auto-cake-admin",
            "curve-claim-many",
            "private-key-compromise",
            "native-ice-phishing",
        ]
    )
    pkc_transfer_threshold: int = 3          # alert when victims > this
    pkc_interaction_checks: bool = True
    nip_tx_count_threshold: int = 500        # receiver nonce ceiling for NIP-1
    lottery_address: str = "0x5af6d33de2ccec94efb1bdf8f92bd58085432d2c"
    auto_cake_address: str = "0xa80240eb5d7e05d3f250cf000eec0891d00b51cc"
    claim_many_address: str = "0xa464e6dcda8ac41e03616f95f4bc98a13b8922dc"
    claim_many_alert_id: str = "CURVE-CLAIM-MANY"


@dataclass
class DatabaseConfig:
    """SQLite bot state store."""

    path: str = str(DEFAULT_CONFIG_DIR / "state.db")


@dataclass
class OutputConfig:
    """Output formatting and logging defaults."""

    default_format: str = "jsonl"       # json | jsonl | table
    log_level: str = "WARNING"


@dataclass
class ChainsentryConfig:
    """Full configuration object. Passed via Click context to all commands."""

    api: APIConfig = field(default_factory=APIConfig)
    rpc: RPCConfig = field(default_factory=RPCConfig)
    fetcher: FetcherConfig = field(default_factory=FetcherConfig)
    bots: BotsConfig = field(default_factory=BotsConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


def load_config(path: str | None = None) -> ChainsentryConfig:
    """
    Load configuration from TOML file + environment variable overrides.

    Args:
        path: Override config file path. If None, uses CHAINSENTRY_CONFIG_PATH
              env var or default (~/.chainsentry/config.toml).

    Returns:
        ChainsentryConfig with all values resolved.

    Raises:
        ConfigInvalidError: Config file exists but is invalid TOML or values.
    """
    config_path = _resolve_config_path(path)

    raw: dict = {}
    if config_path.exists():
        try:
            raw = toml.load(str(config_path))
        except toml.TomlDecodeError as e:
            raise ConfigInvalidError(f"Invalid TOML in {config_path}: {e}") from e

    config = _dict_to_config(raw)
    _apply_env_overrides(config)
    validate_config(config)

    return config


def save_config(config: ChainsentryConfig, path: str | None = None) -> Path:
    """
    Serialize ChainsentryConfig to TOML and write to disk.

    Returns the path where config was written.
    """
    config_path = _resolve_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    data = {
        "api": dict(vars(config.api)),
        "rpc": dict(vars(config.rpc)),
        "fetcher": dict(vars(config.fetcher)),
        "bots": dict(vars(config.bots)),
        "database": dict(vars(config.database)),
        "output": dict(vars(config.output)),
    }

    with open(config_path, "w") as f:
        toml.dump(data, f)

    return config_path


def get_default_config_path() -> Path:
    """Return the default config file path."""
    return DEFAULT_CONFIG_PATH


# ──────────────────────────────────────────────────────────────
# Private helpers
# ──────────────────────────────────────────────────────────────


def _resolve_config_path(path: str | None) -> Path:
    if path:
        return Path(path).expanduser()
    env_path = os.environ.get("CHAINSENTRY_CONFIG_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH


def _fill_section(section: object, values: dict, section_name: str) -> None:
    """Copy known keys from a TOML table onto a config dataclass, coercing to the default's type."""
    for key, value in values.items():
        if not hasattr(section, key):
            continue
        current = getattr(section, key)
        try:
            if isinstance(current, bool):
                value = _bool(value) if isinstance(value, str) else bool(value)
            elif isinstance(current, int):
                value = int(value)
            elif isinstance(current, float):
                value = float(value)
            elif isinstance(current, list):
                value = _key_list(value) if isinstance(value, str) else [str(v) for v in value]
            else:
                value = str(value)
        except (ValueError, TypeError) as e:
            raise ConfigInvalidError(
                f"Invalid value for {section_name}.{key}={value!r}: {e}"
            ) from e
        setattr(section, key, value)


def _dict_to_config(raw: dict) -> ChainsentryConfig:
    """Build ChainsentryConfig from raw TOML dict, applying defaults for missing keys."""
    config = ChainsentryConfig()
    for section_name in ("api", "rpc", "fetcher", "bots", "database", "output"):
        _fill_section(getattr(config, section_name), raw.get(section_name, {}), section_name)
    return config


def _apply_env_overrides(config: ChainsentryConfig) -> None:
    """Apply environment variable overrides to a loaded config."""
    for env_var, dotted_key, converter in _ENV_OVERRIDES:
        val = os.environ.get(env_var)
        if val is None:
            continue
        section, key = dotted_key.split(".", 1)
        section_obj = getattr(config, section)
        try:
            setattr(section_obj, key, converter(val))  # type: ignore[operator]
        except (ValueError, TypeError) as e:
            raise ConfigInvalidError(
                f"Invalid value for {env_var}={val!r}: {e}"
            ) from e


def validate_config(config: ChainsentryConfig) -> None:
    """Validate config values. Raises ConfigInvalidError on invalid values."""
    if config.fetcher.max_attempts < 1:
        raise ConfigInvalidError(
            f"fetcher.max_attempts must be >= 1, got {config.fetcher.max_attempts}"
        )
    if config.fetcher.retry_delay_seconds < 0:
        raise ConfigInvalidError(
            f"fetcher.retry_delay_seconds must be non-negative, "
            f"got {config.fetcher.retry_delay_seconds}"
        )
    for name in (
        "eoa_cache_size",
        "code_cache_size",
        "nonce_cache_size",
        "signature_cache_size",
        "owner_cache_size",
        "error_buffer_size",
        "fanout_concurrency",
    ):
        if getattr(config.fetcher, name) < 1:
            raise ConfigInvalidError(f"fetcher.{name} must be >= 1")
    if config.output.default_format not in VALID_FORMATS:
        raise ConfigInvalidError(
            f"output.default_format must be one of {VALID_FORMATS}, "
            f"got {config.output.default_format!r}"
        )
    config.output.log_level = config.output.log_level.upper()
    if config.output.log_level not in VALID_LOG_LEVELS:
        raise ConfigInvalidError(
            f"output.log_level must be one of {VALID_LOG_LEVELS}, "
            f"got {config.output.log_level!r}"
        )
