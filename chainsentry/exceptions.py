"""
Custom exception hierarchy for chainsentry.

Each exception maps to a specific CLI exit code and JSON error_code field.
cli.py catches all ChainsentryError subclasses and formats them as JSON output.

The fetch layer catches these internally and resolves them to per-call
fallback values; only signature lookups let SignatureLookupError escape.

Exit code mapping:
  1 — ChainsentryError (generic CLI error)
  2 — APIError (explorer, RPC, signature database, rate limit)
  3 — NetworkError (timeout, connection refused)
  4 — DataError (invalid address, malformed event, unknown bot)
  5 — ConfigError (missing/malformed config)
  6 — DatabaseError (SQLite failure)
"""


class ChainsentryError(Exception):
    """Base exception for all chainsentry errors."""

    exit_code: int = 1
    error_code: str = "unknown_error"

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class APIError(ChainsentryError):
    """Upstream API returned an error response."""

    exit_code = 2
    error_code = "api_error"


class ExplorerError(APIError):
    """Block explorer answered with a soft-failure message (NOTOK, Query Timeout, ...)."""

    error_code = "explorer_error"


class RPCError(APIError):
    """JSON-RPC node returned an error object or an unexpected payload."""

    error_code = "rpc_error"


class SignatureLookupError(APIError):
    """Function signature database could not be reached after all retries."""

    error_code = "signature_lookup_failed"


class RateLimitError(APIError):
    """API rate limit exceeded."""

    error_code = "rate_limited"

    def __init__(self, message: str, retry_after: int = 60, **kwargs) -> None:
        super().__init__(message, details={"retry_after_seconds": retry_after})
        self.retry_after = retry_after


class NetworkError(ChainsentryError):
    """Network connectivity issue — timeout or connection failure."""

    exit_code = 3
    error_code = "network_error"


class NetworkTimeoutError(NetworkError):
    """Request timed out."""

    error_code = "network_timeout"


class ConnectionFailedError(NetworkError):
    """Could not connect to API endpoint."""

    error_code = "connection_failed"


class DataError(ChainsentryError):
    """Data validation error."""

    exit_code = 4
    error_code = "data_error"


class InvalidAddressError(DataError):
    """Address is not 0x + 40 hex chars."""

    error_code = "invalid_address"


class InvalidEventError(DataError):
    """Transaction event JSON could not be parsed."""

    error_code = "invalid_event"


class UnknownBotError(DataError):
    """Requested bot name is not registered."""

    error_code = "unknown_bot"


class ConfigError(ChainsentryError):
    """Config file is missing or malformed."""

    exit_code = 5
    error_code = "config_error"


class ConfigMissingError(ConfigError):
    """Config file does not exist; user should run `chainsentry config init`."""

    error_code = "config_missing"


class ConfigInvalidError(ConfigError):
    """Config file exists but contains invalid TOML or invalid values."""

    error_code = "config_invalid"


class DatabaseError(ChainsentryError):
    """SQLite operation failed."""

    exit_code = 6
    error_code = "db_error"
