"""Runtime settings for the ledger.

Settings come from environment variables so the same values apply to the
command line and the web API. Every variable is optional.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .engine import FALLBACK_WINDOW_MONTHS

ENV_PREFIX = "INVEST_LEDGER_"
DEFAULT_DATABASE_URL = "sqlite:///cashflows.sqlite3"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _parse_int(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


@dataclass(frozen=True)
class LedgerSettings:
    """Settings shared by the CLI and the web API.

    ``account_for_sells`` switches the cashflow projection from counting BUYs
    only (the historical behavior) to netting out SELLs.
    """

    account_for_sells: bool = False
    fallback_window_months: int = FALLBACK_WINDOW_MONTHS
    database_url: str = DEFAULT_DATABASE_URL
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "LedgerSettings":
        env = os.environ if environ is None else environ
        defaults = cls()

        def get(key: str) -> Optional[str]:
            return env.get(ENV_PREFIX + key)

        account_for_sells = defaults.account_for_sells
        raw = get("ACCOUNT_FOR_SELLS")
        if raw is not None:
            account_for_sells = parse_bool(ENV_PREFIX + "ACCOUNT_FOR_SELLS", raw)

        window = defaults.fallback_window_months
        raw = get("FALLBACK_WINDOW_MONTHS")
        if raw is not None:
            window = _parse_int(ENV_PREFIX + "FALLBACK_WINDOW_MONTHS", raw)

        log_level = (get("LOG_LEVEL") or defaults.log_level).upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise ValueError(f"{ENV_PREFIX}LOG_LEVEL is not a logging level: {log_level}")

        return cls(
            account_for_sells=account_for_sells,
            fallback_window_months=window,
            database_url=get("DATABASE_URL") or defaults.database_url,
            log_level=log_level,
        )


def configure_logging(level: str = "WARNING") -> None:
    """Send log records to stderr with a compact format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
