"""Ledger engine configuration.

Values default to the thresholds the bookkeeping rules were designed
around. Each can be overridden through a ``LEDGERKIT_*`` environment
variable, e.g. ``LEDGERKIT_ACCEPTANCE_THRESHOLD=0.8``.
"""

import os
from dataclasses import dataclass, fields, replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Mapping, Optional

ENV_PREFIX = "LEDGERKIT_"

DEFAULT_STOP_WORDS = (
    "the",
    "and",
    "for",
    "with",
    "from",
    "this",
    "that",
    "payment",
    "transaction",
)


@dataclass(frozen=True)
class LedgerConfig:
    """Tunable thresholds for the ledger core."""

    balance_tolerance: Decimal = Decimal("0.01")
    acceptance_threshold: float = 0.7
    large_transaction_threshold: Decimal = Decimal("100000")
    low_balance_threshold: Decimal = Decimal("10000")
    date_warning_days: int = 365
    default_rule_confidence: float = 0.8
    learned_rule_confidence: float = 0.6
    learning_boost: float = 0.1
    due_horizon_days: int = 7
    lock_timeout_seconds: float = 10.0
    entry_number_prefix: str = "JE"
    default_currency: str = "USD"
    stop_words: tuple[str, ...] = DEFAULT_STOP_WORDS


def _coerce(raw: str, current: object) -> object:
    if isinstance(current, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(current, Decimal):
        try:
            return Decimal(raw.strip())
        except InvalidOperation as e:
            raise ValueError(f"Invalid decimal value '{raw}'") from e
    if isinstance(current, int):
        return int(raw.strip())
    if isinstance(current, float):
        return float(raw.strip())
    if isinstance(current, tuple):
        return tuple(word.strip().lower() for word in raw.split(",") if word.strip())
    return raw.strip()


def load_config(environ: Optional[Mapping[str, str]] = None) -> LedgerConfig:
    """Build a LedgerConfig from defaults plus environment overrides.

    Args:
        environ: Mapping to read overrides from (defaults to os.environ)

    Returns:
        LedgerConfig instance

    Raises:
        ValueError: If an override cannot be parsed
    """
    if environ is None:
        environ = os.environ

    config = LedgerConfig()
    overrides = {}
    for f in fields(LedgerConfig):
        key = ENV_PREFIX + f.name.upper()
        if key in environ:
            overrides[f.name] = _coerce(environ[key], getattr(config, f.name))
    return replace(config, **overrides)


def default_database_path(environ: Optional[Mapping[str, str]] = None) -> str:
    """Return the SQLite database path.

    Checks LEDGERKIT_DB_PATH, then defaults to ~/.ledgerkit/ledgerkit.db
    """
    if environ is None:
        environ = os.environ

    database_path = environ.get("LEDGERKIT_DB_PATH")
    if database_path is None:
        db_dir = Path.home() / ".ledgerkit"
        db_dir.mkdir(exist_ok=True)
        database_path = str(db_dir / "ledgerkit.db")
    return database_path
