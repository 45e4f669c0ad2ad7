"""Platform-aware defaults and runtime configuration for mpe."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from platformdirs import user_data_dir
from rich.console import Console
from rich.logging import RichHandler

_DB_FILENAME = "mpe.db"
_APP_NAME = "mpe"

DEFAULT_INPUT_TOKEN_COST = 0.0001
DEFAULT_OUTPUT_TOKEN_COST = 0.0002


def default_db_path() -> Path:
    """Return the platform-appropriate default database path."""
    data_dir = Path(user_data_dir(_APP_NAME))
    return data_dir / _DB_FILENAME


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}.") from None


def token_cost_rates() -> tuple[float, float]:
    """Return (input, output) cost per token, honouring environment overrides."""
    return (
        _float_env("MPE_INPUT_TOKEN_COST", DEFAULT_INPUT_TOKEN_COST),
        _float_env("MPE_OUTPUT_TOKEN_COST", DEFAULT_OUTPUT_TOKEN_COST),
    )


def configure_logging(verbose: bool = False) -> None:
    """Route ``mpe`` log records to stderr through Rich."""
    logger = logging.getLogger("mpe")
    level = logging.DEBUG if verbose else logging.WARNING
    logger.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=Console(stderr=True), show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
