"""Wallet settings from environment variables and an optional .env file."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from dotenv import dotenv_values

from .mint import validate_mint_url
from .selectors import SELECTORS

MINT_URL_ENV_VAR = "NUTPOUCH_MINT_URL"
MINTS_ENV_VAR = "CASHU_MINTS"

DEFAULT_UNIT = "usd"
DEFAULT_SELECTOR = "smallest"
DEFAULT_WALLET_FILE = "~/.nutpouch/proofs.json"
DEFAULT_HEALTH_TIMEOUT_MS = 5000

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class WalletSettings:
    mint_url: str | None
    unit: str = DEFAULT_UNIT
    selector: str = DEFAULT_SELECTOR
    wallet_file: Path = Path(DEFAULT_WALLET_FILE).expanduser()
    history_file: Path | None = None
    health_timeout_ms: int = DEFAULT_HEALTH_TIMEOUT_MS
    debug: bool = False


def read_env(env_file: str | os.PathLike[str] | None = ".env") -> dict[str, str]:
    """Merge ``env_file`` values with the process environment.

    Process environment variables win over the file.
    """
    values: dict[str, str] = {}
    if env_file is not None and Path(env_file).exists():
        values.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
    values.update(os.environ)
    return values


def get_mints_from_env(env: Mapping[str, str] | None = None) -> list[str]:
    """Get mint URLs from CASHU_MINTS.

    Expected format: comma-separated URLs
    Example: CASHU_MINTS="https://mint1.com,https://mint2.com"

    Returns:
        List of mint URLs, empty list if not set
    """
    if env is None:
        env = read_env()
    raw = env.get(MINTS_ENV_VAR, "")
    mints = [mint.strip().rstrip("/") for mint in raw.split(",")]
    # Filter out empty strings and remove duplicates while preserving order
    return list(dict.fromkeys(mint for mint in mints if mint))


def load_settings(
    env_file: str | os.PathLike[str] | None = ".env",
    *,
    env: Mapping[str, str] | None = None,
) -> WalletSettings:
    """Build settings from NUTPOUCH_* variables.

    Args:
        env_file: .env file to read; None to skip it
        env: Use this mapping instead of the process environment and .env

    Raises:
        ValueError: If a variable holds an invalid value
    """
    if env is None:
        env = read_env(env_file)

    mint_url = env.get(MINT_URL_ENV_VAR, "").strip().rstrip("/") or None
    if mint_url is None:
        mints = get_mints_from_env(env)
        mint_url = mints[0] if mints else None
    if mint_url is not None and not validate_mint_url(mint_url):
        raise ValueError(f"{MINT_URL_ENV_VAR} is not a valid mint URL: {mint_url!r}")

    selector = env.get("NUTPOUCH_SELECTOR", DEFAULT_SELECTOR).strip().lower()
    if selector not in SELECTORS:
        raise ValueError(
            f"NUTPOUCH_SELECTOR must be one of {', '.join(SELECTORS)}, got {selector!r}"
        )

    raw_timeout = env.get("NUTPOUCH_HEALTH_TIMEOUT_MS", str(DEFAULT_HEALTH_TIMEOUT_MS))
    try:
        health_timeout_ms = int(raw_timeout)
    except ValueError:
        raise ValueError(
            f"NUTPOUCH_HEALTH_TIMEOUT_MS must be an integer, got {raw_timeout!r}"
        ) from None
    if health_timeout_ms <= 0:
        raise ValueError("NUTPOUCH_HEALTH_TIMEOUT_MS must be positive")

    history_file = env.get("NUTPOUCH_HISTORY_FILE")

    return WalletSettings(
        mint_url=mint_url,
        unit=env.get("NUTPOUCH_UNIT", DEFAULT_UNIT).strip().lower() or DEFAULT_UNIT,
        selector=selector,
        wallet_file=Path(env.get("NUTPOUCH_WALLET_FILE", DEFAULT_WALLET_FILE)).expanduser(),
        history_file=Path(history_file).expanduser() if history_file else None,
        health_timeout_ms=health_timeout_ms,
        debug=env.get("NUTPOUCH_DEBUG", "false").strip().lower() in ("1", "true", "yes"),
    )


def configure_logging(debug: bool = False) -> None:
    """Set up root logging for command-line use."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
    )
