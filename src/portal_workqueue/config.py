# src/portal_workqueue/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Tests build their own settings object instead of reading the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "PORTAL"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path
    log_dir: Path

    # ---- Payments ----
    preferred_currency: str
    offline_wallet_sats: int

    # ---- Connector / startup flags ----
    console_enabled: bool
    drain_on_startup: bool
    headless: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "portal") or "portal"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/portal"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "portal.sqlite3")
        log_dir = _env_path(_k("LOG_DIR"), data_dir)

        preferred_currency = (_env(_k("PREFERRED_CURRENCY"), "USD").strip() or "USD").upper()
        offline_wallet_sats = _env_int(_k("OFFLINE_WALLET_SATS"), 100_000)

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)
        drain_on_startup = _env_bool(_k("DRAIN_ON_STARTUP"), True)
        # Headless: nobody can answer prompts, so they become notifications.
        headless = _env_bool(_k("HEADLESS"), not console_enabled)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            db_path=db_path,
            log_dir=log_dir,
            preferred_currency=preferred_currency,
            offline_wallet_sats=offline_wallet_sats,
            console_enabled=console_enabled,
            drain_on_startup=drain_on_startup,
            headless=headless,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        load_dotenv(override=False)
        _SETTINGS = Settings.from_env()
    return _SETTINGS
