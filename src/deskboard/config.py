# src/deskboard/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Nothing is read at import time except .env loading.
- Tests pass their own settings object instead of calling get_settings().
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "DESKBOARD"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


# Local .env only fills variables that are not already set.
load_dotenv(override=False)


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


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
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
    console_enabled: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path
    images_dir: Path

    # ---- Layout ----
    free_slot_columns: int
    free_slot_width: int
    free_slot_height: int
    structured_column_width: float

    # ---- Background sweep ----
    deadline_sweep_seconds: float

    # ---- Holidays ----
    holidays_enabled: bool
    holiday_country: str
    holiday_api_url: str
    holiday_timeout_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/deskboard"))

        return Settings(
            app_name=_env(_k("APP_NAME"), "deskboard"),
            log_level=_env(_k("LOG_LEVEL"), "INFO"),
            console_enabled=_env_bool(_k("CONSOLE_ENABLED"), True),
            data_dir=data_dir,
            db_path=_env_path(_k("DB_PATH"), data_dir / "workspace.sqlite3"),
            images_dir=_env_path(_k("IMAGES_DIR"), data_dir / "todo-images"),
            free_slot_columns=max(1, _env_int(_k("FREE_SLOT_COLUMNS"), 10)),
            free_slot_width=max(1, _env_int(_k("FREE_SLOT_WIDTH"), 16)),
            free_slot_height=max(1, _env_int(_k("FREE_SLOT_HEIGHT"), 12)),
            structured_column_width=max(1.0, _env_float(_k("STRUCTURED_COLUMN_WIDTH"), 16.0)),
            deadline_sweep_seconds=max(1.0, _env_float(_k("DEADLINE_SWEEP_SECONDS"), 60.0)),
            holidays_enabled=_env_bool(_k("HOLIDAYS_ENABLED"), False),
            holiday_country=_env(_k("HOLIDAY_COUNTRY"), "US").strip().upper() or "US",
            holiday_api_url=_env(_k("HOLIDAY_API_URL"), "https://date.nager.at/api/v3"),
            holiday_timeout_seconds=_env_float(_k("HOLIDAY_TIMEOUT_SECONDS"), 5.0),
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
