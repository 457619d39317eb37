"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_millis(name: str, default: int) -> float:
    """Read a millisecond duration from the environment and return seconds."""

    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default / 1000.0
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer number of milliseconds, got {raw!r}") from exc
    if value < 0:
        raise ValueError(f"{name} must not be negative")
    return value / 1000.0


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "Treasury"
    DB_FILENAME = "treasury.db"
    SELECTION_DEBOUNCE_MS = 350
    DESELECTION_DEBOUNCE_MS = 200

    def __init__(self) -> None:
        self.DATA_DIR = self._resolve_data_dir()
        self.DEV_MODE = _env_bool("TREASURY_DEV_MODE", default=True)
        self.DATABASE_URL = os.getenv("TREASURY_DATABASE_URL", self._build_sqlite_url())
        self.SELECTION_DEBOUNCE = _env_millis(
            "TREASURY_SELECTION_DEBOUNCE_MS", self.SELECTION_DEBOUNCE_MS
        )
        self.DESELECTION_DEBOUNCE = _env_millis(
            "TREASURY_DESELECTION_DEBOUNCE_MS", self.DESELECTION_DEBOUNCE_MS
        )

    def _resolve_data_dir(self) -> Path:
        """Return the directory where the SQLite file and logs live."""

        data_root = os.getenv("TREASURY_DATA_DIR", "instance")
        path = Path(data_root).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _build_sqlite_url(self) -> str:
        db_path = self.DATA_DIR / self.DB_FILENAME
        return f"sqlite:///{db_path}"

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLModel to consume."""

        if self.DATABASE_URL.startswith("sqlite"):
            # Debounced selection callbacks touch the engine from the scheduler thread.
            return {"connect_args": {"check_same_thread": False}}
        return {}


class DevConfig(BaseConfig):
    """Development configuration using local SQLite."""

    DEBUG = True
    TESTING = False
