"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()


class PostDatePolicy(str, Enum):
    """Which date a posted schedule stamps on the realized transaction."""

    OCCURRENCE = "occurrence"
    NOW = "now"


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        parsed = float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc
    if parsed <= 0:
        raise ValueError(f"{name} must be positive, got {value!r}")
    return parsed


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc
    if parsed <= 0:
        raise ValueError(f"{name} must be positive, got {value!r}")
    return parsed


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "Cashbook"
    DB_FILENAME = "cashbook.db"
    SQLITE_BUSY_TIMEOUT = 5

    def __init__(self) -> None:
        self.DATA_DIR = self._resolve_data_dir()
        self.DEV_MODE = _env_bool("CASHBOOK_DEV_MODE", default=False)
        self.DATABASE_URL = os.getenv("CASHBOOK_DATABASE_URL", self._build_sqlite_url())
        self.LOCK_TIMEOUT = _env_float("CASHBOOK_LOCK_TIMEOUT", 5.0)
        self.DUE_BATCH_SIZE = _env_int("CASHBOOK_DUE_BATCH_SIZE", 50)
        raw_policy = os.getenv("CASHBOOK_POST_DATE_POLICY", PostDatePolicy.OCCURRENCE.value)
        try:
            self.POST_DATE_POLICY = PostDatePolicy(raw_policy.strip().lower())
        except ValueError as exc:
            allowed = ", ".join(p.value for p in PostDatePolicy)
            raise ValueError(
                f"CASHBOOK_POST_DATE_POLICY must be one of {allowed}, got {raw_policy!r}"
            ) from exc

    def _resolve_data_dir(self) -> Path:
        """Return the directory where the SQLite file and logs live."""

        data_root = os.getenv("CASHBOOK_DATA_DIR", "instance")
        path = Path(data_root).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _build_sqlite_url(self) -> str:
        return f"sqlite:///{self.DATA_DIR / self.DB_FILENAME}"

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLModel to consume."""

        if not self.is_sqlite:
            return {"pool_pre_ping": True}
        connect_args: dict[str, Any] = {
            "check_same_thread": False,
            "timeout": self.SQLITE_BUSY_TIMEOUT,
        }
        return {"connect_args": connect_args}


class DevConfig(BaseConfig):
    """Development configuration using local SQLite."""

    DEBUG = True
    TESTING = False

    def __init__(self) -> None:
        super().__init__()
        self.DEV_MODE = True


class TestConfig(BaseConfig):
    """Configuration used by the test-suite app factory."""

    DEBUG = False
    TESTING = True
    SQLITE_BUSY_TIMEOUT = 1


__all__ = ["BaseConfig", "DevConfig", "PostDatePolicy", "TestConfig"]
