"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

from .data_models import AccrualConvention

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class BaseConfig:
    """Configuration shared by the CLI and the web layer."""

    APP_NAME = "loan-ledger"
    DB_FILENAME = "loan_ledger.sqlite3"
    TESTING = False

    def __init__(self) -> None:
        self.SECRET_KEY = os.getenv("LOAN_LEDGER_SECRET_KEY", "dev-secret-key")
        self.DEV_MODE = _env_bool("LOAN_LEDGER_DEV_MODE", default=True)
        self.DATA_DIR = self._resolve_data_dir()
        self.DATABASE_URL = os.getenv("LOAN_LEDGER_DATABASE_URL", self._build_sqlite_url())
        self.ACCRUAL = AccrualConvention.parse(os.getenv("LOAN_LEDGER_ACCRUAL", "30/360"))
        self.LOG_TO_FILE = _env_bool("LOAN_LEDGER_LOG_TO_FILE", default=True)
        if not self.DEV_MODE and self.SECRET_KEY == "dev-secret-key":
            raise ValueError("LOAN_LEDGER_SECRET_KEY must be set in non-dev mode.")

    def _resolve_data_dir(self) -> Path:
        """Return the directory holding the state database and logs."""

        path = Path(os.getenv("LOAN_LEDGER_DATA_DIR", "instance")).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _build_sqlite_url(self) -> str:
        return f"sqlite:///{(self.DATA_DIR / self.DB_FILENAME).as_posix()}"


class TestConfig(BaseConfig):
    """In-memory database and no log files; used by the test suite."""

    TESTING = True

    def __init__(self) -> None:
        super().__init__()
        self.DATABASE_URL = "sqlite:///:memory:"
        self.LOG_TO_FILE = False
