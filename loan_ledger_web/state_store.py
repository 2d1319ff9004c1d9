"""Persistence layer for the servicing state.

The whole state (loans, payments, draws and UI settings) is stored as one
JSON document in a single-row ``app_state`` table. It defaults to SQLite for
local development, but accepts any SQLAlchemy-compatible URL (e.g.
PostgreSQL/MySQL).
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from sqlalchemy import Column, DateTime, Integer, Text, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from loan_ledger.logging_config import get_logger

from .default_state import build_default_state

Base = declarative_base()
logger = get_logger(__name__)

STATE_ROW_ID = 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AppStateModel(Base):
    __tablename__ = "app_state"

    id = Column(Integer, primary_key=True)
    data = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)


class StateStore:
    """Database-backed state document."""

    def __init__(self, url: str, *, default_factory: Callable[[], Dict[str, Any]] = build_default_state) -> None:
        engine_kwargs: Dict[str, Any] = {"future": True}
        if url.startswith("sqlite") and ":memory:" in url:
            # one shared connection, or every session sees a new empty database
            engine_kwargs.update(connect_args={"check_same_thread": False}, poolclass=StaticPool)
        self._engine = create_engine(url, **engine_kwargs)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)
        self._default_factory = default_factory

    def get_state(self) -> Optional[Dict[str, Any]]:
        with self._session_factory() as session:
            row = session.get(AppStateModel, STATE_ROW_ID)
            if row is None:
                return None
            return json.loads(row.data)

    def save_state(self, state: Dict[str, Any]) -> None:
        payload = json.dumps(state)
        with self._session_factory() as session:
            row = session.get(AppStateModel, STATE_ROW_ID)
            if row is None:
                session.add(AppStateModel(id=STATE_ROW_ID, data=payload))
            else:
                row.data = payload
                row.updated_at = _utcnow()
            session.commit()
        logger.debug("State saved (%d bytes)", len(payload))

    def ensure_default_state(self) -> Dict[str, Any]:
        """Return the stored state, seeding the sample state on first use."""
        state = self.get_state()
        if state is None:
            state = self._default_factory()
            self.save_state(state)
            logger.info("Seeded default state with %d loan(s)", len(state.get("loans", [])))
        return state


def create_store_from_env(url: Optional[str], **kwargs: Any) -> StateStore:
    return StateStore(url or "sqlite:///loan_ledger.sqlite3", **kwargs)
