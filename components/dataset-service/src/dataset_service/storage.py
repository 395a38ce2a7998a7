"""Persistence of dataset override records."""

from __future__ import annotations

import os
import threading
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, cast
from typing import Protocol as TypingProtocol

from sqlalchemy import Column, Text, text, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlmodel import Field, Session, SQLModel, col, create_engine, select


class DatasetOverride(SQLModel, table=True):
    """Admin-supplied alternate dataset bundle."""

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(max_length=255)
    description: str = Field(default="")
    json_text: str = Field(sa_column=Column(Text, nullable=False))
    is_active: bool = Field(default=False, index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), index=True
    )
    created_by_id: str | None = None


class OverrideStore(TypingProtocol):
    """Persistence contract needed by the override manager."""

    def create(
        self,
        *,
        name: str,
        description: str,
        json_text: str,
        created_by_id: str | None,
    ) -> DatasetOverride: ...

    def list_all(self) -> list[DatasetOverride]: ...

    def get(self, override_id: int) -> DatasetOverride | None: ...

    def get_active(self) -> DatasetOverride | None: ...

    def activate_exclusive(self, override_id: int) -> DatasetOverride | None: ...

    def deactivate(self, override_id: int) -> DatasetOverride | None: ...

    def delete(self, override_id: int) -> bool: ...


DEFAULT_DB_PATH = Path(__file__).resolve().parents[2] / ".data" / "dataset_service.db"


def _database_url() -> str:
    return (
        os.getenv("DATABASE_URL")
        or os.getenv("DATASET_SERVICE_DB_URL")
        or f"sqlite:///{DEFAULT_DB_PATH}"
    )


def create_db_engine(url: str) -> Engine:
    """Create an engine; SQLite connections may be shared across threads."""
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


@lru_cache
def get_engine() -> Engine:
    """Create or return the cached database engine."""
    if "DATABASE_URL" not in os.environ and "DATASET_SERVICE_DB_URL" not in os.environ:
        DEFAULT_DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    return create_db_engine(_database_url())


def init_db(engine: Engine | None = None) -> None:
    """Initialize the database tables."""
    _ = DatasetOverride
    try:
        SQLModel.metadata.create_all(engine or get_engine())
    except OperationalError:
        # Tables may already exist (parallel test workers).
        pass


def reset_storage() -> None:
    """Clear all stored overrides (used for tests and demos)."""
    if os.getenv("ALLOW_STORAGE_RESET") != "1":
        raise RuntimeError(
            "reset_storage() requires ALLOW_STORAGE_RESET=1 environment variable. "
            "This function destroys all data and should only be used in tests."
        )
    _ = DatasetOverride
    get_engine.cache_clear()
    engine = get_engine()
    try:
        SQLModel.metadata.drop_all(engine)
    except OperationalError:
        pass
    init_db(engine)


class OverrideStorage:
    """Repository wrapper around SQLModel sessions for override records."""

    def __init__(self, engine: Engine) -> None:
        """Initialize the storage with a database engine."""
        self._engine = engine
        self._activation_lock = threading.Lock()

    def create(
        self,
        *,
        name: str,
        description: str,
        json_text: str,
        created_by_id: str | None = None,
    ) -> DatasetOverride:
        """Persist an inactive override and return it."""
        with Session(self._engine) as session:
            record = DatasetOverride(
                name=name,
                description=description,
                json_text=json_text,
                is_active=False,
                created_by_id=created_by_id,
            )
            session.add(record)
            session.commit()
            session.refresh(record)
            return record

    def list_all(self) -> list[DatasetOverride]:
        """List overrides, newest first."""
        with Session(self._engine) as session:
            statement = select(DatasetOverride).order_by(
                col(DatasetOverride.created_at).desc(), col(DatasetOverride.id).desc()
            )
            return list(session.exec(statement))

    def get(self, override_id: int) -> DatasetOverride | None:
        """Fetch an override by ID."""
        with Session(self._engine) as session:
            return session.get(DatasetOverride, override_id)

    def get_active(self) -> DatasetOverride | None:
        """Fetch the active override, if any."""
        with Session(self._engine) as session:
            statement = (
                select(DatasetOverride)
                .where(col(DatasetOverride.is_active).is_(True))
                .order_by(col(DatasetOverride.id).desc())
            )
            return session.exec(statement).first()

    def activate_exclusive(self, override_id: int) -> DatasetOverride | None:
        """Deactivate every override and activate one, in a single transaction.

        All override rows are locked (``SELECT ... FOR UPDATE``) before the
        bulk deactivation so concurrent activations serialize and the last
        commit wins. SQLite ignores the row lock and relies on its single
        writer; the in-process lock keeps threads from contending for it.

        Returns:
            The activated record, or None if it does not exist.
        """
        with self._activation_lock, Session(self._engine) as session:
            session.exec(select(DatasetOverride.id).with_for_update()).all()
            target = session.get(DatasetOverride, override_id)
            if target is None:
                session.rollback()
                return None
            session.exec(
                cast(
                    Any,
                    update(DatasetOverride)
                    .where(col(DatasetOverride.is_active).is_(True))
                    .where(col(DatasetOverride.id) != override_id)
                    .values(is_active=False)
                    .execution_options(synchronize_session=False),
                )
            )
            target.is_active = True
            session.add(target)
            session.commit()
            session.refresh(target)
            return target

    def deactivate(self, override_id: int) -> DatasetOverride | None:
        """Mark an override inactive."""
        with Session(self._engine) as session:
            record = session.get(DatasetOverride, override_id)
            if record is None:
                return None
            record.is_active = False
            session.add(record)
            session.commit()
            session.refresh(record)
            return record

    def delete(self, override_id: int) -> bool:
        """Delete an override; returns False if it did not exist."""
        with Session(self._engine) as session:
            record = session.get(DatasetOverride, override_id)
            if record is None:
                return False
            session.delete(record)
            session.commit()
            return True

    def ping(self) -> None:
        """Run a trivial query; raises SQLAlchemyError if the database is down."""
        with self._engine.connect() as connection:
            connection.execute(text("SELECT 1"))
