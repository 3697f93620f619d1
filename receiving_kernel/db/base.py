"""
Declarative base and column conventions for the receiving tables.

    - Primary keys are uuid4 values stored as 36-character strings, so the
      same schema runs on SQLite and PostgreSQL.
    - ``Decimal`` annotations become ``Numeric(38, 9)``; quantities and
      prices are never floats.
    - ``datetime`` annotations become ``UTCDateTime``, which always hands
      back an aware UTC value.  SQLite drops offsets on the way in.
    - Actor ids are opaque strings from the (already authenticated) caller.

Nothing in here imports from services, selectors or modules.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UUIDString(TypeDecorator):
    """``uuid.UUID`` in Python, ``VARCHAR(36)`` in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else PyUUID(value)


class UTCDateTime(TypeDecorator):
    """Timestamp column that reads and writes aware UTC datetimes only."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return _as_utc(value)

    def process_result_value(self, value, dialect):
        return _as_utc(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: UTCDateTime(),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Adds who/when columns.

    ``created_at`` falls back to the database clock; services that run on an
    injected ``Clock`` assign it explicitly.  ``created_by_id`` is required.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())
    created_by_id: Mapped[str] = mapped_column(String(100))
    updated_by_id: Mapped[str | None] = mapped_column(String(100))


UUID = PyUUID
