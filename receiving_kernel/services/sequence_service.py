"""
Named counters for reception document numbers.

A reception number is allocated from a row in ``sequence_counters`` that is
locked with ``SELECT ... FOR UPDATE`` for the rest of the caller's
transaction.  Two submissions against the same counter therefore serialize
on that row, and a rolled-back submission hands its value back.

Counting ``receptions`` and adding one is not an alternative: two
transactions can read the same count and produce the same number.

The service never commits; the reconciliation service owns the transaction.
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from receiving_kernel.db.base import Base
from receiving_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """Last value handed out for one named sequence."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


def format_sequence_number(prefix: str, value: int, padding: int = 6) -> str:
    """
    >>> format_sequence_number("REC-", 42)
    'REC-000042'
    """
    return f"{prefix}{value:0{padding}d}"


class SequenceService:
    """
    Allocates values from named counters inside the caller's transaction.

    Usage:
        number = SequenceService(session).next_value("reception")
    """

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, name: str) -> SequenceCounter | None:
        stmt = (
            select(SequenceCounter)
            .where(SequenceCounter.name == name)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self._session.execute(stmt).scalar_one_or_none()

    def _create_counter(self, name: str) -> SequenceCounter:
        """
        Insert a zeroed counter row, or lock the one a concurrent
        transaction inserted first.
        """
        savepoint = self._session.begin_nested()
        counter = SequenceCounter(name=name, current_value=0)
        self._session.add(counter)
        try:
            self._session.flush()
        except IntegrityError:
            savepoint.rollback()
            logger.debug("sequence_counter_created_elsewhere", extra={"sequence_name": name})
            existing = self._locked_counter(name)
            if existing is None:
                raise
            return existing
        savepoint.commit()
        logger.info("sequence_counter_created", extra={"sequence_name": name})
        return counter

    def next_value(self, sequence_name: str) -> int:
        """
        Increment ``sequence_name`` and return the new value (1 on first use).

        The counter row stays locked until the caller commits or rolls back.
        """
        counter = self._locked_counter(sequence_name) or self._create_counter(sequence_name)
        counter.current_value += 1
        self._session.flush()

        value = counter.current_value
        logger.debug("sequence_allocated", extra={"sequence_name": sequence_name, "value": value})
        return value

    def current_value(self, sequence_name: str) -> int | None:
        """Last allocated value, or None when the sequence was never used."""
        return self._session.execute(
            select(SequenceCounter.current_value).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
