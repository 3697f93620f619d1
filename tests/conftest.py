"""
Shared fixtures for the receiving test suite.

The database is PostgreSQL when ``DATABASE_URL`` is set and a throwaway
SQLite file otherwise.  Tables are created once per run; tests commit for
real and every row is deleted afterwards.
"""

import json
import logging
import threading
from io import StringIO

import pytest
from sqlalchemy import text

from receiving_kernel.db.base import Base
from receiving_kernel.db.engine import (
    create_tables,
    database_url_from_env,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    is_postgres,
    reset_engine,
)
from receiving_kernel.domain.clock import DeterministicClock
from receiving_kernel.domain.dtos import OrderStatus
from receiving_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from receiving_modules.reception.config import ReceivingConfig
from receiving_modules.reception.events import InMemoryEventPublisher
from receiving_modules.reception.orm import PurchaseOrderModel
from receiving_modules.reception.service import ReconciliationService
from tests.builders import make_order

TEST_ACTOR_ID = "test-actor"


# -- logging ---------------------------------------------------------------


@pytest.fixture(autouse=True, scope="session")
def _debug_logging():
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _fresh_log_context():
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Returns a callable that parses everything logged so far into dicts.

        def test_x(captured_logs, service):
            service.submit_reception(...)
            assert any(r["message"] == "reception_submit_committed" for r in captured_logs())
    """
    buffer = StringIO()
    handler = logging.StreamHandler(buffer)
    handler.setFormatter(StructuredFormatter())
    logger = logging.getLogger("receiving_kernel")
    logger.addHandler(handler)

    def records() -> list[dict]:
        return [json.loads(line) for line in buffer.getvalue().splitlines() if line]

    yield records
    logger.removeHandler(handler)


# -- database --------------------------------------------------------------


@pytest.fixture(scope="session")
def db_engine(tmp_path_factory):
    default_url = f"sqlite:///{tmp_path_factory.mktemp('db') / 'receiving_test.db'}"
    engine = init_engine_from_url(
        database_url_from_env(default=default_url), pool_size=10, max_overflow=10,
    )
    drop_tables()
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


def _delete_all_rows(engine) -> None:
    tables = [table.name for table in reversed(Base.metadata.sorted_tables)]
    with engine.begin() as conn:
        if is_postgres():
            conn.execute(text(f"TRUNCATE {', '.join(tables)} CASCADE"))
        else:
            for name in tables:
                conn.execute(text(f"DELETE FROM {name}"))


@pytest.fixture
def session_factory(db_engine):
    """
    Hands out one session per call, for tests that run workers on threads.
    Every session handed out is closed at teardown.
    """
    make_session = get_session_factory()
    opened = []
    guard = threading.Lock()

    def factory():
        with guard:
            opened.append(make_session())
            return opened[-1]

    yield factory

    for sess in opened:
        sess.rollback()
        sess.close()
    _delete_all_rows(db_engine)


@pytest.fixture
def session(db_engine):
    sess = get_session_factory()()
    yield sess
    sess.rollback()
    sess.close()
    _delete_all_rows(db_engine)


# -- collaborators ---------------------------------------------------------


@pytest.fixture
def test_actor_id() -> str:
    return TEST_ACTOR_ID


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


@pytest.fixture
def receiving_config():
    return ReceivingConfig(retry_backoff_seconds=0)


@pytest.fixture
def publisher():
    return InMemoryEventPublisher()


@pytest.fixture
def service(session, publisher, deterministic_clock, receiving_config) -> ReconciliationService:
    return ReconciliationService(
        session, publisher, clock=deterministic_clock, config=receiving_config,
    )


@pytest.fixture
def create_order(session, test_actor_id):
    """
    Persist a purchase order and return its DTO.

        order = create_order(["100", "50"], unit_prices=["2.50", "10"])
    """

    def create(quantities=("100",), unit_prices=None, status: OrderStatus = OrderStatus.SENT):
        order = make_order(quantities, unit_prices=unit_prices, status=status)
        session.add(PurchaseOrderModel.from_dto(order, created_by_id=test_actor_id))
        session.commit()
        return order

    return create
