"""
Module: receiving_engines
Responsibility:
    Package entrypoint that re-exports the pure calculation engines used by
    reception reconciliation.  Canonical import surface for
    receiving_modules.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import receiving_kernel domain objects, exceptions and logging.
    MUST NOT import receiving_modules.

Invariants enforced:
    - Purity: engines never read the clock.  Timestamps are passed in.
    - Decimal-only arithmetic for quantities and values.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from receiving_engines import QuantityLedger, ReceptionValidator
    from receiving_engines import resolve_order_status
    from receiving_engines import aggregate_reception_metrics, MetricsFilter
"""

from receiving_kernel.logging_config import get_logger

logger = get_logger("engines")

from receiving_engines.ledger import LineConsumption, QuantityLedger
from receiving_engines.metrics import (
    MetricsFilter,
    ReceptionMetrics,
    aggregate_reception_metrics,
    as_utc,
)
from receiving_engines.order_status import resolve_order_status
from receiving_engines.tracer import traced_engine
from receiving_engines.validation import ReceptionValidator, ValidatedReceptionLine

__all__ = [
    "LineConsumption",
    "QuantityLedger",
    "ReceptionValidator",
    "ValidatedReceptionLine",
    "resolve_order_status",
    "MetricsFilter",
    "ReceptionMetrics",
    "aggregate_reception_metrics",
    "as_utc",
    "traced_engine",
]
