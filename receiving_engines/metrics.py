"""
receiving_engines.metrics -- Aggregate reception KPIs over a set of receptions.

Responsibility:
    Fold a collection of receptions into counts, quantity totals, approval
    rate, mean inspection latency and accepted value.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The read side
    (ReceptionMetricsSelector) loads receptions and unit prices and hands
    them to ``aggregate_reception_metrics``.

Invariants enforced:
    - approval_rate is a ratio in [0, 1]; 0 when nothing was received.
    - mean_inspection_latency covers only receptions with a completion
      timestamp; zero when there are none.
    - Naive timestamps are treated as UTC, so aware and naive values from
      different backends can be mixed safely.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from uuid import UUID

from receiving_kernel.domain.dtos import Reception, ReceptionStatus

ZERO = Decimal("0")

_OPEN_STATUSES = frozenset({ReceptionStatus.PENDING, ReceptionStatus.IN_INSPECTION})


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@dataclass(frozen=True)
class MetricsFilter:
    """Optional inclusive bounds on reception ``created_at``."""
    date_from: datetime | None = None
    date_to: datetime | None = None

    def includes(self, created_at: datetime) -> bool:
        ts = as_utc(created_at)
        if self.date_from is not None and ts < as_utc(self.date_from):
            return False
        if self.date_to is not None and ts > as_utc(self.date_to):
            return False
        return True


@dataclass(frozen=True)
class ReceptionMetrics:
    total_receptions: int
    open_receptions: int
    approval_rate: Decimal
    mean_inspection_latency: timedelta
    total_received_quantity: Decimal
    total_accepted_quantity: Decimal
    total_rejected_quantity: Decimal
    total_accepted_value: Decimal

    @property
    def mean_inspection_latency_hours(self) -> Decimal:
        return Decimal(str(self.mean_inspection_latency.total_seconds())) / Decimal("3600")


def aggregate_reception_metrics(
    receptions: Iterable[Reception],
    unit_prices: Mapping[UUID, Decimal],
) -> ReceptionMetrics:
    """
    Compute metrics for ``receptions``.

    Args:
        receptions: Receptions already filtered by the caller.
        unit_prices: Order line id -> unit price, used to value accepted
            quantities.  Missing lines are valued at zero.
    """
    total = 0
    open_count = 0
    received = ZERO
    accepted = ZERO
    rejected = ZERO
    value = ZERO
    latency_sum = timedelta(0)
    latency_count = 0

    for reception in receptions:
        total += 1
        if reception.status in _OPEN_STATUSES:
            open_count += 1

        for line in reception.lines:
            received += line.received_quantity
            accepted += line.accepted_quantity
            rejected += line.rejected_quantity
            value += line.accepted_quantity * unit_prices.get(line.order_line_id, ZERO)

        if reception.inspection_completed_at is not None:
            latency_sum += as_utc(reception.inspection_completed_at) - as_utc(reception.created_at)
            latency_count += 1

    return ReceptionMetrics(
        total_receptions=total,
        open_receptions=open_count,
        approval_rate=accepted / received if received > ZERO else ZERO,
        mean_inspection_latency=latency_sum / latency_count if latency_count else timedelta(0),
        total_received_quantity=received,
        total_accepted_quantity=accepted,
        total_rejected_quantity=rejected,
        total_accepted_value=value,
    )
