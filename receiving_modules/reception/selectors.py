"""
Read-only queries for the Reception module.

Responsibility:
    Load orders and receptions as DTOs, and feed the metrics engine.
    Never locks, never writes; slightly stale reads under concurrent
    submissions are acceptable.
"""

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from receiving_engines.metrics import (
    MetricsFilter,
    ReceptionMetrics,
    aggregate_reception_metrics,
    as_utc,
)
from receiving_kernel.domain.dtos import PurchaseOrder, Reception
from receiving_kernel.logging_config import get_logger
from receiving_kernel.selectors.base import BaseSelector
from receiving_modules.reception.orm import (
    PurchaseOrderLineModel,
    PurchaseOrderModel,
    ReceptionModel,
)

logger = get_logger("modules.reception.selectors")


class ReceptionSelector(BaseSelector):
    """Lookups of single orders and receptions."""

    def get_order(self, order_id: UUID) -> PurchaseOrder | None:
        model = self.session.get(PurchaseOrderModel, order_id)
        return model.to_dto() if model else None

    def get_reception(self, reception_id: UUID) -> Reception | None:
        model = self.session.get(ReceptionModel, reception_id)
        return model.to_dto() if model else None

    def receptions_for_order(self, order_id: UUID) -> list[Reception]:
        rows = self.session.execute(
            select(ReceptionModel)
            .where(ReceptionModel.order_id == order_id)
            .order_by(ReceptionModel.created_at, ReceptionModel.sequence_number)
        ).scalars().all()
        return [row.to_dto() for row in rows]


class ReceptionMetricsSelector(BaseSelector):
    """Loads the receptions of a time window and aggregates their metrics."""

    def receptions(self, metrics_filter: MetricsFilter) -> list[Reception]:
        query = select(ReceptionModel)
        if metrics_filter.date_from is not None:
            query = query.where(ReceptionModel.created_at >= as_utc(metrics_filter.date_from))
        if metrics_filter.date_to is not None:
            query = query.where(ReceptionModel.created_at <= as_utc(metrics_filter.date_to))
        rows = self.session.execute(
            query.order_by(ReceptionModel.created_at)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def unit_prices(self, order_line_ids: Iterable[UUID]) -> dict[UUID, Decimal]:
        ids = set(order_line_ids)
        if not ids:
            return {}
        rows = self.session.execute(
            select(PurchaseOrderLineModel.id, PurchaseOrderLineModel.unit_price)
            .where(PurchaseOrderLineModel.id.in_(ids))
        ).all()
        return {line_id: price for line_id, price in rows}

    def compute(self, metrics_filter: MetricsFilter | None = None) -> ReceptionMetrics:
        metrics_filter = metrics_filter or MetricsFilter()
        receptions = self.receptions(metrics_filter)
        prices = self.unit_prices(
            line.order_line_id for r in receptions for line in r.lines
        )
        metrics = aggregate_reception_metrics(receptions, prices)
        logger.info(
            "reception_metrics_computed",
            extra={
                "date_from": metrics_filter.date_from,
                "date_to": metrics_filter.date_to,
                "total_receptions": metrics.total_receptions,
                "open_receptions": metrics.open_receptions,
                "approval_rate": metrics.approval_rate,
            },
        )
        return metrics
