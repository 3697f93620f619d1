"""
SQLAlchemy ORM persistence models for the Reception module.

Responsibility
--------------
Provide database-backed persistence for purchase orders (as consumed from
the upstream purchasing flow), receptions and reception lines.

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``ReconciliationService`` and
``ReceptionMetricsSelector``.  Inherits from ``TrackedBase`` (kernel db
layer).

Invariants enforced
-------------------
* All quantity and price fields use ``Decimal`` (Numeric(38,9)) -- NEVER float.
* Status fields use ``EnumString``: unknown values are refused on write and
  on read.
* ``sequence_number`` is unique across all receptions.
* A reception owns its lines (cascade); nothing is hard-deleted by services.
* ``ordered_quantity`` and ``unit_price`` of an order line are frozen once any
  reception line references it (``register_order_line_listeners``).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    event,
    func,
    select,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.orm.attributes import get_history

from receiving_kernel.db.base import TrackedBase
from receiving_kernel.db.types import EnumString
from receiving_kernel.domain.dtos import (
    InspectionStatus,
    OrderStatus,
    PurchaseOrder,
    PurchaseOrderLine,
    Reception,
    ReceptionLine,
    ReceptionStatus,
    ReceptionType,
)
from receiving_kernel.exceptions import ImmutabilityViolationError
from receiving_kernel.logging_config import get_logger

logger = get_logger("modules.reception.orm")

# ---------------------------------------------------------------------------
# PurchaseOrderModel
# ---------------------------------------------------------------------------


class PurchaseOrderModel(TrackedBase):
    """
    A purchase order eligible for receiving.

    Maps to the ``PurchaseOrder`` DTO.  Orders are created upstream; this
    module only reads them and updates ``status``.
    """

    __tablename__ = "purchase_orders"

    __table_args__ = (
        Index("idx_purchase_order_status", "status"),
    )

    order_number: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    status: Mapped[OrderStatus] = mapped_column(EnumString(OrderStatus), nullable=False)

    lines: Mapped[list["PurchaseOrderLineModel"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderLineModel.line_number",
        lazy="selectin",
    )

    def to_dto(self) -> PurchaseOrder:
        return PurchaseOrder(
            id=self.id,
            status=self.status,
            lines=tuple(line.to_dto() for line in self.lines),
            order_number=self.order_number,
        )

    @classmethod
    def from_dto(cls, dto: PurchaseOrder, created_by_id: str) -> "PurchaseOrderModel":
        return cls(
            id=dto.id,
            order_number=dto.order_number,
            status=dto.status,
            lines=[PurchaseOrderLineModel.from_dto(line, created_by_id) for line in dto.lines],
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<PurchaseOrderModel {self.order_number or self.id} [{self.status}]>"


class PurchaseOrderLineModel(TrackedBase):
    """A line item of a purchase order."""

    __tablename__ = "purchase_order_lines"

    __table_args__ = (
        Index("idx_purchase_order_line_order", "order_id"),
    )

    order_id: Mapped[UUID] = mapped_column(ForeignKey("purchase_orders.id"), nullable=False)
    line_number: Mapped[int] = mapped_column(nullable=False, default=0)
    ordered_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    order: Mapped[PurchaseOrderModel] = relationship(back_populates="lines")

    def to_dto(self) -> PurchaseOrderLine:
        return PurchaseOrderLine(
            id=self.id,
            ordered_quantity=self.ordered_quantity,
            unit_price=self.unit_price,
            line_number=self.line_number,
            description=self.description,
        )

    @classmethod
    def from_dto(cls, dto: PurchaseOrderLine, created_by_id: str) -> "PurchaseOrderLineModel":
        return cls(
            id=dto.id,
            line_number=dto.line_number,
            ordered_quantity=dto.ordered_quantity,
            unit_price=dto.unit_price,
            description=dto.description,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<PurchaseOrderLineModel #{self.line_number} qty={self.ordered_quantity}>"


# ---------------------------------------------------------------------------
# ReceptionModel
# ---------------------------------------------------------------------------


class ReceptionModel(TrackedBase):
    """
    One physical delivery event against exactly one order.

    Maps to the ``Reception`` DTO.  ``created_by_id`` holds the submitting
    actor.
    """

    __tablename__ = "receptions"

    __table_args__ = (
        UniqueConstraint("sequence_number", name="uq_reception_sequence_number"),
        Index("idx_reception_order", "order_id"),
        Index("idx_reception_status", "status"),
        Index("idx_reception_created_at", "created_at"),
    )

    sequence_number: Mapped[str] = mapped_column(String(50), nullable=False)
    order_id: Mapped[UUID] = mapped_column(ForeignKey("purchase_orders.id"), nullable=False)
    reception_type: Mapped[ReceptionType] = mapped_column(EnumString(ReceptionType), nullable=False)
    status: Mapped[ReceptionStatus] = mapped_column(
        EnumString(ReceptionStatus), nullable=False, default=ReceptionStatus.PENDING,
    )
    inspection_started_at: Mapped[datetime | None]
    inspector_actor_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    inspection_completed_at: Mapped[datetime | None]
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    documents: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    lines: Mapped[list["ReceptionLineModel"]] = relationship(
        back_populates="reception",
        cascade="all, delete-orphan",
        order_by="ReceptionLineModel.line_index",
        lazy="selectin",
    )

    def to_dto(self) -> Reception:
        return Reception(
            id=self.id,
            sequence_number=self.sequence_number,
            order_id=self.order_id,
            reception_type=self.reception_type,
            status=self.status,
            created_by_actor_id=self.created_by_id,
            created_at=self.created_at,
            lines=tuple(line.to_dto() for line in self.lines),
            inspection_started_at=self.inspection_started_at,
            inspector_actor_id=self.inspector_actor_id,
            inspection_completed_at=self.inspection_completed_at,
            notes=self.notes,
            documents=tuple(self.documents or ()),
        )

    def __repr__(self) -> str:
        return f"<ReceptionModel {self.sequence_number} [{self.status}]>"


class ReceptionLineModel(TrackedBase):
    """A line of a reception, referencing one order line."""

    __tablename__ = "reception_lines"

    __table_args__ = (
        UniqueConstraint("reception_id", "order_line_id", name="uq_reception_line_order_line"),
        Index("idx_reception_line_order_line", "order_line_id"),
    )

    reception_id: Mapped[UUID] = mapped_column(ForeignKey("receptions.id"), nullable=False)
    order_line_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_order_lines.id"), nullable=False,
    )
    line_index: Mapped[int] = mapped_column(nullable=False)
    received_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    accepted_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    rejected_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    inspection_status: Mapped[InspectionStatus] = mapped_column(
        EnumString(InspectionStatus), nullable=False, default=InspectionStatus.PENDING,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    reception: Mapped[ReceptionModel] = relationship(back_populates="lines")

    def to_dto(self) -> ReceptionLine:
        return ReceptionLine(
            id=self.id,
            reception_id=self.reception_id,
            order_line_id=self.order_line_id,
            line_index=self.line_index,
            received_quantity=self.received_quantity,
            accepted_quantity=self.accepted_quantity,
            rejected_quantity=self.rejected_quantity,
            inspection_status=self.inspection_status,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return (
            f"<ReceptionLineModel #{self.line_index} "
            f"recv={self.received_quantity} acc={self.accepted_quantity} [{self.inspection_status}]>"
        )


# =============================================================================
# Order line immutability
# =============================================================================
#
# Once a reception line points at an order line, changing the ordered
# quantity or the unit price would silently rewrite the ledger and the value
# of receptions already recorded.
# =============================================================================

_FROZEN_ORDER_LINE_FIELDS = ("ordered_quantity", "unit_price")


def _order_line_reference_count(connection, order_line_id: UUID) -> int:
    result = connection.execute(
        select(func.count())
        .select_from(ReceptionLineModel.__table__)
        .where(ReceptionLineModel.__table__.c.order_line_id == order_line_id)
    )
    return result.scalar() or 0


def _check_order_line_immutability(mapper, connection, target):
    """Block quantity / price changes on order lines already received against."""
    changed = []
    for field_name in _FROZEN_ORDER_LINE_FIELDS:
        history = get_history(target, field_name)
        if history.added and history.deleted and history.added[0] != history.deleted[0]:
            changed.append(field_name)
    if not changed:
        return

    reference_count = _order_line_reference_count(connection, target.id)
    if reference_count > 0:
        logger.error(
            "immutability_violation_blocked",
            extra={
                "entity_type": "PurchaseOrderLine",
                "entity_id": str(target.id),
                "operation": "UPDATE",
                "fields": changed,
                "reference_count": reference_count,
            },
        )
        raise ImmutabilityViolationError(
            entity_type="PurchaseOrderLine",
            entity_id=str(target.id),
            reason=f"{', '.join(changed)} cannot change after receptions reference the line",
        )


def register_order_line_listeners() -> None:
    """Register the order line immutability listener (idempotent)."""
    if not event.contains(PurchaseOrderLineModel, "before_update", _check_order_line_immutability):
        event.listen(PurchaseOrderLineModel, "before_update", _check_order_line_immutability)

