"""
Domain DTOs -- the nouns of reception reconciliation.

Responsibility:
    Immutable value objects for purchase orders, receptions and their lines,
    plus the closed status enumerations that every layer shares.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Engines compute over these objects;
    the ORM converts to and from them at the persistence boundary.

Invariants enforced:
    - Every status field is a closed ``str`` Enum.  Unknown strings raise
      ``ValueError`` when coerced, they are never carried as raw text.
    - Quantities and prices are ``Decimal``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any
from uuid import UUID

from receiving_kernel.exceptions import InvalidQuantityError, MalformedReceptionLineError


class OrderStatus(str, Enum):
    """Purchase order lifecycle states relevant to receiving."""
    DRAFT = "draft"
    SENT = "sent"
    CONFIRMED = "confirmed"
    IN_TRANSIT = "in_transit"
    PARTIALLY_RECEIVED = "partially_received"
    FULLY_RECEIVED = "fully_received"
    CANCELLED = "cancelled"
    CLOSED = "closed"


RECEIVABLE_ORDER_STATUSES: frozenset[OrderStatus] = frozenset({
    OrderStatus.SENT,
    OrderStatus.CONFIRMED,
    OrderStatus.IN_TRANSIT,
    OrderStatus.PARTIALLY_RECEIVED,
})


class ReceptionType(str, Enum):
    """Kind of physical delivery event."""
    FULL = "full"
    PARTIAL = "partial"
    RETURN = "return"


class ReceptionStatus(str, Enum):
    """Reception processing states."""
    PENDING = "pending"
    IN_INSPECTION = "in_inspection"
    APPROVED = "approved"
    PARTIALLY_APPROVED = "partially_approved"

    @property
    def is_terminal(self) -> bool:
        return self in (ReceptionStatus.APPROVED, ReceptionStatus.PARTIALLY_APPROVED)


class InspectionStatus(str, Enum):
    """Per-line inspection outcome."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass(frozen=True)
class PurchaseOrderLine:
    """A line item on a purchase order."""
    id: UUID
    ordered_quantity: Decimal
    unit_price: Decimal = Decimal("0")
    line_number: int = 0
    description: str = ""


@dataclass(frozen=True)
class PurchaseOrder:
    """A purchase order as supplied by the upstream purchasing flow."""
    id: UUID
    status: OrderStatus
    lines: tuple[PurchaseOrderLine, ...] = field(default_factory=tuple)
    order_number: str = ""

    def line(self, order_line_id: UUID) -> PurchaseOrderLine | None:
        for line in self.lines:
            if line.id == order_line_id:
                return line
        return None


@dataclass(frozen=True)
class ProposedReceptionLine:
    """One line of a reception as submitted by the caller."""
    order_line_id: UUID
    received_quantity: Decimal
    accepted_quantity: Decimal
    rejected_quantity: Decimal = Decimal("0")
    notes: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProposedReceptionLine:
        """
        Build from a boundary payload; quantity strings become Decimals.

        Raises MalformedReceptionLineError for a missing or non-UUID
        ``order_line_id`` and InvalidQuantityError for a missing or
        unparseable quantity.  Sign and finiteness are left to the validator.
        """
        raw_id = data.get("order_line_id")
        try:
            order_line_id = raw_id if isinstance(raw_id, UUID) else UUID(str(raw_id))
        except ValueError:
            raise MalformedReceptionLineError("order_line_id", raw_id) from None

        def quantity(name: str, default: str | None = None) -> Decimal:
            raw = data.get(name, default)
            if raw is None or isinstance(raw, bool):
                raise InvalidQuantityError(str(order_line_id), name, raw)
            try:
                return Decimal(str(raw).strip())
            except InvalidOperation:
                raise InvalidQuantityError(str(order_line_id), name, str(raw)) from None

        return cls(
            order_line_id=order_line_id,
            received_quantity=quantity("received_quantity"),
            accepted_quantity=quantity("accepted_quantity"),
            rejected_quantity=quantity("rejected_quantity", "0"),
            notes=data.get("notes"),
        )


@dataclass(frozen=True)
class ReceptionLine:
    """A persisted line of a reception."""
    id: UUID
    reception_id: UUID
    order_line_id: UUID
    line_index: int
    received_quantity: Decimal
    accepted_quantity: Decimal
    rejected_quantity: Decimal
    inspection_status: InspectionStatus = InspectionStatus.PENDING
    notes: str | None = None


@dataclass(frozen=True)
class Reception:
    """One physical delivery event against exactly one order."""
    id: UUID
    sequence_number: str
    order_id: UUID
    reception_type: ReceptionType
    status: ReceptionStatus
    created_by_actor_id: str
    created_at: datetime
    lines: tuple[ReceptionLine, ...] = field(default_factory=tuple)
    inspection_started_at: datetime | None = None
    inspector_actor_id: str | None = None
    inspection_completed_at: datetime | None = None
    notes: str | None = None
    documents: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class OrderLineBalance:
    """Ledger view of a single order line."""
    order_line_id: UUID
    ordered_quantity: Decimal
    received_quantity: Decimal
    accepted_quantity: Decimal
    rejected_quantity: Decimal
    remaining_quantity: Decimal


@dataclass(frozen=True)
class OrderBalance:
    """Ledger view of a whole order."""
    order_id: UUID
    status: OrderStatus
    lines: tuple[OrderLineBalance, ...]
    reception_count: int
