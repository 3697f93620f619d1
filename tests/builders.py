"""In-memory builders for orders, receptions and proposed lines."""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from receiving_kernel.domain.dtos import (
    InspectionStatus,
    OrderStatus,
    ProposedReceptionLine,
    PurchaseOrder,
    PurchaseOrderLine,
    Reception,
    ReceptionLine,
    ReceptionStatus,
    ReceptionType,
)

CREATED_AT = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_order(quantities=("100",), unit_prices=None, status=OrderStatus.SENT) -> PurchaseOrder:
    """Order with one line per entry of ``quantities``."""
    unit_prices = unit_prices or ["1"] * len(quantities)
    lines = tuple(
        PurchaseOrderLine(
            id=uuid4(),
            ordered_quantity=Decimal(str(qty)),
            unit_price=Decimal(str(price)),
            line_number=i,
            description=f"Item {i}",
        )
        for i, (qty, price) in enumerate(zip(quantities, unit_prices), start=1)
    )
    return PurchaseOrder(id=uuid4(), status=status, lines=lines, order_number="PO-TEST")


def proposed(order_line_id, received, accepted=None, rejected="0") -> ProposedReceptionLine:
    received = Decimal(str(received))
    rejected = Decimal(str(rejected))
    accepted = received - rejected if accepted is None else Decimal(str(accepted))
    return ProposedReceptionLine(
        order_line_id=order_line_id,
        received_quantity=received,
        accepted_quantity=accepted,
        rejected_quantity=rejected,
    )


def full_line(order_line_id, quantity, rejected="0") -> dict:
    """Boundary payload receiving ``quantity`` with ``rejected`` of it rejected."""
    quantity = Decimal(str(quantity))
    rejected = Decimal(str(rejected))
    return {
        "order_line_id": order_line_id,
        "received_quantity": str(quantity),
        "accepted_quantity": str(quantity - rejected),
        "rejected_quantity": str(rejected),
    }


def make_reception(
    order: PurchaseOrder,
    splits,
    status=ReceptionStatus.PENDING,
    line_status=InspectionStatus.PENDING,
    created_at=CREATED_AT,
    completed_at=None,
) -> Reception:
    """
    Reception DTO for ``order``.

    ``splits`` is a sequence of ``(order_line_id, accepted, rejected)``.
    """
    reception_id = uuid4()
    lines = tuple(
        ReceptionLine(
            id=uuid4(),
            reception_id=reception_id,
            order_line_id=line_id,
            line_index=i,
            received_quantity=Decimal(str(acc)) + Decimal(str(rej)),
            accepted_quantity=Decimal(str(acc)),
            rejected_quantity=Decimal(str(rej)),
            inspection_status=line_status,
        )
        for i, (line_id, acc, rej) in enumerate(splits, start=1)
    )
    return Reception(
        id=reception_id,
        sequence_number="REC-000001",
        order_id=order.id,
        reception_type=ReceptionType.PARTIAL,
        status=status,
        created_by_actor_id="builder",
        created_at=created_at,
        lines=lines,
        inspection_completed_at=completed_at,
    )
