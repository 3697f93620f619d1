"""
receiving_engines.order_status -- Derive an order's receiving status from its ledger.

Responsibility:
    Decide whether an order is fully received, partially received, or left
    in its current status, based solely on accepted quantities.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Lines with ordered_quantity == 0 are ignored.
    - An order with no non-degenerate lines resolves to FULLY_RECEIVED.
    - Nothing accepted yet leaves the current status untouched, so an order
      whose first delivery was entirely rejected stays SENT / CONFIRMED /
      IN_TRANSIT.
"""

from __future__ import annotations

from decimal import Decimal

from receiving_engines.ledger import QuantityLedger
from receiving_engines.tracer import traced_engine
from receiving_kernel.domain.dtos import OrderStatus, PurchaseOrder

ZERO = Decimal("0")


@traced_engine("order_status_resolver", "1.0")
def resolve_order_status(order: PurchaseOrder, ledger_after: QuantityLedger) -> OrderStatus:
    """Return the order status implied by ``ledger_after``."""
    live_lines = [line for line in order.lines if line.ordered_quantity != ZERO]
    if not live_lines:
        return OrderStatus.FULLY_RECEIVED

    accepted = [ledger_after.consumed_for(line.id).accepted for line in live_lines]

    if all(acc >= line.ordered_quantity for acc, line in zip(accepted, live_lines)):
        return OrderStatus.FULLY_RECEIVED
    if all(acc == ZERO for acc in accepted):
        return order.status
    return OrderStatus.PARTIALLY_RECEIVED
