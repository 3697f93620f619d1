"""Kernel domain primitives."""

from receiving_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from receiving_kernel.domain.dtos import (
    RECEIVABLE_ORDER_STATUSES,
    InspectionStatus,
    OrderBalance,
    OrderLineBalance,
    OrderStatus,
    ProposedReceptionLine,
    PurchaseOrder,
    PurchaseOrderLine,
    Reception,
    ReceptionLine,
    ReceptionStatus,
    ReceptionType,
)

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "OrderStatus",
    "RECEIVABLE_ORDER_STATUSES",
    "ReceptionType",
    "ReceptionStatus",
    "InspectionStatus",
    "PurchaseOrder",
    "PurchaseOrderLine",
    "ProposedReceptionLine",
    "Reception",
    "ReceptionLine",
    "OrderBalance",
    "OrderLineBalance",
]
