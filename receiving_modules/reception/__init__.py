"""
Reception Module (``receiving_modules.reception``).

Responsibility
--------------
Record physical deliveries against purchase orders, drive per-line
inspection, keep order status in step with accepted quantities and report
reconciliation metrics.

Architecture position
---------------------
**Modules layer** -- ORM models, the reception workflow, config schema,
event definitions and the ``ReconciliationService`` facade.  Quantity
reasoning lives in ``receiving_engines``.

Invariants enforced
-------------------
* Transaction boundary owned by ``ReconciliationService``.
* Accepted quantity per order line never exceeds the ordered quantity.
* Approved receptions are read-only.
"""

from receiving_modules.reception.config import ReceivingConfig
from receiving_modules.reception.events import (
    RECEPTION_CREATED,
    RECEPTION_INSPECTION_APPROVED,
    EventPublisher,
    InMemoryEventPublisher,
    LoggingEventPublisher,
    ReceptionEvent,
)
from receiving_modules.reception.orm import (
    PurchaseOrderLineModel,
    PurchaseOrderModel,
    ReceptionLineModel,
    ReceptionModel,
    register_order_line_listeners,
)
from receiving_modules.reception.selectors import ReceptionMetricsSelector, ReceptionSelector
from receiving_modules.reception.service import ReconciliationService
from receiving_modules.reception.workflows import (
    RECEPTION_WORKFLOW,
    ReceptionStateMachine,
    StatusChange,
)

__all__ = [
    "ReceivingConfig",
    "ReceptionEvent",
    "EventPublisher",
    "LoggingEventPublisher",
    "InMemoryEventPublisher",
    "RECEPTION_CREATED",
    "RECEPTION_INSPECTION_APPROVED",
    "PurchaseOrderModel",
    "PurchaseOrderLineModel",
    "ReceptionModel",
    "ReceptionLineModel",
    "register_order_line_listeners",
    "ReceptionSelector",
    "ReceptionMetricsSelector",
    "ReconciliationService",
    "RECEPTION_WORKFLOW",
    "ReceptionStateMachine",
    "StatusChange",
]
