"""
Typed Exception Hierarchy for the Receiving Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The calling layer (an HTTP/form handler) must be able to highlight the exact
faulty input. Parsing message strings for that is fragile, so:
  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (offending order / line / reception id)

Example:
    try:
        service.submit_reception(order_id, ReceptionType.PARTIAL, lines, actor_id)
    except OverReceiptError as e:
        highlight(e.order_line_id, remaining=e.remaining)
    except ReceptionValidationError as e:
        return api_response(status=422, **e.to_dict())

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ReceivingError (base)
    |
    +-- NotFoundError                      never retried
    |   +-- OrderNotFoundError
    |   +-- ReceptionNotFoundError
    |   +-- ReceptionLineNotFoundError
    |
    +-- ReceptionValidationError           caller must fix input
    |   +-- EmptySubmissionError
    |   +-- MalformedReceptionLineError
    |   +-- InvalidQuantityError
    |   +-- UnknownOrderLineError
    |   +-- DuplicateLineInSubmissionError
    |   +-- QuantitySplitMismatchError
    |   +-- OverReceiptError
    |
    +-- StateConflictError                 caller may re-read and retry
    |   +-- OrderNotReceivableError
    |   +-- ReceptionAlreadyApprovedError
    |   +-- InvalidStateTransitionError
    |   +-- InspectionAlreadyClaimedError
    |
    +-- ConcurrencyError                   retried by the service itself
    |   +-- ConcurrencyConflictError
    |
    +-- EventDeliveryError                 logged, never rolls back
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|------------------------------------
Not found       | ORDER_NOT_FOUND               | Order id doesn't exist
                | RECEPTION_NOT_FOUND           | Reception id doesn't exist
                | RECEPTION_LINE_NOT_FOUND      | Line not on that reception
----------------|-------------------------------|------------------------------------
Validation      | EMPTY_SUBMISSION              | Reception without lines
                | MALFORMED_RECEPTION_LINE      | Line id missing or not a UUID
                | INVALID_QUANTITY              | Missing, unparseable, non-finite
                |                               | or negative quantity
                | UNKNOWN_ORDER_LINE            | Line id not on the order
                | DUPLICATE_LINE_IN_SUBMISSION  | Same order line twice
                | QUANTITY_SPLIT_MISMATCH       | accepted + rejected != received
                | OVER_RECEIPT                  | received > remaining
----------------|-------------------------------|------------------------------------
State conflict  | ORDER_NOT_RECEIVABLE          | Order status can't take receipts
                | RECEPTION_ALREADY_APPROVED    | Approved receptions are frozen
                | INVALID_STATE_TRANSITION      | Transition not allowed from state
                | INSPECTION_ALREADY_CLAIMED    | Another inspector owns it
----------------|-------------------------------|------------------------------------
Concurrency     | CONCURRENCY_CONFLICT          | Retries exhausted
----------------|-------------------------------|------------------------------------
Events          | EVENT_DELIVERY_FAILED         | Publisher raised after commit
----------------|-------------------------------|------------------------------------
Immutability    | IMMUTABILITY_VIOLATION        | Ordered qty changed after receipt
"""

from decimal import Decimal
from typing import Any


class ReceivingError(Exception):
    """
    Base exception for all receiving errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "RECEIVING_ERROR"

    def to_dict(self) -> dict[str, Any]:
        """Render code, message and structured attributes for an API layer."""
        data: dict[str, Any] = {"code": self.code, "message": str(self)}
        for key, value in vars(self).items():
            if key.startswith("_"):
                continue
            data[key] = str(value) if isinstance(value, Decimal) else value
        return data


# Not-found exceptions


class NotFoundError(ReceivingError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class OrderNotFoundError(NotFoundError):
    """Purchase order with given ID was not found."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class ReceptionNotFoundError(NotFoundError):
    """Reception with given ID was not found."""

    code: str = "RECEPTION_NOT_FOUND"

    def __init__(self, reception_id: str):
        self.reception_id = reception_id
        super().__init__(f"Reception not found: {reception_id}")


class ReceptionLineNotFoundError(NotFoundError):
    """Line does not exist on the given reception."""

    code: str = "RECEPTION_LINE_NOT_FOUND"

    def __init__(self, reception_id: str, line_id: str):
        self.reception_id = reception_id
        self.line_id = line_id
        super().__init__(f"Line {line_id} not found on reception {reception_id}")


# Validation exceptions


class ReceptionValidationError(ReceivingError):
    """Base exception for rejected reception submissions."""

    code: str = "RECEPTION_VALIDATION_ERROR"


class EmptySubmissionError(ReceptionValidationError):
    """A reception must contain at least one line."""

    code: str = "EMPTY_SUBMISSION"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Reception for order {order_id} has no lines")


class MalformedReceptionLineError(ReceptionValidationError):
    """A submitted line has no usable order line id."""

    code: str = "MALFORMED_RECEPTION_LINE"

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = value
        super().__init__(f"Reception line has an invalid {field}: {value!r}")


class InvalidQuantityError(ReceptionValidationError):
    """A quantity field is missing, not a finite number, or negative."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, order_line_id: str, field: str, value: Decimal | str | None):
        self.order_line_id = order_line_id
        self.field = field
        self.value = value
        super().__init__(
            f"{field} must be a finite number >= 0 for order line {order_line_id}, got {value!r}"
        )


class UnknownOrderLineError(ReceptionValidationError):
    """Order line does not belong to the target order."""

    code: str = "UNKNOWN_ORDER_LINE"

    def __init__(self, order_id: str, order_line_id: str):
        self.order_id = order_id
        self.order_line_id = order_line_id
        super().__init__(f"Order line {order_line_id} is not part of order {order_id}")


class DuplicateLineInSubmissionError(ReceptionValidationError):
    """The same order line appears more than once in one submission."""

    code: str = "DUPLICATE_LINE_IN_SUBMISSION"

    def __init__(self, order_line_id: str):
        self.order_line_id = order_line_id
        super().__init__(f"Order line {order_line_id} appears more than once")


class QuantitySplitMismatchError(ReceptionValidationError):
    """accepted + rejected must equal received."""

    code: str = "QUANTITY_SPLIT_MISMATCH"

    def __init__(
        self,
        order_line_id: str,
        received: Decimal,
        accepted: Decimal,
        rejected: Decimal,
    ):
        self.order_line_id = order_line_id
        self.received = received
        self.accepted = accepted
        self.rejected = rejected
        super().__init__(
            f"Order line {order_line_id}: accepted ({accepted}) + rejected "
            f"({rejected}) != received ({received})"
        )


class OverReceiptError(ReceptionValidationError):
    """Received quantity exceeds what remains outstanding on the order line."""

    code: str = "OVER_RECEIPT"

    def __init__(self, order_line_id: str, received: Decimal, remaining: Decimal):
        self.order_line_id = order_line_id
        self.received = received
        self.remaining = remaining
        super().__init__(
            f"Received quantity ({received}) exceeds remaining quantity "
            f"({remaining}) for order line {order_line_id}"
        )


# State-conflict exceptions


class StateConflictError(ReceivingError):
    """Base exception for lifecycle / ordering problems."""

    code: str = "STATE_CONFLICT"


class OrderNotReceivableError(StateConflictError):
    """Order status does not accept receptions."""

    code: str = "ORDER_NOT_RECEIVABLE"

    def __init__(self, order_id: str, status: str):
        self.order_id = order_id
        self.status = status
        super().__init__(f"Order {order_id} in status '{status}' cannot be received")


class ReceptionAlreadyApprovedError(StateConflictError):
    """Approved receptions can no longer be modified."""

    code: str = "RECEPTION_ALREADY_APPROVED"

    def __init__(self, reception_id: str):
        self.reception_id = reception_id
        super().__init__(f"Reception {reception_id} is approved and cannot be modified")


class InvalidStateTransitionError(StateConflictError):
    """The requested transition is not allowed from the current state."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, reception_id: str, from_state: str, action: str):
        self.reception_id = reception_id
        self.from_state = from_state
        self.action = action
        super().__init__(
            f"Cannot {action} reception {reception_id} from state '{from_state}'"
        )


class InspectionAlreadyClaimedError(StateConflictError):
    """Inspection was already started by a different actor."""

    code: str = "INSPECTION_ALREADY_CLAIMED"

    def __init__(self, reception_id: str, inspector_actor_id: str, actor_id: str):
        self.reception_id = reception_id
        self.inspector_actor_id = inspector_actor_id
        self.actor_id = actor_id
        super().__init__(
            f"Reception {reception_id} is already being inspected by "
            f"{inspector_actor_id}"
        )


# Concurrency exceptions


class ConcurrencyError(ReceivingError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrencyConflictError(ConcurrencyError):
    """Serialization conflict persisted after the bounded retries."""

    code: str = "CONCURRENCY_CONFLICT"

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            f"{operation} failed after {attempts} attempts due to concurrent updates"
        )


# Event delivery


class EventDeliveryError(ReceivingError):
    """Publishing a domain event failed after the transaction committed."""

    code: str = "EVENT_DELIVERY_FAILED"

    def __init__(self, event_kind: str, reception_id: str, reason: str):
        self.event_kind = event_kind
        self.reception_id = reception_id
        self.reason = reason
        super().__init__(
            f"Failed to publish {event_kind} for reception {reception_id}: {reason}"
        )


# Immutability


class ImmutabilityError(ReceivingError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify a field that is frozen once referenced."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
