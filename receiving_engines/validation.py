"""
receiving_engines.validation -- All-or-nothing validation of a proposed reception.

Responsibility:
    Check a proposed set of reception lines against an order and its quantity
    ledger, rejecting the whole submission on the first violation.  On success
    the lines come back annotated with their per-order line index and the
    unit price needed to value them.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import receiving_kernel domain objects and exceptions.

Invariants enforced:
    - accepted + rejected == received on every line.
    - received <= remaining against persisted history only; two lines for the
      same order line inside one submission are refused outright.
    - Quantities are finite and never negative.

Failure modes (checked in this order, per line in submission order):
    - EmptySubmissionError: no lines.
    - InvalidQuantityError: any NaN, infinite or negative quantity.
    - UnknownOrderLineError: line not part of the order.
    - QuantitySplitMismatchError: accepted + rejected != received.
    - DuplicateLineInSubmissionError: order line repeated in the submission.
    - OverReceiptError: received exceeds the ledger's remaining quantity.

Usage:
    validated = ReceptionValidator().validate(order, ledger, proposed_lines)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from receiving_engines.ledger import QuantityLedger
from receiving_engines.tracer import traced_engine
from receiving_kernel.domain.dtos import ProposedReceptionLine, PurchaseOrder
from receiving_kernel.exceptions import (
    DuplicateLineInSubmissionError,
    EmptySubmissionError,
    InvalidQuantityError,
    OverReceiptError,
    QuantitySplitMismatchError,
    UnknownOrderLineError,
)
from receiving_kernel.logging_config import get_logger

logger = get_logger("engines.validation")

ZERO = Decimal("0")


@dataclass(frozen=True)
class ValidatedReceptionLine:
    """A proposed line that passed validation, ready to persist."""
    order_line_id: UUID
    line_index: int
    received_quantity: Decimal
    accepted_quantity: Decimal
    rejected_quantity: Decimal
    unit_price: Decimal = ZERO
    notes: str | None = None

    @property
    def accepted_value(self) -> Decimal:
        return self.accepted_quantity * self.unit_price


class ReceptionValidator:
    """
    Stateless validator for reception submissions.

    Contract:
        ``validate`` either returns one ValidatedReceptionLine per proposed
        line (same order) or raises a ReceptionValidationError subclass.
        Nothing partial is ever returned.
    """

    @traced_engine("reception_validator", "1.0")
    def validate(
        self,
        order: PurchaseOrder,
        ledger: QuantityLedger,
        proposed_lines: Sequence[ProposedReceptionLine],
    ) -> tuple[ValidatedReceptionLine, ...]:
        if not proposed_lines:
            raise EmptySubmissionError(str(order.id))

        seen: set[UUID] = set()
        validated: list[ValidatedReceptionLine] = []

        for position, proposed in enumerate(proposed_lines, start=1):
            self._check_non_negative(proposed)

            order_line = order.line(proposed.order_line_id)
            if order_line is None:
                raise UnknownOrderLineError(str(order.id), str(proposed.order_line_id))

            if proposed.accepted_quantity + proposed.rejected_quantity != proposed.received_quantity:
                raise QuantitySplitMismatchError(
                    order_line_id=str(proposed.order_line_id),
                    received=proposed.received_quantity,
                    accepted=proposed.accepted_quantity,
                    rejected=proposed.rejected_quantity,
                )

            if proposed.order_line_id in seen:
                raise DuplicateLineInSubmissionError(str(proposed.order_line_id))
            seen.add(proposed.order_line_id)

            remaining = ledger.remaining(proposed.order_line_id)
            if proposed.received_quantity > remaining:
                logger.info(
                    "over_receipt_rejected",
                    extra={
                        "order_id": str(order.id),
                        "order_line_id": str(proposed.order_line_id),
                        "received": str(proposed.received_quantity),
                        "remaining": str(remaining),
                    },
                )
                raise OverReceiptError(
                    str(proposed.order_line_id),
                    proposed.received_quantity,
                    remaining,
                )

            validated.append(ValidatedReceptionLine(
                order_line_id=proposed.order_line_id,
                line_index=ledger.line_count + position,
                received_quantity=proposed.received_quantity,
                accepted_quantity=proposed.accepted_quantity,
                rejected_quantity=proposed.rejected_quantity,
                unit_price=order_line.unit_price,
                notes=proposed.notes,
            ))

        return tuple(validated)

    @staticmethod
    def _check_non_negative(proposed: ProposedReceptionLine) -> None:
        for field_name in ("received_quantity", "accepted_quantity", "rejected_quantity"):
            value = getattr(proposed, field_name)
            # NaN cannot be ordered against zero
            if not value.is_finite() or value < ZERO:
                raise InvalidQuantityError(str(proposed.order_line_id), field_name, value)
