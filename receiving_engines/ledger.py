"""
receiving_engines.ledger -- Cumulative quantity ledger for one purchase order.

Responsibility:
    Derive, from the complete reception history of an order, how much of
    each order line has been received, accepted and rejected, and how much
    remains outstanding.  There are NO stored running totals: every figure
    is re-derived from the reception lines passed in.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import receiving_kernel domain objects and exceptions.
    Consumed by ReceptionValidator, resolve_order_status and the
    reconciliation service.

Invariants enforced:
    - Only accepted quantity consumes the order commitment; rejected
      quantity is tracked but leaves the balance open for re-delivery.
    - Snapshot semantics: a ledger never changes after construction;
      ``with_lines`` returns a new ledger.

Failure modes:
    - UnknownOrderLineError when asked about (or fed) a line id that is not
      part of the order.

Usage:
    ledger = QuantityLedger.from_history(order, receptions)
    ledger.remaining(order_line_id)            # Decimal("60")
    after = ledger.with_lines(validated_lines)  # ledger including new lines
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from receiving_kernel.domain.dtos import OrderLineBalance, PurchaseOrder, Reception
from receiving_kernel.exceptions import UnknownOrderLineError

ZERO = Decimal("0")


class QuantityLine(Protocol):
    """Anything carrying a received/accepted/rejected split for an order line."""
    order_line_id: UUID
    received_quantity: Decimal
    accepted_quantity: Decimal
    rejected_quantity: Decimal


@dataclass(frozen=True)
class LineConsumption:
    """Cumulative quantities recorded against one order line."""
    received: Decimal = ZERO
    accepted: Decimal = ZERO
    rejected: Decimal = ZERO

    def plus(self, line: QuantityLine) -> LineConsumption:
        return LineConsumption(
            received=self.received + line.received_quantity,
            accepted=self.accepted + line.accepted_quantity,
            rejected=self.rejected + line.rejected_quantity,
        )


class QuantityLedger:
    """
    Derived view of cumulative quantities consumed against an order.

    Contract:
        Built from an order and every reception line recorded against it.
        Pure function of that snapshot.

    Guarantees:
        - ``consumed_for`` sums over all matching reception lines regardless
          of their inspection status.
        - ``remaining`` == ordered - accepted.
        - ``line_count`` counts every reception line folded in, which gives
          the next per-order line index.
    """

    def __init__(
        self,
        order: PurchaseOrder,
        consumption: Mapping[UUID, LineConsumption],
        line_count: int = 0,
    ):
        self._order = order
        self._ordered = {line.id: line.ordered_quantity for line in order.lines}
        self._consumption = {
            line_id: consumption.get(line_id, LineConsumption())
            for line_id in self._ordered
        }
        self._line_count = line_count

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def empty(cls, order: PurchaseOrder) -> QuantityLedger:
        return cls(order, {})

    @classmethod
    def from_history(
        cls,
        order: PurchaseOrder,
        receptions: Iterable[Reception],
    ) -> QuantityLedger:
        """Fold every line of every reception of ``order`` into a ledger."""
        lines = [line for reception in receptions for line in reception.lines]
        return cls.empty(order).with_lines(lines)

    def with_lines(self, lines: Iterable[QuantityLine]) -> QuantityLedger:
        """Return a new ledger that also includes ``lines``."""
        consumption = dict(self._consumption)
        count = self._line_count
        for line in lines:
            if line.order_line_id not in self._ordered:
                raise UnknownOrderLineError(str(self._order.id), str(line.order_line_id))
            consumption[line.order_line_id] = consumption[line.order_line_id].plus(line)
            count += 1
        return QuantityLedger(self._order, consumption, count)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def order(self) -> PurchaseOrder:
        return self._order

    @property
    def line_count(self) -> int:
        return self._line_count

    def _require(self, order_line_id: UUID) -> None:
        if order_line_id not in self._ordered:
            raise UnknownOrderLineError(str(self._order.id), str(order_line_id))

    def ordered(self, order_line_id: UUID) -> Decimal:
        self._require(order_line_id)
        return self._ordered[order_line_id]

    def consumed_for(self, order_line_id: UUID) -> LineConsumption:
        """Cumulative received / accepted / rejected for one order line."""
        self._require(order_line_id)
        return self._consumption[order_line_id]

    def remaining(self, order_line_id: UUID) -> Decimal:
        """Ordered quantity minus accepted-so-far."""
        return self.ordered(order_line_id) - self.consumed_for(order_line_id).accepted

    def balances(self) -> tuple[OrderLineBalance, ...]:
        """Per-line balance rows in order-line order."""
        rows = []
        for line in self._order.lines:
            consumed = self._consumption[line.id]
            rows.append(OrderLineBalance(
                order_line_id=line.id,
                ordered_quantity=line.ordered_quantity,
                received_quantity=consumed.received,
                accepted_quantity=consumed.accepted,
                rejected_quantity=consumed.rejected,
                remaining_quantity=line.ordered_quantity - consumed.accepted,
            ))
        return tuple(rows)

    def over_accepted_lines(self) -> tuple[UUID, ...]:
        """Order lines whose accepted total exceeds the ordered quantity.

        Always empty for a ledger built from valid history.
        """
        return tuple(
            line_id
            for line_id, ordered in self._ordered.items()
            if self._consumption[line_id].accepted > ordered
        )

    def __repr__(self) -> str:
        return f"<QuantityLedger order={self._order.id} lines={self._line_count}>"
