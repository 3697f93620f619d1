"""
Reception Module Service (``receiving_modules.reception.service``).

Responsibility
--------------
Orchestrates goods reception against purchase orders -- submission,
line inspection, inspection claims, detail amendments -- by delegating
quantity reasoning to ``receiving_engines`` and sequence allocation to
``receiving_kernel.services.sequence_service``.

Architecture position
---------------------
**Modules layer** -- the single public entry point for reconciliation
operations.  Composes the pure engines (``QuantityLedger``,
``ReceptionValidator``, ``resolve_order_status``), the reception state
machine, the kernel ``SequenceService`` and an ``EventPublisher``.

Invariants enforced
-------------------
* Each public write method owns the transaction boundary (``commit`` on
  success, ``rollback`` on any exception) and runs inside the bounded
  serialization-conflict retry.
* The order row is locked before its reception history is read, so two
  submissions against the same order are serialized and the second one is
  validated against the first one's lines.
* Sum of accepted quantities per order line never exceeds the ordered
  quantity.
* Approved receptions are never mutated.

Failure modes
-------------
* NotFound / validation / state-conflict errors -> session rolled back,
  exception surfaced unchanged, no retry.
* Serialization conflicts -> retried, then ``ConcurrencyConflictError``.
* Event publishing failure -> logged as a warning carrying an
  ``EventDeliveryError``; the committed transaction stands.

Usage::

    service = ReconciliationService(session, publisher, clock=clock)
    reception = service.submit_reception(
        order_id=order.id,
        reception_type=ReceptionType.PARTIAL,
        lines=[{"order_line_id": line_id, "received_quantity": "40",
                "accepted_quantity": "40", "rejected_quantity": "0"}],
        actor_id="warehouse-7",
    )
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping, Sequence
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from receiving_engines.ledger import QuantityLedger
from receiving_engines.metrics import MetricsFilter, ReceptionMetrics
from receiving_engines.order_status import resolve_order_status
from receiving_engines.validation import ReceptionValidator, ValidatedReceptionLine
from receiving_kernel.domain.clock import Clock, SystemClock
from receiving_kernel.domain.dtos import (
    InspectionStatus,
    OrderBalance,
    OrderStatus,
    ProposedReceptionLine,
    PurchaseOrder,
    Reception,
    ReceptionStatus,
    ReceptionType,
)
from receiving_kernel.exceptions import (
    EventDeliveryError,
    OrderNotFoundError,
    OrderNotReceivableError,
    ReceptionAlreadyApprovedError,
    ReceptionNotFoundError,
)
from receiving_kernel.logging_config import LogContext, get_logger
from receiving_kernel.services.retry_service import ConflictRetryPolicy, run_with_conflict_retry
from receiving_kernel.services.sequence_service import SequenceService, format_sequence_number
from receiving_modules.reception.config import ReceivingConfig
from receiving_modules.reception.events import (
    RECEPTION_CREATED,
    RECEPTION_INSPECTION_APPROVED,
    EventPublisher,
    LoggingEventPublisher,
    ReceptionEvent,
)
from receiving_modules.reception.orm import (
    PurchaseOrderModel,
    ReceptionLineModel,
    ReceptionModel,
)
from receiving_modules.reception.selectors import ReceptionMetricsSelector, ReceptionSelector
from receiving_modules.reception.workflows import ReceptionStateMachine

logger = get_logger("modules.reception.service")

ZERO = Decimal("0")


class ReconciliationService:
    """
    Reconciles physical receptions against purchase orders.

    Contract
    --------
    * Write methods return DTOs built inside the committed transaction.
    * Events are published only after commit, at most once per call.

    Guarantees
    ----------
    * Session is committed only when the whole operation succeeded;
      otherwise rolled back.
    * Clock is injectable for deterministic testing.
    """

    def __init__(
        self,
        session: Session,
        publisher: EventPublisher | None = None,
        clock: Clock | None = None,
        config: ReceivingConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._session = session
        self._publisher = publisher or LoggingEventPublisher()
        self._clock = clock or SystemClock()
        self._config = config or ReceivingConfig.with_defaults()
        self._validator = ReceptionValidator()
        self._sequences = SequenceService(session)
        self._retry_policy = ConflictRetryPolicy(
            max_attempts=self._config.max_conflict_retries,
            backoff_seconds=self._config.retry_backoff_seconds,
        )
        self._sleep = sleep

    # =========================================================================
    # Submission
    # =========================================================================

    def submit_reception(
        self,
        order_id: UUID,
        reception_type: ReceptionType | str,
        lines: Sequence[ProposedReceptionLine | Mapping[str, Any]],
        actor_id: str,
        documents: Sequence[str] | None = None,
        notes: str | None = None,
    ) -> Reception:
        """
        Record a delivery against an order.

        Validates every line against the order's full reception history,
        allocates the next sequence number, persists the reception and
        recomputes the order status in one transaction, then publishes
        ``reception.created``.
        """
        reception_type = ReceptionType(reception_type)
        proposed = tuple(
            line if isinstance(line, ProposedReceptionLine)
            else ProposedReceptionLine.from_dict(dict(line))
            for line in lines
        )

        with LogContext.bind(actor_id=actor_id, order_id=str(order_id)):
            reception, event = self._with_retry(
                "submit_reception",
                lambda: self._submit_once(
                    order_id, reception_type, proposed, actor_id,
                    tuple(documents or ()), notes,
                ),
            )
            self._publish(event)
        return reception

    def _submit_once(
        self,
        order_id: UUID,
        reception_type: ReceptionType,
        proposed: tuple[ProposedReceptionLine, ...],
        actor_id: str,
        documents: tuple[str, ...],
        notes: str | None,
    ) -> tuple[Reception, ReceptionEvent]:
        try:
            logger.info("reception_submit_started", extra={
                "order_id": str(order_id),
                "reception_type": reception_type.value,
                "line_count": len(proposed),
            })

            order_model = self._lock_order(order_id)
            order = order_model.to_dto()
            if order.status not in self._config.receivable_statuses:
                raise OrderNotReceivableError(str(order_id), order.status.value)

            ledger = QuantityLedger.from_history(order, self._load_history(order_id))
            validated = self._validator.validate(order, ledger, proposed)

            sequence_value = self._sequences.next_value(self._config.sequence_name)
            sequence_number = format_sequence_number(
                self._config.sequence_prefix, sequence_value, self._config.sequence_padding,
            )

            now = self._clock.now()
            reception_model = ReceptionModel(
                id=uuid4(),
                sequence_number=sequence_number,
                order_id=order_id,
                reception_type=reception_type,
                status=ReceptionStatus.PENDING,
                notes=notes,
                documents=list(documents),
                created_at=now,
                updated_at=now,
                created_by_id=actor_id,
            )
            reception_model.lines = [
                self._line_model(line, actor_id, now) for line in validated
            ]
            self._session.add(reception_model)

            new_status = resolve_order_status(order, ledger.with_lines(validated))
            if new_status != order.status:
                order_model.status = new_status
                order_model.updated_by_id = actor_id

            self._session.flush()
            reception = reception_model.to_dto()
            self._session.commit()

            accepted_value = sum((line.accepted_value for line in validated), ZERO)
            logger.info("reception_submit_committed", extra={
                "order_id": str(order_id),
                "reception_id": str(reception.id),
                "sequence_number": sequence_number,
                "previous_order_status": order.status.value,
                "order_status": new_status.value,
                "accepted_value": accepted_value,
            })
        except Exception:
            self._session.rollback()
            raise

        event = ReceptionEvent(
            event_kind=RECEPTION_CREATED,
            occurred_at=now,
            order_id=order_id,
            reception_id=reception.id,
            sequence_number=sequence_number,
            payload={
                "reception_type": reception_type.value,
                "line_count": len(validated),
                "accepted_value": str(accepted_value),
                "order_status": new_status.value,
                "created_by_actor_id": actor_id,
            },
        )
        return reception, event

    @staticmethod
    def _line_model(line: ValidatedReceptionLine, actor_id: str, now) -> ReceptionLineModel:
        return ReceptionLineModel(
            id=uuid4(),
            order_line_id=line.order_line_id,
            line_index=line.line_index,
            received_quantity=line.received_quantity,
            accepted_quantity=line.accepted_quantity,
            rejected_quantity=line.rejected_quantity,
            inspection_status=InspectionStatus.PENDING,
            notes=line.notes,
            created_at=now,
            updated_at=now,
            created_by_id=actor_id,
        )

    # =========================================================================
    # Inspection
    # =========================================================================

    def update_reception_line_inspection(
        self,
        reception_id: UUID,
        line_id: UUID,
        inspection_status: InspectionStatus | str,
        notes: str | None,
        actor_id: str,
    ) -> None:
        """
        Record the inspection outcome of one reception line.

        Re-derives the reception status; when it becomes terminal the order
        status is recomputed in the same transaction.  Publishes
        ``reception.inspection_approved`` the first time the reception is
        approved.
        """
        inspection_status = InspectionStatus(inspection_status)
        with LogContext.bind(actor_id=actor_id, reception_id=str(reception_id)):
            event = self._with_retry(
                "update_reception_line_inspection",
                lambda: self._inspect_once(reception_id, line_id, inspection_status, notes, actor_id),
            )
            if event is not None:
                self._publish(event)

    def _inspect_once(
        self,
        reception_id: UUID,
        line_id: UUID,
        inspection_status: InspectionStatus,
        notes: str | None,
        actor_id: str,
    ) -> ReceptionEvent | None:
        try:
            logger.info("reception_inspection_update_started", extra={
                "reception_id": str(reception_id),
                "line_id": str(line_id),
                "inspection_status": inspection_status.value,
            })

            order_id = self._reception_order_id(reception_id)
            order_model = self._lock_order(order_id)
            reception_model = self._lock_reception(reception_id)
            if reception_model.status == ReceptionStatus.APPROVED:
                raise ReceptionAlreadyApprovedError(str(reception_id))

            machine = ReceptionStateMachine(reception_model, self._clock)
            line = machine.resolve_line(line_id, inspection_status, notes)
            line.updated_by_id = actor_id
            change = machine.recompute_overall_status()
            reception_model.updated_by_id = actor_id

            order_status = order_model.status
            if change.current.is_terminal:
                self._session.flush()
                order_status = self._recompute_order_status(order_model, actor_id)

            self._session.flush()
            reception = reception_model.to_dto()
            self._session.commit()

            logger.info("reception_inspection_update_committed", extra={
                "reception_id": str(reception_id),
                "line_id": str(line_id),
                "previous_status": change.previous.value,
                "reception_status": change.current.value,
                "order_status": order_status.value,
            })
        except Exception:
            self._session.rollback()
            raise

        if not change.first_approval:
            return None
        return ReceptionEvent(
            event_kind=RECEPTION_INSPECTION_APPROVED,
            occurred_at=reception.inspection_completed_at or self._clock.now(),
            order_id=reception.order_id,
            reception_id=reception.id,
            sequence_number=reception.sequence_number,
            payload={
                "approved_by_actor_id": actor_id,
                "inspector_actor_id": reception.inspector_actor_id,
                "line_count": len(reception.lines),
                "accepted_quantity": str(sum((ln.accepted_quantity for ln in reception.lines), ZERO)),
                "order_status": order_status.value,
            },
        )

    def begin_inspection(self, reception_id: UUID, actor_id: str) -> Reception:
        """Claim a pending reception for inspection by ``actor_id``."""
        with LogContext.bind(actor_id=actor_id, reception_id=str(reception_id)):
            return self._with_retry(
                "begin_inspection",
                lambda: self._begin_inspection_once(reception_id, actor_id),
            )

    def _begin_inspection_once(self, reception_id: UUID, actor_id: str) -> Reception:
        try:
            reception_model = self._lock_reception(reception_id)
            if reception_model.status == ReceptionStatus.APPROVED:
                raise ReceptionAlreadyApprovedError(str(reception_id))

            claimed = ReceptionStateMachine(reception_model, self._clock).begin_inspection(actor_id)
            if claimed:
                reception_model.updated_by_id = actor_id
            self._session.flush()
            reception = reception_model.to_dto()
            self._session.commit()
            logger.info("reception_inspection_claim_committed", extra={
                "reception_id": str(reception_id),
                "claimed": claimed,
            })
            return reception
        except Exception:
            self._session.rollback()
            raise

    def update_reception_details(
        self,
        reception_id: UUID,
        actor_id: str,
        notes: str | None = None,
        documents: Sequence[str] | None = None,
    ) -> Reception:
        """
        Amend notes and attach document references.

        ``notes`` replaces the current notes when given; ``documents`` are
        appended, skipping references already attached.
        """
        with LogContext.bind(actor_id=actor_id, reception_id=str(reception_id)):
            return self._with_retry(
                "update_reception_details",
                lambda: self._update_details_once(reception_id, actor_id, notes, documents),
            )

    def _update_details_once(
        self,
        reception_id: UUID,
        actor_id: str,
        notes: str | None,
        documents: Sequence[str] | None,
    ) -> Reception:
        try:
            reception_model = self._lock_reception(reception_id)
            if reception_model.status == ReceptionStatus.APPROVED:
                raise ReceptionAlreadyApprovedError(str(reception_id))

            if notes is not None:
                reception_model.notes = notes
            if documents:
                attached = list(reception_model.documents or [])
                attached.extend(ref for ref in documents if ref not in attached)
                reception_model.documents = attached
            reception_model.updated_by_id = actor_id

            self._session.flush()
            reception = reception_model.to_dto()
            self._session.commit()
            logger.info("reception_details_updated", extra={
                "reception_id": str(reception_id),
                "document_count": len(reception.documents),
            })
            return reception
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Reads
    # =========================================================================

    def get_reception(self, reception_id: UUID) -> Reception:
        try:
            reception = ReceptionSelector(self._session).get_reception(reception_id)
        finally:
            self._end_read()
        if reception is None:
            raise ReceptionNotFoundError(str(reception_id))
        return reception

    def get_order_balance(self, order_id: UUID) -> OrderBalance:
        """Per-line ordered / received / accepted / rejected / remaining view."""
        try:
            selector = ReceptionSelector(self._session)
            order = selector.get_order(order_id)
            if order is None:
                raise OrderNotFoundError(str(order_id))
            history = selector.receptions_for_order(order_id)
        finally:
            self._end_read()

        ledger = QuantityLedger.from_history(order, history)
        return OrderBalance(
            order_id=order.id,
            status=order.status,
            lines=ledger.balances(),
            reception_count=len(history),
        )

    def compute_metrics(self, metrics_filter: MetricsFilter | None = None) -> ReceptionMetrics:
        """Aggregate reception metrics over the filter window. Never locks."""
        try:
            return ReceptionMetricsSelector(self._session).compute(metrics_filter)
        finally:
            self._end_read()

    # =========================================================================
    # Helpers
    # =========================================================================

    def _with_retry(self, operation: str, unit_of_work):
        return run_with_conflict_retry(
            operation, unit_of_work, policy=self._retry_policy, sleep=self._sleep,
        )

    def _end_read(self) -> None:
        # Releases the read transaction (and the SQLite write lock taken at BEGIN).
        self._session.rollback()

    def _lock_order(self, order_id: UUID) -> PurchaseOrderModel:
        order_model = self._session.execute(
            select(PurchaseOrderModel)
            .where(PurchaseOrderModel.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order_model is None:
            raise OrderNotFoundError(str(order_id))
        return order_model

    def _lock_reception(self, reception_id: UUID) -> ReceptionModel:
        reception_model = self._session.execute(
            select(ReceptionModel)
            .where(ReceptionModel.id == reception_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if reception_model is None:
            raise ReceptionNotFoundError(str(reception_id))
        return reception_model

    def _reception_order_id(self, reception_id: UUID) -> UUID:
        order_id = self._session.execute(
            select(ReceptionModel.order_id).where(ReceptionModel.id == reception_id)
        ).scalar_one_or_none()
        if order_id is None:
            raise ReceptionNotFoundError(str(reception_id))
        return order_id

    def _load_history(self, order_id: UUID) -> list[Reception]:
        rows = self._session.execute(
            select(ReceptionModel)
            .where(ReceptionModel.order_id == order_id)
            .order_by(ReceptionModel.created_at, ReceptionModel.sequence_number)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def _recompute_order_status(self, order_model: PurchaseOrderModel, actor_id: str) -> OrderStatus:
        """Re-derive the order status from its full history; caller holds the order lock."""
        order: PurchaseOrder = order_model.to_dto()
        if order.status not in self._config.receivable_statuses | {OrderStatus.FULLY_RECEIVED}:
            return order.status
        ledger = QuantityLedger.from_history(order, self._load_history(order.id))
        new_status = resolve_order_status(order, ledger)
        if new_status != order.status:
            order_model.status = new_status
            order_model.updated_by_id = actor_id
            logger.info("order_status_recomputed", extra={
                "order_id": str(order.id),
                "previous_status": order.status.value,
                "order_status": new_status.value,
            })
        return new_status

    def _publish(self, event: ReceptionEvent) -> None:
        try:
            self._publisher.publish(event)
        except Exception as exc:
            error = EventDeliveryError(event.event_kind, str(event.reception_id), str(exc))
            error.__cause__ = exc
            logger.warning(
                "reception_event_delivery_failed",
                exc_info=(EventDeliveryError, error, exc.__traceback__),
                extra={
                    "event_kind": event.event_kind,
                    "idempotency_key": event.idempotency_key,
                    "error_code": error.code,
                },
            )
