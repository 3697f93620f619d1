"""
Reception Workflows.

State machine for a single reception as its lines are inspected.  The
declarative ``RECEPTION_WORKFLOW`` lists the legal transitions;
``ReceptionStateMachine`` applies them to a mutable reception record.
"""

from dataclasses import dataclass
from typing import Protocol, Sequence
from uuid import UUID

from receiving_kernel.domain.clock import Clock
from receiving_kernel.domain.dtos import InspectionStatus, ReceptionStatus
from receiving_kernel.exceptions import (
    InspectionAlreadyClaimedError,
    InvalidStateTransitionError,
    ReceptionLineNotFoundError,
)
from receiving_kernel.logging_config import get_logger

logger = get_logger("modules.reception.workflows")


@dataclass(frozen=True)
class Guard:
    """A condition for a transition."""
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]

    def allows(self, from_state: str, action: str) -> bool:
        return any(
            t.from_state == from_state and t.action == action
            for t in self.transitions
        )


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

ALL_LINES_ACCEPTED = Guard(
    name="all_lines_accepted",
    description="Every line resolved and none rejected",
)

ALL_LINES_RESOLVED_WITH_REJECTION = Guard(
    name="all_lines_resolved_with_rejection",
    description="Every line resolved and at least one rejected",
)

LINE_REOPENED = Guard(
    name="line_reopened",
    description="A correction set a line back to pending",
)


# -----------------------------------------------------------------------------
# Reception Workflow
# -----------------------------------------------------------------------------

_PENDING = ReceptionStatus.PENDING.value
_IN_INSPECTION = ReceptionStatus.IN_INSPECTION.value
_APPROVED = ReceptionStatus.APPROVED.value
_PARTIALLY_APPROVED = ReceptionStatus.PARTIALLY_APPROVED.value

RECEPTION_WORKFLOW = Workflow(
    name="reception",
    description="Goods reception inspection lifecycle",
    initial_state=_PENDING,
    states=(_PENDING, _IN_INSPECTION, _APPROVED, _PARTIALLY_APPROVED),
    transitions=(
        Transition(_PENDING, _IN_INSPECTION, action="begin_inspection"),
        Transition(_PENDING, _PENDING, action="resolve_line"),
        Transition(_IN_INSPECTION, _IN_INSPECTION, action="resolve_line"),
        Transition(_PARTIALLY_APPROVED, _PARTIALLY_APPROVED, action="resolve_line"),
        Transition(_PENDING, _APPROVED, action="complete", guard=ALL_LINES_ACCEPTED),
        Transition(_IN_INSPECTION, _APPROVED, action="complete", guard=ALL_LINES_ACCEPTED),
        Transition(_PENDING, _PARTIALLY_APPROVED, action="complete", guard=ALL_LINES_RESOLVED_WITH_REJECTION),
        Transition(_IN_INSPECTION, _PARTIALLY_APPROVED, action="complete", guard=ALL_LINES_RESOLVED_WITH_REJECTION),
        Transition(_PARTIALLY_APPROVED, _APPROVED, action="complete", guard=ALL_LINES_ACCEPTED),
        Transition(_PARTIALLY_APPROVED, _IN_INSPECTION, action="reopen", guard=LINE_REOPENED),
        Transition(_PARTIALLY_APPROVED, _PENDING, action="reopen", guard=LINE_REOPENED),
    ),
)

logger.info(
    "reception_workflow_registered",
    extra={
        "workflow_name": RECEPTION_WORKFLOW.name,
        "state_count": len(RECEPTION_WORKFLOW.states),
        "transition_count": len(RECEPTION_WORKFLOW.transitions),
        "initial_state": RECEPTION_WORKFLOW.initial_state,
    },
)


# -----------------------------------------------------------------------------
# State machine
# -----------------------------------------------------------------------------


class ReceptionLineRecord(Protocol):
    id: UUID
    inspection_status: InspectionStatus
    notes: str | None


class ReceptionRecord(Protocol):
    """Mutable reception shape the state machine operates on (ReceptionModel)."""
    id: UUID
    status: ReceptionStatus
    inspection_started_at: object
    inspector_actor_id: str | None
    inspection_completed_at: object
    lines: Sequence[ReceptionLineRecord]


@dataclass(frozen=True)
class StatusChange:
    """Outcome of recomputing a reception's overall status."""
    previous: ReceptionStatus
    current: ReceptionStatus
    reached_terminal: bool
    first_approval: bool

    @property
    def changed(self) -> bool:
        return self.previous != self.current


def derive_reception_status(
    line_statuses: Sequence[InspectionStatus],
    inspection_started: bool,
) -> ReceptionStatus:
    """Overall status implied by the line inspection statuses."""
    if line_statuses and all(s != InspectionStatus.PENDING for s in line_statuses):
        if any(s == InspectionStatus.REJECTED for s in line_statuses):
            return ReceptionStatus.PARTIALLY_APPROVED
        return ReceptionStatus.APPROVED
    return ReceptionStatus.IN_INSPECTION if inspection_started else ReceptionStatus.PENDING


class ReceptionStateMachine:
    """
    Applies inspection transitions to one reception record.

    Contract:
        Mutates the record in place; persistence and the approved-lock are
        the caller's concern.
    """

    def __init__(self, reception: ReceptionRecord, clock: Clock, workflow: Workflow = RECEPTION_WORKFLOW):
        self._reception = reception
        self._clock = clock
        self._workflow = workflow

    @property
    def status(self) -> ReceptionStatus:
        return ReceptionStatus(self._reception.status)

    def _require(self, action: str) -> None:
        if not self._workflow.allows(self.status.value, action):
            raise InvalidStateTransitionError(
                str(self._reception.id), self.status.value, action,
            )

    def begin_inspection(self, actor_id: str) -> bool:
        """
        Claim the reception for inspection.

        Returns False when ``actor_id`` already holds the claim (no-op).
        """
        reception = self._reception
        if self.status == ReceptionStatus.IN_INSPECTION:
            if reception.inspector_actor_id == actor_id:
                return False
            raise InspectionAlreadyClaimedError(
                str(reception.id), reception.inspector_actor_id or "", actor_id,
            )
        self._require("begin_inspection")

        reception.status = ReceptionStatus.IN_INSPECTION
        reception.inspection_started_at = self._clock.now()
        reception.inspector_actor_id = actor_id
        logger.info(
            "reception_inspection_started",
            extra={"reception_id": str(reception.id), "inspector_actor_id": actor_id},
        )
        return True

    def resolve_line(
        self,
        line_id: UUID,
        inspection_status: InspectionStatus,
        notes: str | None = None,
    ) -> ReceptionLineRecord:
        """Set one line's inspection status. Does not touch the overall status."""
        self._require("resolve_line")

        line = next((ln for ln in self._reception.lines if ln.id == line_id), None)
        if line is None:
            raise ReceptionLineNotFoundError(str(self._reception.id), str(line_id))

        line.inspection_status = InspectionStatus(inspection_status)
        if notes is not None:
            line.notes = notes
        return line

    def recompute_overall_status(self) -> StatusChange:
        """Derive and apply the overall status from the lines. Idempotent."""
        reception = self._reception
        previous = self.status
        current = derive_reception_status(
            [InspectionStatus(ln.inspection_status) for ln in reception.lines],
            reception.inspection_started_at is not None,
        )

        if current != previous:
            action = "complete" if current.is_terminal else "reopen"
            self._require(action)
            reception.status = current

        if current.is_terminal and reception.inspection_completed_at is None:
            reception.inspection_completed_at = self._clock.now()

        change = StatusChange(
            previous=previous,
            current=current,
            reached_terminal=current.is_terminal and current != previous,
            first_approval=current == ReceptionStatus.APPROVED and previous != ReceptionStatus.APPROVED,
        )
        if change.changed:
            logger.info(
                "reception_status_changed",
                extra={
                    "reception_id": str(reception.id),
                    "previous_status": previous.value,
                    "new_status": current.value,
                },
            )
        return change
