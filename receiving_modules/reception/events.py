"""
Reception domain events and the outbound publisher seam.

Responsibility:
    Define the events emitted after a reconciliation transaction commits,
    and the ``EventPublisher`` protocol that delivers them to downstream
    consumers (finance, notifications).

Delivery:
    At-least-once.  Consumers de-duplicate on ``idempotency_key``.  A failing
    publisher never rolls back the committed transaction; the service logs
    the failure as a warning.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from receiving_kernel.logging_config import get_logger

logger = get_logger("modules.reception.events")

RECEPTION_CREATED = "reception.created"
RECEPTION_INSPECTION_APPROVED = "reception.inspection_approved"


@dataclass(frozen=True)
class ReceptionEvent:
    """An immutable notification about a committed reception change."""

    event_kind: str
    occurred_at: datetime
    order_id: UUID
    reception_id: UUID
    sequence_number: str
    payload: dict[str, Any] | MappingProxyType = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.payload, MappingProxyType):
            object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))

    @property
    def idempotency_key(self) -> str:
        return f"{self.reception_id}:{self.event_kind}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_kind": self.event_kind,
            "idempotency_key": self.idempotency_key,
            "occurred_at": self.occurred_at.isoformat(),
            "order_id": str(self.order_id),
            "reception_id": str(self.reception_id),
            "sequence_number": self.sequence_number,
            "payload": dict(self.payload),
        }


@runtime_checkable
class EventPublisher(Protocol):
    """Outbound delivery of reception events."""

    def publish(self, event: ReceptionEvent) -> None:
        ...


class LoggingEventPublisher:
    """Publishes events as structured log records. Default publisher."""

    def publish(self, event: ReceptionEvent) -> None:
        logger.info("reception_event_published", extra=event.to_dict())


class InMemoryEventPublisher:
    """Collects events in a list. Thread-safe; used by tests and local tooling."""

    def __init__(self) -> None:
        self._events: list[ReceptionEvent] = []
        self._lock = threading.Lock()

    def publish(self, event: ReceptionEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> tuple[ReceptionEvent, ...]:
        with self._lock:
            return tuple(self._events)

    def of_kind(self, event_kind: str) -> tuple[ReceptionEvent, ...]:
        return tuple(e for e in self.events if e.event_kind == event_kind)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
