"""Kernel services - imperative shell infrastructure."""

from receiving_kernel.services.retry_service import (
    ConflictRetryPolicy,
    is_serialization_conflict,
    run_with_conflict_retry,
)
from receiving_kernel.services.sequence_service import (
    SequenceCounter,
    SequenceService,
    format_sequence_number,
)

__all__ = [
    "SequenceCounter",
    "SequenceService",
    "format_sequence_number",
    "ConflictRetryPolicy",
    "is_serialization_conflict",
    "run_with_conflict_retry",
]
