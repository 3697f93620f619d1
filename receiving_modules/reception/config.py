"""
Reception Configuration Schema.

Defines the structure and sensible defaults for receiving settings.
Values may be overridden from a dict or a YAML file at startup.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Self

import yaml

from receiving_kernel.domain.dtos import RECEIVABLE_ORDER_STATUSES, OrderStatus
from receiving_kernel.logging_config import get_logger

logger = get_logger("modules.reception.config")


@dataclass
class ReceivingConfig:
    """
    Configuration schema for the reception module.

    Override at instantiation with deployment-specific values:

        config = ReceivingConfig(
            sequence_prefix="GR-",
            max_conflict_retries=5,
        )
    """

    # Sequence numbers
    sequence_prefix: str = "REC-"
    sequence_padding: int = 6
    sequence_name: str = "reception"

    # Conflict retry
    max_conflict_retries: int = 3
    retry_backoff_seconds: float = 0.05

    # Orders that may receive goods
    receivable_statuses: frozenset[OrderStatus] = field(
        default_factory=lambda: RECEIVABLE_ORDER_STATUSES
    )

    def __post_init__(self):
        if self.sequence_padding < 1:
            raise ValueError(f"sequence_padding must be >= 1, got {self.sequence_padding}")
        if self.max_conflict_retries < 1:
            raise ValueError(f"max_conflict_retries must be >= 1, got {self.max_conflict_retries}")
        if self.retry_backoff_seconds < 0:
            raise ValueError(f"retry_backoff_seconds must be >= 0, got {self.retry_backoff_seconds}")
        self.receivable_statuses = frozenset(OrderStatus(s) for s in self.receivable_statuses)

        logger.info(
            "receiving_config_initialized",
            extra={
                "sequence_prefix": self.sequence_prefix,
                "sequence_padding": self.sequence_padding,
                "max_conflict_retries": self.max_conflict_retries,
                "receivable_statuses": sorted(s.value for s in self.receivable_statuses),
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("receiving_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create config from dictionary (e.g., loaded from database/file)."""
        logger.info(
            "receiving_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        data = dict(data)
        if "receivable_statuses" in data:
            data["receivable_statuses"] = frozenset(
                OrderStatus(s) for s in data["receivable_statuses"]
            )
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: Path | str) -> Self:
        """
        Load config from a YAML file.

        The file may hold the settings at top level or under a ``receiving``
        key.

        Raises:
            FileNotFoundError: if the file does not exist.
            yaml.YAMLError: if the file contains invalid YAML.
            TypeError: if the file names an unknown setting.
        """
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if "receiving" in data:
            data = data["receiving"] or {}
        return cls.from_dict(data)
