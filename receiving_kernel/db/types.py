"""
Module: receiving_kernel.db.types
Responsibility: Annotated type aliases and column types shared by every model.
    Centralizes quantity precision and closed-enumeration persistence so that
    models and services use identical definitions.
Architecture position: Kernel > DB.  MUST NOT import from services/,
    selectors/ or outer layers.

Invariants enforced:
    - No floats: quantities and prices are Decimal with explicit precision.
    - Closed enumerations: EnumString refuses to write or read any value that
      is not a member of its enum, so unknown status strings never propagate
      past the persistence boundary.
"""

from decimal import Decimal
from enum import Enum
from typing import Annotated

from sqlalchemy import Numeric, String
from sqlalchemy.types import TypeDecorator

# Quantity with high precision (38 digits, 9 decimal places)
Quantity = Annotated[Decimal, Numeric(38, 9)]

# Unit price / monetary value
Money = Annotated[Decimal, Numeric(38, 9)]

# Short identifier strings
ShortCode = Annotated[str, String(50)]

# Opaque actor identifier
ActorId = Annotated[str, String(100)]

ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """
    Coerce a boundary value (str, int, Decimal) to Decimal.

    Floats are converted through ``str`` so that ``0.1`` becomes
    ``Decimal("0.1")`` rather than its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


class EnumString(TypeDecorator):
    """
    Store a ``str``-valued Enum as its value in a String column.

    Contract:
        Binds enum members (or their exact string values) and returns enum
        members on load.

    Guarantees:
        - Unknown values raise ``ValueError`` on bind and on load.
    """

    impl = String(50)
    cache_ok = True

    def __init__(self, enum_class: type[Enum], length: int = 50):
        super().__init__(length)
        self.enum_class = enum_class

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return self.enum_class(value).value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self.enum_class(value)
