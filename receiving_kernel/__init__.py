"""
Receiving Kernel

Shared infrastructure for the reception reconciliation engine:
- Structured JSON logging
- Typed, machine-readable exceptions
- Database base classes, engine and transactional scope
- Locked-counter sequence allocation
- Bounded retry of serialization conflicts
"""

__version__ = "0.1.0"
