"""
Receiving Modules.

Thin orchestration layers over the receiving kernel and engines.
Each module contains:
- ORM models (persistence of the nouns)
- Workflows (state machines)
- Configuration schemas (settings)
- Events (outbound notifications)
- A service facade owning the transaction boundary

Modules:
- Reception: goods receipts against purchase orders, line inspection,
  reconciliation metrics
"""

from receiving_modules import reception

__all__ = ["reception"]
