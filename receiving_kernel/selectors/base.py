"""
Base class for read-side query objects.

A selector borrows the caller's session, runs SELECTs and returns DTOs or
computed values.  It never adds, deletes, flushes or commits, and never
asks for row locks, so reporting reads do not queue behind submissions.
"""

from sqlalchemy.orm import Session


class BaseSelector:
    """Holds the borrowed session; subclasses add the queries."""

    def __init__(self, session: Session):
        self.session = session
