"""
Tests for SequenceService and sequence number formatting.

Covers:
- First allocation creates the counter row
- Strictly increasing values, independent per sequence name
- Rolled-back allocations are not consumed
- Zero-padded document numbers
"""

import pytest
from sqlalchemy import inspect as sa_inspect

from receiving_kernel.services.sequence_service import SequenceService, format_sequence_number


class TestSequenceService:

    def test_counter_table_exists(self, session):
        columns = {c["name"] for c in sa_inspect(session.bind).get_columns("sequence_counters")}

        assert {"name", "current_value"} <= columns

    def test_first_value_is_one(self, session):
        assert SequenceService(session).next_value("reception") == 1
        session.commit()

    def test_values_strictly_increase(self, session):
        seq = SequenceService(session)

        values = [seq.next_value("reception") for _ in range(5)]
        session.commit()

        assert values == [1, 2, 3, 4, 5]
        assert seq.current_value("reception") == 5

    def test_names_are_independent(self, session):
        seq = SequenceService(session)
        seq.next_value("reception")
        seq.next_value("reception")

        assert seq.next_value("return") == 1
        session.commit()

    def test_rollback_returns_the_value(self, session):
        seq = SequenceService(session)
        seq.next_value("reception")
        session.commit()

        seq.next_value("reception")
        session.rollback()

        assert seq.next_value("reception") == 2
        session.commit()

    def test_unknown_sequence_has_no_current_value(self, session):
        assert SequenceService(session).current_value("never-used") is None
        session.rollback()


class TestFormatSequenceNumber:

    @pytest.mark.parametrize(
        "prefix, value, padding, expected",
        [
            ("REC-", 1, 6, "REC-000001"),
            ("REC-", 123456, 6, "REC-123456"),
            ("REC-", 1234567, 6, "REC-1234567"),
            ("GR", 7, 3, "GR007"),
        ],
    )
    def test_format(self, prefix, value, padding, expected):
        assert format_sequence_number(prefix, value, padding) == expected
