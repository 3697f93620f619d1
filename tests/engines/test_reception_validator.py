"""
Tests for ReceptionValidator.

Covers:
- Successful validation and line index annotation
- Each rejection kind and the order in which they are checked
- All-or-nothing behaviour
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from receiving_engines.ledger import QuantityLedger
from receiving_engines.validation import ReceptionValidator
from receiving_kernel.domain.dtos import ProposedReceptionLine
from receiving_kernel.exceptions import (
    DuplicateLineInSubmissionError,
    EmptySubmissionError,
    InvalidQuantityError,
    OverReceiptError,
    QuantitySplitMismatchError,
    ReceptionValidationError,
    UnknownOrderLineError,
)
from tests.builders import make_order, make_reception, proposed


class TestValidSubmissions:

    def setup_method(self):
        self.validator = ReceptionValidator()

    def test_returns_one_line_per_proposal(self):
        order = make_order(["100", "50"], unit_prices=["2.50", "4"])
        a, b = (line.id for line in order.lines)

        validated = self.validator.validate(
            order, QuantityLedger.empty(order), [proposed(a, "40"), proposed(b, "50", rejected="10")],
        )

        assert [v.order_line_id for v in validated] == [a, b]
        assert validated[1].accepted_quantity == Decimal("40")
        assert validated[1].rejected_quantity == Decimal("10")
        assert validated[0].unit_price == Decimal("2.50")
        assert validated[0].accepted_value == Decimal("100.00")

    def test_line_index_continues_from_history(self):
        order = make_order(["100"])
        line_id = order.lines[0].id
        ledger = QuantityLedger.from_history(
            order,
            [make_reception(order, [(line_id, "10", "0")]), make_reception(order, [(line_id, "10", "0")])],
        )

        validated = self.validator.validate(order, ledger, [proposed(line_id, "5")])

        assert validated[0].line_index == 3

    def test_exact_remaining_is_allowed(self):
        order = make_order(["10"])
        line_id = order.lines[0].id
        ledger = QuantityLedger.from_history(order, [make_reception(order, [(line_id, "6", "0")])])

        validated = self.validator.validate(order, ledger, [proposed(line_id, "4")])

        assert validated[0].received_quantity == Decimal("4")

    def test_redelivery_after_rejection_is_allowed(self):
        """Rejected quantity leaves the commitment open."""
        order = make_order(["10"])
        line_id = order.lines[0].id
        ledger = QuantityLedger.from_history(order, [make_reception(order, [(line_id, "0", "10")])])

        validated = self.validator.validate(order, ledger, [proposed(line_id, "10")])

        assert validated[0].accepted_quantity == Decimal("10")

    def test_zero_quantity_line_is_valid(self):
        order = make_order(["10"])
        line_id = order.lines[0].id

        validated = self.validator.validate(order, QuantityLedger.empty(order), [proposed(line_id, "0")])

        assert validated[0].received_quantity == Decimal("0")


class TestRejections:

    def setup_method(self):
        self.validator = ReceptionValidator()
        self.order = make_order(["10", "10"])
        self.ledger = QuantityLedger.empty(self.order)
        self.a, self.b = (line.id for line in self.order.lines)

    def test_empty_submission(self):
        with pytest.raises(EmptySubmissionError):
            self.validator.validate(self.order, self.ledger, [])

    @pytest.mark.parametrize(
        "received, accepted, rejected, field",
        [
            ("-1", "-1", "0", "received_quantity"),
            ("1", "-1", "2", "accepted_quantity"),
            ("1", "2", "-1", "rejected_quantity"),
        ],
    )
    def test_negative_quantity(self, received, accepted, rejected, field):
        line = ProposedReceptionLine(
            self.a, Decimal(received), Decimal(accepted), Decimal(rejected),
        )

        with pytest.raises(InvalidQuantityError) as exc_info:
            self.validator.validate(self.order, self.ledger, [line])

        assert exc_info.value.field == field

    def test_unknown_order_line(self):
        with pytest.raises(UnknownOrderLineError):
            self.validator.validate(self.order, self.ledger, [proposed(uuid4(), "1")])

    def test_duplicate_line_in_submission(self):
        with pytest.raises(DuplicateLineInSubmissionError) as exc_info:
            self.validator.validate(
                self.order, self.ledger, [proposed(self.a, "3"), proposed(self.a, "3")],
            )

        assert exc_info.value.order_line_id == str(self.a)

    def test_split_is_checked_before_duplicates(self):
        with pytest.raises(QuantitySplitMismatchError):
            self.validator.validate(
                self.order, self.ledger,
                [proposed(self.a, "3"), proposed(self.a, "3", accepted="1", rejected="1")],
            )

    @pytest.mark.parametrize("value", ["NaN", "sNaN", "Infinity", "-Infinity"])
    def test_non_finite_quantity(self, value):
        line = ProposedReceptionLine(self.a, Decimal(value), Decimal(value), Decimal("0"))

        with pytest.raises(InvalidQuantityError) as exc_info:
            self.validator.validate(self.order, self.ledger, [line])

        assert exc_info.value.field == "received_quantity"

    def test_split_mismatch(self):
        with pytest.raises(QuantitySplitMismatchError) as exc_info:
            self.validator.validate(
                self.order, self.ledger, [proposed(self.a, "10", accepted="5", rejected="4")],
            )

        assert exc_info.value.received == Decimal("10")
        assert exc_info.value.code == "QUANTITY_SPLIT_MISMATCH"

    def test_over_receipt(self):
        with pytest.raises(OverReceiptError) as exc_info:
            self.validator.validate(self.order, self.ledger, [proposed(self.a, "11")])

        assert exc_info.value.remaining == Decimal("10")
        assert exc_info.value.received == Decimal("11")

    def test_over_receipt_counts_received_not_accepted(self):
        with pytest.raises(OverReceiptError):
            self.validator.validate(
                self.order, self.ledger, [proposed(self.a, "12", rejected="5")],
            )

    def test_first_failing_line_wins(self):
        """Lines are checked in submission order; a later bad line is not reached."""
        with pytest.raises(UnknownOrderLineError):
            self.validator.validate(
                self.order, self.ledger, [proposed(uuid4(), "1"), proposed(self.a, "99")],
            )

    def test_split_checked_before_over_receipt(self):
        with pytest.raises(QuantitySplitMismatchError):
            self.validator.validate(
                self.order, self.ledger, [proposed(self.a, "99", accepted="1", rejected="1")],
            )

    def test_all_rejections_share_a_base_class(self):
        with pytest.raises(ReceptionValidationError):
            self.validator.validate(
                self.order, self.ledger, [proposed(self.a, "1"), proposed(self.b, "11")],
            )
