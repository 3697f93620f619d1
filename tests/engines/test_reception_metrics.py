"""Tests for aggregate_reception_metrics and MetricsFilter."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from receiving_engines.metrics import MetricsFilter, aggregate_reception_metrics, as_utc
from receiving_kernel.domain.dtos import ReceptionStatus
from tests.builders import CREATED_AT, make_order, make_reception


class TestAggregateReceptionMetrics:

    def test_empty_input(self):
        metrics = aggregate_reception_metrics([], {})

        assert metrics.total_receptions == 0
        assert metrics.open_receptions == 0
        assert metrics.approval_rate == Decimal("0")
        assert metrics.mean_inspection_latency == timedelta(0)
        assert metrics.total_accepted_value == Decimal("0")

    def test_totals_and_rate(self):
        order = make_order(["100", "100"], unit_prices=["2", "3"])
        a, b = (line.id for line in order.lines)
        receptions = [
            make_reception(order, [(a, "60", "0")], status=ReceptionStatus.APPROVED,
                           completed_at=CREATED_AT + timedelta(hours=2)),
            make_reception(order, [(b, "10", "30")], status=ReceptionStatus.IN_INSPECTION),
        ]

        metrics = aggregate_reception_metrics(receptions, {a: Decimal("2"), b: Decimal("3")})

        assert metrics.total_receptions == 2
        assert metrics.open_receptions == 1
        assert metrics.total_received_quantity == Decimal("100")
        assert metrics.total_accepted_quantity == Decimal("70")
        assert metrics.total_rejected_quantity == Decimal("30")
        assert metrics.approval_rate == Decimal("0.7")
        assert metrics.total_accepted_value == Decimal("150")
        assert metrics.mean_inspection_latency == timedelta(hours=2)
        assert metrics.mean_inspection_latency_hours == Decimal("2")

    def test_latency_only_over_completed_receptions(self):
        order = make_order(["100"])
        line_id = order.lines[0].id
        receptions = [
            make_reception(order, [(line_id, "1", "0")], completed_at=CREATED_AT + timedelta(hours=1)),
            make_reception(order, [(line_id, "1", "0")], completed_at=CREATED_AT + timedelta(hours=3)),
            make_reception(order, [(line_id, "1", "0")]),
        ]

        metrics = aggregate_reception_metrics(receptions, {})

        assert metrics.mean_inspection_latency == timedelta(hours=2)

    def test_naive_and_aware_timestamps_mix(self):
        order = make_order(["100"])
        line_id = order.lines[0].id
        naive_created = CREATED_AT.replace(tzinfo=None)
        reception = make_reception(
            order, [(line_id, "1", "0")],
            created_at=naive_created,
            completed_at=CREATED_AT + timedelta(minutes=30),
        )

        metrics = aggregate_reception_metrics([reception], {})

        assert metrics.mean_inspection_latency == timedelta(minutes=30)

    def test_missing_unit_price_values_at_zero(self):
        order = make_order(["100"])
        line_id = order.lines[0].id

        metrics = aggregate_reception_metrics([make_reception(order, [(line_id, "5", "0")])], {})

        assert metrics.total_accepted_value == Decimal("0")


class TestMetricsFilter:

    def test_unbounded_includes_everything(self):
        assert MetricsFilter().includes(CREATED_AT)

    def test_bounds_are_inclusive(self):
        f = MetricsFilter(date_from=CREATED_AT, date_to=CREATED_AT)

        assert f.includes(CREATED_AT)
        assert not f.includes(CREATED_AT + timedelta(seconds=1))
        assert not f.includes(CREATED_AT - timedelta(seconds=1))

    def test_as_utc_converts_offsets(self):
        plus_two = timezone(timedelta(hours=2))
        local = datetime(2024, 1, 1, 14, 0, tzinfo=plus_two)

        assert as_utc(local) == CREATED_AT
        assert as_utc(local).tzinfo == timezone.utc
