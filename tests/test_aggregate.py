"""Tests for monthly/yearly roll-ups and duration labels."""

from __future__ import annotations

from decimal import Decimal

import pytest

from loan_ledger.aggregate import aggregate_timeline, format_duration
from loan_ledger.projection import project_with_extras


class TestAggregateTimeline:
    def test_monthly_buckets(self, zero_apr_loan):
        timeline = project_with_extras(zero_apr_loan, 1200).timeline
        buckets = aggregate_timeline(timeline, "monthly")
        assert len(buckets) == 12
        assert buckets[0].period == "2024-02"
        assert all(b.paid == Decimal("100.00") for b in buckets)
        assert buckets[-1].balance == Decimal("0")

    def test_yearly_buckets_sum_to_totals(self, zero_apr_loan):
        projection = project_with_extras(zero_apr_loan, 1200)
        buckets = aggregate_timeline(projection.timeline, "yearly")
        assert [b.period for b in buckets] == ["2024", "2025"]
        assert buckets[0].paid == Decimal("1100.00")
        assert buckets[0].balance == Decimal("100.00")
        assert buckets[1].principal == Decimal("100.00")
        assert sum(b.paid for b in buckets) == projection.totals.total_paid

    def test_interest_split_matches_cumulative_columns(self, standard_mortgage):
        projection = project_with_extras(standard_mortgage, 100000)
        buckets = aggregate_timeline(projection.timeline, "yearly")
        assert sum(b.interest for b in buckets) == projection.totals.total_interest
        assert sum(b.principal for b in buckets) == projection.totals.total_principal

    def test_empty_timeline(self):
        assert aggregate_timeline([], "monthly") == []

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            aggregate_timeline([], "weekly")


class TestFormatDuration:
    @pytest.mark.parametrize(
        "days, expected",
        [
            (0, ""),
            (-3, ""),
            (1, "1 day"),
            (12, "12 days"),
            (30, "1 mo"),
            (45, "2 mos"),
            (365, "1 yr"),
            (400, "1 yr 1 mo"),
            (730, "2 yrs"),
        ],
    )
    def test_labels(self, days, expected):
        assert format_duration(days) == expected
