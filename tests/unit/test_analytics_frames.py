"""
Unit Tests - Analytics Computations
"""
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from cardlink.analytics.account_report import (
    change_percent,
    conversion_rate,
    daily_series,
    monthly_series,
    weekly_series,
)
from cardlink.analytics.report import (
    accounts_frame,
    count_active,
    count_created_between,
    counter_totals,
    growth_rate,
    monthly_registrations,
    top_companies,
)
from cardlink.analytics.windows import days_before, round_half_up, trailing_months

AS_OF = datetime(2026, 10, 19, 15, 30)


def make_row(**fields):
    defaults = {
        "id": "acct",
        "full_name": "Jane Doe",
        "email_address": "jane@example.com",
        "primary_contact_number": "+1 555 0100",
        "phone_number": None,
        "company_name": None,
        "created_at": AS_OF,
        "total_views": 0,
        "total_contact_saves": 0,
    }
    defaults.update(fields)
    return SimpleNamespace(**defaults)


class TestGrowthRate:
    """Tests for growth_rate"""

    @pytest.mark.parametrize("recent,previous,expected", [
        (15, 10, "50%"),
        (3, 0, "100%"),
        (0, 0, "0%"),
        (5, 10, "-50%"),
        (0, 4, "-100%"),
        (7, 8, "-12%"),
        (1, 8, "-87%"),
        (3, 8, "-62%"),
    ])
    def test_examples(self, recent, previous, expected):
        assert growth_rate(recent, previous) == expected

    def test_round_half_up(self):
        assert round_half_up(12.5) == 13
        assert round_half_up(-12.5) == -12
        assert round_half_up(2.4999) == 2


class TestTopCompanies:
    """Tests for top_companies"""

    def test_counts_with_independent_fallback(self):
        frame = accounts_frame([
            make_row(id="a", company_name="Acme"),
            make_row(id="b", company_name="Acme"),
            make_row(id="c", company_name="Globex"),
            make_row(id="d", company_name=None),
        ])

        result = [(c.name, c.count) for c in top_companies(frame, 5)]

        assert result == [("Acme", 2), ("Globex", 1), ("Independent", 1)]

    def test_ties_keep_first_seen_order(self):
        frame = accounts_frame([
            make_row(id="a", company_name=None),
            make_row(id="b", company_name="Globex"),
            make_row(id="c", company_name="Acme"),
        ])

        assert [c.name for c in top_companies(frame, 5)] == ["Independent", "Globex", "Acme"]

    def test_limit(self):
        frame = accounts_frame([make_row(id=str(i), company_name=f"Co {i}") for i in range(8)])

        assert len(top_companies(frame, 5)) == 5

    def test_empty_frame(self):
        assert top_companies(accounts_frame([]), 5) == []


class TestAccountFrame:
    """Tests for frame-level counts"""

    def test_active_requires_name_email_and_a_phone(self):
        frame = accounts_frame([
            make_row(id="a"),
            make_row(id="b", primary_contact_number=None, phone_number="+1 555 0101"),
            make_row(id="c", primary_contact_number=None),
            make_row(id="d", email_address=""),
            make_row(id="e", full_name=None),
        ])

        assert count_active(frame) == 2

    def test_created_between_bounds(self):
        start = AS_OF - timedelta(days=30)
        frame = accounts_frame([
            make_row(id="a", created_at=start),
            make_row(id="b", created_at=AS_OF),
            make_row(id="c", created_at=start - timedelta(seconds=1)),
        ])

        assert count_created_between(frame, start, AS_OF) == 1
        assert count_created_between(frame, start, AS_OF, closed="both") == 2

    def test_counter_totals(self):
        frame = accounts_frame([
            make_row(id="a", total_views=3, total_contact_saves=1),
            make_row(id="b", total_views=4, total_contact_saves=None),
        ])

        assert counter_totals(frame) == (7, 1)

    def test_monthly_registrations(self):
        frame = accounts_frame([
            make_row(id="a", created_at=datetime(2026, 10, 1)),
            make_row(id="b", created_at=datetime(2026, 9, 30, 23, 59)),
            make_row(id="c", created_at=datetime(2026, 5, 15)),
            make_row(id="d", created_at=datetime(2026, 4, 30)),
        ])

        stats = monthly_registrations(frame, AS_OF, 6)

        assert [s.month for s in stats] == ["May 26", "Jun 26", "Jul 26", "Aug 26", "Sep 26", "Oct 26"]
        assert [s.registrations for s in stats] == [1, 0, 0, 0, 1, 1]


class TestWindows:
    """Tests for time window helpers"""

    def test_trailing_months_cross_year(self):
        bounds = trailing_months(datetime(2026, 2, 10), 3)

        assert bounds == [
            (datetime(2025, 12, 1), datetime(2026, 1, 1)),
            (datetime(2026, 1, 1), datetime(2026, 2, 1)),
            (datetime(2026, 2, 1), datetime(2026, 3, 1)),
        ]

    def test_days_before_is_midnight(self):
        assert days_before(AS_OF, 7) == datetime(2026, 10, 12)


class TestAccountSeries:
    """Tests for per-account report helpers"""

    def test_conversion_rate(self):
        assert conversion_rate(0, 0) == "0%"
        assert conversion_rate(8, 3) == "37.5%"
        assert conversion_rate(3, 1) == "33.3%"

    @pytest.mark.parametrize("current,previous,expected", [
        (6, 4, "50.0%"),
        (3, 0, "+100%"),
        (0, 0, "0%"),
        (1, 3, "-66.7%"),
    ])
    def test_change_percent(self, current, previous, expected):
        assert change_percent(current, previous) == expected

    def test_daily_series_shape(self):
        views = [AS_OF, AS_OF - timedelta(hours=1), AS_OF - timedelta(days=29), AS_OF - timedelta(days=30)]
        saves = [AS_OF - timedelta(days=1)]

        points = daily_series(views, saves, AS_OF)

        assert len(points) == 30
        assert points[0].date == "2026-09-20"
        assert points[-1].date == "2026-10-19"
        assert points[-1].views == 2
        assert points[-2].saves == 1
        assert points[0].views == 1
        assert sum(p.views for p in points) == 3

    def test_weekly_series_labels(self):
        points = weekly_series([AS_OF], [], AS_OF)

        assert len(points) == 12
        assert points[-1].week == "Oct 19"
        assert points[-1].views == 1
        assert points[-2].week == "Oct 12"

    def test_monthly_series(self):
        points = monthly_series([datetime(2026, 10, 2), datetime(2026, 8, 31)], [datetime(2026, 9, 5)], AS_OF)

        assert [p.month for p in points][-1] == "Oct 26"
        assert (points[-1].views, points[-2].saves, points[-3].views) == (1, 1, 1)
