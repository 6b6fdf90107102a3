"""Tests for recurrence calculation."""

from datetime import UTC, date, datetime

import pytest

from src.core.errors import ValidationError
from src.core.recurrence import (
    day_delta,
    describe,
    end_of_day,
    is_due_on,
    local_date,
    next_occurrence,
    rule_from_fields,
    start_of_day,
    to_cron,
)
from src.domain.template import Daily, Monthly, Weekly


WEDNESDAY = date(2026, 10, 14)
MONDAY = 1


@pytest.mark.unit
class TestNextOccurrence:
    def test_daily_is_next_day(self):
        assert next_occurrence(Daily(), WEDNESDAY) == date(2026, 10, 15)

    def test_daily_includes_anchor_on_creation(self):
        assert next_occurrence(Daily(), WEDNESDAY, include_anchor=True) == WEDNESDAY

    def test_daily_crosses_month_and_year(self):
        assert next_occurrence(Daily(), date(2026, 12, 31)) == date(2027, 1, 1)

    def test_weekly_from_wednesday_is_following_monday(self):
        result = next_occurrence(Weekly(day_of_week=MONDAY), WEDNESDAY)

        assert result == date(2026, 10, 19)
        assert result.weekday() == 0
        assert day_delta(WEDNESDAY, result) == 5

    def test_weekly_never_returns_today_for_regeneration(self):
        wednesday_rule = Weekly(day_of_week=3)

        assert next_occurrence(wednesday_rule, WEDNESDAY) == date(2026, 10, 21)

    def test_weekly_returns_today_on_creation_when_matching(self):
        wednesday_rule = Weekly(day_of_week=3)

        assert next_occurrence(wednesday_rule, WEDNESDAY, include_anchor=True) == WEDNESDAY

    def test_weekly_sunday_is_zero(self):
        assert next_occurrence(Weekly(day_of_week=0), WEDNESDAY) == date(2026, 10, 18)

    def test_monthly_later_this_month(self):
        assert next_occurrence(Monthly(day_of_month=20), WEDNESDAY) == date(2026, 10, 20)

    def test_monthly_today_has_not_passed(self):
        assert next_occurrence(Monthly(day_of_month=14), WEDNESDAY) == WEDNESDAY

    def test_monthly_day_28_on_the_29th_rolls_to_next_month(self):
        assert next_occurrence(Monthly(day_of_month=28), date(2026, 10, 29)) == date(2026, 11, 28)

    def test_monthly_rolls_over_year_end(self):
        assert next_occurrence(Monthly(day_of_month=5), date(2026, 12, 6)) == date(2027, 1, 5)

    def test_monthly_day_28_in_february(self):
        assert next_occurrence(Monthly(day_of_month=28), date(2027, 2, 1)) == date(2027, 2, 28)

    @pytest.mark.parametrize(
        "rule",
        [Daily(), Weekly(day_of_week=0), Weekly(day_of_week=6), Monthly(day_of_month=1), Monthly(day_of_month=28)],
    )
    def test_never_in_the_past(self, rule):
        for offset in range(60):
            anchor = date.fromordinal(WEDNESDAY.toordinal() + offset)
            assert next_occurrence(rule, anchor) >= anchor


@pytest.mark.unit
class TestIsDueOn:
    def test_daily_always_due(self):
        assert is_due_on(Daily(), WEDNESDAY)

    def test_weekly_matches_weekday(self):
        assert is_due_on(Weekly(day_of_week=3), WEDNESDAY)
        assert not is_due_on(Weekly(day_of_week=MONDAY), WEDNESDAY)
        assert is_due_on(Weekly(day_of_week=0), date(2026, 10, 18))

    def test_monthly_matches_day(self):
        assert is_due_on(Monthly(day_of_month=14), WEDNESDAY)
        assert not is_due_on(Monthly(day_of_month=15), WEDNESDAY)


@pytest.mark.unit
class TestRuleFromFields:
    def test_builds_each_variant(self):
        assert rule_from_fields("daily") == Daily()
        assert rule_from_fields("weekly", day_of_week=2) == Weekly(day_of_week=2)
        assert rule_from_fields("monthly", day_of_month=28) == Monthly(day_of_month=28)

    @pytest.mark.parametrize(
        ("pattern", "day_of_week", "day_of_month"),
        [
            ("weekly", None, None),
            ("weekly", 7, None),
            ("weekly", -1, None),
            ("monthly", None, None),
            ("monthly", None, 0),
            ("monthly", None, 29),
            ("yearly", None, None),
        ],
    )
    def test_rejects_malformed_parameters(self, pattern, day_of_week, day_of_month):
        with pytest.raises(ValidationError):
            rule_from_fields(pattern, day_of_week, day_of_month)


@pytest.mark.unit
def test_describe():
    assert describe(Daily()) == "daily"
    assert describe(Weekly(day_of_week=1)) == "every Monday"
    assert describe(Monthly(day_of_month=3)) == "monthly on the 3rd"
    assert describe(Monthly(day_of_month=11)) == "monthly on the 11th"
    assert describe(Monthly(day_of_month=22)) == "monthly on the 22nd"


@pytest.mark.unit
def test_to_cron():
    assert to_cron(Weekly(day_of_week=1)) == "0 0 * * 1"
    assert to_cron(Monthly(day_of_month=15)) == "0 0 15 * *"


@pytest.mark.unit
class TestDayHelpers:
    def test_end_of_day_is_last_millisecond_in_zone(self):
        result = end_of_day(WEDNESDAY, "America/New_York")

        assert result.tzinfo is not None
        assert result == datetime(2026, 10, 15, 3, 59, 59, 999000, tzinfo=UTC)

    def test_start_of_day_in_zone(self):
        assert start_of_day(WEDNESDAY, "Asia/Tokyo") == datetime(2026, 10, 13, 15, 0, tzinfo=UTC)

    def test_local_date_crosses_midnight(self):
        instant = datetime(2026, 10, 14, 23, 30, tzinfo=UTC)

        assert local_date(instant, "UTC") == WEDNESDAY
        assert local_date(instant, "Europe/Berlin") == date(2026, 10, 15)

    def test_unknown_zone_is_validation_error(self):
        with pytest.raises(ValidationError):
            local_date(datetime(2026, 10, 14, tzinfo=UTC), "Mars/Olympus")
