"""
Тесты генерации вхождений расписаний.

Проверяют привязку к якорям, защиту от переполнения дня месяца,
лимит вхождений и кэширование.
"""

import logging
from calendar import monthrange
from datetime import date, datetime, timedelta

import pytest
from hypothesis import given, strategies as st, settings

from household_ledger.models.enums import RecurrenceType
from household_ledger.services.occurrence_service import (
    OccurrenceGenerator,
    add_months,
    calculate_occurrences,
    sunday_based_weekday,
)
from household_ledger.utils.cache import CacheStore
from household_ledger.utils.exceptions import InvalidRuleError


@pytest.fixture
def generator():
    return OccurrenceGenerator(cache=CacheStore("test_occurrences", max_size=64), hard_cap=500)


class TestAnchoring:
    """Привязка к якорям и граничные случаи календаря."""

    def test_monthly_day_31_falls_back_to_30th(self, generator):
        result = generator.generate(
            "FREQ=MONTHLY;INTERVAL=1", datetime(2024, 3, 31, 10, 0),
            date(2024, 4, 1), date(2024, 4, 30), day_of_month=31,
        )
        assert result == (date(2024, 4, 30),)

    def test_monthly_steps_do_not_drift(self, generator):
        """31 -> 28 февраля -> снова 31 марта."""
        result = generator.generate(
            "FREQ=MONTHLY;INTERVAL=1", date(2023, 1, 31),
            date(2023, 1, 1), date(2023, 3, 31), day_of_month=31,
        )
        assert result == (date(2023, 1, 31), date(2023, 2, 28), date(2023, 3, 31))

    def test_weekly_anchor_moves_forward_to_weekday(self, generator):
        """Создано в среду, якорь воскресенье, период 14 дней: два воскресенья."""
        created = date(2024, 1, 3)
        assert sunday_based_weekday(created) == 3

        result = generator.generate(
            "FREQ=WEEKLY;INTERVAL=1", created,
            created, created + timedelta(days=13), day_of_week=0,
        )
        assert result == (date(2024, 1, 7), date(2024, 1, 14))
        assert all(sunday_based_weekday(d) == 0 for d in result)

    def test_yearly_leap_day_clamped(self, generator):
        result = generator.generate(
            "FREQ=YEARLY;INTERVAL=1", date(2020, 5, 10),
            date(2020, 1, 1), date(2024, 12, 31), day_of_month=29, month_of_year=1,
        )
        assert result == (
            date(2021, 2, 28), date(2022, 2, 28), date(2023, 2, 28), date(2024, 2, 29),
        )

    def test_quarterly_every_three_months(self, generator):
        result = generator.generate(
            "FREQ=QUARTERLY;INTERVAL=1", date(2024, 1, 15),
            date(2024, 1, 1), date(2024, 12, 31), day_of_month=15,
        )
        assert result == (date(2024, 1, 15), date(2024, 4, 15), date(2024, 7, 15), date(2024, 10, 15))

    def test_missing_anchor_uses_creation_day(self, generator):
        result = generator.generate(
            "FREQ=MONTHLY;INTERVAL=2", date(2024, 1, 20),
            date(2024, 1, 1), date(2024, 6, 30),
        )
        assert result == (date(2024, 1, 20), date(2024, 3, 20), date(2024, 5, 20))

    def test_no_occurrence_before_creation(self, generator):
        """Якорь раньше дня создания: первое вхождение в следующем месяце."""
        result = generator.generate(
            "FREQ=MONTHLY;INTERVAL=1", date(2024, 1, 20),
            date(2023, 12, 1), date(2024, 2, 29), day_of_month=3,
        )
        assert result == (date(2024, 2, 3),)

    def test_reversed_range_is_empty(self, generator):
        assert generator.generate(
            "FREQ=DAILY;INTERVAL=1", date(2024, 1, 1), date(2024, 2, 1), date(2024, 1, 1)
        ) == ()

    def test_invalid_rule_raises(self, generator):
        with pytest.raises(InvalidRuleError):
            generator.generate("FREQ=HOURLY", date(2024, 1, 1), date(2024, 1, 1), date(2024, 2, 1))


class TestHardCapAndCache:
    """Лимит вхождений и кэширование результатов."""

    def test_ten_year_daily_range_is_capped(self, generator, caplog):
        with caplog.at_level(logging.WARNING, logger="household_ledger.services.occurrence_service"):
            result = generator.generate(
                "FREQ=DAILY;INTERVAL=1", date(2015, 1, 1), date(2015, 1, 1), date(2024, 12, 31)
            )
        assert len(result) == 500
        assert result[0] == date(2015, 1, 1)
        assert any("лимит" in record.getMessage() for record in caplog.records)

    def test_exact_cap_does_not_warn(self, caplog):
        generator = OccurrenceGenerator(cache=CacheStore("small"), hard_cap=10)
        with caplog.at_level(logging.WARNING):
            result = generator.generate(
                "FREQ=DAILY;INTERVAL=1", date(2024, 1, 1), date(2024, 1, 1), date(2024, 1, 10)
            )
        assert len(result) == 10
        assert not caplog.records

    def test_repeated_call_served_from_cache(self, generator):
        args = ("FREQ=WEEKLY;INTERVAL=1", date(2024, 1, 1), date(2024, 1, 1), date(2024, 3, 1))
        first = generator.generate(*args, day_of_week=5)
        second = generator.generate(*args, day_of_week=5)

        assert first is second
        assert generator.cache.hits == 1
        assert len(generator.cache) == 1

    def test_different_anchor_is_different_cache_entry(self, generator):
        args = ("FREQ=WEEKLY;INTERVAL=1", date(2024, 1, 1), date(2024, 1, 1), date(2024, 3, 1))
        generator.generate(*args, day_of_week=1)
        generator.generate(*args, day_of_week=2)
        assert len(generator.cache) == 2
        assert generator.cache.hits == 0

    def test_cache_is_bounded(self):
        generator = OccurrenceGenerator(cache=CacheStore("bounded", max_size=2))
        for day in range(1, 5):
            generator.generate("FREQ=DAILY;INTERVAL=1", date(2024, 1, day), date(2024, 1, 1), date(2024, 1, 31))
        assert len(generator.cache) == 2

    def test_module_level_helper(self):
        result = calculate_occurrences("FREQ=DAILY;INTERVAL=7", date(2024, 1, 1), date(2024, 1, 1), date(2024, 1, 31))
        assert result == (date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15), date(2024, 1, 22), date(2024, 1, 29))


# Стратегии генерации данных
creation_dates = st.dates(min_value=date(2000, 1, 1), max_value=date(2030, 12, 31))
days_of_month = st.integers(min_value=1, max_value=31)
intervals = st.integers(min_value=1, max_value=6)


class TestOccurrenceProperties:
    """Property-based тесты генерации вхождений."""

    @given(created=creation_dates, anchor=days_of_month, interval=intervals)
    @settings(max_examples=100, deadline=None)
    def test_property_3_monthly_safe_day(self, created, anchor, interval):
        """
        Property 3: Месячное вхождение всегда приходится на min(якорь, дней в месяце).
        """
        generator = OccurrenceGenerator(cache=CacheStore("prop"))
        result = generator.generate(
            f"FREQ=MONTHLY;INTERVAL={interval}", created,
            created, add_months(created, 36, created.day), day_of_month=anchor,
        )
        assert result
        for occurrence in result:
            assert occurrence.day == min(anchor, monthrange(occurrence.year, occurrence.month)[1])

    @given(
        created=creation_dates,
        recurrence_type=st.sampled_from(list(RecurrenceType)),
        interval=intervals,
        offset=st.integers(min_value=-400, max_value=400),
        length=st.integers(min_value=0, max_value=800),
    )
    @settings(max_examples=100, deadline=None)
    def test_property_4_results_in_range_sorted_unique(self, created, recurrence_type, interval, offset, length):
        """
        Property 4: Все вхождения лежат в периоде, не раньше создания,
        строго возрастают и их не больше лимита.
        """
        generator = OccurrenceGenerator(cache=CacheStore("prop"), hard_cap=500)
        start = created + timedelta(days=offset)
        end = start + timedelta(days=length)
        result = generator.generate(f"FREQ={recurrence_type.value};INTERVAL={interval}", created, start, end)

        assert len(result) <= 500
        assert list(result) == sorted(set(result))
        for occurrence in result:
            assert max(start, created) <= occurrence <= end

    @given(created=creation_dates, anchor=st.integers(min_value=0, max_value=6), interval=intervals)
    @settings(max_examples=100, deadline=None)
    def test_property_5_weekly_spacing(self, created, anchor, interval):
        """
        Property 5: Недельные вхождения приходятся на якорный день недели
        и отстоят друг от друга на 7 * интервал дней.
        """
        generator = OccurrenceGenerator(cache=CacheStore("prop"))
        result = generator.generate(
            f"FREQ=WEEKLY;INTERVAL={interval}", created,
            created, created + timedelta(days=200), day_of_week=anchor,
        )
        assert all(sunday_based_weekday(d) == anchor for d in result)
        for previous, current in zip(result, result[1:]):
            assert (current - previous).days == 7 * interval
