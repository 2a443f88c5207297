"""
Тесты для правил повторения (разбор, сериализация, описание).

Использует Hypothesis для проверки инвариантов разбора.
"""

import unittest
from types import SimpleNamespace

import pytest
from hypothesis import given, strategies as st, settings

from household_ledger.models.enums import RecurrenceType
from household_ledger.models.models import RecurrenceRule
from household_ledger.services.recurrence_service import (
    INVALID_RULE_TEXT,
    format_recurrence_rule,
    humanize_schedule,
    ordinal_suffix,
    parse_recurrence_rule,
    validate_recurrence_rule,
)
from household_ledger.utils.exceptions import InvalidRuleError, ValidationError


def _schedule(rule, day_of_month=None, day_of_week=None, month_of_year=None):
    return SimpleNamespace(
        recurrence_rule=rule,
        day_of_month=day_of_month,
        day_of_week=day_of_week,
        month_of_year=month_of_year,
    )


class TestRecurrenceRuleProperties:
    """Property-based тесты разбора правил."""

    @given(
        recurrence_type=st.sampled_from(list(RecurrenceType)),
        interval=st.integers(min_value=1, max_value=10_000),
    )
    @settings(max_examples=100, deadline=None)
    def test_property_1_round_trip(self, recurrence_type, interval):
        """
        Property 1: Сериализация и разбор обратимы.

        Инвариант: parse(format(rule)) == rule для любого корректного правила.
        """
        rule = RecurrenceRule(type=recurrence_type, interval=interval)
        assert parse_recurrence_rule(format_recurrence_rule(rule)) == rule

    @given(
        recurrence_type=st.sampled_from(list(RecurrenceType)),
        interval=st.integers(max_value=0),
    )
    @settings(max_examples=100, deadline=None)
    def test_property_2_interval_clamped_to_one(self, recurrence_type, interval):
        """
        Property 2: Интервал меньше 1 приводится к 1.
        """
        rule = parse_recurrence_rule(f"FREQ={recurrence_type.value};INTERVAL={interval}")
        assert rule.interval == 1
        assert rule.type == recurrence_type


class TestParseRecurrenceRule(unittest.TestCase):
    """Unit тесты строгого разбора."""

    def test_interval_zero_and_negative_clamped(self):
        """INTERVAL=0 и INTERVAL=-3 дают интервал 1."""
        self.assertEqual(parse_recurrence_rule("FREQ=WEEKLY;INTERVAL=0").interval, 1)
        self.assertEqual(parse_recurrence_rule("FREQ=WEEKLY;INTERVAL=-3").interval, 1)

    def test_missing_interval_defaults_to_one(self):
        rule = parse_recurrence_rule("FREQ=DAILY")
        self.assertEqual(rule, RecurrenceRule(type=RecurrenceType.DAILY, interval=1))

    def test_non_numeric_interval_clamped(self):
        self.assertEqual(parse_recurrence_rule("FREQ=MONTHLY;INTERVAL=abc").interval, 1)

    def test_token_order_does_not_matter(self):
        rule = parse_recurrence_rule("INTERVAL=2;FREQ=QUARTERLY")
        self.assertEqual(rule, RecurrenceRule(type=RecurrenceType.QUARTERLY, interval=2))

    def test_rejects_empty_string(self):
        with self.assertRaises(InvalidRuleError):
            parse_recurrence_rule("")

    def test_rejects_unknown_frequency(self):
        with self.assertRaises(InvalidRuleError):
            parse_recurrence_rule("FREQ=BOGUS")

    def test_rejects_missing_frequency(self):
        with self.assertRaises(InvalidRuleError):
            parse_recurrence_rule("INTERVAL=2")

    def test_invalid_rule_error_is_validation_and_value_error(self):
        with self.assertRaises(ValidationError):
            parse_recurrence_rule(None)
        with self.assertRaises(ValueError):
            parse_recurrence_rule("FREQ=")

    def test_validate_returns_normalized_rule(self):
        self.assertEqual(validate_recurrence_rule("FREQ=YEARLY;INTERVAL=-1"), "FREQ=YEARLY;INTERVAL=1")


@pytest.mark.parametrize("n, expected", [
    (1, "st"), (2, "nd"), (3, "rd"), (4, "th"),
    (11, "th"), (12, "th"), (13, "th"),
    (21, "st"), (22, "nd"), (23, "rd"), (31, "st"), (111, "th"),
])
def test_ordinal_suffix(n, expected):
    assert ordinal_suffix(n) == expected


class TestHumanizeSchedule:
    """Тесты человекочитаемого описания расписания."""

    @pytest.mark.parametrize("schedule, expected", [
        (_schedule("FREQ=MONTHLY;INTERVAL=1", day_of_month=3), "Monthly on the 3rd"),
        (_schedule("FREQ=WEEKLY;INTERVAL=2", day_of_week=2), "Every 2 weeks on Tuesday"),
        (_schedule("FREQ=YEARLY;INTERVAL=1", day_of_month=1, month_of_year=2), "Annually on March 1st"),
        (_schedule("FREQ=DAILY;INTERVAL=1"), "Daily"),
        (_schedule("FREQ=DAILY;INTERVAL=3"), "Every 3 days"),
        (_schedule("FREQ=QUARTERLY;INTERVAL=1", day_of_month=15), "Quarterly on the 15th"),
        (_schedule("FREQ=MONTHLY;INTERVAL=6", day_of_month=12), "Every 6 months on the 12th"),
        (_schedule("FREQ=WEEKLY;INTERVAL=1", day_of_week=0), "Weekly on Sunday"),
        (_schedule("FREQ=MONTHLY;INTERVAL=1"), "Monthly"),
    ])
    def test_descriptions(self, schedule, expected):
        assert humanize_schedule(schedule) == expected

    @pytest.mark.parametrize("rule", ["", "FREQ=BOGUS", "INTERVAL=2", None])
    def test_invalid_rule_returns_fallback(self, rule):
        """Ошибка разбора не выбрасывается, а заменяется фиксированной строкой."""
        assert humanize_schedule(_schedule(rule)) == INVALID_RULE_TEXT

    def test_strict_parser_still_raises_after_fallback(self):
        humanize_schedule(_schedule("FREQ=BOGUS"))
        with pytest.raises(InvalidRuleError):
            parse_recurrence_rule("FREQ=BOGUS")
