"""
Сервис правил повторения расписаний.

Содержит функции для:
- Разбора строки правила (FREQ=...;INTERVAL=...)
- Сериализации правила обратно в строку
- Валидации правила при сохранении расписания
- Человекочитаемого описания расписания для отображения

Разбор строгий (ошибка -> InvalidRuleError), описание безопасное:
humanize_schedule никогда не выбрасывает исключение.
"""

import calendar
import logging
import re
from typing import Optional

from household_ledger.models.enums import RecurrenceType
from household_ledger.models.models import RecurrenceRule
from household_ledger.utils.exceptions import InvalidRuleError

# Настройка логирования
logger = logging.getLogger(__name__)

INVALID_RULE_TEXT = "Invalid recurrence rule"

# Индекс 0 = воскресенье
WEEKDAY_NAMES = (
    "Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday",
)

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def parse_recurrence_rule(rule_str: Optional[str]) -> RecurrenceRule:
    """
    Разбирает строку правила повторения.

    Строка состоит из токенов KEY=VALUE, разделённых ';'. Токен FREQ
    обязателен и должен содержать одну из частот RecurrenceType. Токен
    INTERVAL необязателен (по умолчанию 1); значения меньше 1 и нечисловые
    значения приводятся к 1.

    Args:
        rule_str: Строка правила, например "FREQ=MONTHLY;INTERVAL=2"

    Returns:
        RecurrenceRule с частотой и интервалом

    Raises:
        InvalidRuleError: Если строка пустая, нет FREQ или частота неизвестна

    Example:
        >>> parse_recurrence_rule("FREQ=WEEKLY;INTERVAL=0")
        RecurrenceRule(type=<RecurrenceType.WEEKLY: 'WEEKLY'>, interval=1)
    """
    if not rule_str or not rule_str.strip():
        raise InvalidRuleError("Пустое правило повторения")

    freq: Optional[str] = None
    interval_raw: Optional[str] = None
    for part in rule_str.split(";"):
        part = part.strip()
        if part.startswith("FREQ=") and freq is None:
            freq = part[len("FREQ="):]
        elif part.startswith("INTERVAL=") and interval_raw is None:
            interval_raw = part[len("INTERVAL="):]

    if freq is None:
        raise InvalidRuleError(f"В правиле повторения нет FREQ: '{rule_str}'")

    try:
        recurrence_type = RecurrenceType(freq)
    except ValueError:
        raise InvalidRuleError(f"Неизвестная частота повторения: '{freq}'") from None

    interval = 1
    if interval_raw is not None:
        match = _LEADING_INT.match(interval_raw)
        if match:
            interval = max(1, int(match.group(1)))

    return RecurrenceRule(type=recurrence_type, interval=interval)


def format_recurrence_rule(rule: RecurrenceRule) -> str:
    """
    Сериализует правило в строку FREQ=<type>;INTERVAL=<interval>.

    Обратная операция к parse_recurrence_rule.
    """
    return f"FREQ={rule.type.value};INTERVAL={rule.interval}"


def validate_recurrence_rule(rule_str: Optional[str]) -> str:
    """
    Проверяет строку правила перед сохранением расписания.

    Args:
        rule_str: Строка правила

    Returns:
        Нормализованная строка правила (например, INTERVAL=0 -> INTERVAL=1)

    Raises:
        InvalidRuleError: Если правило некорректно
    """
    try:
        rule = parse_recurrence_rule(rule_str)
    except InvalidRuleError as e:
        logger.error(f"Некорректное правило повторения: {e}")
        raise
    return format_recurrence_rule(rule)


def ordinal_suffix(n: int) -> str:
    """
    Возвращает английский порядковый суффикс числа.

    11-13 всегда "th", иначе по последней цифре: 1 -> "st", 2 -> "nd", 3 -> "rd".

    Example:
        >>> ordinal_suffix(22), ordinal_suffix(12)
        ('nd', 'th')
    """
    if 11 <= n % 100 <= 13:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")


def _ordinal(n: int) -> str:
    return f"{n}{ordinal_suffix(n)}"


def _describe(rule: RecurrenceRule, day_of_month: Optional[int],
              day_of_week: Optional[int], month_of_year: Optional[int]) -> str:
    interval = rule.interval

    if rule.type == RecurrenceType.DAILY:
        return "Daily" if interval == 1 else f"Every {interval} days"

    if rule.type == RecurrenceType.WEEKLY:
        text = "Weekly" if interval == 1 else f"Every {interval} weeks"
        if day_of_week is not None:
            text += f" on {WEEKDAY_NAMES[day_of_week]}"
        return text

    if rule.type == RecurrenceType.MONTHLY:
        text = "Monthly" if interval == 1 else f"Every {interval} months"
    elif rule.type == RecurrenceType.QUARTERLY:
        text = "Quarterly" if interval == 1 else f"Every {interval} quarters"
    else:
        text = "Annually" if interval == 1 else f"Every {interval} years"
        if month_of_year is not None:
            month_name = calendar.month_name[month_of_year + 1]
            if day_of_month is not None:
                return f"{text} on {month_name} {_ordinal(day_of_month)}"
            return f"{text} in {month_name}"

    if day_of_month is not None:
        text += f" on the {_ordinal(day_of_month)}"
    return text


def humanize_schedule(schedule) -> str:
    """
    Человекочитаемое описание расписания для отображения.

    Использует строку правила и якорные поля расписания
    (day_of_month, day_of_week, month_of_year). Любая ошибка разбора
    превращается в строку "Invalid recurrence rule".

    Args:
        schedule: Объект с атрибутами recurrence_rule, day_of_month,
                  day_of_week, month_of_year (ScheduleDB или pydantic модель)

    Returns:
        Описание, например "Monthly on the 3rd", "Every 2 weeks on Tuesday",
        "Annually on March 1st"
    """
    try:
        rule = parse_recurrence_rule(getattr(schedule, "recurrence_rule", None))
        return _describe(
            rule,
            getattr(schedule, "day_of_month", None),
            getattr(schedule, "day_of_week", None),
            getattr(schedule, "month_of_year", None),
        )
    except (InvalidRuleError, IndexError, TypeError) as e:
        logger.debug(f"Не удалось описать правило повторения: {e}")
        return INVALID_RULE_TEXT
