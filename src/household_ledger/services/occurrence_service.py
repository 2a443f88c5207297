"""
Сервис генерации вхождений расписаний.

Содержит:
- Вычисление дат, на которые приходится расписание в заданном периоде
- Привязку к якорям (день месяца, день недели, месяц года)
- Защиту от переполнения дня месяца (31 -> 30/28/29) без дрейфа
- Ограничение количества вхождений (hard cap)
- Кэширование результатов в CacheStore

Генерация не обращается к БД и не имеет побочных эффектов,
кроме записи в кэш и предупреждения в лог при достижении лимита.
"""

import logging
from calendar import monthrange
from datetime import date, datetime, timedelta
from typing import Optional, Tuple, Union

from household_ledger.config import settings
from household_ledger.models.enums import RecurrenceType
from household_ledger.models.models import RecurrenceRule
from household_ledger.services.recurrence_service import parse_recurrence_rule
from household_ledger.utils.cache import CacheStore

# Настройка логирования
logger = logging.getLogger(__name__)

DateLike = Union[date, datetime]


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def sunday_based_weekday(value: date) -> int:
    """
    Номер дня недели, где 0 = воскресенье, 6 = суббота.

    Example:
        >>> sunday_based_weekday(date(2024, 1, 7))  # Воскресенье
        0
    """
    return (value.weekday() + 1) % 7


def clamp_day(year: int, month: int, day: int) -> date:
    """
    Возвращает дату с днём, ограниченным количеством дней в месяце.

    Example:
        >>> clamp_day(2023, 2, 31)
        datetime.date(2023, 2, 28)
    """
    return date(year, month, min(day, monthrange(year, month)[1]))


def add_months(value: date, months: int, anchor_day: int) -> date:
    """
    Сдвигает дату на N месяцев с привязкой к якорному дню.

    День всегда вычисляется от якоря, а не от текущей даты, поэтому
    31 -> 28 февраля -> 31 марта (без дрейфа).
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    return clamp_day(year, month, anchor_day)


class OccurrenceGenerator:
    """
    Генератор дат вхождений расписания.

    Результаты кэшируются по ключу (правило, якоря, дата создания, период).
    Кэш принадлежит экземпляру генератора.

    Args:
        cache: Хранилище кэша (по умолчанию новое, размер из настроек)
        hard_cap: Максимальное число вхождений за один вызов

    Example:
        >>> generator = OccurrenceGenerator()
        >>> generator.generate("FREQ=MONTHLY;INTERVAL=1", date(2024, 1, 31),
        ...                    date(2024, 1, 1), date(2024, 3, 31), day_of_month=31)
        (datetime.date(2024, 1, 31), datetime.date(2024, 2, 29), datetime.date(2024, 3, 31))
    """

    def __init__(self, cache: Optional[CacheStore] = None, hard_cap: Optional[int] = None):
        self.cache = cache if cache is not None else CacheStore(
            "occurrences", max_size=settings.occurrence_cache_size
        )
        self.hard_cap = hard_cap if hard_cap is not None else settings.occurrence_hard_cap

    def generate(
        self,
        rule_str: str,
        created_at: DateLike,
        range_start: DateLike,
        range_end: DateLike,
        day_of_month: Optional[int] = None,
        day_of_week: Optional[int] = None,
        month_of_year: Optional[int] = None,
    ) -> Tuple[date, ...]:
        """
        Возвращает все даты вхождений в периоде [range_start, range_end].

        Алгоритм:
        1. Начальная точка: дата создания расписания
        2. Привязка к якорю (месяц и день для YEARLY, день для MONTHLY/QUARTERLY,
           ближайший день недели вперёд для WEEKLY)
        3. Перемотка шагом правила до начала периода
        4. Сбор дат до конца периода, не более hard_cap

        Отсутствующие якоря берутся из даты создания. Вхождения раньше
        даты создания не возвращаются.

        Args:
            rule_str: Строка правила повторения
            created_at: Момент создания расписания
            range_start: Начало периода (включительно)
            range_end: Конец периода (включительно)
            day_of_month: Якорный день месяца (1-31)
            day_of_week: Якорный день недели (0=воскресенье)
            month_of_year: Якорный месяц (0=январь)

        Returns:
            Кортеж дат в порядке возрастания

        Raises:
            InvalidRuleError: Если строка правила некорректна
        """
        cache_key = (
            rule_str, day_of_month, day_of_week, month_of_year,
            created_at, range_start, range_end,
        )
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        rule = parse_recurrence_rule(rule_str)
        created = _as_date(created_at)
        start = max(_as_date(range_start), created)
        end = _as_date(range_end)

        occurrences: Tuple[date, ...] = ()
        if start <= end:
            occurrences = self._collect(
                rule, created, start, end, day_of_month, day_of_week, month_of_year
            )

        self.cache.set(cache_key, occurrences)
        return occurrences

    def for_schedule(self, schedule, range_start: DateLike, range_end: DateLike) -> Tuple[date, ...]:
        """Вхождения расписания (ScheduleDB) в периоде."""
        return self.generate(
            schedule.recurrence_rule,
            schedule.created_at,
            range_start,
            range_end,
            day_of_month=schedule.day_of_month,
            day_of_week=schedule.day_of_week,
            month_of_year=schedule.month_of_year,
        )

    def _collect(
        self,
        rule: RecurrenceRule,
        created: date,
        start: date,
        end: date,
        day_of_month: Optional[int],
        day_of_week: Optional[int],
        month_of_year: Optional[int],
    ) -> Tuple[date, ...]:
        anchor_day = day_of_month if day_of_month is not None else created.day
        anchor_month = month_of_year + 1 if month_of_year is not None else created.month
        anchor_weekday = day_of_week if day_of_week is not None else sunday_based_weekday(created)

        # Шаг в днях для DAILY/WEEKLY, в месяцах для остальных
        step_days = 0
        step_months = 0
        if rule.type == RecurrenceType.DAILY:
            step_days = rule.interval
            current = created
        elif rule.type == RecurrenceType.WEEKLY:
            step_days = 7 * rule.interval
            current = created + timedelta(days=(anchor_weekday - sunday_based_weekday(created)) % 7)
        elif rule.type == RecurrenceType.YEARLY:
            step_months = 12 * rule.interval
            current = clamp_day(created.year, anchor_month, anchor_day)
        else:
            step_months = rule.interval * (3 if rule.type == RecurrenceType.QUARTERLY else 1)
            current = clamp_day(created.year, created.month, anchor_day)

        # Перемотка до начала периода
        if current < start:
            if step_days:
                steps = -(-(start - current).days // step_days)
                current += timedelta(days=steps * step_days)
            else:
                while current < start:
                    current = add_months(current, step_months, anchor_day)

        result = []
        while current <= end:
            if len(result) >= self.hard_cap:
                logger.warning(
                    f"Достигнут лимит вхождений ({self.hard_cap}) для правила "
                    f"{rule.type.value}/{rule.interval}, генерация остановлена",
                    extra={"range_start": start, "range_end": end},
                )
                break
            result.append(current)
            if step_days:
                current += timedelta(days=step_days)
            else:
                current = add_months(current, step_months, anchor_day)

        return tuple(result)


_default_generator: Optional[OccurrenceGenerator] = None


def get_default_generator() -> OccurrenceGenerator:
    """Возвращает общий для процесса генератор (создаётся при первом обращении)."""
    global _default_generator
    if _default_generator is None:
        _default_generator = OccurrenceGenerator()
    return _default_generator


def calculate_occurrences(
    rule_str: str,
    created_at: DateLike,
    range_start: DateLike,
    range_end: DateLike,
    day_of_month: Optional[int] = None,
    day_of_week: Optional[int] = None,
    month_of_year: Optional[int] = None,
) -> Tuple[date, ...]:
    """
    Вычисляет вхождения через общий генератор.

    См. OccurrenceGenerator.generate.
    """
    return get_default_generator().generate(
        rule_str, created_at, range_start, range_end,
        day_of_month=day_of_month,
        day_of_week=day_of_week,
        month_of_year=month_of_year,
    )
