"""
Сервис сверки расписаний с фактическими и ожидающими операциями.

Для каждого активного расписания гарантирует, что каждое наступившее
вхождение представлено ровно один раз: фактической операцией или
ожидающим вхождением. Повторный проход без изменения даты ничего не пишет.

Порядок обработки одного расписания:
1. Собрать уже учтённые даты (ожидающие вхождения, связанные операции,
   для расписаний без подтверждения — операции с совпадающей сигнатурой)
2. Определить окно: от max(дата создания, сегодня - lookback_months)
   до сегодня + lookahead_days
3. Сгенерировать вхождения (не более 500)
4. Для каждой неучтённой даты создать ожидающее вхождение (если нужно
   подтверждение) или провести операцию (если дата не в будущем)

Ошибка в одном расписании логируется и не прерывает обработку остальных.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional, Set, Tuple

from sqlalchemy.orm import Session

from household_ledger.config import settings
from household_ledger.models.enums import TransactionType
from household_ledger.models.models import (
    ExpenseDB,
    IncomeDB,
    PendingOccurrenceDB,
    ScheduleDB,
)
from household_ledger.services.occurrence_service import (
    OccurrenceGenerator,
    add_months,
    get_default_generator,
)
from household_ledger.services.schedule_service import (
    build_transaction,
    create_pending_occurrence,
)
from household_ledger.utils.exceptions import ScheduleProcessingError

# Настройка логирования
logger = logging.getLogger(__name__)

# Лимит вхождений на одно расписание за проход
MAX_OCCURRENCES_PER_SCHEDULE = 500

CENT = Decimal("0.01")


@dataclass(frozen=True)
class AccountedDate:
    """Плановая дата, уже представленная ожидающим вхождением или операцией."""
    planned_date: date

    @classmethod
    def from_pending(cls, pending: PendingOccurrenceDB) -> "AccountedDate":
        return cls(pending.planned_date)

    @classmethod
    def from_confirmed(cls, transaction) -> "AccountedDate":
        """
        Дата из фактической операции (IncomeDB или ExpenseDB).

        Если операция создана из расписания, используется её плановая дата,
        иначе дата самой операции.
        """
        planned = getattr(transaction, "planned_date", None)
        if planned is not None:
            return cls(planned)
        if isinstance(transaction, IncomeDB):
            return cls(transaction.income_date)
        return cls(transaction.expense_date)


@dataclass
class ReconciliationReport:
    """
    Итоги прохода сверки.

    Attributes:
        processed: Количество обработанных расписаний
        pending_created: Создано ожидающих вхождений
        transactions_created: Проведено операций
        failed_schedule_ids: ID расписаний, обработка которых завершилась ошибкой
    """
    processed: int = 0
    pending_created: int = 0
    transactions_created: int = 0
    failed_schedule_ids: List[str] = field(default_factory=list)

    @property
    def writes(self) -> int:
        return self.pending_created + self.transactions_created


def _same_amount(left, right) -> bool:
    return Decimal(str(left)).quantize(CENT) == Decimal(str(right)).quantize(CENT)


def collect_accounted_dates(session: Session, schedule: ScheduleDB) -> Set[AccountedDate]:
    """
    Собирает даты, уже учтённые для расписания.

    Args:
        session: Активная сессия БД
        schedule: Расписание

    Returns:
        Множество AccountedDate
    """
    accounted = {
        AccountedDate.from_pending(pending)
        for pending in session.query(PendingOccurrenceDB).filter(
            PendingOccurrenceDB.schedule_id == schedule.id
        )
    }

    model = IncomeDB if schedule.kind == TransactionType.INCOME else ExpenseDB
    accounted.update(
        AccountedDate.from_confirmed(row)
        for row in session.query(model).filter(model.schedule_id == schedule.id)
    )

    # Операции, введённые вручную без связи с расписанием, учитываются
    # по точному совпадению контрагента, способа оплаты и суммы
    if not schedule.requires_confirmation and schedule.expected_amount is not None:
        if schedule.kind == TransactionType.INCOME:
            candidates = session.query(IncomeDB).filter(
                IncomeDB.schedule_id.is_(None),
                IncomeDB.income_source_id == schedule.income_source_id,
                IncomeDB.payment_method_id == schedule.payment_method_id,
            )
            accounted.update(
                AccountedDate.from_confirmed(row)
                for row in candidates if _same_amount(row.amount, schedule.expected_amount)
            )
        else:
            candidates = session.query(ExpenseDB).filter(
                ExpenseDB.schedule_id.is_(None),
                ExpenseDB.is_non_itemised.is_(True),
                ExpenseDB.store_id == schedule.store_id,
                ExpenseDB.payment_method_id == schedule.payment_method_id,
            )
            accounted.update(
                AccountedDate.from_confirmed(row)
                for row in candidates
                if row.non_itemised_total is not None
                and _same_amount(row.non_itemised_total, schedule.expected_amount)
            )

    return accounted


def reconciliation_window(schedule: ScheduleDB, today: date) -> Tuple[date, date]:
    """Окно генерации вхождений для расписания."""
    lookback_start = add_months(today, -settings.lookback_months, today.day)
    created = schedule.created_at.date()
    start = max(created, lookback_start)
    end = date.fromordinal(today.toordinal() + (schedule.lookahead_days or 0))
    return start, end


def process_schedule(
    session: Session,
    schedule: ScheduleDB,
    today: date,
    generator: OccurrenceGenerator,
) -> Tuple[int, int]:
    """
    Сверяет одно расписание.

    Returns:
        (создано ожидающих вхождений, проведено операций)
    """
    schedule_id = schedule.id
    accounted = collect_accounted_dates(session, schedule)
    start, end = reconciliation_window(schedule, today)
    occurrences = generator.for_schedule(schedule, start, end)[:MAX_OCCURRENCES_PER_SCHEDULE]

    requires_confirmation = schedule.requires_confirmation
    expected_amount = schedule.expected_amount

    pending_created = 0
    transactions_created = 0
    for occurrence in occurrences:
        key = AccountedDate(occurrence)
        if key in accounted:
            continue

        if requires_confirmation:
            if create_pending_occurrence(session, schedule_id, occurrence, expected_amount) is not None:
                pending_created += 1
        elif occurrence <= today:
            transaction = build_transaction(
                schedule,
                expected_amount if expected_amount is not None else Decimal("0"),
                occurrence,
                occurrence,
            )
            session.add(transaction)
            session.commit()
            transactions_created += 1
            logger.info(f"Проведена операция по расписанию {schedule_id} на {occurrence}")

        accounted.add(key)

    return pending_created, transactions_created


def process_schedules(
    session: Session,
    today: Optional[date] = None,
    generator: Optional[OccurrenceGenerator] = None,
) -> ReconciliationReport:
    """
    Сверяет все активные расписания.

    Вызывается при запуске и после каждого изменения расписаний.
    Ошибка в одном расписании откатывает его незакоммиченные изменения,
    логируется и записывается в отчёт; остальные расписания обрабатываются.

    Args:
        session: Активная сессия БД
        today: Текущая дата (по умолчанию date.today())
        generator: Генератор вхождений (по умолчанию общий)

    Returns:
        ReconciliationReport с итогами прохода

    Example:
        >>> with get_db_session() as session:
        ...     report = process_schedules(session)
        ...     print(report.pending_created, report.transactions_created)
    """
    today = today or date.today()
    generator = generator or get_default_generator()
    report = ReconciliationReport()

    schedule_ids = [
        row.id for row in session.query(ScheduleDB.id).filter(ScheduleDB.is_active.is_(True))
        .order_by(ScheduleDB.created_at)
    ]
    logger.info(f"Сверка расписаний на {today}: активных {len(schedule_ids)}")

    for schedule_id in schedule_ids:
        try:
            schedule = session.get(ScheduleDB, schedule_id)
            pending_created, transactions_created = process_schedule(session, schedule, today, generator)
            report.processed += 1
            report.pending_created += pending_created
            report.transactions_created += transactions_created
        except Exception as e:
            session.rollback()
            error = ScheduleProcessingError(schedule_id, str(e))
            logger.error(f"Ошибка при сверке: {error}", extra={"schedule_id": schedule_id}, exc_info=True)
            report.failed_schedule_ids.append(schedule_id)

    logger.info(
        f"Сверка завершена: расписаний {report.processed}, "
        f"ожидающих создано {report.pending_created}, операций проведено {report.transactions_created}, "
        f"ошибок {len(report.failed_schedule_ids)}"
    )
    return report
