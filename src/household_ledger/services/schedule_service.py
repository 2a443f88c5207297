"""
Сервис управления расписаниями и ожидающими вхождениями.

<ai:purpose>
Предоставляет функции для:
- Создания, чтения, обновления и удаления расписаний (CRUD)
- Работы с ожидающими вхождениями (создание без дублей, список)
- Подтверждения вхождения (создание фактического дохода или расхода)
- Отклонения вхождения
</ai:purpose>
"""

import logging
from datetime import date as date_type, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pydantic import TypeAdapter
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from household_ledger.config import settings
from household_ledger.models.enums import ExpenseStatus, SplitType, TransactionType
from household_ledger.models.models import (
    CategoryDB,
    DebtorDB,
    ExpenseDB,
    IncomeDB,
    IncomeScheduleCreate,
    IncomeSourceDB,
    PaymentMethodDB,
    PendingOccurrenceDB,
    ScheduleCreate,
    ScheduleDB,
    StoreDB,
)
from household_ledger.services.occurrence_service import add_months
from household_ledger.services.recurrence_service import validate_recurrence_rule
from household_ledger.utils.exceptions import (
    PendingOccurrenceNotFoundError,
    ScheduleNotFoundError,
)

# Настройка логирования
logger = logging.getLogger(__name__)

_schedule_adapter = TypeAdapter(ScheduleCreate)


def parse_schedule_data(data: Union[Dict[str, Any], IncomeScheduleCreate, Any]):
    """
    Приводит словарь к модели расписания нужного вида (по полю kind).

    Raises:
        pydantic.ValidationError: Если данные некорректны
    """
    if isinstance(data, dict):
        return _schedule_adapter.validate_python(data)
    return data


# <ai:block name="Validation">

def _require(session: Session, model, row_id: Optional[str], label: str):
    """Возвращает строку справочника или выбрасывает ValueError."""
    row = session.get(model, row_id) if row_id else None
    if row is None:
        error_msg = f"{label} с ID {row_id} не найден(а)"
        logger.error(error_msg)
        raise ValueError(error_msg)
    return row


def _validate_references(session: Session, schedule_data) -> None:
    """Проверяет существование всех связанных записей и тип категории."""
    _require(session, PaymentMethodDB, schedule_data.payment_method_id, "Способ оплаты")

    if schedule_data.kind == TransactionType.INCOME.value:
        _require(session, IncomeSourceDB, schedule_data.income_source_id, "Источник дохода")
    else:
        _require(session, StoreDB, schedule_data.store_id, "Магазин")

    if schedule_data.category_id:
        category = _require(session, CategoryDB, schedule_data.category_id, "Категория")
        if category.type.value != schedule_data.kind:
            error_msg = (
                f"Категория '{category.name}' имеет тип {category.type.value}, "
                f"а расписание — {schedule_data.kind}"
            )
            logger.error(error_msg)
            raise ValueError(error_msg)

    if schedule_data.debtor_id:
        _require(session, DebtorDB, schedule_data.debtor_id, "Должник")


def _apply_schedule_fields(schedule: ScheduleDB, schedule_data, rule_str: str) -> None:
    schedule.kind = TransactionType(schedule_data.kind)
    if schedule.kind == TransactionType.INCOME:
        schedule.income_source_id = schedule_data.income_source_id
        schedule.store_id = None
    else:
        schedule.store_id = schedule_data.store_id
        schedule.income_source_id = None
    schedule.category_id = schedule_data.category_id
    schedule.debtor_id = schedule_data.debtor_id
    schedule.payment_method_id = schedule_data.payment_method_id
    schedule.expected_amount = schedule_data.expected_amount
    schedule.recurrence_rule = rule_str
    schedule.day_of_month = schedule_data.day_of_month
    schedule.day_of_week = schedule_data.day_of_week
    schedule.month_of_year = schedule_data.month_of_year
    schedule.requires_confirmation = schedule_data.requires_confirmation
    schedule.lookahead_days = (
        schedule_data.lookahead_days
        if schedule_data.lookahead_days is not None
        else settings.default_lookahead_days
    )
    schedule.is_active = schedule_data.is_active
    schedule.note = schedule_data.note

# </ai:block>


# <ai:block name="CRUD Operations">

def get_schedules(
    session: Session,
    kind: Optional[TransactionType] = None,
    active_only: bool = False,
) -> List[ScheduleDB]:
    """
    Получает список расписаний.

    Args:
        session: Активная сессия БД
        kind: Фильтр по виду (доход / расход)
        active_only: Только активные расписания

    Returns:
        Список ScheduleDB, отсортированный по дате создания
    """
    try:
        query = session.query(ScheduleDB)
        if kind is not None:
            query = query.filter(ScheduleDB.kind == kind)
        if active_only:
            query = query.filter(ScheduleDB.is_active.is_(True))
        schedules = query.order_by(ScheduleDB.created_at).all()
        logger.debug(f"Получено расписаний: {len(schedules)}")
        return schedules

    except SQLAlchemyError as e:
        logger.error(f"Ошибка при получении расписаний: {e}")
        raise


def get_schedule_by_id(session: Session, schedule_id: str) -> Optional[ScheduleDB]:
    """
    Получает расписание по ID.

    Returns:
        ScheduleDB или None, если не найдено
    """
    try:
        schedule = session.get(ScheduleDB, schedule_id)
        if schedule is None:
            logger.warning(f"Расписание ID={schedule_id} не найдено")
        return schedule

    except SQLAlchemyError as e:
        logger.error(f"Ошибка при получении расписания ID={schedule_id}: {e}")
        raise


def create_schedule(
    session: Session,
    schedule_data,
    now: Optional[datetime] = None,
) -> ScheduleDB:
    """
    Создаёт новое расписание дохода или расхода.

    Валидация:
    - Правило повторения разбирается строго и сохраняется в нормализованном виде
    - Способ оплаты, контрагент, категория и должник должны существовать
    - Тип категории должен совпадать с видом расписания

    При create_for_past_period момент создания сдвигается на месяц назад,
    чтобы первая сверка дозаполнила вхождения за прошедший месяц.

    Args:
        session: Активная сессия БД
        schedule_data: IncomeScheduleCreate / ExpenseScheduleCreate или словарь
                       с полем kind
        now: Текущий момент (по умолчанию datetime.now())

    Returns:
        Созданный ScheduleDB

    Raises:
        InvalidRuleError: Если правило повторения некорректно
        ValueError: Если связанные записи не найдены
        SQLAlchemyError: При ошибках работы с БД

    Example:
        >>> schedule = create_schedule(session, IncomeScheduleCreate(
        ...     income_source_id=employer.id,
        ...     payment_method_id=card.id,
        ...     expected_amount=Decimal("2500"),
        ...     recurrence_rule="FREQ=MONTHLY;INTERVAL=1",
        ...     day_of_month=25,
        ... ))
    """
    schedule_data = parse_schedule_data(schedule_data)
    try:
        rule_str = validate_recurrence_rule(schedule_data.recurrence_rule)
        _validate_references(session, schedule_data)

        created_at = now or datetime.now()
        if schedule_data.create_for_past_period:
            shifted = add_months(created_at.date(), -1, created_at.day)
            created_at = datetime.combine(shifted, created_at.time())

        schedule = ScheduleDB(created_at=created_at)
        _apply_schedule_fields(schedule, schedule_data, rule_str)

        session.add(schedule)
        session.commit()
        session.refresh(schedule)

        logger.info(
            f"Создано расписание ID={schedule.id}: {schedule.kind.value}, "
            f"правило {schedule.recurrence_rule}, сумма {schedule.expected_amount}"
        )
        return schedule

    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Ошибка при создании расписания: {e}")
        raise


def update_schedule(session: Session, schedule_id: str, schedule_data) -> ScheduleDB:
    """
    Обновляет все поля расписания.

    Момент создания не меняется (флаг create_for_past_period игнорируется).
    Существующие ожидающие вхождения сохраняются.

    Raises:
        ScheduleNotFoundError: Если расписание не найдено
        InvalidRuleError: Если правило повторения некорректно
        ValueError: Если связанные записи не найдены
    """
    schedule_data = parse_schedule_data(schedule_data)
    try:
        schedule = session.get(ScheduleDB, schedule_id)
        if schedule is None:
            error_msg = f"Расписание с ID {schedule_id} не найдено"
            logger.error(error_msg)
            raise ScheduleNotFoundError(error_msg)

        rule_str = validate_recurrence_rule(schedule_data.recurrence_rule)
        _validate_references(session, schedule_data)

        _apply_schedule_fields(schedule, schedule_data, rule_str)
        session.commit()
        session.refresh(schedule)

        logger.info(f"Обновлено расписание ID={schedule_id}")
        return schedule

    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Ошибка при обновлении расписания ID={schedule_id}: {e}")
        raise


def delete_schedule(session: Session, schedule_id: str, hard_delete_pending: bool = False) -> ScheduleDB:
    """
    Деактивирует расписание (мягкое удаление).

    Фактические операции, созданные из расписания, сохраняются.

    Args:
        session: Активная сессия БД
        schedule_id: ID расписания
        hard_delete_pending: Также удалить все ожидающие вхождения расписания

    Returns:
        Деактивированный ScheduleDB

    Raises:
        ScheduleNotFoundError: Если расписание не найдено
    """
    try:
        schedule = session.get(ScheduleDB, schedule_id)
        if schedule is None:
            error_msg = f"Расписание с ID {schedule_id} не найдено"
            logger.error(error_msg)
            raise ScheduleNotFoundError(error_msg)

        schedule.is_active = False
        deleted_pending = 0
        if hard_delete_pending:
            deleted_pending = session.query(PendingOccurrenceDB).filter(
                PendingOccurrenceDB.schedule_id == schedule_id
            ).delete(synchronize_session=False)
        session.commit()
        session.refresh(schedule)

        logger.info(
            f"Расписание ID={schedule_id} деактивировано, "
            f"удалено ожидающих вхождений: {deleted_pending}"
        )
        return schedule

    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Ошибка при удалении расписания ID={schedule_id}: {e}")
        raise

# </ai:block>


# <ai:block name="Pending Occurrences">

def get_pending_occurrences(
    session: Session,
    schedule_id: Optional[str] = None,
    until: Optional[date_type] = None,
) -> List[PendingOccurrenceDB]:
    """
    Получает ожидающие вхождения, отсортированные по плановой дате.

    Args:
        session: Активная сессия БД
        schedule_id: Фильтр по расписанию
        until: Только вхождения не позже этой даты
    """
    try:
        query = session.query(PendingOccurrenceDB)
        if schedule_id is not None:
            query = query.filter(PendingOccurrenceDB.schedule_id == schedule_id)
        if until is not None:
            query = query.filter(PendingOccurrenceDB.planned_date <= until)
        return query.order_by(PendingOccurrenceDB.planned_date, PendingOccurrenceDB.created_at).all()

    except SQLAlchemyError as e:
        logger.error(f"Ошибка при получении ожидающих вхождений: {e}")
        raise


def create_pending_occurrence(
    session: Session,
    schedule_id: str,
    planned_date: date_type,
    amount: Optional[Decimal] = None,
) -> Optional[PendingOccurrenceDB]:
    """
    Создаёт ожидающее вхождение, если его ещё нет.

    Каждая вставка выполняется отдельным коммитом. Нарушение уникальности
    (schedule_id, planned_date) откатывается и считается успехом: вхождение
    уже существует.

    Returns:
        Созданный PendingOccurrenceDB или None, если вхождение уже было
    """
    pending = PendingOccurrenceDB(
        schedule_id=schedule_id,
        planned_date=planned_date,
        amount=amount,
    )
    try:
        session.add(pending)
        session.commit()
        session.refresh(pending)
        logger.info(f"Создано ожидающее вхождение расписания {schedule_id} на {planned_date}")
        return pending

    except IntegrityError:
        session.rollback()
        logger.debug(f"Ожидающее вхождение расписания {schedule_id} на {planned_date} уже существует")
        return None
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Ошибка при создании ожидающего вхождения: {e}")
        raise


def build_transaction(
    schedule: ScheduleDB,
    amount: Decimal,
    transaction_date: date_type,
    planned_date: date_type,
    payment_method_id: Optional[str] = None,
) -> Union[IncomeDB, ExpenseDB]:
    """
    Формирует фактическую операцию по расписанию (без сохранения).

    Для дохода создаётся IncomeDB, для расхода — оплаченный расход без
    позиций. Операция связывается с расписанием и плановой датой.
    """
    method_id = payment_method_id or schedule.payment_method_id
    if schedule.kind == TransactionType.INCOME:
        return IncomeDB(
            payment_method_id=method_id,
            income_source_id=schedule.income_source_id,
            category_id=schedule.category_id,
            debtor_id=schedule.debtor_id,
            amount=amount,
            income_date=transaction_date,
            note=schedule.note,
            schedule_id=schedule.id,
            planned_date=planned_date,
        )
    return ExpenseDB(
        expense_date=transaction_date,
        store_id=schedule.store_id,
        category_id=schedule.category_id,
        payment_method_id=method_id,
        note=schedule.note,
        is_non_itemised=True,
        non_itemised_total=amount,
        split_type=SplitType.NONE,
        status=ExpenseStatus.PAID,
        schedule_id=schedule.id,
        planned_date=planned_date,
    )


def _get_pending(session: Session, pending_id: str) -> PendingOccurrenceDB:
    pending = session.get(PendingOccurrenceDB, pending_id)
    if pending is None:
        error_msg = f"Ожидающее вхождение с ID {pending_id} не найдено"
        logger.error(error_msg)
        raise PendingOccurrenceNotFoundError(error_msg)
    return pending


def confirm_pending_occurrence(
    session: Session,
    pending_id: str,
    actual_amount: Decimal,
    actual_date: date_type,
    payment_method_id: Optional[str] = None,
) -> Union[IncomeDB, ExpenseDB]:
    """
    Подтверждает ожидающее вхождение.

    Создаёт фактическую операцию с указанной суммой и датой и удаляет
    ожидающее вхождение. Оба изменения сохраняются одним коммитом.

    Args:
        session: Активная сессия БД
        pending_id: ID ожидающего вхождения
        actual_amount: Фактическая сумма
        actual_date: Фактическая дата
        payment_method_id: Способ оплаты (по умолчанию из расписания)

    Returns:
        Созданный IncomeDB или ExpenseDB

    Raises:
        PendingOccurrenceNotFoundError: Если вхождение не найдено
        ValueError: Если сумма отрицательна или способ оплаты не найден
    """
    try:
        pending = _get_pending(session, pending_id)

        amount = Decimal(str(actual_amount))
        if amount < 0:
            error_msg = f"Сумма не может быть отрицательной: {actual_amount}"
            logger.error(error_msg)
            raise ValueError(error_msg)
        if payment_method_id:
            _require(session, PaymentMethodDB, payment_method_id, "Способ оплаты")

        schedule = pending.schedule
        schedule_id, planned_date = schedule.id, pending.planned_date
        transaction = build_transaction(
            schedule, amount, actual_date, planned_date, payment_method_id
        )
        session.add(transaction)
        session.delete(pending)
        session.commit()
        session.refresh(transaction)

        logger.info(
            f"Подтверждено вхождение расписания {schedule_id} на {planned_date}: "
            f"{amount} от {actual_date}, операция ID={transaction.id}"
        )
        return transaction

    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Ошибка при подтверждении вхождения ID={pending_id}: {e}")
        raise


def reject_pending_occurrence(session: Session, pending_id: str) -> None:
    """
    Отклоняет ожидающее вхождение (удаляет его).

    Отклонённая дата не запоминается: если она остаётся в окне сверки,
    следующий проход создаст вхождение заново.

    Raises:
        PendingOccurrenceNotFoundError: Если вхождение не найдено
    """
    try:
        pending = _get_pending(session, pending_id)
        schedule_id, planned_date = pending.schedule_id, pending.planned_date
        session.delete(pending)
        session.commit()
        logger.info(f"Отклонено вхождение расписания {schedule_id} на {planned_date}")

    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Ошибка при отклонении вхождения ID={pending_id}: {e}")
        raise

# </ai:block>
