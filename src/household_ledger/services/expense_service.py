"""
Сервис записи расходов с разделением между должниками.

Содержит функции для:
- Создания расхода с позициями и долями одним коммитом
- Атомарной замены настроек разделения расхода (доли и привязка позиций к должникам)
- Массового применения разделения TOTAL_SPLIT к нескольким расходам
- Получения разбивки расхода по должникам
"""

import logging
from typing import Iterable, List, Mapping, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from household_ledger.models.enums import SplitType
from household_ledger.models.models import (
    DebtorDB,
    DebtSummary,
    ExpenseCreate,
    ExpenseDB,
    ExpenseSplitDB,
    LineItemDB,
    SplitCreate,
)
from household_ledger.services.debt_service import calculate_debt_summary_for_expense
from household_ledger.services.split_service import calculate_total_shares
from household_ledger.utils.exceptions import ExpenseNotFoundError

# Настройка логирования
logger = logging.getLogger(__name__)


def _check_debtors_exist(session: Session, debtor_ids: Iterable[Optional[str]]) -> None:
    """Проверяет существование всех указанных должников."""
    ids = {debtor_id for debtor_id in debtor_ids if debtor_id}
    if not ids:
        return
    found = {row.id for row in session.query(DebtorDB.id).filter(DebtorDB.id.in_(ids))}
    missing = ids - found
    if missing:
        error_msg = f"Должники не найдены: {', '.join(sorted(missing))}"
        logger.error(error_msg)
        raise ValueError(error_msg)


def _resolve_cached_shares(split_type: SplitType, own_shares: int, splits: List[SplitCreate],
                           total_shares: Optional[int]) -> int:
    if split_type != SplitType.TOTAL_SPLIT:
        return 0
    if total_shares is not None and total_shares > 0:
        return total_shares
    return calculate_total_shares(own_shares, splits)


def create_expense(session: Session, expense_data: ExpenseCreate) -> ExpenseDB:
    """
    Создаёт расход с позициями и долями должников.

    Знаменатель долей (total_shares) вычисляется и сохраняется при
    создании для разделения TOTAL_SPLIT.

    Args:
        session: Активная сессия БД
        expense_data: Данные расхода

    Returns:
        Созданный ExpenseDB

    Raises:
        ValueError: Если указаны несуществующие должники
        SQLAlchemyError: При ошибках работы с БД

    Example:
        >>> expense = create_expense(session, ExpenseCreate(
        ...     expense_date=date(2024, 5, 1),
        ...     is_non_itemised=True,
        ...     non_itemised_total=Decimal("60"),
        ...     split_type=SplitType.TOTAL_SPLIT,
        ...     own_shares=1,
        ...     splits=[SplitCreate(debtor_id=debtor.id, split_part=1)],
        ... ))
    """
    try:
        _check_debtors_exist(
            session,
            [expense_data.owed_to_debtor_id]
            + [split.debtor_id for split in expense_data.splits]
            + [item.debtor_id for item in expense_data.line_items],
        )

        expense = ExpenseDB(
            expense_date=expense_data.expense_date,
            store_id=expense_data.store_id,
            category_id=expense_data.category_id,
            payment_method_id=expense_data.payment_method_id,
            note=expense_data.note,
            discount_percentage=expense_data.discount_percentage,
            is_non_itemised=expense_data.is_non_itemised,
            non_itemised_total=expense_data.non_itemised_total,
            split_type=expense_data.split_type,
            own_shares=expense_data.own_shares,
            total_shares=_resolve_cached_shares(
                expense_data.split_type, expense_data.own_shares,
                expense_data.splits, expense_data.total_shares,
            ),
            owed_to_debtor_id=expense_data.owed_to_debtor_id,
            status=expense_data.status,
            is_tentative=expense_data.is_tentative,
        )
        for item in expense_data.line_items:
            expense.line_items.append(LineItemDB(
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                is_excluded_from_discount=item.is_excluded_from_discount,
                debtor_id=item.debtor_id if expense_data.split_type == SplitType.LINE_ITEM else None,
            ))
        for split in expense_data.splits:
            expense.splits.append(ExpenseSplitDB(debtor_id=split.debtor_id, split_part=split.split_part))

        session.add(expense)
        session.commit()
        session.refresh(expense)

        logger.info(
            f"Создан расход ID={expense.id} от {expense.expense_date}: "
            f"позиций {len(expense.line_items)}, разделение {expense.split_type.value}"
        )
        return expense

    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Ошибка при создании расхода: {e}")
        raise


def update_expense_split(
    session: Session,
    expense_id: str,
    split_type: SplitType,
    own_shares: int = 0,
    splits: Optional[List[SplitCreate]] = None,
    total_shares: Optional[int] = None,
    item_debtors: Optional[Mapping[str, Optional[str]]] = None,
    commit: bool = True,
) -> ExpenseDB:
    """
    Заменяет настройки разделения расхода.

    Старые доли удаляются, новые добавляются; изменения сохраняются
    одним коммитом и при ошибке откатываются целиком. Для LINE_ITEM
    привязка позиций к должникам берётся из item_debtors (позиции вне
    словаря остаются без должника); без item_debtors текущая привязка
    сохраняется. Для остальных способов привязка позиций сбрасывается.

    Args:
        session: Активная сессия БД
        expense_id: ID расхода
        split_type: Новый способ разделения
        own_shares: Доли пользователя
        splits: Новые доли должников (только для TOTAL_SPLIT)
        total_shares: Явный знаменатель (None = пересчитать)
        item_debtors: ID позиции -> ID должника (только для LINE_ITEM)
        commit: Выполнить коммит (False при вызове из массовой операции)

    Raises:
        ExpenseNotFoundError: Если расход не найден
        ValueError: Если доли некорректны или должники не найдены
    """
    splits = list(splits or [])
    try:
        expense = session.get(ExpenseDB, expense_id)
        if expense is None:
            error_msg = f"Расход с ID {expense_id} не найден"
            logger.error(error_msg)
            raise ExpenseNotFoundError(error_msg)

        if own_shares < 0:
            error_msg = "Доли пользователя не могут быть отрицательными"
            logger.error(error_msg)
            raise ValueError(error_msg)
        if split_type != SplitType.TOTAL_SPLIT and splits:
            error_msg = "Доли должников допустимы только для разделения total_split"
            logger.error(error_msg)
            raise ValueError(error_msg)
        if split_type == SplitType.LINE_ITEM and expense.is_non_itemised:
            error_msg = "Разделение по позициям недоступно для расхода без позиций"
            logger.error(error_msg)
            raise ValueError(error_msg)
        if item_debtors and split_type != SplitType.LINE_ITEM:
            error_msg = "Привязка позиций к должникам допустима только для разделения line_item"
            logger.error(error_msg)
            raise ValueError(error_msg)
        if item_debtors:
            unknown = set(item_debtors) - {item.id for item in expense.line_items}
            if unknown:
                error_msg = f"Позиции не относятся к расходу {expense_id}: {', '.join(sorted(unknown))}"
                logger.error(error_msg)
                raise ValueError(error_msg)
        _check_debtors_exist(
            session,
            [split.debtor_id for split in splits] + list((item_debtors or {}).values()),
        )

        expense.splits.clear()
        session.flush()
        for split in splits:
            expense.splits.append(ExpenseSplitDB(debtor_id=split.debtor_id, split_part=split.split_part))

        if split_type != SplitType.LINE_ITEM:
            for item in expense.line_items:
                item.debtor_id = None
        elif item_debtors is not None:
            for item in expense.line_items:
                item.debtor_id = item_debtors.get(item.id)

        expense.split_type = split_type
        expense.own_shares = own_shares if split_type == SplitType.TOTAL_SPLIT else 0
        expense.total_shares = _resolve_cached_shares(split_type, own_shares, splits, total_shares)

        if commit:
            session.commit()
            session.refresh(expense)

        logger.info(
            f"Обновлено разделение расхода {expense_id}: {split_type.value}, "
            f"долей должников {len(splits)}, всего долей {expense.total_shares}"
        )
        return expense

    except (SQLAlchemyError, ValueError, ExpenseNotFoundError) as e:
        session.rollback()
        logger.error(f"Ошибка при обновлении разделения расхода {expense_id}: {e}")
        raise


def apply_total_split_to_expenses(
    session: Session,
    expense_ids: List[str],
    own_shares: int,
    splits: List[SplitCreate],
) -> List[ExpenseDB]:
    """
    Применяет одинаковое разделение TOTAL_SPLIT к нескольким расходам.

    Все расходы обновляются в одном коммите: ошибка на любом из них
    откатывает всю операцию.

    Returns:
        Список обновлённых расходов
    """
    try:
        updated = [
            update_expense_split(
                session, expense_id, SplitType.TOTAL_SPLIT, own_shares, splits, commit=False
            )
            for expense_id in expense_ids
        ]
        session.commit()
        for expense in updated:
            session.refresh(expense)

        logger.info(f"Разделение применено к {len(updated)} расходам")
        return updated

    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Ошибка при массовом применении разделения: {e}")
        raise


def get_expense_debt_summary(session: Session, expense_id: str) -> DebtSummary:
    """Разбивка расхода по должникам (загрузка данных и расчёт)."""
    expense = session.get(ExpenseDB, expense_id)
    if expense is None:
        error_msg = f"Расход с ID {expense_id} не найден"
        logger.error(error_msg)
        raise ExpenseNotFoundError(error_msg)

    return calculate_debt_summary_for_expense(
        expense,
        expense.line_items,
        expense.splits,
        expense.debtor_payments,
    )
