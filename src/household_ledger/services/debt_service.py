"""
Сервис учёта взаимных долгов с должниками.

<ai:purpose>
Предоставляет функции для:
- Расчёта долгов с конкретным должником (в обе стороны) и сальдо
- Разбивки отдельного расхода по должникам для отображения
- Погашения и отмены погашения доли должника
- Отметки расходов-долгов перед должником как оплаченных / неоплаченных
- Сводного сальдо по всем должникам
</ai:purpose>

Долги не хранятся накопительным итогом: каждый вызов пересчитывает их
из расходов, позиций, долей и отметок о погашении.
"""

import logging
from collections import defaultdict
from datetime import date as date_type
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from household_ledger.database import DEBT_REPAYMENT_CATEGORY
from household_ledger.models.enums import DebtDirection, ExpenseStatus, SplitType
from household_ledger.models.models import (
    CategoryDB,
    DebtorBalance,
    DebtorDB,
    DebtorPaymentDB,
    DebtorShare,
    DebtSummary,
    EntityDebts,
    ExpenseDB,
    ExpenseSplitDB,
    IncomeDB,
    LineItemDB,
    OwnShare,
    PaymentMethodDB,
    ProcessedExpense,
)
from household_ledger.services.split_service import (
    ZERO,
    calculate_expense_total,
    calculate_line_item_total_with_discount,
    resolve_total_shares,
)
from household_ledger.utils.exceptions import (
    BusinessLogicError,
    DebtorNotFoundError,
    ExpenseNotFoundError,
)

# Настройка логирования
logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def _get_debtor(session: Session, debtor_id: str) -> DebtorDB:
    debtor = session.get(DebtorDB, debtor_id)
    if debtor is None:
        error_msg = f"Должник с ID {debtor_id} не найден"
        logger.error(error_msg)
        raise DebtorNotFoundError(error_msg)
    return debtor


def _get_expense(session: Session, expense_id: str) -> ExpenseDB:
    expense = session.get(ExpenseDB, expense_id)
    if expense is None:
        error_msg = f"Расход с ID {expense_id} не найден"
        logger.error(error_msg)
        raise ExpenseNotFoundError(error_msg)
    return expense


def _debtor_name(row, debtor_id: str, debtor_names: Optional[Mapping[str, str]]) -> Optional[str]:
    if debtor_names and debtor_id in debtor_names:
        return debtor_names[debtor_id]
    debtor = getattr(row, "debtor", None)
    return getattr(debtor, "name", None)


# =============================================================================
# Расчёт долгов
# =============================================================================

def calculate_debts(session: Session, debtor_id: str) -> EntityDebts:
    """
    Рассчитывает взаимные долги с должником.

    Учитываются только нечерновые расходы, в которых должник:
    - указан как owed_to_debtor_id: пользователь должен ему полный итог
      расхода (TO_ENTITY), долг погашен при статусе PAID;
    - закреплён за позициями (LINE_ITEM) или имеет долю (TOTAL_SPLIT):
      должник должен пользователю свою часть (TO_ME), долг погашен при
      наличии отметки DebtorPaymentDB.

    Args:
        session: Активная сессия БД
        debtor_id: ID должника

    Returns:
        EntityDebts: расходы (новые первыми), непогашенные суммы в обе
        стороны и сальдо (debt_to_me - debt_to_entity)

    Raises:
        DebtorNotFoundError: Если должник не найден
        SQLAlchemyError: При ошибках работы с БД

    Example:
        >>> with get_db_session() as session:
        ...     debts = calculate_debts(session, debtor.id)
        ...     print(debts.net_balance)
    """
    try:
        _get_debtor(session, debtor_id)

        line_item_expenses = select(LineItemDB.expense_id).where(LineItemDB.debtor_id == debtor_id)
        split_expenses = select(ExpenseSplitDB.expense_id).where(ExpenseSplitDB.debtor_id == debtor_id)

        expenses = session.query(ExpenseDB).filter(
            ExpenseDB.is_tentative.is_(False),
            or_(
                ExpenseDB.owed_to_debtor_id == debtor_id,
                and_(ExpenseDB.split_type == SplitType.LINE_ITEM, ExpenseDB.id.in_(line_item_expenses)),
                and_(ExpenseDB.split_type == SplitType.TOTAL_SPLIT, ExpenseDB.id.in_(split_expenses)),
            ),
        ).all()

        if not expenses:
            logger.debug(f"Для должника {debtor_id} нет расходов с долгами")
            return EntityDebts()

        expense_ids = [expense.id for expense in expenses]

        items_by_expense: Dict[str, List[LineItemDB]] = defaultdict(list)
        for item in session.query(LineItemDB).filter(LineItemDB.expense_id.in_(expense_ids)):
            items_by_expense[item.expense_id].append(item)

        splits_by_expense: Dict[str, List[ExpenseSplitDB]] = defaultdict(list)
        for split in session.query(ExpenseSplitDB).filter(ExpenseSplitDB.expense_id.in_(expense_ids)):
            splits_by_expense[split.expense_id].append(split)

        settled_expense_ids = {
            payment.expense_id
            for payment in session.query(DebtorPaymentDB).filter(
                DebtorPaymentDB.expense_id.in_(expense_ids),
                DebtorPaymentDB.debtor_id == debtor_id,
            )
        }

        receipts: List[ProcessedExpense] = []
        for expense in expenses:
            items = items_by_expense[expense.id]
            total = calculate_expense_total(expense, items)
            split_part = None
            total_shares = None

            if expense.owed_to_debtor_id == debtor_id:
                direction = DebtDirection.TO_ENTITY
                amount = total
                is_settled = expense.status == ExpenseStatus.PAID
            else:
                direction = DebtDirection.TO_ME
                amount = ZERO
                if expense.split_type == SplitType.TOTAL_SPLIT:
                    splits = splits_by_expense[expense.id]
                    debtor_parts = [s.split_part for s in splits if s.debtor_id == debtor_id]
                    if debtor_parts:
                        total_shares = resolve_total_shares(expense.total_shares, expense.own_shares, splits)
                        split_part = sum(debtor_parts)
                        if total_shares > 0:
                            amount = total * split_part / total_shares
                elif expense.split_type == SplitType.LINE_ITEM:
                    amount = sum(
                        (
                            calculate_line_item_total_with_discount(item, expense.discount_percentage)
                            for item in items if item.debtor_id == debtor_id
                        ),
                        ZERO,
                    )
                is_settled = expense.id in settled_expense_ids

            receipts.append(ProcessedExpense(
                expense_id=expense.id,
                expense_date=expense.expense_date,
                store_name=expense.store.name if expense.store else None,
                note=expense.note,
                direction=direction,
                split_type=expense.split_type,
                total_amount=total,
                amount=amount,
                is_settled=is_settled,
                split_part=split_part,
                total_shares=total_shares,
            ))

        receipts.sort(key=lambda r: r.expense_date, reverse=True)

        debt_to_entity = sum(
            (r.amount for r in receipts if r.direction == DebtDirection.TO_ENTITY and not r.is_settled), ZERO
        )
        debt_to_me = sum(
            (r.amount for r in receipts if r.direction == DebtDirection.TO_ME and not r.is_settled), ZERO
        )

        logger.info(
            f"Долги с должником {debtor_id}: расходов {len(receipts)}, "
            f"мне должны {debt_to_me}, я должен {debt_to_entity}"
        )

        return EntityDebts(
            receipts=receipts,
            debt_to_entity=debt_to_entity,
            debt_to_me=debt_to_me,
            net_balance=debt_to_me - debt_to_entity,
        )

    except SQLAlchemyError as e:
        logger.error(f"Ошибка при расчёте долгов должника {debtor_id}: {e}")
        raise


def calculate_debt_summary_for_expense(
    expense,
    line_items: Iterable,
    splits: Iterable,
    payments: Iterable,
    debtor_names: Optional[Mapping[str, str]] = None,
) -> DebtSummary:
    """
    Разбивка одного расхода по должникам для отображения.

    Args:
        expense: Расход (ExpenseDB); None даёт пустую разбивку
        line_items: Позиции расхода
        splits: Доли должников
        payments: Отметки о погашении по расходу
        debtor_names: Соответствие ID должника -> имя (иначе берётся из связи debtor)

    Returns:
        DebtSummary: должники с суммами и флагом погашения, доля пользователя
    """
    if expense is None:
        return DebtSummary()

    line_items = list(line_items)
    splits = list(splits)
    paid_debtor_ids = {payment.debtor_id for payment in payments}
    total = calculate_expense_total(expense, line_items)
    own_shares = expense.own_shares or 0

    debtors: Dict[str, DebtorShare] = {}
    own_share: Optional[OwnShare] = None

    if expense.split_type == SplitType.TOTAL_SPLIT and (splits or own_shares > 0):
        total_shares = resolve_total_shares(expense.total_shares, own_shares, splits)
        if total_shares > 0:
            for split in splits:
                amount = total * split.split_part / total_shares
                existing = debtors.get(split.debtor_id)
                if existing:
                    existing.amount += amount
                    existing.shares += split.split_part
                else:
                    debtors[split.debtor_id] = DebtorShare(
                        debtor_id=split.debtor_id,
                        name=_debtor_name(split, split.debtor_id, debtor_names),
                        amount=amount,
                        shares=split.split_part,
                        total_shares=total_shares,
                    )
            if own_shares > 0:
                own_share = OwnShare(
                    amount=total * own_shares / total_shares,
                    shares=own_shares,
                    total_shares=total_shares,
                )
        else:
            logger.warning(f"Расход {expense.id}: всего долей 0, разбивка не выполняется")

    elif expense.split_type == SplitType.LINE_ITEM and not expense.is_non_itemised:
        for item in line_items:
            if not item.debtor_id:
                continue
            amount = calculate_line_item_total_with_discount(item, expense.discount_percentage)
            existing = debtors.get(item.debtor_id)
            if existing:
                existing.amount += amount
                existing.item_count += 1
            else:
                debtors[item.debtor_id] = DebtorShare(
                    debtor_id=item.debtor_id,
                    name=_debtor_name(item, item.debtor_id, debtor_names),
                    amount=amount,
                    item_count=1,
                    total_items=len(line_items),
                )

    for share in debtors.values():
        share.is_paid = share.debtor_id in paid_debtor_ids

    return DebtSummary(debtors=list(debtors.values()), own_share=own_share)


# =============================================================================
# Погашение долгов
# =============================================================================

def settle_debtor_share(
    session: Session,
    expense_id: str,
    debtor_id: str,
    payment_method_id: str,
    paid_date: Optional[date_type] = None,
    note: Optional[str] = None,
) -> DebtorPaymentDB:
    """
    Отмечает долю должника в расходе как погашенную.

    Создаёт доход (возврат долга) на сумму доли и отметку DebtorPaymentDB,
    связанную с этим доходом. Обе записи сохраняются одним коммитом.

    Args:
        session: Активная сессия БД
        expense_id: ID расхода
        debtor_id: ID должника
        payment_method_id: Куда поступили деньги
        paid_date: Дата погашения (по умолчанию сегодня)
        note: Примечание к доходу (по умолчанию "Возврат долга от <имя>")

    Returns:
        Созданная отметка о погашении

    Raises:
        ExpenseNotFoundError: Если расход не найден
        DebtorNotFoundError: Если должник не найден
        ValueError: Если способ оплаты не найден
        BusinessLogicError: Если должник не участвует в расходе или доля уже погашена
        SQLAlchemyError: При ошибках работы с БД
    """
    try:
        expense = _get_expense(session, expense_id)
        debtor = _get_debtor(session, debtor_id)

        if session.get(PaymentMethodDB, payment_method_id) is None:
            error_msg = f"Способ оплаты с ID {payment_method_id} не найден"
            logger.error(error_msg)
            raise ValueError(error_msg)

        existing = session.query(DebtorPaymentDB).filter_by(
            expense_id=expense_id, debtor_id=debtor_id
        ).first()
        if existing:
            error_msg = f"Доля должника '{debtor.name}' в расходе {expense_id} уже погашена"
            logger.error(error_msg)
            raise BusinessLogicError(error_msg)

        summary = calculate_debt_summary_for_expense(
            expense, expense.line_items, expense.splits, [], {debtor.id: debtor.name}
        )
        share = next((d for d in summary.debtors if d.debtor_id == debtor_id), None)
        if share is None:
            error_msg = f"Должник '{debtor.name}' не участвует в расходе {expense_id}"
            logger.error(error_msg)
            raise BusinessLogicError(error_msg)

        paid_date = paid_date or date_type.today()
        category = session.query(CategoryDB).filter_by(name=DEBT_REPAYMENT_CATEGORY).first()
        final_note = note.strip() if note and note.strip() else f"Возврат долга от {debtor.name}"

        income = IncomeDB(
            payment_method_id=payment_method_id,
            category_id=category.id if category else None,
            debtor_id=debtor_id,
            amount=share.amount.quantize(CENT),
            income_date=paid_date,
            note=final_note,
        )
        session.add(income)
        session.flush()

        payment = DebtorPaymentDB(
            expense_id=expense_id,
            debtor_id=debtor_id,
            paid_date=paid_date,
            income_id=income.id,
        )
        session.add(payment)
        session.commit()
        session.refresh(payment)

        logger.info(
            f"Погашена доля должника '{debtor.name}' в расходе {expense_id}: "
            f"{income.amount}, доход ID={income.id}"
        )
        return payment

    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Ошибка при погашении доли должника {debtor_id} в расходе {expense_id}: {e}")
        raise


def unsettle_debtor_share(session: Session, expense_id: str, debtor_id: str) -> bool:
    """
    Отменяет погашение доли должника.

    Удаляет отметку о погашении и связанный с ней доход.

    Returns:
        True, если отметка была удалена; False, если доля не была погашена
    """
    try:
        payment = session.query(DebtorPaymentDB).filter_by(
            expense_id=expense_id, debtor_id=debtor_id
        ).first()
        if payment is None:
            logger.warning(f"Доля должника {debtor_id} в расходе {expense_id} не была погашена")
            return False

        income_id = payment.income_id
        session.delete(payment)
        if income_id:
            income = session.get(IncomeDB, income_id)
            if income is not None:
                session.delete(income)
        session.commit()

        logger.info(f"Отменено погашение доли должника {debtor_id} в расходе {expense_id}")
        return True

    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Ошибка при отмене погашения доли должника {debtor_id}: {e}")
        raise


def mark_expense_paid(session: Session, expense_id: str, payment_method_id: str) -> ExpenseDB:
    """
    Отмечает расход-долг перед должником как оплаченный.

    Raises:
        ExpenseNotFoundError: Если расход не найден
        ValueError: Если способ оплаты не найден
    """
    try:
        expense = _get_expense(session, expense_id)
        if session.get(PaymentMethodDB, payment_method_id) is None:
            error_msg = f"Способ оплаты с ID {payment_method_id} не найден"
            logger.error(error_msg)
            raise ValueError(error_msg)

        expense.status = ExpenseStatus.PAID
        expense.payment_method_id = payment_method_id
        session.commit()
        session.refresh(expense)

        logger.info(f"Расход {expense_id} отмечен как оплаченный")
        return expense

    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Ошибка при отметке оплаты расхода {expense_id}: {e}")
        raise


def mark_expense_unpaid(session: Session, expense_id: str) -> ExpenseDB:
    """Возвращает расходу статус UNPAID и сбрасывает способ оплаты."""
    try:
        expense = _get_expense(session, expense_id)
        expense.status = ExpenseStatus.UNPAID
        expense.payment_method_id = None
        session.commit()
        session.refresh(expense)

        logger.info(f"Расход {expense_id} отмечен как неоплаченный")
        return expense

    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Ошибка при снятии отметки оплаты расхода {expense_id}: {e}")
        raise


def get_debtor_balances(session: Session, include_inactive: bool = False) -> List[DebtorBalance]:
    """
    Сальдо по всем должникам, отсортированное по имени.

    Args:
        session: Активная сессия БД
        include_inactive: Включать неактивных должников
    """
    query = session.query(DebtorDB)
    if not include_inactive:
        query = query.filter(DebtorDB.is_active.is_(True))

    balances = []
    for debtor in query.order_by(DebtorDB.name).all():
        debts = calculate_debts(session, debtor.id)
        balances.append(DebtorBalance(
            debtor_id=debtor.id,
            name=debtor.name,
            debt_to_entity=debts.debt_to_entity,
            debt_to_me=debts.debt_to_me,
            net_balance=debts.net_balance,
        ))
    return balances
