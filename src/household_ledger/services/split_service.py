"""
Сервис расчёта скидок и разделения расходов между должниками.

Содержит чистые функции (без обращения к БД):
- Итоги по позициям чека со скидкой и исключениями из скидки
- Подсчёт долей для разделения TOTAL_SPLIT
- Распределение итога по долям и по позициям
- Предварительный расчёт для формы редактирования расхода

Все суммы считаются в Decimal без промежуточного округления: сумма долей
должников и доли пользователя равна итогу в пределах точности Decimal.

Позиции и доли принимаются как любые объекты с нужными атрибутами
(LineItemDB / LineItemCreate, ExpenseSplitDB / SplitCreate).
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from household_ledger.models.enums import SplitType
from household_ledger.models.models import (
    ApportionmentResult,
    FormDebtSummary,
    FormDebtorAmount,
)

# Настройка логирования
logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def _to_decimal(value: Any) -> Decimal:
    """Приводит значение к Decimal; None и нечисловые значения дают 0."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return ZERO
    return result if result.is_finite() else ZERO


def _to_int(value: Any) -> int:
    """Приводит значение к int; None и нечисловые значения дают 0."""
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


# =============================================================================
# Итоги и скидка
# =============================================================================

def line_item_total(item) -> Decimal:
    """Сумма позиции без скидки: количество * цена."""
    return _to_decimal(item.quantity) * _to_decimal(item.unit_price)


def calculate_subtotal(items: Iterable) -> Decimal:
    """Сумма всех позиций без скидки."""
    return sum((line_item_total(item) for item in items), ZERO)


def calculate_discountable_amount(items: Iterable) -> Decimal:
    """Сумма позиций, на которые распространяется скидка."""
    return sum(
        (line_item_total(item) for item in items if not item.is_excluded_from_discount),
        ZERO,
    )


def calculate_discount(items: Iterable, discount_percentage: Any) -> Decimal:
    """
    Размер скидки на чек.

    Скидка применяется только к позициям без флага is_excluded_from_discount.

    Args:
        items: Позиции чека
        discount_percentage: Скидка в процентах (0/None = без скидки)

    Returns:
        Сумма скидки

    Example:
        >>> calculate_discount([item_10, excluded_item_5], 10)
        Decimal('1.0')
    """
    pct = _to_decimal(discount_percentage)
    if not pct:
        return ZERO
    return calculate_discountable_amount(items) * pct / HUNDRED


def calculate_total_with_discount(items: Iterable, discount_percentage: Any) -> Decimal:
    """Итог чека: сумма позиций минус скидка."""
    items = list(items)
    return calculate_subtotal(items) - calculate_discount(items, discount_percentage)


def calculate_line_item_total_with_discount(item, discount_percentage: Any) -> Decimal:
    """Сумма позиции со скидкой чека (исключённые позиции не меняются)."""
    total = line_item_total(item)
    pct = _to_decimal(discount_percentage)
    if not pct or item.is_excluded_from_discount:
        return total
    return total - total * pct / HUNDRED


def calculate_expense_total(expense, line_items: Optional[Iterable] = None) -> Decimal:
    """
    Итог расхода.

    Для расхода без позиций возвращается non_itemised_total, иначе сумма
    позиций со скидкой.

    Args:
        expense: Расход (ExpenseDB или ExpenseCreate)
        line_items: Позиции (по умолчанию expense.line_items)
    """
    if expense.is_non_itemised:
        return _to_decimal(expense.non_itemised_total)
    items = line_items if line_items is not None else expense.line_items
    return calculate_total_with_discount(items, expense.discount_percentage)


# =============================================================================
# Доли
# =============================================================================

def calculate_total_shares(own_shares: Any, splits: Iterable) -> int:
    """
    Общее число долей: доли пользователя + доли всех должников.

    Отсутствующие или нечисловые значения считаются нулём.
    """
    debtor_shares = sum(_to_int(getattr(split, "split_part", None)) for split in splits)
    return debtor_shares + _to_int(own_shares)


def resolve_total_shares(cached_total_shares: Any, own_shares: Any, splits: Iterable) -> int:
    """Кэшированный знаменатель, если он больше нуля, иначе пересчитанный."""
    cached = _to_int(cached_total_shares)
    if cached > 0:
        return cached
    return calculate_total_shares(own_shares, splits)


def apportion_total_split(
    total: Any,
    own_shares: Any,
    splits: Iterable,
    total_shares: Optional[int] = None,
) -> ApportionmentResult:
    """
    Делит итог между должниками и пользователем пропорционально долям.

    Сумма каждого должника считается независимо: total * доля / всего_долей.
    Несколько долей одного должника суммируются.

    Args:
        total: Итог расхода
        own_shares: Доли пользователя
        splits: Доли должников (debtor_id, split_part)
        total_shares: Явный знаменатель (None/<=0 = пересчитать)

    Returns:
        ApportionmentResult. Если всего долей <= 0, деление не выполняется:
        debtor_amounts пуст, own_amount = None.

    Example:
        >>> result = apportion_total_split(Decimal("100"), 1, [SplitCreate(debtor_id="a"),
        ...                                                     SplitCreate(debtor_id="b")])
        >>> result.total_shares
        3
    """
    splits = list(splits)
    shares = resolve_total_shares(total_shares, own_shares, splits)
    if shares <= 0:
        logger.debug("Всего долей 0, распределение итога не выполняется")
        return ApportionmentResult(total_shares=shares)

    total_value = _to_decimal(total)
    debtor_amounts: Dict[str, Decimal] = {}
    for split in splits:
        amount = total_value * _to_int(split.split_part) / shares
        debtor_amounts[split.debtor_id] = debtor_amounts.get(split.debtor_id, ZERO) + amount

    own_amount = total_value * _to_int(own_shares) / shares
    return ApportionmentResult(
        total_shares=shares,
        debtor_amounts=debtor_amounts,
        own_amount=own_amount,
    )


def apportion_line_items(items: Iterable, discount_percentage: Any) -> Tuple[Dict[str, Decimal], Decimal]:
    """
    Распределение по позициям: каждая позиция со скидкой относится к своему должнику.

    Позиции без должника относятся к пользователю (плательщику).

    Returns:
        (суммы по должникам, сумма пользователя)
    """
    debtor_amounts: Dict[str, Decimal] = {}
    own_amount = ZERO
    for item in items:
        amount = calculate_line_item_total_with_discount(item, discount_percentage)
        if item.debtor_id:
            debtor_amounts[item.debtor_id] = debtor_amounts.get(item.debtor_id, ZERO) + amount
        else:
            own_amount += amount
    return debtor_amounts, own_amount


def calculate_debt_summary_for_form(
    total_amount: Any,
    split_type: SplitType,
    own_shares: Any,
    splits: Iterable,
    line_items: Iterable,
    discount_percentage: Any,
    debtor_names: Optional[Mapping[str, str]] = None,
    total_shares: Optional[int] = None,
) -> FormDebtSummary:
    """
    Предварительный расчёт долей для формы редактирования расхода.

    Синхронная версия без обращения к БД: вызывается при каждом изменении
    полей формы.

    Args:
        total_amount: Текущий итог расхода
        split_type: Способ разделения
        own_shares: Доли пользователя
        splits: Доли должников
        line_items: Позиции чека
        discount_percentage: Скидка чека
        debtor_names: Соответствие ID должника -> имя
        total_shares: Явный знаменатель долей (None = пересчитать)

    Returns:
        FormDebtSummary с суммами должников и долей пользователя
        (self_amount заполняется только при own_shares > 0)
    """
    names = debtor_names or {}
    debtors: List[FormDebtorAmount] = []
    self_amount: Optional[Decimal] = None

    if split_type == SplitType.TOTAL_SPLIT:
        result = apportion_total_split(total_amount, own_shares, splits, total_shares)
        for debtor_id, amount in result.debtor_amounts.items():
            debtors.append(FormDebtorAmount(name=names.get(debtor_id), amount=amount, debtor_id=debtor_id))
        if result.own_amount is not None and _to_int(own_shares) > 0:
            self_amount = result.own_amount
    elif split_type == SplitType.LINE_ITEM:
        debtor_amounts, _ = apportion_line_items(line_items, discount_percentage)
        for debtor_id, amount in debtor_amounts.items():
            debtors.append(FormDebtorAmount(name=names.get(debtor_id), amount=amount, debtor_id=debtor_id))

    return FormDebtSummary(debtors=debtors, self_amount=self_amount)
