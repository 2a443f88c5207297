"""
Модуль перечислений (enums) для Household Ledger.

Содержит все Enum классы, используемые в моделях данных.
"""

from enum import Enum


class TransactionType(str, Enum):
    """
    Тип финансовой операции (и вид расписания).

    Attributes:
        INCOME: Доход (поступление средств)
        EXPENSE: Расход (трата средств)
    """
    INCOME = "income"
    EXPENSE = "expense"


class RecurrenceType(str, Enum):
    """
    Частота правила повторения.

    Значения совпадают с токенами строки правила (FREQ=MONTHLY;INTERVAL=1).

    Attributes:
        DAILY: Каждые N дней
        WEEKLY: Каждые N недель
        MONTHLY: Каждые N месяцев
        QUARTERLY: Каждые N кварталов (N * 3 месяца)
        YEARLY: Каждые N лет
    """
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


class PendingStatus(str, Enum):
    """
    Статус ожидающего вхождения расписания.

    CONFIRMED и REJECTED терминальны: строка удаляется, а не хранится.

    Attributes:
        PENDING: Ожидает подтверждения пользователем
        CONFIRMED: Подтверждено (создана фактическая операция)
        REJECTED: Отклонено пользователем
    """
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class SplitType(str, Enum):
    """
    Способ разделения расхода между должниками.

    Attributes:
        NONE: Расход не делится
        TOTAL_SPLIT: Итог делится по долям (split_part)
        LINE_ITEM: Каждая позиция чека закреплена за должником
    """
    NONE = "none"
    TOTAL_SPLIT = "total_split"
    LINE_ITEM = "line_item"


class ExpenseStatus(str, Enum):
    """
    Статус оплаты расхода.

    Attributes:
        UNPAID: Не оплачен (для долга перед контрагентом — долг открыт)
        PAID: Оплачен
    """
    UNPAID = "unpaid"
    PAID = "paid"


class DebtDirection(str, Enum):
    """
    Направление долга относительно пользователя.

    Attributes:
        TO_ENTITY: Пользователь должен контрагенту
        TO_ME: Контрагент должен пользователю
    """
    TO_ENTITY = "to_entity"
    TO_ME = "to_me"
