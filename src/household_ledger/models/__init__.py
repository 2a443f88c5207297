"""Модели данных Household Ledger."""

from household_ledger.models.enums import (
    TransactionType,
    RecurrenceType,
    PendingStatus,
    SplitType,
    ExpenseStatus,
    DebtDirection,
)
from household_ledger.models.models import (
    Base,
    CategoryDB,
    PaymentMethodDB,
    IncomeSourceDB,
    StoreDB,
    DebtorDB,
    ScheduleDB,
    PendingOccurrenceDB,
    IncomeDB,
    ExpenseDB,
    LineItemDB,
    ExpenseSplitDB,
    DebtorPaymentDB,
    RecurrenceRule,
    ScheduleBase,
    IncomeScheduleCreate,
    ExpenseScheduleCreate,
    ScheduleCreate,
    PendingOccurrence,
    LineItemCreate,
    SplitCreate,
    ExpenseCreate,
    DebtorShare,
    OwnShare,
    DebtSummary,
    FormDebtorAmount,
    FormDebtSummary,
    ProcessedExpense,
    EntityDebts,
    DebtorBalance,
    ApportionmentResult,
)

__all__ = [
    "TransactionType",
    "RecurrenceType",
    "PendingStatus",
    "SplitType",
    "ExpenseStatus",
    "DebtDirection",
    "Base",
    "CategoryDB",
    "PaymentMethodDB",
    "IncomeSourceDB",
    "StoreDB",
    "DebtorDB",
    "ScheduleDB",
    "PendingOccurrenceDB",
    "IncomeDB",
    "ExpenseDB",
    "LineItemDB",
    "ExpenseSplitDB",
    "DebtorPaymentDB",
    "RecurrenceRule",
    "ScheduleBase",
    "IncomeScheduleCreate",
    "ExpenseScheduleCreate",
    "ScheduleCreate",
    "PendingOccurrence",
    "LineItemCreate",
    "SplitCreate",
    "ExpenseCreate",
    "DebtorShare",
    "OwnShare",
    "DebtSummary",
    "FormDebtorAmount",
    "FormDebtSummary",
    "ProcessedExpense",
    "EntityDebts",
    "DebtorBalance",
    "ApportionmentResult",
]
