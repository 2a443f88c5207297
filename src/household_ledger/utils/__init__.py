"""Утилиты приложения."""

from household_ledger.utils.logger import setup_logging, get_logger
from household_ledger.utils.cache import CacheStore
from household_ledger.utils.error_handler import ErrorHandler, safe_command
from household_ledger.utils.exceptions import (
    HouseholdLedgerError,
    ValidationError,
    BusinessLogicError,
    DatabaseError,
    ScheduleNotFoundError,
    PendingOccurrenceNotFoundError,
    ExpenseNotFoundError,
    DebtorNotFoundError,
    InvalidRuleError,
    ScheduleProcessingError,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "CacheStore",
    "ErrorHandler",
    "safe_command",
    "HouseholdLedgerError",
    "ValidationError",
    "BusinessLogicError",
    "DatabaseError",
    "ScheduleNotFoundError",
    "PendingOccurrenceNotFoundError",
    "ExpenseNotFoundError",
    "DebtorNotFoundError",
    "InvalidRuleError",
    "ScheduleProcessingError",
]
