"""
Модуль пользовательских исключений приложения.
"""


class HouseholdLedgerError(Exception):
    """Базовый класс для всех исключений приложения."""
    pass


class ValidationError(HouseholdLedgerError):
    """Исключение при ошибке валидации данных (пользовательский ввод)."""
    pass


class BusinessLogicError(HouseholdLedgerError):
    """Исключение при нарушении бизнес-правил (например, повторное погашение доли)."""
    pass


class DatabaseError(HouseholdLedgerError):
    """Исключение при ошибках работы с базой данных."""
    pass


class ScheduleNotFoundError(HouseholdLedgerError):
    """Исключение когда расписание не найдено."""
    pass


class PendingOccurrenceNotFoundError(HouseholdLedgerError):
    """Исключение когда ожидающее вхождение не найдено."""
    pass


class ExpenseNotFoundError(HouseholdLedgerError):
    """Исключение когда расход не найден."""
    pass


class DebtorNotFoundError(HouseholdLedgerError):
    """Исключение когда должник не найден."""
    pass


class InvalidRuleError(ValidationError, ValueError):
    """Исключение при разборе некорректной строки правила повторения."""
    pass


class ScheduleProcessingError(HouseholdLedgerError):
    """
    Ошибка обработки одного расписания при сверке.

    Attributes:
        schedule_id: ID расписания, на котором произошла ошибка
    """

    def __init__(self, schedule_id: str, message: str):
        super().__init__(f"Расписание {schedule_id}: {message}")
        self.schedule_id = schedule_id
