"""
Модуль централизованной обработки ошибок.
Предоставляет инструменты для перехвата, логирования и вывода ошибок в командной строке.
"""

import functools
import logging
import sys
import traceback
from typing import Callable, Optional

import click

from household_ledger.utils.exceptions import (
    ValidationError,
    BusinessLogicError,
    DatabaseError,
    ScheduleNotFoundError,
    PendingOccurrenceNotFoundError,
    ExpenseNotFoundError,
    DebtorNotFoundError,
)

logger = logging.getLogger(__name__)

_NOT_FOUND_ERRORS = (
    ScheduleNotFoundError,
    PendingOccurrenceNotFoundError,
    ExpenseNotFoundError,
    DebtorNotFoundError,
)


class ErrorHandler:
    """
    Класс для централизованной обработки ошибок.

    Args:
        notify: Функция вывода сообщения пользователю (None = только логирование)
    """

    def __init__(self, notify: Optional[Callable[[str], None]] = None):
        self.notify = notify

    def handle(self, exception: Exception, context_message: str = "") -> str:
        """
        Обрабатывает возникшее исключение: логирует и сообщает пользователю.

        Args:
            exception: Исключение, которое нужно обработать.
            context_message: Дополнительное сообщение о контексте ошибки.

        Returns:
            Понятное пользователю сообщение об ошибке
        """
        error_message = self._get_user_message(exception)
        log_message = f"{context_message}: {exception}" if context_message else str(exception)

        if isinstance(exception, (ValidationError, BusinessLogicError, ValueError) + _NOT_FOUND_ERRORS):
            logger.warning(f"Ошибка пользователя: {log_message}")
        else:
            logger.error(f"Системная ошибка: {log_message}\n{traceback.format_exc()}")

        if self.notify:
            self.notify(error_message)
        return error_message

    def _get_user_message(self, exception: Exception) -> str:
        """Возвращает понятное пользователю сообщение об ошибке."""
        if isinstance(exception, ValidationError):
            return f"Ошибка ввода: {exception}"
        elif isinstance(exception, _NOT_FOUND_ERRORS):
            return f"Не найдено: {exception}"
        elif isinstance(exception, BusinessLogicError):
            return f"Невозможно выполнить операцию: {exception}"
        elif isinstance(exception, DatabaseError):
            return "Произошла ошибка при работе с базой данных. Попробуйте позже."
        elif isinstance(exception, ValueError):
            return f"Ошибка ввода: {exception}"
        else:
            return f"Произошла непредвиденная ошибка: {exception}"


def safe_command(func):
    """
    Декоратор для команд CLI.
    Перехватывает ошибки, передаёт их в ErrorHandler и завершает процесс с кодом 1.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except click.exceptions.Exit:
            raise
        except Exception as e:
            handler = ErrorHandler(notify=lambda message: click.echo(message, err=True))
            handler.handle(e, context_message=f"Ошибка в команде {func.__name__}")
            sys.exit(1)
    return wrapper
