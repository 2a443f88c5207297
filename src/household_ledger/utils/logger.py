"""
Модуль настройки логирования для Household Ledger.

Обеспечивает:
- Структурированное логирование (JSON формат) в файл сеанса
- Читаемый вывод в консоль
- Поддержку русского языка в сообщениях
"""

import json
import logging
import sys
from pathlib import Path
from datetime import datetime, date
from typing import Any, Dict, Optional
from decimal import Decimal

from household_ledger.config import settings

# Стандартные атрибуты LogRecord, которые не копируются в JSON как extra
_RESERVED_ATTRS = {
    "args", "asctime", "created", "exc_info", "exc_text", "filename",
    "funcName", "levelname", "levelno", "lineno", "module",
    "msecs", "message", "msg", "name", "pathname", "process",
    "processName", "relativeCreated", "stack_info", "thread", "threadName",
    "taskName",
}


class JsonFormatter(logging.Formatter):
    """
    Форматтер для вывода логов в формате JSON.
    """
    def format(self, record: logging.LogRecord) -> str:
        """
        Форматирует запись лога в JSON строку.

        Args:
            record: Запись лога

        Returns:
            str: JSON строка
        """
        log_record: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S'),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        # Дополнительные поля из extra
        # Пример: logger.warning("...", extra={"schedule_id": schedule.id})
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_record[key] = self._serialize_value(value)

        if record.exc_info:
            log_record['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_record, ensure_ascii=False)

    def _serialize_value(self, value: Any) -> Any:
        """
        Преобразует значение в JSON-сериализуемый формат.

        Args:
            value: Значение для сериализации

        Returns:
            JSON-сериализуемое значение
        """
        if isinstance(value, (date, datetime)):
            return value.isoformat()
        elif isinstance(value, Decimal):
            return str(value)
        elif isinstance(value, (str, int, float, bool, type(None), list, dict)):
            return value
        else:
            return str(value)


def setup_logging(log_level: Optional[str] = None) -> Optional[Path]:
    """
    Настраивает систему логирования приложения.

    - Создаёт директорию для логов
    - Создаёт новый файл лога для каждого сеанса
      (формат: household_ledger_YYYYMMDD_HHMMSS.log)
    - Настраивает JSON форматирование для файла
    - Настраивает текстовый формат для консоли (stderr, чтобы не смешивать
      логи с выводом команд)

    Args:
        log_level: Уровень логирования (по умолчанию settings.log_level)

    Returns:
        Путь к файлу лога сеанса или None, если файл создать не удалось
    """
    log_file = Path(settings.log_file)
    log_dir = log_file.parent
    session_log_file: Optional[Path] = None

    if not log_dir.exists():
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            print(f"КРИТИЧЕСКАЯ ОШИБКА: Не удалось создать директорию логов: {e}", file=sys.stderr)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level or settings.log_level)
    root_logger.handlers = []

    # 1. Файловый хендлер для текущего сеанса
    if log_dir.exists():
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        session_log_file = log_dir / f"household_ledger_{timestamp}.log"
        try:
            file_handler = logging.FileHandler(session_log_file, encoding='utf-8')
            file_handler.setFormatter(JsonFormatter())
            root_logger.addHandler(file_handler)
        except OSError as e:
            print(f"КРИТИЧЕСКАЯ ОШИБКА: Не удалось настроить файл логов: {e}", file=sys.stderr)
            session_log_file = None

    # 2. Консольный хендлер с текстовым форматом
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(logging.Formatter(
        fmt='%(asctime)s | %(levelname)-8s | %(module)s:%(funcName)s | %(message)s',
        datefmt='%H:%M:%S'
    ))
    root_logger.addHandler(console_handler)

    logging.info("Система логирования инициализирована")
    if session_log_file:
        logging.info(f"Логи записываются в: {session_log_file}")
    return session_log_file


def get_logger(name: str) -> logging.Logger:
    """
    Возвращает логгер с указанным именем.

    Args:
        name: Имя логгера (обычно __name__)

    Returns:
        logging.Logger: Настроенный логгер
    """
    return logging.getLogger(name)
