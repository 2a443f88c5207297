"""
Property-based тесты для системы логирования.
Проверяют формат и структуру логов.
"""

import json
import logging
import sys
from datetime import date
from decimal import Decimal

from hypothesis import given, strategies as st

from household_ledger.utils.logger import JsonFormatter


@given(
    message=st.text(),
    level=st.sampled_from([logging.INFO, logging.WARNING, logging.ERROR]),
    module=st.text(min_size=1),
    func=st.text(min_size=1)
)
def test_json_formatter_structure(message, level, module, func):
    """
    Property 8: Язык логов (поддержка unicode) и структура JSON.
    """
    formatter = JsonFormatter()

    record = logging.LogRecord(
        name="test_logger",
        level=level,
        pathname="test_path.py",
        lineno=10,
        msg=message,
        args=(),
        exc_info=None,
        func=func
    )
    record.module = module

    data = json.loads(formatter.format(record))

    assert "timestamp" in data
    assert data["level"] == logging.getLevelName(level)
    assert data["logger"] == "test_logger"
    assert data["module"] == module
    assert data["function"] == func
    assert data["message"] == message


def test_json_formatter_extra_fields():
    """Поля из extra сериализуются: даты в ISO, Decimal в строку."""
    formatter = JsonFormatter()
    record = logging.LogRecord(
        name="household_ledger.services.reconciliation_service",
        level=logging.ERROR,
        pathname="reconciliation_service.py",
        lineno=1,
        msg="Ошибка при сверке",
        args=(),
        exc_info=None,
    )
    record.schedule_id = "abc"
    record.range_start = date(2024, 1, 10)
    record.amount = Decimal("2500.00")

    data = json.loads(formatter.format(record))

    assert data["schedule_id"] == "abc"
    assert data["range_start"] == "2024-01-10"
    assert data["amount"] == "2500.00"


def test_json_formatter_exception():
    """
    Property 9: Логирование ошибок с трейсбеком.
    """
    formatter = JsonFormatter()

    try:
        raise ValueError("Test exception")
    except ValueError:
        record = logging.LogRecord(
            name="test_logger",
            level=logging.ERROR,
            pathname="test.py",
            lineno=1,
            msg="Error occurred",
            args=(),
            exc_info=sys.exc_info(),
        )

        data = json.loads(formatter.format(record))

        assert "exception" in data
        assert "ValueError: Test exception" in data["exception"]
