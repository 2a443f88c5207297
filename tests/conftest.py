"""
Конфигурация pytest для тестов household_ledger.
"""
import os
import tempfile

# Директория данных для тестов задаётся до импорта конфигурации
os.environ.setdefault("HOUSEHOLD_LEDGER_DATA_DIR", tempfile.mkdtemp(prefix="household_ledger_tests_"))

import pytest
from datetime import datetime
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from household_ledger.database import enable_sqlite_foreign_keys
from household_ledger.models import Base, CategoryDB
from household_ledger.models.enums import TransactionType

from test_factories import (
    create_test_debtor,
    create_test_income_source,
    create_test_payment_method,
    create_test_store,
)


@pytest.fixture
def db_session():
    """
    Централизованная фикстура для создания временной БД и сессии.
    Автоматически закрывает соединение после теста.
    """
    engine = create_engine("sqlite:///:memory:")
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    session = Session()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def reference_data(db_session):
    """
    Фикстура со справочниками: способ оплаты, источник дохода, магазин,
    категории и два должника.

    Returns:
        dict: Словарь с созданными объектами
    """
    card = create_test_payment_method(name="Карта")
    cash = create_test_payment_method(name="Наличные")
    employer = create_test_income_source(name="Работодатель")
    landlord = create_test_store(name="Арендодатель")
    shop = create_test_store(name="Супермаркет")
    eve = create_test_debtor(name="Eve")
    bob = create_test_debtor(name="Bob")
    salary = CategoryDB(name="Зарплата", type=TransactionType.INCOME, is_system=True,
                        created_at=datetime.now())
    housing = CategoryDB(name="Жильё", type=TransactionType.EXPENSE, is_system=True,
                         created_at=datetime.now())

    db_session.add_all([card, cash, employer, landlord, shop, eve, bob, salary, housing])
    db_session.commit()

    return {
        "card": card,
        "cash": cash,
        "employer": employer,
        "landlord": landlord,
        "shop": shop,
        "eve": eve,
        "bob": bob,
        "salary": salary,
        "housing": housing,
    }
