from datetime import date
import uuid

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError

from household_ledger.database import DEBT_REPAYMENT_CATEGORY, init_default_categories
from household_ledger.models.models import CategoryDB, PendingOccurrenceDB
from household_ledger.models.enums import TransactionType

from test_factories import create_test_payment_method, create_test_schedule


def test_init_default_categories_uuids(db_session):
    """Test that default categories are created with UUIDs."""
    init_default_categories(db_session)

    categories = db_session.query(CategoryDB).all()
    assert len(categories) > 0
    for cat in categories:
        assert len(cat.id) == 36
        uuid.UUID(cat.id)  # Should not raise


def test_debt_repayment_category_is_income(db_session):
    init_default_categories(db_session)
    init_default_categories(db_session)

    category = db_session.query(CategoryDB).filter_by(name=DEBT_REPAYMENT_CATEGORY).one()
    assert category.type == TransactionType.INCOME
    assert category.is_system is True


def test_schema_has_pending_unique_constraint(db_session):
    """Test that pending occurrences are unique per schedule and date."""
    inspector = inspect(db_session.get_bind())
    constraints = inspector.get_unique_constraints("pending_occurrences")
    assert any(set(c["column_names"]) == {"schedule_id", "planned_date"} for c in constraints)


def test_foreign_keys_enforced(db_session):
    """Test that SQLite foreign keys are on for test sessions."""
    db_session.add(PendingOccurrenceDB(schedule_id="missing", planned_date=date(2024, 1, 1)))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_duplicate_pending_rejected_by_database(db_session):
    card = create_test_payment_method()
    db_session.add(card)
    db_session.commit()
    schedule = create_test_schedule(card.id)
    db_session.add(schedule)
    db_session.commit()

    db_session.add(PendingOccurrenceDB(schedule_id=schedule.id, planned_date=date(2024, 1, 1)))
    db_session.commit()
    db_session.add(PendingOccurrenceDB(schedule_id=schedule.id, planned_date=date(2024, 1, 1)))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()
