"""
Тесты сервиса взаимных долгов.

Проверяют расчёт долгов в обе стороны, погашение долей должников
и отметку расходов-долгов как оплаченных.
"""

from datetime import date
from decimal import Decimal

import pytest

from household_ledger.models import DebtorPaymentDB, ExpenseCreate, ExpenseDB, IncomeDB, SplitCreate
from household_ledger.models.enums import DebtDirection, ExpenseStatus, SplitType
from household_ledger.services.debt_service import (
    calculate_debt_summary_for_expense,
    calculate_debts,
    get_debtor_balances,
    mark_expense_paid,
    mark_expense_unpaid,
    settle_debtor_share,
    unsettle_debtor_share,
)
from household_ledger.services.expense_service import create_expense
from household_ledger.utils.exceptions import (
    BusinessLogicError,
    DebtorNotFoundError,
    ExpenseNotFoundError,
)

from test_factories import (
    create_test_debtor,
    create_test_expense,
    create_test_line_item,
    create_test_split,
)


@pytest.fixture
def shared_dinner(db_session, reference_data):
    """Расход 60 на троих: пользователь 1 доля, Eve 1, Bob 1."""
    expense = create_test_expense(
        expense_date=date(2024, 5, 10),
        store_id=reference_data["shop"].id,
        payment_method_id=reference_data["card"].id,
        non_itemised_total=Decimal("60.00"),
        split_type=SplitType.TOTAL_SPLIT,
        own_shares=1,
        splits=[
            create_test_split(reference_data["eve"].id),
            create_test_split(reference_data["bob"].id),
        ],
    )
    db_session.add(expense)
    db_session.commit()
    return expense


class TestCalculateDebts:
    """Расчёт долгов с должником."""

    def test_total_split_share(self, db_session, reference_data, shared_dinner):
        debts = calculate_debts(db_session, reference_data["eve"].id)

        assert len(debts.receipts) == 1
        receipt = debts.receipts[0]
        assert receipt.direction == DebtDirection.TO_ME
        assert receipt.amount == Decimal("20")
        assert receipt.split_part == 1
        assert receipt.total_shares == 3
        assert receipt.store_name == "Супермаркет"
        assert debts.debt_to_me == Decimal("20")
        assert debts.debt_to_entity == Decimal("0")
        assert debts.net_balance == Decimal("20")

    def test_unpaid_debt_to_entity_reduces_balance(self, db_session, reference_data, shared_dinner):
        """Eve должна 20, пользователь должен Eve 15 по неоплаченному чеку: сальдо +5."""
        owed = create_test_expense(
            expense_date=date(2024, 5, 12),
            non_itemised_total=Decimal("15.00"),
            owed_to_debtor_id=reference_data["eve"].id,
            status=ExpenseStatus.UNPAID,
        )
        db_session.add(owed)
        db_session.commit()

        debts = calculate_debts(db_session, reference_data["eve"].id)

        assert debts.debt_to_entity == Decimal("15")
        assert debts.debt_to_me == Decimal("20")
        assert debts.net_balance == Decimal("5")
        # Новые расходы первыми
        assert [r.direction for r in debts.receipts] == [DebtDirection.TO_ENTITY, DebtDirection.TO_ME]

    def test_recorded_debt_to_entity_nets_against_share(self, db_session, reference_data):
        """Чеки, записанные через create_expense: Eve должна 20, пользователь должен Eve 15."""
        eve_id = reference_data["eve"].id
        create_expense(db_session, ExpenseCreate(
            expense_date=date(2024, 5, 10),
            payment_method_id=reference_data["card"].id,
            is_non_itemised=True,
            non_itemised_total=Decimal("60.00"),
            split_type=SplitType.TOTAL_SPLIT,
            own_shares=1,
            splits=[
                SplitCreate(debtor_id=eve_id),
                SplitCreate(debtor_id=reference_data["bob"].id),
            ],
        ))
        owed = create_expense(db_session, ExpenseCreate(
            expense_date=date(2024, 5, 12),
            is_non_itemised=True,
            non_itemised_total=Decimal("15.00"),
            owed_to_debtor_id=eve_id,
        ))

        assert owed.status == ExpenseStatus.UNPAID

        debts = calculate_debts(db_session, eve_id)

        assert debts.debt_to_entity == Decimal("15")
        assert debts.debt_to_me == Decimal("20")
        assert debts.net_balance == Decimal("5")

        mark_expense_paid(db_session, owed.id, reference_data["card"].id)
        assert calculate_debts(db_session, eve_id).debt_to_entity == Decimal("0")

    def test_paid_debt_to_entity_is_settled(self, db_session, reference_data):
        owed = create_test_expense(
            non_itemised_total=Decimal("15.00"),
            owed_to_debtor_id=reference_data["bob"].id,
            status=ExpenseStatus.PAID,
            payment_method_id=reference_data["card"].id,
        )
        db_session.add(owed)
        db_session.commit()

        debts = calculate_debts(db_session, reference_data["bob"].id)
        assert debts.receipts[0].is_settled
        assert debts.debt_to_entity == Decimal("0")

    def test_line_item_share_with_discount(self, db_session, reference_data):
        eve_id = reference_data["eve"].id
        expense = create_test_expense(
            line_items=[
                create_test_line_item(Decimal("10.00"), debtor_id=eve_id),
                create_test_line_item(Decimal("4.00"), debtor_id=eve_id, is_excluded_from_discount=True),
                create_test_line_item(Decimal("30.00")),
            ],
            discount_percentage=Decimal("10"),
            split_type=SplitType.LINE_ITEM,
            payment_method_id=reference_data["card"].id,
        )
        db_session.add(expense)
        db_session.commit()

        debts = calculate_debts(db_session, eve_id)
        assert debts.debt_to_me == Decimal("13")
        assert debts.receipts[0].total_amount == Decimal("40")

    def test_tentative_expenses_ignored(self, db_session, reference_data):
        expense = create_test_expense(
            non_itemised_total=Decimal("60.00"),
            split_type=SplitType.TOTAL_SPLIT,
            own_shares=1,
            splits=[create_test_split(reference_data["eve"].id)],
            is_tentative=True,
        )
        db_session.add(expense)
        db_session.commit()

        debts = calculate_debts(db_session, reference_data["eve"].id)
        assert debts.receipts == []
        assert debts.net_balance == Decimal("0")

    def test_unknown_debtor_raises(self, db_session):
        with pytest.raises(DebtorNotFoundError):
            calculate_debts(db_session, "missing")

    def test_stale_split_type_ignored(self, db_session, reference_data):
        """Доли остаются в БД, но способ разделения уже NONE: долга нет."""
        expense = create_test_expense(
            non_itemised_total=Decimal("60.00"),
            splits=[create_test_split(reference_data["eve"].id)],
            split_type=SplitType.NONE,
        )
        db_session.add(expense)
        db_session.commit()

        assert calculate_debts(db_session, reference_data["eve"].id).receipts == []


class TestDebtSummaryForExpense:
    """Разбивка отдельного расхода."""

    def test_summary_with_own_share(self, db_session, reference_data, shared_dinner):
        summary = calculate_debt_summary_for_expense(
            shared_dinner, shared_dinner.line_items, shared_dinner.splits, []
        )
        assert sorted(d.name for d in summary.debtors) == ["Bob", "Eve"]
        assert all(d.amount == Decimal("20") for d in summary.debtors)
        assert summary.own_share.amount == Decimal("20")
        assert summary.own_share.total_shares == 3

    def test_zero_total_shares_no_breakdown(self):
        expense = create_test_expense(
            non_itemised_total=Decimal("60.00"),
            split_type=SplitType.TOTAL_SPLIT,
            own_shares=0,
        )
        summary = calculate_debt_summary_for_expense(expense, [], [], [])
        assert summary.debtors == []
        assert summary.own_share is None

    def test_missing_expense_gives_empty_summary(self):
        summary = calculate_debt_summary_for_expense(None, [], [], [])
        assert summary.debtors == []

    def test_paid_flag_from_payments(self, db_session, reference_data, shared_dinner):
        payment = DebtorPaymentDB(
            expense_id=shared_dinner.id, debtor_id=reference_data["bob"].id, paid_date=date(2024, 5, 11)
        )
        summary = calculate_debt_summary_for_expense(
            shared_dinner, [], shared_dinner.splits, [payment],
            debtor_names={reference_data["bob"].id: "Bob"},
        )
        paid = {d.name: d.is_paid for d in summary.debtors}
        assert paid == {"Eve": False, "Bob": True}


class TestSettlement:
    """Погашение долей и отметка оплаты."""

    def test_settle_creates_income_and_payment(self, db_session, reference_data, shared_dinner):
        eve = reference_data["eve"]
        payment = settle_debtor_share(
            db_session, shared_dinner.id, eve.id, reference_data["cash"].id, paid_date=date(2024, 5, 20)
        )

        income = db_session.get(IncomeDB, payment.income_id)
        assert income.amount == Decimal("20.00")
        assert income.debtor_id == eve.id
        assert income.note == "Возврат долга от Eve"
        assert income.income_date == date(2024, 5, 20)

        debts = calculate_debts(db_session, eve.id)
        assert debts.receipts[0].is_settled
        assert debts.debt_to_me == Decimal("0")

    def test_settle_twice_rejected(self, db_session, reference_data, shared_dinner):
        eve_id = reference_data["eve"].id
        settle_debtor_share(db_session, shared_dinner.id, eve_id, reference_data["cash"].id)
        with pytest.raises(BusinessLogicError):
            settle_debtor_share(db_session, shared_dinner.id, eve_id, reference_data["cash"].id)

    def test_settle_non_participant_rejected(self, db_session, reference_data, shared_dinner):
        stranger = create_test_debtor(name="Mallory")
        db_session.add(stranger)
        db_session.commit()
        with pytest.raises(BusinessLogicError):
            settle_debtor_share(db_session, shared_dinner.id, stranger.id, reference_data["cash"].id)

    def test_settle_unknown_payment_method(self, db_session, reference_data, shared_dinner):
        with pytest.raises(ValueError):
            settle_debtor_share(db_session, shared_dinner.id, reference_data["eve"].id, "missing")

    def test_unsettle_removes_payment_and_income(self, db_session, reference_data, shared_dinner):
        eve_id = reference_data["eve"].id
        payment = settle_debtor_share(db_session, shared_dinner.id, eve_id, reference_data["cash"].id)
        income_id = payment.income_id

        assert unsettle_debtor_share(db_session, shared_dinner.id, eve_id) is True
        assert db_session.get(IncomeDB, income_id) is None
        assert calculate_debts(db_session, eve_id).debt_to_me == Decimal("20")
        assert unsettle_debtor_share(db_session, shared_dinner.id, eve_id) is False

    def test_mark_paid_and_unpaid(self, db_session, reference_data):
        owed = create_test_expense(
            non_itemised_total=Decimal("15.00"),
            owed_to_debtor_id=reference_data["eve"].id,
            status=ExpenseStatus.UNPAID,
        )
        db_session.add(owed)
        db_session.commit()

        expense = mark_expense_paid(db_session, owed.id, reference_data["card"].id)
        assert expense.status == ExpenseStatus.PAID
        assert expense.payment_method_id == reference_data["card"].id
        assert calculate_debts(db_session, reference_data["eve"].id).debt_to_entity == Decimal("0")

        expense = mark_expense_unpaid(db_session, owed.id)
        assert expense.status == ExpenseStatus.UNPAID
        assert expense.payment_method_id is None

    def test_mark_paid_unknown_expense(self, db_session, reference_data):
        with pytest.raises(ExpenseNotFoundError):
            mark_expense_paid(db_session, "missing", reference_data["card"].id)


class TestBalances:
    """Сводное сальдо по должникам."""

    def test_balances_sorted_by_name(self, db_session, reference_data, shared_dinner):
        balances = get_debtor_balances(db_session)
        assert [b.name for b in balances] == ["Bob", "Eve"]
        assert all(b.net_balance == Decimal("20") for b in balances)

    def test_inactive_debtors_filtered(self, db_session, reference_data):
        inactive = create_test_debtor(name="Zed", is_active=False)
        db_session.add(inactive)
        db_session.commit()

        assert "Zed" not in [b.name for b in get_debtor_balances(db_session)]
        assert "Zed" in [b.name for b in get_debtor_balances(db_session, include_inactive=True)]

    def test_expense_rows_unchanged_by_calculation(self, db_session, reference_data, shared_dinner):
        calculate_debts(db_session, reference_data["eve"].id)
        assert db_session.query(ExpenseDB).count() == 1
