__all__ = [
    "parse_recurrence_rule",
    "format_recurrence_rule",
    "validate_recurrence_rule",
    "humanize_schedule",
    "ordinal_suffix",
    "OccurrenceGenerator",
    "calculate_occurrences",
    "calculate_discount",
    "calculate_total_with_discount",
    "calculate_line_item_total_with_discount",
    "calculate_expense_total",
    "calculate_total_shares",
    "apportion_total_split",
    "apportion_line_items",
    "calculate_debt_summary_for_form",
    "calculate_debts",
    "calculate_debt_summary_for_expense",
    "settle_debtor_share",
    "unsettle_debtor_share",
    "mark_expense_paid",
    "mark_expense_unpaid",
    "get_debtor_balances",
    "create_expense",
    "update_expense_split",
    "apply_total_split_to_expenses",
    "get_expense_debt_summary",
    "get_schedules",
    "get_schedule_by_id",
    "create_schedule",
    "update_schedule",
    "delete_schedule",
    "get_pending_occurrences",
    "create_pending_occurrence",
    "confirm_pending_occurrence",
    "reject_pending_occurrence",
    "process_schedules",
    "ReconciliationReport",
]

from household_ledger.services.recurrence_service import (
    parse_recurrence_rule,
    format_recurrence_rule,
    validate_recurrence_rule,
    humanize_schedule,
    ordinal_suffix,
)
from household_ledger.services.occurrence_service import (
    OccurrenceGenerator,
    calculate_occurrences,
)
from household_ledger.services.split_service import (
    calculate_discount,
    calculate_total_with_discount,
    calculate_line_item_total_with_discount,
    calculate_expense_total,
    calculate_total_shares,
    apportion_total_split,
    apportion_line_items,
    calculate_debt_summary_for_form,
)
from household_ledger.services.debt_service import (
    calculate_debts,
    calculate_debt_summary_for_expense,
    settle_debtor_share,
    unsettle_debtor_share,
    mark_expense_paid,
    mark_expense_unpaid,
    get_debtor_balances,
)
from household_ledger.services.expense_service import (
    create_expense,
    update_expense_split,
    apply_total_split_to_expenses,
    get_expense_debt_summary,
)
from household_ledger.services.schedule_service import (
    get_schedules,
    get_schedule_by_id,
    create_schedule,
    update_schedule,
    delete_schedule,
    get_pending_occurrences,
    create_pending_occurrence,
    confirm_pending_occurrence,
    reject_pending_occurrence,
)
from household_ledger.services.reconciliation_service import (
    process_schedules,
    ReconciliationReport,
)
