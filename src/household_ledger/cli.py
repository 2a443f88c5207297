"""
Интерфейс командной строки Household Ledger.

Команды:
- process   — сверка расписаний (проведение операций, создание ожидающих вхождений)
- schedules — список расписаний
- pending   — список ожидающих вхождений
- confirm   — подтверждение ожидающего вхождения
- reject    — отклонение ожидающего вхождения
- debts     — долги с должником
- balances  — сальдо по всем должникам
"""

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

import click

from household_ledger import __version__
from household_ledger.config import settings
from household_ledger.database import get_db_session, init_db
from household_ledger.models.enums import DebtDirection, TransactionType
from household_ledger.models.models import PendingOccurrenceDB
from household_ledger.services.debt_service import calculate_debts, get_debtor_balances
from household_ledger.services.reconciliation_service import process_schedules
from household_ledger.services.recurrence_service import humanize_schedule
from household_ledger.services.schedule_service import (
    confirm_pending_occurrence,
    get_pending_occurrences,
    get_schedules,
    reject_pending_occurrence,
)
from household_ledger.utils.error_handler import safe_command
from household_ledger.utils.logger import setup_logging

logger = logging.getLogger(__name__)

DATE_TYPE = click.DateTime(formats=["%Y-%m-%d"])


class DecimalParamType(click.ParamType):
    """Параметр командной строки с денежной суммой."""
    name = "amount"

    def convert(self, value, param, ctx):
        if isinstance(value, Decimal):
            return value
        try:
            return Decimal(str(value).replace(",", "."))
        except InvalidOperation:
            self.fail(f"Некорректная сумма: {value}", param, ctx)


AMOUNT = DecimalParamType()


def format_money(amount: Optional[Decimal]) -> str:
    """Форматирует сумму для вывода (None -> '—')."""
    if amount is None:
        return "—"
    return f"{Decimal(amount):.2f} {settings.currency_symbol}"


def format_date(value: date) -> str:
    return value.strftime(settings.date_format)


def _as_date(value: Optional[datetime]) -> Optional[date]:
    return value.date() if value is not None else None


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Подробное логирование")
@click.option("--database", "database_url", default=None,
              help="URL базы данных (по умолчанию SQLite в директории данных)")
@click.version_option(version=__version__)
def main(verbose: bool, database_url: Optional[str]):
    """Household Ledger — регулярные платежи и взаимные долги."""
    setup_logging("DEBUG" if verbose else None)
    init_db(database_url)


@main.command()
@click.option("--today", type=DATE_TYPE, default=None, help="Дата сверки (ГГГГ-ММ-ДД)")
@safe_command
def process(today: Optional[datetime]):
    """Сверить все активные расписания."""
    with get_db_session() as session:
        report = process_schedules(session, today=_as_date(today))

    click.echo(f"Обработано расписаний: {report.processed}")
    click.echo(f"Создано ожидающих вхождений: {report.pending_created}")
    click.echo(f"Проведено операций: {report.transactions_created}")
    if report.failed_schedule_ids:
        click.echo(f"Ошибки в расписаниях: {', '.join(report.failed_schedule_ids)}", err=True)


@main.command(name="schedules")
@click.option("--kind", type=click.Choice([t.value for t in TransactionType]), default=None,
              help="Только доходы или только расходы")
@click.option("--active-only", is_flag=True, help="Только активные расписания")
@safe_command
def list_schedules(kind: Optional[str], active_only: bool):
    """Показать расписания."""
    with get_db_session() as session:
        schedules = get_schedules(
            session,
            kind=TransactionType(kind) if kind else None,
            active_only=active_only,
        )
        if not schedules:
            click.echo("Расписаний нет")
            return

        for schedule in schedules:
            status = "активно" if schedule.is_active else "отключено"
            click.echo(
                f"{schedule.id}  {schedule.kind.value:<7}  {status:<9}  "
                f"{format_money(schedule.expected_amount):>14}  "
                f"{humanize_schedule(schedule):<32}  {schedule.counterparty_name or ''}"
            )
        click.echo(f"\nВсего: {len(schedules)}")


@main.command()
@click.option("--schedule-id", default=None, help="Только для указанного расписания")
@safe_command
def pending(schedule_id: Optional[str]):
    """Показать ожидающие вхождения."""
    with get_db_session() as session:
        occurrences = get_pending_occurrences(session, schedule_id=schedule_id)
        if not occurrences:
            click.echo("Ожидающих вхождений нет")
            return

        for occurrence in occurrences:
            schedule = occurrence.schedule
            click.echo(
                f"{occurrence.id}  {format_date(occurrence.planned_date)}  "
                f"{schedule.kind.value:<7}  {format_money(occurrence.amount):>14}  "
                f"{schedule.counterparty_name or ''}"
            )


@main.command()
@click.argument("pending_id")
@click.argument("amount", type=AMOUNT)
@click.option("--date", "actual_date", type=DATE_TYPE, default=None,
              help="Фактическая дата (по умолчанию плановая)")
@click.option("--payment-method-id", default=None, help="Способ оплаты (по умолчанию из расписания)")
@safe_command
def confirm(pending_id: str, amount: Decimal, actual_date: Optional[datetime],
            payment_method_id: Optional[str]):
    """Подтвердить ожидающее вхождение PENDING_ID с суммой AMOUNT."""
    with get_db_session() as session:
        target_date = _as_date(actual_date)
        if target_date is None:
            occurrence = session.get(PendingOccurrenceDB, pending_id)
            target_date = occurrence.planned_date if occurrence else date.today()

        transaction = confirm_pending_occurrence(
            session, pending_id, amount, target_date, payment_method_id
        )
        click.echo(f"Подтверждено: операция {transaction.id} на {format_money(amount)}")


@main.command()
@click.argument("pending_id")
@safe_command
def reject(pending_id: str):
    """Отклонить ожидающее вхождение PENDING_ID."""
    with get_db_session() as session:
        reject_pending_occurrence(session, pending_id)
    click.echo("Вхождение отклонено")


@main.command()
@click.argument("debtor_id")
@click.option("--unsettled-only", is_flag=True, help="Только непогашенные долги")
@safe_command
def debts(debtor_id: str, unsettled_only: bool):
    """Показать долги с должником DEBTOR_ID."""
    with get_db_session() as session:
        result = calculate_debts(session, debtor_id)

    for receipt in result.receipts:
        if unsettled_only and receipt.is_settled:
            continue
        mark = "погашен" if receipt.is_settled else "открыт"
        direction = "мне должны" if receipt.direction == DebtDirection.TO_ME else "я должен"
        click.echo(
            f"{format_date(receipt.expense_date)}  {receipt.store_name or '':<20}  "
            f"{direction:<10}  {format_money(receipt.amount):>14}  {mark}"
        )

    click.echo(f"\nМне должны: {format_money(result.debt_to_me)}")
    click.echo(f"Я должен: {format_money(result.debt_to_entity)}")
    click.echo(f"Сальдо: {format_money(result.net_balance)}")


@main.command()
@click.option("--include-inactive", is_flag=True, help="Включить неактивных должников")
@safe_command
def balances(include_inactive: bool):
    """Показать сальдо по всем должникам."""
    with get_db_session() as session:
        rows = get_debtor_balances(session, include_inactive=include_inactive)

    if not rows:
        click.echo("Должников нет")
        return
    for row in rows:
        click.echo(f"{row.name:<24}  {format_money(row.net_balance):>14}")


if __name__ == "__main__":
    main()
