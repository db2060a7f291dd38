"""
Recurring obligations.

Recurring expense templates and fixed salaries turn into concrete Expense
rows when an external trigger runs the batch. Each template or employee is
its own unit of work: it is committed on its own, and a failure is rolled
back, recorded in the batch result and does not stop the rest of the batch.

Running a batch twice for the same day creates nothing new. Template
expenses carry a ``period_key`` (the run date) that is unique per template,
so a concurrent second run fails on insert and is reported as skipped.
"""

import calendar
import datetime
from dataclasses import dataclass, field
from typing import List

from dateutil.relativedelta import relativedelta
from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from opsdesk.errors import NotFoundError, ValidationError
from opsdesk.extensions import db
from opsdesk.models import Employees, Expense, RecurringExpense

INTERVAL_STEPS = {
    "DAILY": relativedelta(days=1),
    "WEEKLY": relativedelta(weeks=1),
    "MONTHLY": relativedelta(months=1),
    "YEARLY": relativedelta(years=1),
}
SALARY_CATEGORY = "GEHALT"


@dataclass
class BatchResult:
    as_of: datetime.date
    results: List[dict] = field(default_factory=list)

    def record(self, status, item_id, tenant_id, message, expense_id=None):
        entry = {
            "id": item_id,
            "tenant_id": tenant_id,
            "status": status,
            "message": message,
        }
        if expense_id is not None:
            entry["expense_id"] = expense_id
        self.results.append(entry)

    def _count(self, status):
        return sum(1 for r in self.results if r["status"] == status)

    @property
    def created(self):
        return [r["expense_id"] for r in self.results if r["status"] == "success"]

    @property
    def successful(self):
        return self._count("success")

    @property
    def skipped(self):
        return self._count("skipped")

    @property
    def errors(self):
        return self._count("error")

    def to_dict(self, message):
        return {
            "message": message,
            "date": self.as_of.isoformat(),
            "count": len(self.created),
            "createdExpenses": self.created,
            "results": self.results,
            "total": len(self.results),
            "successful": self.successful,
            "skipped": self.skipped,
            "errors": self.errors,
        }


def advance_next_run(current: datetime.date, interval: str) -> datetime.date:
    """One interval later; months and years clamp to the last valid day."""
    try:
        step = INTERVAL_STEPS[interval]
    except KeyError:
        raise ValidationError(f"Unknown interval: {interval}")
    return current + step


def next_run_after(current: datetime.date, interval: str, as_of: datetime.date):
    """Advance ``current`` until it lies after ``as_of``. Missed periods are not backfilled."""
    next_run = advance_next_run(current, interval)
    while next_run <= as_of:
        next_run = advance_next_run(next_run, interval)
    return next_run


def first_run_date(start_date: datetime.date, interval: str, today: datetime.date):
    """First execution for a new template: its start date, or the next slot that is not in the past."""
    if start_date >= today:
        return start_date

    periods = 1
    next_run = start_date + INTERVAL_STEPS[interval] * periods
    while next_run < today:
        periods += 1
        next_run = start_date + INTERVAL_STEPS[interval] * periods
    return next_run


def _already_generated(template_id, period_key):
    return db.session.scalar(
        select(Expense.id).where(
            Expense.recurring_expense_id == template_id,
            Expense.period_key == period_key,
        )
    )


def _materialize_template(template_id, as_of):
    template = db.session.get(RecurringExpense, template_id)
    period_key = as_of.isoformat()

    if _already_generated(template.id, period_key):
        return "skipped", None

    expense = Expense(
        tenant_id=template.tenant_id,
        employee_id=template.employee_id,
        recurring_expense_id=template.id,
        period_key=period_key,
        name=template.name,
        amount=template.amount,
        category=template.category,
        description=template.description,
        date=as_of,
    )
    db.session.add(expense)
    db.session.flush()

    template.next_run = next_run_after(template.next_run, template.interval, as_of)
    db.session.commit()
    return "success", expense.id


def run_due_recurring_expenses(as_of: datetime.date) -> BatchResult:
    """Materialize every active template across all tenants due on or before ``as_of``."""
    due = db.session.execute(
        select(RecurringExpense.id, RecurringExpense.tenant_id)
        .where(
            RecurringExpense.is_active.is_(True),
            RecurringExpense.next_run <= as_of,
        )
        .order_by(RecurringExpense.next_run, RecurringExpense.id)
    ).all()

    batch = BatchResult(as_of)
    for template_id, tenant_id in due:
        try:
            status, expense_id = _materialize_template(template_id, as_of)
        except IntegrityError as e:
            db.session.rollback()
            # Only a row for this period from a concurrent run counts as skipped
            if _already_generated(template_id, as_of.isoformat()):
                batch.record(
                    "skipped", template_id, tenant_id, "Already generated for this period"
                )
            else:
                current_app.logger.error(
                    f"[CRON] Recurring expense {template_id} (tenant {tenant_id}) failed: {e.orig}"
                )
                batch.record("error", template_id, tenant_id, str(e.orig))
            continue
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(
                f"[CRON] Recurring expense {template_id} (tenant {tenant_id}) failed: {e}"
            )
            batch.record("error", template_id, tenant_id, str(e))
            continue

        if status == "skipped":
            batch.record(status, template_id, tenant_id, "Already generated for this period")
        else:
            batch.record(status, template_id, tenant_id, "Expense created", expense_id)

    current_app.logger.info(
        f"[CRON] {as_of.isoformat()} - recurring expenses: {batch.successful} created, "
        f"{batch.skipped} skipped, {batch.errors} failed"
    )
    return batch


def payout_date_for(employee: Employees, as_of: datetime.date) -> datetime.date:
    last_day = calendar.monthrange(as_of.year, as_of.month)[1]
    payout_day = min(employee.payout_day or 1, last_day)
    payout = as_of.replace(day=payout_day)

    # Payout day already passed this month: book it today
    if payout < as_of:
        payout = as_of
    return payout


def _materialize_salary(employee_id, as_of):
    employee = db.session.get(Employees, employee_id)
    month_start = as_of.replace(day=1)
    next_month = month_start + relativedelta(months=1)

    existing = db.session.scalar(
        select(Expense.id).where(
            Expense.tenant_id == employee.tenant_id,
            Expense.employee_id == employee.id,
            Expense.category == SALARY_CATEGORY,
            Expense.date >= month_start,
            Expense.date < next_month,
        )
    )
    if existing:
        return "skipped", None

    month_label = as_of.strftime("%B %Y")
    expense = Expense(
        tenant_id=employee.tenant_id,
        employee_id=employee.id,
        name=f"Salary {employee.display_name} - {month_label}",
        amount=employee.base_salary,
        category=SALARY_CATEGORY,
        description=f"Generated salary for {employee.display_name} ({month_label})",
        date=payout_date_for(employee, as_of),
    )
    db.session.add(expense)
    db.session.commit()
    return "success", expense.id


def run_salary_expenses(as_of: datetime.date) -> BatchResult:
    """One GEHALT expense per month for every active employee with a fixed salary."""
    employees = db.session.execute(
        select(Employees.id, Employees.tenant_id)
        .where(
            Employees.is_active.is_(True),
            Employees.salary_type == "FIXED",
            Employees.base_salary.is_not(None),
        )
        .order_by(Employees.tenant_id, Employees.id)
    ).all()

    batch = BatchResult(as_of)
    for employee_id, tenant_id in employees:
        try:
            status, expense_id = _materialize_salary(employee_id, as_of)
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(
                f"[CRON] Salary expense for employee {employee_id} (tenant {tenant_id}) failed: {e}"
            )
            batch.record("error", employee_id, tenant_id, str(e))
            continue

        if status == "skipped":
            batch.record(status, employee_id, tenant_id, "Salary already booked this month")
        else:
            batch.record(status, employee_id, tenant_id, "Expense created", expense_id)

    current_app.logger.info(
        f"[CRON] {as_of.isoformat()} - salary expenses: {batch.successful} created, "
        f"{batch.skipped} skipped, {batch.errors} failed"
    )
    return batch


# Template management


def list_templates(tenant_id, include_inactive=False):
    stmt = select(RecurringExpense).where(RecurringExpense.tenant_id == tenant_id)
    if not include_inactive:
        stmt = stmt.where(RecurringExpense.is_active.is_(True))
    stmt = stmt.order_by(RecurringExpense.is_active.desc(), RecurringExpense.next_run)
    return db.session.scalars(stmt).all()


def _tenant_template(template_id, tenant_id):
    template = db.session.get(RecurringExpense, template_id)
    if not template or template.tenant_id != tenant_id:
        raise NotFoundError("Recurring expense not found")
    return template


def create_template(tenant_id, data, today=None):
    today = today or datetime.date.today()

    if data.employee_id is not None:
        employee = db.session.get(Employees, data.employee_id)
        if not employee or employee.tenant_id != tenant_id:
            raise NotFoundError("Employee not found")

    template = RecurringExpense(
        tenant_id=tenant_id,
        employee_id=data.employee_id,
        name=data.name,
        amount=data.amount,
        category=data.category,
        description=data.description,
        interval=data.interval,
        start_date=data.start_date,
        next_run=first_run_date(data.start_date, data.interval, today),
        is_active=data.is_active,
    )
    db.session.add(template)
    db.session.commit()
    return template


def update_template(template_id, tenant_id, data):
    template = _tenant_template(template_id, tenant_id)
    for attr, value in data.model_dump(exclude_unset=True).items():
        if value is None and attr != "description":
            continue
        setattr(template, attr, value)
    db.session.commit()
    return template


def deactivate_template(template_id, tenant_id):
    template = _tenant_template(template_id, tenant_id)
    template.is_active = False
    db.session.commit()
    return template
