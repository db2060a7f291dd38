"""
Invoice aging and payment reminders.

Aging is derived from the due date and never stored. Which level to send
when is decided by the caller; ``suggest_reminder_level`` only offers the
configured default thresholds.
"""

import datetime

from flask import current_app
from sqlalchemy import func, select

from opsdesk.errors import NotFoundError, ValidationError
from opsdesk.extensions import db
from opsdesk.models import Invoice, InvoiceReminder

OPEN_INVOICE_STATUSES = ("PENDING", "OVERDUE")
CLOSED_INVOICE_STATUSES = ("PAID", "CANCELLED")
MIN_LEVEL = 1
MAX_LEVEL = 3


def _as_date(value):
    if isinstance(value, datetime.datetime):
        return value.date()
    return value


def days_overdue(due_date, now=None) -> int:
    """Whole calendar days past ``due_date``; 0 when not yet due."""
    if due_date is None:
        return 0
    now = now or datetime.datetime.now()
    return max(0, (_as_date(now) - _as_date(due_date)).days)


def suggest_reminder_level(due_date, now=None, thresholds=None) -> int:
    thresholds = thresholds or current_app.config.get("REMINDER_LEVEL_DAYS", (3, 10, 20))
    overdue = days_overdue(due_date, now)
    level = 0
    for candidate, min_days in enumerate(thresholds, start=MIN_LEVEL):
        if overdue >= min_days:
            level = candidate
    return min(level, MAX_LEVEL)


def get_overdue_invoices(tenant_id, now=None):
    today = _as_date(now or datetime.datetime.now())
    stmt = (
        select(Invoice)
        .where(
            Invoice.tenant_id == tenant_id,
            Invoice.status.in_(OPEN_INVOICE_STATUSES),
            Invoice.due_date < today,
            Invoice.paid_at.is_(None),
        )
        .order_by(Invoice.due_date)
    )
    return db.session.scalars(stmt).all()


def _tenant_invoice(invoice_id, tenant_id):
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice or invoice.tenant_id != tenant_id:
        raise NotFoundError("Invoice not found")
    return invoice


def _tenant_reminder(reminder_id, tenant_id):
    reminder = db.session.get(InvoiceReminder, reminder_id)
    if not reminder or reminder.tenant_id != tenant_id:
        raise NotFoundError("Reminder not found")
    return reminder


def create_reminder(tenant_id, invoice_id, level, method="manual", text=None, now=None):
    if isinstance(level, bool) or not isinstance(level, int) or not (
        MIN_LEVEL <= level <= MAX_LEVEL
    ):
        raise ValidationError(
            f"level must be between {MIN_LEVEL} and {MAX_LEVEL}",
            details={"level": level},
        )

    invoice = _tenant_invoice(invoice_id, tenant_id)
    if invoice.status in CLOSED_INVOICE_STATUSES:
        raise ValidationError(f"Invoice is {invoice.status.lower()}")

    current_level = invoice.reminder_level or 0
    if level < current_level:
        raise ValidationError(
            f"Invoice is already at reminder level {current_level}",
            details={"currentLevel": current_level},
        )

    same_level = db.session.scalars(
        select(InvoiceReminder.status).where(
            InvoiceReminder.invoice_id == invoice.id,
            InvoiceReminder.level == level,
        )
    ).all()
    if "PENDING" in same_level:
        raise ValidationError(f"A level {level} reminder is already pending")
    # Re-issuing a level is only allowed after the previous attempt failed
    if "SENT" in same_level:
        raise ValidationError(
            f"A level {level} reminder was already sent",
            details={"currentLevel": current_level},
        )

    reminder = InvoiceReminder(
        tenant_id=tenant_id,
        invoice_id=invoice.id,
        level=level,
        status="PENDING",
        method=method or "manual",
        reminder_text=text,
        reminder_date=now or datetime.datetime.now(),
    )
    db.session.add(reminder)
    invoice.reminder_level = level
    invoice.status = "OVERDUE"
    db.session.commit()

    current_app.logger.info(
        f"Reminder level {level} created for invoice {invoice.id} (tenant {tenant_id})"
    )
    return reminder


def mark_reminder_sent(reminder_id, tenant_id, now=None):
    reminder = _tenant_reminder(reminder_id, tenant_id)
    reminder.status = "SENT"
    reminder.sent_at = now or datetime.datetime.now()
    db.session.commit()
    return reminder


def mark_reminder_failed(reminder_id, tenant_id):
    reminder = _tenant_reminder(reminder_id, tenant_id)
    reminder.status = "FAILED"
    db.session.commit()
    return reminder


def list_reminders(tenant_id, level=None, status=None, invoice_id=None):
    stmt = select(InvoiceReminder).where(InvoiceReminder.tenant_id == tenant_id)
    if level is not None:
        stmt = stmt.where(InvoiceReminder.level == level)
    if status:
        stmt = stmt.where(InvoiceReminder.status == status)
    if invoice_id is not None:
        stmt = stmt.where(InvoiceReminder.invoice_id == invoice_id)
    stmt = stmt.order_by(InvoiceReminder.reminder_date.desc(), InvoiceReminder.id.desc())
    return db.session.scalars(stmt).all()


def stop_reminders(invoice_id, tenant_id):
    """Reset the escalation, e.g. once the invoice has been paid."""
    invoice = _tenant_invoice(invoice_id, tenant_id)
    invoice.reminder_level = 0
    db.session.commit()
    return invoice


def reminder_stats(tenant_id, now=None):
    now = now or datetime.datetime.now()
    start_of_today = datetime.datetime.combine(_as_date(now), datetime.time.min)

    overdue = get_overdue_invoices(tenant_id, now)
    avg_days = 0
    if overdue:
        total = sum(days_overdue(inv.due_date, now) for inv in overdue)
        avg_days = round(total / len(overdue))

    today_sent = db.session.scalar(
        select(func.count(InvoiceReminder.id)).where(
            InvoiceReminder.tenant_id == tenant_id,
            InvoiceReminder.status == "SENT",
            InvoiceReminder.sent_at >= start_of_today,
        )
    )

    pending_by_level = dict(
        db.session.execute(
            select(InvoiceReminder.level, func.count(InvoiceReminder.id))
            .where(
                InvoiceReminder.tenant_id == tenant_id,
                InvoiceReminder.status == "PENDING",
            )
            .group_by(InvoiceReminder.level)
        ).all()
    )

    return {
        "overdueCount": len(overdue),
        "todaySent": today_sent or 0,
        "level1Count": pending_by_level.get(1, 0),
        "level2Count": pending_by_level.get(2, 0),
        "level3Count": pending_by_level.get(3, 0),
        "avgDaysOverdue": avg_days,
    }
