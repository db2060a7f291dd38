import datetime

from flask import Blueprint, g, jsonify, request

from opsdesk.errors import ValidationError
from opsdesk.schemas import ReminderCreateRequest, ReminderUpdateRequest, parse_body
from opsdesk.services.reminders import (
    create_reminder,
    days_overdue,
    get_overdue_invoices,
    list_reminders,
    mark_reminder_failed,
    mark_reminder_sent,
    reminder_stats,
    suggest_reminder_level,
)
from opsdesk.utils.params import int_arg
from opsdesk.utils.session import login_required

reminders_bp = Blueprint("reminders", __name__, url_prefix="/api/invoices")

REMINDER_STATUSES = ("PENDING", "SENT", "FAILED")


@reminders_bp.route("/reminders", methods=["POST"])
@login_required
def post_reminder():
    """
    Create a payment reminder for an overdue invoice
    ---
    tags:
      - Invoices
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [invoiceId, level]
          properties:
            invoiceId:
              type: integer
            level:
              type: integer
              minimum: 1
              maximum: 3
            method:
              type: string
              example: manual
            aiText:
              type: string
    responses:
      201:
        description: Reminder created as PENDING
      400:
        description: Invalid level, closed invoice or level already pending
      404:
        description: Invoice not found in this tenant
    """
    data = parse_body(ReminderCreateRequest)
    reminder = create_reminder(
        g.session.tenant_id,
        data.invoice_id,
        data.level,
        method=data.method,
        text=data.text,
    )
    return jsonify({"reminder": reminder.to_dict()}), 201


@reminders_bp.route("/reminders", methods=["GET"])
@login_required
def get_reminders():
    status = request.args.get("status")
    if status and status not in REMINDER_STATUSES:
        raise ValidationError(
            f"Invalid 'status'. Expected one of {', '.join(REMINDER_STATUSES)}."
        )

    reminders = list_reminders(
        g.session.tenant_id,
        level=int_arg("level"),
        status=status,
        invoice_id=int_arg("invoiceId"),
    )
    return jsonify(
        {"reminders": [r.to_dict() for r in reminders], "count": len(reminders)}
    ), 200


@reminders_bp.route("/reminders/<int:reminder_id>", methods=["PUT"])
@login_required
def put_reminder(reminder_id):
    data = parse_body(ReminderUpdateRequest)
    if data.status == "SENT":
        reminder = mark_reminder_sent(reminder_id, g.session.tenant_id)
    else:
        reminder = mark_reminder_failed(reminder_id, g.session.tenant_id)
    return jsonify({"reminder": reminder.to_dict()}), 200


@reminders_bp.route("/reminders/stats", methods=["GET"])
@login_required
def get_reminder_stats():
    """
    Reminder dashboard figures
    ---
    tags:
      - Invoices
    responses:
      200:
        description: Counters for the caller's tenant
        schema:
          type: object
          properties:
            overdueCount:
              type: integer
            todaySent:
              type: integer
            level1Count:
              type: integer
            level2Count:
              type: integer
            level3Count:
              type: integer
            avgDaysOverdue:
              type: integer
    """
    return jsonify(reminder_stats(g.session.tenant_id)), 200


@reminders_bp.route("/overdue", methods=["GET"])
@login_required
def get_overdue():
    now = datetime.datetime.now()
    invoices = get_overdue_invoices(g.session.tenant_id, now)

    payload = []
    for invoice in invoices:
        item = invoice.to_dict()
        item["days_overdue"] = days_overdue(invoice.due_date, now)
        item["suggested_level"] = suggest_reminder_level(invoice.due_date, now)
        payload.append(item)

    return jsonify({"invoices": payload, "count": len(payload)}), 200
