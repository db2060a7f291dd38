"""
Batch jobs triggered by an external scheduler.

Both endpoints authenticate with the static ``CRON_SECRET`` bearer value and
answer 200 with the itemized report even when single items failed.
"""

import datetime

from flask import Blueprint, jsonify

from opsdesk.services.recurring import run_due_recurring_expenses, run_salary_expenses
from opsdesk.utils.params import date_arg
from opsdesk.utils.session import cron_secret_required

cron_bp = Blueprint("cron", __name__, url_prefix="/api/cron")


@cron_bp.route("/recurring-expenses", methods=["GET"])
@cron_secret_required
def recurring_expenses_job():
    """
    Materialize due recurring expenses for all tenants
    ---
    tags:
      - Cron
    parameters:
      - in: query
        name: asOf
        type: string
        format: date
        required: false
        description: Run date, defaults to today
    responses:
      200:
        description: Itemized batch report
      401:
        description: Missing or wrong cron secret
    """
    as_of = date_arg("asOf", datetime.date.today())
    batch = run_due_recurring_expenses(as_of)
    return jsonify(batch.to_dict("Recurring expenses processed")), 200


@cron_bp.route("/salary-expenses", methods=["GET"])
@cron_secret_required
def salary_expenses_job():
    """
    Book this month's fixed salaries for all tenants
    ---
    tags:
      - Cron
    parameters:
      - in: query
        name: asOf
        type: string
        format: date
        required: false
    responses:
      200:
        description: Itemized batch report
      401:
        description: Missing or wrong cron secret
    """
    as_of = date_arg("asOf", datetime.date.today())
    batch = run_salary_expenses(as_of)
    return jsonify(batch.to_dict("Salary expenses processed")), 200
