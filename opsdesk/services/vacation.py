"""
Vacation requests.

Employees submit requests against their remaining allowance. Only approved
requests block new ones: several pending requests may cover the same days,
and the admin decides which one to approve. Approval re-checks the approved
set, so approved ranges of one employee never overlap.
"""

import datetime

from flask import current_app
from sqlalchemy import select

from opsdesk.errors import NotFoundError, ValidationError
from opsdesk.extensions import db
from opsdesk.models import Employees, VacationRequest
from opsdesk.services.reassignment import flag_for_reassignment


def inclusive_day_count(start_date, end_date) -> int:
    return (end_date - start_date).days + 1


def remaining_days(employee: Employees) -> int:
    total = employee.vacation_days_total or current_app.config.get(
        "DEFAULT_VACATION_DAYS", 25
    )
    return total - (employee.vacation_days_used or 0)


def find_approved_overlap(employee_id, start_date, end_date, exclude_request_id=None):
    stmt = select(VacationRequest).where(
        VacationRequest.employee_id == employee_id,
        VacationRequest.status == "APPROVED",
        VacationRequest.start_date <= end_date,
        VacationRequest.end_date >= start_date,
    )
    if exclude_request_id is not None:
        stmt = stmt.where(VacationRequest.id != exclude_request_id)
    return db.session.scalars(stmt).first()


def employee_for_user(user_id, tenant_id):
    return db.session.scalar(
        select(Employees).where(
            Employees.user_id == user_id, Employees.tenant_id == tenant_id
        )
    )


def submit_vacation_request(employee_id, start_date, end_date, reason):
    if start_date >= end_date:
        raise ValidationError("endDate must be after startDate")

    employee = db.session.get(Employees, employee_id)
    if not employee:
        raise NotFoundError("Employee profile not found")

    days = inclusive_day_count(start_date, end_date)
    remaining = remaining_days(employee)
    if days > remaining:
        raise ValidationError(
            f"Not enough vacation days left. Remaining: {remaining}, requested: {days}",
            details={"remaining": remaining, "requested": days},
        )

    if find_approved_overlap(employee.id, start_date, end_date):
        raise ValidationError("overlap", details={"reason": "overlap"})

    vacation_request = VacationRequest(
        employee_id=employee.id,
        start_date=start_date,
        end_date=end_date,
        days=days,
        leave_reason=reason,
        status="PENDING",
    )
    db.session.add(vacation_request)
    db.session.commit()
    return vacation_request


def list_vacation_requests(session):
    """Admins see the whole tenant, everybody else only their own requests."""
    stmt = (
        select(VacationRequest)
        .join(Employees, VacationRequest.employee_id == Employees.id)
        .where(Employees.tenant_id == session.tenant_id)
        .order_by(VacationRequest.created_at.desc(), VacationRequest.id.desc())
    )
    if not session.is_admin:
        employee = employee_for_user(session.user_id, session.tenant_id)
        if not employee:
            return []
        stmt = stmt.where(VacationRequest.employee_id == employee.id)

    return db.session.scalars(stmt).all()


def decide_vacation_request(request_id, tenant_id, action, note=None):
    vacation_request = db.session.scalar(
        select(VacationRequest)
        .join(Employees, VacationRequest.employee_id == Employees.id)
        .where(VacationRequest.id == request_id, Employees.tenant_id == tenant_id)
    )
    if not vacation_request:
        raise NotFoundError("Vacation request not found")

    if vacation_request.status != "PENDING":
        raise ValidationError(
            f"Vacation request is already {vacation_request.status.lower()}"
        )

    if note:
        vacation_request.decision_note = note

    if action == "deny":
        vacation_request.status = "REJECTED"
        db.session.commit()
        return vacation_request

    employee = vacation_request.employee
    if find_approved_overlap(
        employee.id,
        vacation_request.start_date,
        vacation_request.end_date,
        exclude_request_id=vacation_request.id,
    ):
        raise ValidationError("overlap", details={"reason": "overlap"})

    remaining = remaining_days(employee)
    if vacation_request.days > remaining:
        raise ValidationError(
            f"Not enough vacation days left. Remaining: {remaining}, "
            f"requested: {vacation_request.days}",
            details={"remaining": remaining, "requested": vacation_request.days},
        )

    vacation_request.status = "APPROVED"
    employee.vacation_days_used = (employee.vacation_days_used or 0) + vacation_request.days
    employee.next_available_date = vacation_request.end_date + datetime.timedelta(days=1)

    flagged = flag_for_reassignment(
        employee.id,
        since=datetime.datetime.combine(vacation_request.start_date, datetime.time.min),
        until=vacation_request.end_date,
    )
    db.session.commit()

    current_app.logger.info(
        f"Vacation request {vacation_request.id} approved; "
        f"{flagged} appointment(s) flagged for reassignment"
    )
    return vacation_request
