"""
Moving appointments off employees who became unavailable.

Appointments whose employee falls sick or goes on approved vacation are
flagged NEEDS_REASSIGNMENT. An admin then hands each one to another
employee, which puts it back to ACCEPTED.
"""

import datetime

from flask import current_app
from sqlalchemy import select, update

from opsdesk.errors import NotFoundError, ValidationError
from opsdesk.extensions import db
from opsdesk.models import Appointment, Employees
from opsdesk.services.availability import check_availability

NEEDS_REASSIGNMENT = "NEEDS_REASSIGNMENT"
ACCEPTED = "ACCEPTED"

# Appointments that are still ahead of the employee and can be moved
REASSIGNABLE_STATUSES = ("PENDING", "ACCEPTED")


def list_needing_reassignment(tenant_id):
    stmt = (
        select(Appointment)
        .where(
            Appointment.tenant_id == tenant_id,
            Appointment.status == NEEDS_REASSIGNMENT,
        )
        .order_by(Appointment.start_at)
    )
    return db.session.scalars(stmt).all()


def reassign(appointment_id, tenant_id, new_employee_id, admin_override=False):
    """
    Give a NEEDS_REASSIGNMENT appointment to ``new_employee_id``.

    An appointment that does not exist, belongs to another tenant or is in
    any other state is reported as not found.
    """
    appointment = db.session.scalar(
        select(Appointment).where(
            Appointment.id == appointment_id,
            Appointment.tenant_id == tenant_id,
            Appointment.status == NEEDS_REASSIGNMENT,
        )
    )
    if not appointment:
        raise NotFoundError("Appointment not found")

    employee = db.session.get(Employees, new_employee_id)
    if not employee or employee.tenant_id != tenant_id or not employee.is_active:
        raise NotFoundError("Employee not found")

    if not admin_override:
        availability = check_availability(
            employee.id,
            appointment.start_at,
            appointment.end_at,
            tenant_id=tenant_id,
            exclude_appointment_id=appointment.id,
        )
        if not availability.is_available:
            raise ValidationError(
                f"Employee is not available: {availability.reason}",
                details={"availability": availability.to_dict()},
            )

    # Guarded on the state so two concurrent reassignments cannot both win
    result = db.session.execute(
        update(Appointment)
        .where(
            Appointment.id == appointment.id,
            Appointment.status == NEEDS_REASSIGNMENT,
        )
        .values(employee_id=employee.id, status=ACCEPTED)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        raise NotFoundError("Appointment not found")

    db.session.commit()
    db.session.refresh(appointment)

    current_app.logger.info(
        f"Appointment {appointment.id} reassigned to employee {employee.id}"
        f"{' (admin override)' if admin_override else ''}"
    )
    return appointment


def flag_for_reassignment(employee_id, since=None, until=None):
    """
    Mark the employee's upcoming appointments NEEDS_REASSIGNMENT.

    ``since`` defaults to the start of today; ``until`` (a date, inclusive)
    limits the window, e.g. to a vacation. Returns the number flagged. The
    caller commits.
    """
    if since is None:
        since = datetime.datetime.combine(datetime.date.today(), datetime.time.min)

    stmt = (
        update(Appointment)
        .where(
            Appointment.employee_id == employee_id,
            Appointment.status.in_(REASSIGNABLE_STATUSES),
            Appointment.start_at >= since,
        )
        .values(status=NEEDS_REASSIGNMENT)
        .execution_options(synchronize_session=False)
    )
    if until is not None:
        day_after = datetime.datetime.combine(
            until + datetime.timedelta(days=1), datetime.time.min
        )
        stmt = stmt.where(Appointment.start_at < day_after)

    return db.session.execute(stmt).rowcount
