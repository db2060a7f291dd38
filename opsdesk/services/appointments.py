"""
Booking and editing appointments.

Every appointment belongs to the caller's tenant. Employees only see and
edit their own; only an admin may hand an appointment to someone else.
Whenever the employee or the times of an appointment change, the employee
must be available for the new interval unless an admin overrides the check.
"""

from flask import current_app
from sqlalchemy import select

from opsdesk.errors import Forbidden, NotFoundError, ValidationError
from opsdesk.extensions import db
from opsdesk.models import Appointment, Customers, Employees
from opsdesk.services.availability import check_availability
from opsdesk.services.vacation import employee_for_user


def _own_profile(session):
    employee = employee_for_user(session.user_id, session.tenant_id)
    if not employee:
        raise NotFoundError("Employee profile not found")
    return employee


def _tenant_customer(customer_id, tenant_id):
    customer = db.session.get(Customers, customer_id)
    if not customer or customer.tenant_id != tenant_id:
        raise NotFoundError("Customer not found")
    return customer


def _bookable_employee(employee_id, tenant_id):
    employee = db.session.get(Employees, employee_id)
    if not employee or employee.tenant_id != tenant_id or not employee.is_active:
        raise NotFoundError("Employee not found")
    return employee


def _ensure_available(employee_id, start_at, end_at, tenant_id, exclude_appointment_id=None):
    availability = check_availability(
        employee_id,
        start_at,
        end_at,
        tenant_id=tenant_id,
        exclude_appointment_id=exclude_appointment_id,
    )
    if not availability.is_available:
        raise ValidationError(
            f"Employee is not available: {availability.reason}",
            details={"availability": availability.to_dict()},
        )


def list_appointments(session, start=None, end=None):
    stmt = select(Appointment).where(Appointment.tenant_id == session.tenant_id)

    if not session.is_admin:
        employee = employee_for_user(session.user_id, session.tenant_id)
        if not employee:
            return []
        stmt = stmt.where(Appointment.employee_id == employee.id)

    if start is not None:
        stmt = stmt.where(Appointment.start_at >= start)
    if end is not None:
        stmt = stmt.where(Appointment.start_at <= end)

    return db.session.scalars(stmt.order_by(Appointment.start_at)).all()


def get_appointment(session, appointment_id):
    """Tenant-scoped lookup; employees only reach their own appointments."""
    appointment = db.session.scalar(
        select(Appointment).where(
            Appointment.id == appointment_id,
            Appointment.tenant_id == session.tenant_id,
        )
    )
    if not appointment:
        raise NotFoundError("Appointment not found")

    if not session.is_admin:
        employee = employee_for_user(session.user_id, session.tenant_id)
        if not employee or appointment.employee_id != employee.id:
            raise NotFoundError("Appointment not found")
    return appointment


def create_appointment(session, data):
    if data.start_time >= data.end_time:
        raise ValidationError("startTime must be before endTime")

    # Employees always book themselves
    if session.is_admin:
        employee_id = data.employee_id
    else:
        employee_id = _own_profile(session).id

    if data.customer_id is not None:
        _tenant_customer(data.customer_id, session.tenant_id)
    if employee_id is not None:
        _bookable_employee(employee_id, session.tenant_id)

        if not (session.is_admin and data.admin_override):
            _ensure_available(employee_id, data.start_time, data.end_time, session.tenant_id)

    appointment = Appointment(
        tenant_id=session.tenant_id,
        customer_id=data.customer_id,
        employee_id=employee_id,
        title=data.title,
        start_at=data.start_time,
        end_at=data.end_time,
        status=data.status,
        notes=data.notes,
    )
    db.session.add(appointment)
    db.session.commit()

    current_app.logger.info(
        f"Appointment {appointment.id} created in tenant {session.tenant_id}"
        f"{' (admin override)' if session.is_admin and data.admin_override else ''}"
    )
    return appointment


def update_appointment(session, appointment_id, data):
    appointment = get_appointment(session, appointment_id)
    changes = data.model_dump(exclude_unset=True, exclude={"admin_override"})

    if "employee_id" in changes and not session.is_admin:
        raise Forbidden("Only administrators can change the employee")

    start_at = changes.get("start_time") or appointment.start_at
    end_at = changes.get("end_time") or appointment.end_at
    if start_at >= end_at:
        raise ValidationError("startTime must be before endTime")

    employee_id = changes.get("employee_id", appointment.employee_id)
    if changes.get("customer_id") is not None:
        _tenant_customer(changes["customer_id"], session.tenant_id)

    moved = (
        employee_id != appointment.employee_id
        or start_at != appointment.start_at
        or end_at != appointment.end_at
    )
    if employee_id is not None and moved:
        _bookable_employee(employee_id, session.tenant_id)
        if not (session.is_admin and data.admin_override):
            _ensure_available(
                employee_id,
                start_at,
                end_at,
                session.tenant_id,
                exclude_appointment_id=appointment.id,
            )

    appointment.employee_id = employee_id
    appointment.start_at = start_at
    appointment.end_at = end_at
    for attr in ("title", "customer_id", "status", "notes"):
        if attr in changes and (changes[attr] is not None or attr == "notes"):
            setattr(appointment, attr, changes[attr])
    db.session.commit()

    current_app.logger.info(f"Appointment {appointment.id} updated")
    return appointment
