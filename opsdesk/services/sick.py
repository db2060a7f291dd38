from flask import current_app
from sqlalchemy import select

from opsdesk.errors import NotFoundError
from opsdesk.extensions import db
from opsdesk.models import Employees
from opsdesk.services.employees import tenant_employee
from opsdesk.services.reassignment import flag_for_reassignment
from opsdesk.services.vacation import employee_for_user


def report_sick(user_id, tenant_id):
    """Employee reports themself sick. Their upcoming appointments need a new owner."""
    employee = employee_for_user(user_id, tenant_id)
    if not employee:
        raise NotFoundError("Employee profile not found")

    employee.is_sick = True
    employee.sick_days = (employee.sick_days or 0) + 1
    flagged = flag_for_reassignment(employee.id)
    db.session.commit()

    current_app.logger.info(
        f"Employee {employee.id} reported sick; {flagged} appointment(s) flagged"
    )
    return employee, flagged


def confirm_sick(employee_id, tenant_id):
    employee = tenant_employee(employee_id, tenant_id)
    employee.is_sick = True
    employee.sick_days = (employee.sick_days or 0) + 1
    flagged = flag_for_reassignment(employee.id)
    db.session.commit()
    return employee, flagged


def mark_recovered(employee_id, tenant_id):
    employee = tenant_employee(employee_id, tenant_id)
    employee.is_sick = False
    db.session.commit()
    return employee


def list_sick(session):
    if session.is_admin:
        stmt = (
            select(Employees)
            .where(Employees.tenant_id == session.tenant_id, Employees.is_sick.is_(True))
            .order_by(Employees.id)
        )
        return db.session.scalars(stmt).all()

    employee = employee_for_user(session.user_id, session.tenant_id)
    if not employee:
        raise NotFoundError("Employee profile not found")
    return [employee]
