from flask import current_app

from opsdesk.errors import NotFoundError
from opsdesk.extensions import db
from opsdesk.models import Employees
from opsdesk.services.reassignment import flag_for_reassignment


def tenant_employee(employee_id, tenant_id):
    employee = db.session.get(Employees, employee_id)
    if not employee or employee.tenant_id != tenant_id:
        raise NotFoundError("Employee not found")
    return employee


def deactivate_employee(employee_id, tenant_id):
    """
    Take an employee out of service.

    The profile stays for history; the account can no longer log in and its
    upcoming appointments are flagged for reassignment.
    """
    employee = tenant_employee(employee_id, tenant_id)
    employee.is_active = False
    flagged = flag_for_reassignment(employee.id)
    db.session.commit()

    current_app.logger.info(
        f"Employee {employee.id} deactivated; {flagged} appointment(s) flagged"
    )
    return employee, flagged


def update_employee(employee_id, tenant_id, data):
    employee = tenant_employee(employee_id, tenant_id)
    changes = data.model_dump(exclude_unset=True)

    name = changes.pop("name", None)
    if name is not None:
        employee.user.name = name
    if "days_off" in changes:
        employee.days_off = ",".join(changes.pop("days_off") or []) or None

    is_active = changes.pop("is_active", None)
    for attr, value in changes.items():
        setattr(employee, attr, value)

    if is_active is False and employee.is_active:
        return deactivate_employee(employee.id, tenant_id)[0]
    if is_active is not None:
        employee.is_active = is_active
    db.session.commit()
    return employee
