"""
Employee availability checks.

An employee can be booked for ``[start_time, end_time)`` when they are not
sick, have no approved vacation touching those days and hold no other live
appointment overlapping the interval. Those three checks run in that order
and the first failure wins. Configured days off, working hours and breaks
are checked afterwards.
"""

import datetime
from dataclasses import dataclass, field
from typing import Optional

from flask import current_app
from sqlalchemy import select

from opsdesk.errors import NotFoundError, ValidationError
from opsdesk.extensions import db
from opsdesk.models import Appointment, Employees, VacationRequest

# Appointments in these states do not block the employee's time
NON_BLOCKING_STATUSES = ("CANCELLED", "NEEDS_REASSIGNMENT")


@dataclass
class AvailabilityResult:
    is_available: bool
    reason: Optional[str] = None
    message: Optional[str] = None
    details: dict = field(default_factory=dict)

    def to_dict(self):
        result = {"isAvailable": self.is_available}
        if self.reason:
            result["reason"] = self.reason
        if self.message:
            result["message"] = self.message
        if self.details:
            result["details"] = self.details
        return result


def overlaps(a, b, c, d) -> bool:
    """Half-open intervals [a, b) and [c, d) overlap; touching ends do not."""
    return a < d and c < b


def _last_day(end_time: datetime.datetime) -> datetime.date:
    # An interval ending exactly at midnight does not occupy that day
    if end_time.time() == datetime.time.min:
        return (end_time - datetime.timedelta(days=1)).date()
    return end_time.date()


def _minutes(clock: str) -> int:
    hours, minutes = clock.split(":")
    return int(hours) * 60 + int(minutes)


def _load_employee(employee_id, tenant_id=None) -> Employees:
    employee = db.session.get(Employees, employee_id)
    if not employee or (tenant_id is not None and employee.tenant_id != tenant_id):
        raise NotFoundError("Employee not found")
    return employee


def find_approved_vacation(employee_id, first_day, last_day):
    stmt = select(VacationRequest).where(
        VacationRequest.employee_id == employee_id,
        VacationRequest.status == "APPROVED",
        VacationRequest.start_date <= last_day,
        VacationRequest.end_date >= first_day,
    )
    return db.session.scalars(stmt).first()


def find_conflicting_appointment(
    employee_id, start_time, end_time, exclude_appointment_id=None
):
    stmt = select(Appointment).where(
        Appointment.employee_id == employee_id,
        Appointment.status.not_in(NON_BLOCKING_STATUSES),
        Appointment.start_at < end_time,
        Appointment.end_at > start_time,
    )
    if exclude_appointment_id is not None:
        stmt = stmt.where(Appointment.id != exclude_appointment_id)
    return db.session.scalars(stmt.order_by(Appointment.start_at)).first()


def _check_schedule(employee: Employees, start_time, end_time):
    """Days off, working hours and break. Returns a failed result or None."""
    weekday = start_time.strftime("%A")
    if weekday in employee.days_off_list:
        return AvailabilityResult(
            False,
            "day_off",
            f"Employee is off on {weekday}",
            {"is_day_off": True},
        )

    if not (employee.work_start and employee.work_end):
        return None

    try:
        start_min = start_time.hour * 60 + start_time.minute
        end_min = end_time.hour * 60 + end_time.minute
        if start_min < _minutes(employee.work_start) or end_min > _minutes(
            employee.work_end
        ):
            return AvailabilityResult(
                False,
                "outside_work_hours",
                f"Outside working hours ({employee.work_start} - {employee.work_end})",
                {"outside_work_hours": True},
            )

        if employee.break_start and employee.break_end:
            if overlaps(
                start_min,
                end_min,
                _minutes(employee.break_start),
                _minutes(employee.break_end),
            ):
                return AvailabilityResult(
                    False,
                    "break_time",
                    f"Overlaps break ({employee.break_start} - {employee.break_end})",
                    {"in_break_time": True},
                )
    except ValueError as e:
        current_app.logger.warning(
            f"Ignoring unparseable working hours for employee {employee.id}: {e}"
        )

    return None


def check_availability(
    employee_id,
    start_time: datetime.datetime,
    end_time: datetime.datetime,
    tenant_id=None,
    exclude_appointment_id=None,
) -> AvailabilityResult:
    if start_time >= end_time:
        raise ValidationError("startTime must be before endTime")

    employee = _load_employee(employee_id, tenant_id)

    if employee.is_sick:
        return AvailabilityResult(
            False, "sick", "Employee is reported sick", {"is_sick": True}
        )

    vacation = find_approved_vacation(
        employee.id, start_time.date(), _last_day(end_time)
    )
    if vacation:
        return AvailabilityResult(
            False,
            "vacation",
            "Employee is on vacation",
            {"has_vacation": True, "vacation_request_id": vacation.id},
        )

    conflict = find_conflicting_appointment(
        employee.id, start_time, end_time, exclude_appointment_id
    )
    if conflict:
        return AvailabilityResult(
            False,
            "conflict",
            "Employee has an overlapping appointment",
            {"conflicting_appointment_id": conflict.id},
        )

    schedule_problem = _check_schedule(employee, start_time, end_time)
    if schedule_problem:
        return schedule_problem

    return AvailabilityResult(True)


def get_available_employees(tenant_id, start_time, end_time):
    """Ids of the tenant's active, healthy employees free for the interval."""
    stmt = (
        select(Employees.id)
        .where(
            Employees.tenant_id == tenant_id,
            Employees.is_active.is_(True),
            Employees.is_sick.is_(False),
        )
        .order_by(Employees.id)
    )
    available = []
    for employee_id in db.session.scalars(stmt).all():
        if check_availability(employee_id, start_time, end_time).is_available:
            available.append(employee_id)
    return available
