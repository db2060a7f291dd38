from flask import Blueprint, current_app, g, jsonify
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from opsdesk.errors import ValidationError
from opsdesk.extensions import db
from opsdesk.models import AuthUser, Employees
from opsdesk.routes.auth import hash_password
from opsdesk.schemas import (
    AvailabilityRequest,
    EmployeeCreateRequest,
    EmployeeUpdateRequest,
    parse_body,
)
from opsdesk.services.availability import check_availability, get_available_employees
from opsdesk.services.employees import deactivate_employee, update_employee
from opsdesk.utils.params import datetime_arg
from opsdesk.utils.session import EMPLOYEE, admin_required, login_required

employees_bp = Blueprint("employees", __name__, url_prefix="/api/employees")


@employees_bp.route("", methods=["GET"])
@login_required
def list_employees():
    """
    List the tenant's employees
    ---
    tags:
      - Employees
    responses:
      200:
        description: Employees of the caller's tenant
    """
    employees = db.session.scalars(
        select(Employees)
        .where(Employees.tenant_id == g.session.tenant_id)
        .order_by(Employees.id)
    ).all()
    return jsonify(
        {"employees": [e.to_dict() for e in employees], "count": len(employees)}
    ), 200


@employees_bp.route("", methods=["POST"])
@admin_required
def create_employee():
    """
    Create an employee account in the admin's tenant
    ---
    tags:
      - Employees
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [name, email, password]
          properties:
            name:
              type: string
            email:
              type: string
            password:
              type: string
            vacationDaysTotal:
              type: integer
            daysOff:
              type: array
              items:
                type: string
              example: [Saturday, Sunday]
            workStart:
              type: string
              example: "09:00"
            workEnd:
              type: string
              example: "17:00"
            salaryType:
              type: string
              enum: [FIXED, HOURLY, COMMISSION]
            baseSalary:
              type: number
            payoutDay:
              type: integer
    responses:
      201:
        description: Employee created
      400:
        description: Invalid body or email already registered
      403:
        description: Caller is not an administrator
    """
    data = parse_body(EmployeeCreateRequest)
    email = data.email.strip().lower()

    if db.session.scalar(select(AuthUser.id).where(AuthUser.email == email)):
        raise ValidationError("Email already exists")

    try:
        user = AuthUser(
            tenant_id=g.session.tenant_id,
            email=email,
            name=data.name,
            password_hash=hash_password(data.password),
            role=EMPLOYEE,
        )
        db.session.add(user)
        db.session.flush()

        employee = Employees(
            tenant_id=g.session.tenant_id,
            user_id=user.id,
            vacation_days_total=data.vacation_days_total,
            days_off=",".join(data.days_off) or None,
            work_start=data.work_start,
            work_end=data.work_end,
            break_start=data.break_start,
            break_end=data.break_end,
            salary_type=data.salary_type,
            base_salary=data.base_salary,
            payout_day=data.payout_day,
        )
        db.session.add(employee)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError("Email already exists")

    current_app.logger.info(
        f"Employee {employee.id} created in tenant {g.session.tenant_id}"
    )
    return jsonify({"employee": employee.to_dict()}), 201


@employees_bp.route("/check-availability", methods=["POST"])
@login_required
def check_employee_availability():
    """
    Check whether an employee is free for a time interval
    ---
    tags:
      - Employees
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [employeeId, startTime, endTime]
          properties:
            employeeId:
              type: integer
            startTime:
              type: string
              format: date-time
            endTime:
              type: string
              format: date-time
    responses:
      200:
        description: Availability result
        schema:
          type: object
          properties:
            isAvailable:
              type: boolean
            reason:
              type: string
              enum: [sick, vacation, conflict, day_off, outside_work_hours, break_time]
            message:
              type: string
      404:
        description: Employee not found in this tenant
    """
    data = parse_body(AvailabilityRequest)
    result = check_availability(
        data.employee_id,
        data.start_time,
        data.end_time,
        tenant_id=g.session.tenant_id,
    )
    return jsonify(result.to_dict()), 200


@employees_bp.route("/available", methods=["GET"])
@login_required
def available_employees():
    start = datetime_arg("start", required=True)
    end = datetime_arg("end", required=True)
    if start >= end:
        raise ValidationError("start must be before end")

    employee_ids = get_available_employees(g.session.tenant_id, start, end)
    return jsonify({"employeeIds": employee_ids, "count": len(employee_ids)}), 200


@employees_bp.route("/<int:employee_id>", methods=["PUT"])
@admin_required
def update_employee_profile(employee_id):
    """
    Update an employee's schedule, salary terms or status
    ---
    tags:
      - Employees
    parameters:
      - in: path
        name: employee_id
        type: integer
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
            vacationDaysTotal:
              type: integer
            daysOff:
              type: array
              items:
                type: string
            workStart:
              type: string
            workEnd:
              type: string
            breakStart:
              type: string
            breakEnd:
              type: string
            salaryType:
              type: string
              enum: [FIXED, HOURLY, COMMISSION]
            baseSalary:
              type: number
            payoutDay:
              type: integer
              minimum: 1
              maximum: 31
            isActive:
              type: boolean
    responses:
      200:
        description: Updated employee
      403:
        description: Caller is not an administrator
      404:
        description: Employee not found in this tenant
    """
    data = parse_body(EmployeeUpdateRequest)
    employee = update_employee(employee_id, g.session.tenant_id, data)
    return jsonify({"employee": employee.to_dict()}), 200


@employees_bp.route("/<int:employee_id>", methods=["DELETE"])
@admin_required
def deactivate_employee_profile(employee_id):
    """
    Deactivate an employee
    ---
    tags:
      - Employees
    description: The account can no longer log in or be booked; upcoming appointments are flagged for reassignment.
    parameters:
      - in: path
        name: employee_id
        type: integer
        required: true
    responses:
      200:
        description: Employee deactivated
      403:
        description: Caller is not an administrator
      404:
        description: Employee not found in this tenant
    """
    employee, flagged = deactivate_employee(employee_id, g.session.tenant_id)
    return jsonify(
        {
            "message": "Employee deactivated",
            "employee": employee.to_dict(),
            "flaggedAppointments": flagged,
        }
    ), 200
