from flask import Blueprint, g, jsonify

from opsdesk.errors import Forbidden, ValidationError
from opsdesk.schemas import SickRequest, parse_body
from opsdesk.services.sick import confirm_sick, list_sick, mark_recovered, report_sick
from opsdesk.utils.session import login_required

sick_bp = Blueprint("sick", __name__, url_prefix="/api/employees/sick")


@sick_bp.route("", methods=["POST"])
@login_required
def update_sick_status():
    """
    Report, confirm or end a sick leave
    ---
    tags:
      - Employees
    description: >
      ``report`` is sent by the employee for themself. ``confirm`` and
      ``recover`` are admin actions and need ``employeeId``.
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [action]
          properties:
            action:
              type: string
              enum: [report, confirm, recover]
            employeeId:
              type: integer
    responses:
      200:
        description: Sick status updated
      403:
        description: Admin action requested by a non-admin
    """
    data = parse_body(SickRequest)

    if data.action == "report":
        employee, flagged = report_sick(g.session.user_id, g.session.tenant_id)
        return jsonify(
            {
                "message": "Sick report received",
                "employee": employee.to_dict(),
                "flaggedAppointments": flagged,
            }
        ), 200

    if not g.session.is_admin:
        raise Forbidden("Not authorized. Administrator role required.")
    if data.employee_id is None:
        raise ValidationError("employeeId is required", details={"employeeId": "missing"})

    if data.action == "confirm":
        employee, flagged = confirm_sick(data.employee_id, g.session.tenant_id)
        return jsonify(
            {
                "message": "Sick leave confirmed",
                "employee": employee.to_dict(),
                "flaggedAppointments": flagged,
            }
        ), 200

    employee = mark_recovered(data.employee_id, g.session.tenant_id)
    return jsonify({"message": "Employee recovered", "employee": employee.to_dict()}), 200


@sick_bp.route("", methods=["GET"])
@login_required
def sick_list():
    employees = list_sick(g.session)
    return jsonify(
        {"employees": [e.to_dict() for e in employees], "count": len(employees)}
    ), 200
