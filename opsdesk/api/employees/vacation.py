from flask import Blueprint, g, jsonify

from opsdesk.errors import NotFoundError
from opsdesk.schemas import VacationDecisionRequest, VacationSubmitRequest, parse_body
from opsdesk.services.vacation import (
    decide_vacation_request,
    employee_for_user,
    list_vacation_requests,
    submit_vacation_request,
)
from opsdesk.utils.session import admin_required, login_required

vacation_bp = Blueprint("vacation", __name__, url_prefix="/api/employees/vacation")


@vacation_bp.route("/request", methods=["POST"])
@login_required
def request_vacation():
    """
    Submit a vacation request for the calling employee
    ---
    tags:
      - Vacation
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [startDate, endDate, leaveReason]
          properties:
            startDate:
              type: string
              format: date
            endDate:
              type: string
              format: date
            leaveReason:
              type: string
    responses:
      201:
        description: Request created as PENDING
      400:
        description: Invalid range, not enough days left or overlap with approved vacation
      404:
        description: Caller has no employee profile
    """
    data = parse_body(VacationSubmitRequest)

    employee = employee_for_user(g.session.user_id, g.session.tenant_id)
    if not employee:
        raise NotFoundError("Employee profile not found")

    vacation_request = submit_vacation_request(
        employee.id, data.start_date, data.end_date, data.leave_reason
    )
    return jsonify(
        {
            "message": "Vacation request submitted",
            "request": vacation_request.to_dict(),
        }
    ), 201


@vacation_bp.route("/list", methods=["GET"])
@login_required
def list_requests():
    requests = list_vacation_requests(g.session)
    return jsonify(
        {"requests": [r.to_dict() for r in requests], "count": len(requests)}
    ), 200


@vacation_bp.route("/approve", methods=["POST"])
@admin_required
def decide_request():
    """
    Approve or deny a pending vacation request
    ---
    tags:
      - Vacation
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [requestId, action]
          properties:
            requestId:
              type: integer
            action:
              type: string
              enum: [approve, deny]
            reason:
              type: string
    responses:
      200:
        description: Request decided
      400:
        description: Request already decided or overlaps approved vacation
      404:
        description: Request not found in this tenant
    """
    data = parse_body(VacationDecisionRequest)
    vacation_request = decide_vacation_request(
        data.request_id, g.session.tenant_id, data.action, data.reason
    )
    return jsonify(
        {
            "message": f"Vacation request {vacation_request.status.lower()}",
            "request": vacation_request.to_dict(),
        }
    ), 200
