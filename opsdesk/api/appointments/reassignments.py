from flask import Blueprint, g, jsonify

from opsdesk.schemas import ReassignRequest, parse_body
from opsdesk.services.reassignment import list_needing_reassignment, reassign
from opsdesk.utils.session import admin_required

reassignments_bp = Blueprint("reassignments", __name__, url_prefix="/api")


@reassignments_bp.route("/reassignments", methods=["GET"])
@admin_required
def needing_reassignment():
    """
    Appointments waiting for a new employee
    ---
    tags:
      - Appointments
    responses:
      200:
        description: Appointments in NEEDS_REASSIGNMENT, earliest first
      403:
        description: Caller is not an administrator
    """
    appointments = list_needing_reassignment(g.session.tenant_id)
    return jsonify(
        {
            "appointments": [a.to_dict() for a in appointments],
            "count": len(appointments),
        }
    ), 200


@reassignments_bp.route("/appointments/<int:appointment_id>/reassign", methods=["PUT"])
@admin_required
def reassign_appointment(appointment_id):
    """
    Give an appointment to another employee
    ---
    tags:
      - Appointments
    parameters:
      - in: path
        name: appointment_id
        type: integer
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [employeeId]
          properties:
            employeeId:
              type: integer
            adminOverride:
              type: boolean
              default: false
    responses:
      200:
        description: Appointment reassigned and ACCEPTED
      400:
        description: Employee not available (details carry the availability result)
      404:
        description: Appointment not found or not waiting for reassignment
    """
    data = parse_body(ReassignRequest)
    appointment = reassign(
        appointment_id,
        g.session.tenant_id,
        data.employee_id,
        admin_override=data.admin_override,
    )
    return jsonify(
        {"message": "Appointment reassigned", "appointment": appointment.to_dict()}
    ), 200
