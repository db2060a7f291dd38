from flask import Blueprint, g, jsonify

from opsdesk.errors import ValidationError
from opsdesk.schemas import AppointmentCreateRequest, AppointmentUpdateRequest, parse_body
from opsdesk.services.appointments import (
    create_appointment,
    get_appointment,
    list_appointments,
    update_appointment,
)
from opsdesk.utils.params import datetime_arg
from opsdesk.utils.session import login_required

appointments_bp = Blueprint("appointments", __name__, url_prefix="/api/appointments")


@appointments_bp.route("", methods=["GET"])
@login_required
def appointments():
    """
    List appointments
    ---
    tags:
      - Appointments
    description: Admins see the whole tenant, employees only their own appointments.
    parameters:
      - in: query
        name: startDate
        type: string
        format: date-time
      - in: query
        name: endDate
        type: string
        format: date-time
    responses:
      200:
        description: Appointments ordered by start time
    """
    start = datetime_arg("startDate")
    end = datetime_arg("endDate")
    if start and end and start > end:
        raise ValidationError("startDate must not be after endDate")

    items = list_appointments(g.session, start, end)
    return jsonify(
        {"appointments": [a.to_dict() for a in items], "count": len(items)}
    ), 200


@appointments_bp.route("", methods=["POST"])
@login_required
def book_appointment():
    """
    Book an appointment
    ---
    tags:
      - Appointments
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [title, startTime, endTime]
          properties:
            title:
              type: string
            startTime:
              type: string
              format: date-time
            endTime:
              type: string
              format: date-time
            customerId:
              type: integer
            employeeId:
              type: integer
              description: Ignored for employees, who always book themselves
            status:
              type: string
            notes:
              type: string
            adminOverride:
              type: boolean
              default: false
    responses:
      201:
        description: Appointment created
      400:
        description: Invalid body or employee not available (details carry the availability result)
      404:
        description: Customer or employee not found in this tenant
    """
    data = parse_body(AppointmentCreateRequest)
    appointment = create_appointment(g.session, data)
    return jsonify({"appointment": appointment.to_dict()}), 201


@appointments_bp.route("/<int:appointment_id>", methods=["GET"])
@login_required
def appointment_detail(appointment_id):
    appointment = get_appointment(g.session, appointment_id)
    return jsonify({"appointment": appointment.to_dict()}), 200


@appointments_bp.route("/<int:appointment_id>", methods=["PUT"])
@login_required
def edit_appointment(appointment_id):
    """
    Update an appointment
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
          properties:
            title:
              type: string
            startTime:
              type: string
              format: date-time
            endTime:
              type: string
              format: date-time
            customerId:
              type: integer
            employeeId:
              type: integer
              description: Administrators only
            status:
              type: string
            notes:
              type: string
            adminOverride:
              type: boolean
              default: false
    responses:
      200:
        description: Updated appointment
      400:
        description: Employee not available for the new time (details carry the availability result)
      403:
        description: Employee tried to change the assigned employee
      404:
        description: Appointment not found in this tenant
    """
    data = parse_body(AppointmentUpdateRequest)
    appointment = update_appointment(g.session, appointment_id, data)
    return jsonify({"appointment": appointment.to_dict()}), 200
