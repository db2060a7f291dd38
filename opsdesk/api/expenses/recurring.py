from flask import Blueprint, g, jsonify, request

from opsdesk.schemas import (
    RecurringExpenseCreateRequest,
    RecurringExpenseUpdateRequest,
    parse_body,
)
from opsdesk.services.recurring import (
    create_template,
    deactivate_template,
    list_templates,
    update_template,
)
from opsdesk.utils.session import admin_required

recurring_bp = Blueprint(
    "recurring_expenses", __name__, url_prefix="/api/recurring-expenses"
)


@recurring_bp.route("", methods=["GET"])
@admin_required
def get_templates():
    include_inactive = request.args.get("includeInactive", "").lower() in ("1", "true")
    templates = list_templates(g.session.tenant_id, include_inactive=include_inactive)
    return jsonify(
        {
            "recurringExpenses": [t.to_dict() for t in templates],
            "count": len(templates),
        }
    ), 200


@recurring_bp.route("", methods=["POST"])
@admin_required
def post_template():
    """
    Create a recurring expense template
    ---
    tags:
      - Expenses
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [name, amount, category, interval, startDate]
          properties:
            name:
              type: string
              example: Ladenmiete
            amount:
              type: number
              example: 1200
            category:
              type: string
              enum: [GEHALT, MIETE, MARKETING, MATERIAL, VERSICHERUNG, STEUERN, SONSTIGES]
            interval:
              type: string
              enum: [DAILY, WEEKLY, MONTHLY, YEARLY]
            startDate:
              type: string
              format: date
            description:
              type: string
            employeeId:
              type: integer
    responses:
      201:
        description: Template created
      400:
        description: Invalid body
    """
    data = parse_body(RecurringExpenseCreateRequest)
    template = create_template(g.session.tenant_id, data)
    return jsonify({"recurringExpense": template.to_dict()}), 201


@recurring_bp.route("/<int:template_id>", methods=["PUT"])
@admin_required
def put_template(template_id):
    data = parse_body(RecurringExpenseUpdateRequest)
    template = update_template(template_id, g.session.tenant_id, data)
    return jsonify({"recurringExpense": template.to_dict()}), 200


@recurring_bp.route("/<int:template_id>", methods=["DELETE"])
@admin_required
def delete_template(template_id):
    template = deactivate_template(template_id, g.session.tenant_id)
    return jsonify(
        {"message": "Recurring expense deactivated", "recurringExpense": template.to_dict()}
    ), 200
