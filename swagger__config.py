"""
Swagger/OpenAPI configuration for the operations backend
"""

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec",
            "route": "/apispec.json",
            "rule_filter": lambda rule: True,
            "model_filter": lambda tag: True,
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/api/docs",
}

SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "OpsDesk API",
        "description": "Multi-tenant back office: staff availability, appointment reassignment, vacation, recurring expenses and invoice reminders",
        "version": "1.0.0",
    },
    "host": "",
    "basePath": "/",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": 'Session token or, for cron endpoints, the cron secret. Example: "Authorization: Bearer {token}"',
        }
    },
    "security": [{"Bearer": []}],
    "tags": [
        {"name": "Authentication", "description": "Signup, login and session"},
        {"name": "Employees", "description": "Staff, availability and sick leave"},
        {"name": "Vacation", "description": "Vacation requests and approval"},
        {"name": "Appointments", "description": "Appointment reassignment"},
        {"name": "Expenses", "description": "Recurring expense templates"},
        {"name": "Cron", "description": "Externally triggered batch jobs"},
        {"name": "Invoices", "description": "Overdue invoices and payment reminders"},
    ],
    "definitions": {
        "Error": {
            "type": "object",
            "properties": {
                "error": {"type": "string"},
                "details": {"type": "object"},
            },
        },
    },
}
