from flask import Flask
from flask_cors import CORS
from dotenv import load_dotenv
from flasgger import Swagger
from swagger__config import SWAGGER_CONFIG, SWAGGER_TEMPLATE
import os

load_dotenv()
from opsdesk.config import Config  # noqa: E402
from opsdesk.extensions import db  # noqa: E402
from opsdesk.errors import register_error_handlers  # noqa: E402
from opsdesk.scheduler import init_cli  # noqa: E402
from opsdesk.routes.auth import auth_bp  # noqa: E402
from opsdesk.api.employees.employees import employees_bp  # noqa: E402
from opsdesk.api.employees.vacation import vacation_bp  # noqa: E402
from opsdesk.api.employees.sick import sick_bp  # noqa: E402
from opsdesk.api.appointments.appointments import appointments_bp  # noqa: E402
from opsdesk.api.appointments.reassignments import reassignments_bp  # noqa: E402
from opsdesk.api.expenses.recurring import recurring_bp  # noqa: E402
from opsdesk.api.cron.jobs import cron_bp  # noqa: E402
from opsdesk.api.invoices.reminders import reminders_bp  # noqa: E402


def create_app(config_overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    CORS(app)
    db.init_app(app)

    host = os.environ.get("API_HOST", "127.0.0.1:5000")
    swagger_template = SWAGGER_TEMPLATE.copy()
    swagger_template["host"] = host
    Swagger(app, config=SWAGGER_CONFIG, template=swagger_template)

    register_error_handlers(app)

    blueprints = [
        auth_bp,
        employees_bp,
        vacation_bp,
        sick_bp,
        appointments_bp,
        reassignments_bp,
        recurring_bp,
        cron_bp,
        reminders_bp,
    ]

    for bp in blueprints:
        app.register_blueprint(bp)
        app.logger.debug(f"{bp.name} registered")

    @app.route("/")
    def home():
        """
        Root endpoint - API status
        ---
        tags:
          - Utility
        responses:
          200:
            description: API is running
            schema:
              type: object
              properties:
                status:
                  type: string
                message:
                  type: string
        """
        return {"status": "ok", "message": "Backend is running!"}, 200

    init_cli(app)

    app.logger.info(f"Routes registered: {len(list(app.url_map.iter_rules()))}")
    return app


if __name__ == "__main__":
    app = create_app()
    port = int(os.environ.get("PORT", 5000))
    app.run(
        host="0.0.0.0", port=port, debug=os.environ.get("FLASK_ENV") != "production"
    )
