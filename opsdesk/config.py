import os
import sys
from pathlib import Path
from dotenv import load_dotenv

# In case pytest tests/ -v -s is run, it will only read .env.test
if "pytest" in sys.modules or os.environ.get("TESTING") == "True":
    test_env_path = Path(__file__).parent.parent / "tests" / ".env.test"
    if test_env_path.exists():
        load_dotenv(test_env_path, override=True)
else:
    load_dotenv()

# Determine if we're in testing mode
TESTING = "pytest" in sys.modules or os.environ.get("TESTING") == "True"
FLASK_ENV = os.environ.get("FLASK_ENV")


def is_production_database(db_url: str) -> bool:
    """Check if a database URL appears to be production."""
    if not db_url:
        return False

    dangerous_patterns = [
        "rlwy.net",
        "railway.internal",
        "production",
        "amazonaws.com",
        "azure.com",
    ]

    for pattern in dangerous_patterns:
        if pattern in db_url.lower():
            return True
    return False


def resolve_database_url() -> str:
    if TESTING or FLASK_ENV == "testing":
        url = os.environ.get("TEST_DATABASE_URL", "sqlite://")

        # Never run the test suite against production
        if is_production_database(url):
            print(" CRITICAL ERROR: Test is trying to use production database!")
            sys.exit(1)
        return url

    url = os.environ.get("DATABASE_URL")
    if not url:
        if FLASK_ENV == "development":
            url = "sqlite:///opsdesk_dev.db"
            print("  DATABASE_URL not set, using local development database")
        else:
            raise ValueError("DATABASE_URL environment variable is required for production")

    # Fix MySQL URL format if needed
    if url.startswith("mysql://"):
        url = url.replace("mysql://", "mysql+pymysql://", 1)
    return url


def _int_list(value: str, default):
    if not value:
        return default
    try:
        return tuple(int(part) for part in value.split(","))
    except ValueError:
        return default


url = resolve_database_url()


class Config:
    SQLALCHEMY_DATABASE_URI = url
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = os.environ.get("SECRET_KEY", "supersecretdevkey123")
    TOKEN_TTL_HOURS = int(os.environ.get("TOKEN_TTL_HOURS", "12"))

    # Static bearer secret for the cron endpoints. Unset means cron is disabled.
    CRON_SECRET = os.environ.get("CRON_SECRET")

    DEFAULT_VACATION_DAYS = int(os.environ.get("DEFAULT_VACATION_DAYS", "25"))

    # Days overdue at which reminder levels 1, 2 and 3 are suggested
    REMINDER_LEVEL_DAYS = _int_list(os.environ.get("REMINDER_LEVEL_DAYS"), (3, 10, 20))

    TESTING = TESTING

    @property
    def is_safe_for_testing(self):
        """Double-check that we're not using production database in tests."""
        if self.TESTING:
            return not is_production_database(self.SQLALCHEMY_DATABASE_URI)
        return True
