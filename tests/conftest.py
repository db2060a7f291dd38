"""
Pytest configuration and shared fixtures.

Every test gets a fresh app bound to an in-memory SQLite database, two
tenants with an admin each, employees and a customer.
"""

import datetime
import sys

import bcrypt
import pytest
from flask import Flask

from main import create_app
from opsdesk.config import is_production_database
from opsdesk.extensions import db as database
from opsdesk.models import AuthUser, Customers, Employees, Tenant
from opsdesk.utils.session import issue_token

TEST_DATABASE_URI = "sqlite://"
CRON_SECRET = "test-cron-secret"


@pytest.fixture
def app():
    """Create and configure a test app instance."""
    if is_production_database(TEST_DATABASE_URI):
        print(" DANGER: Database URL appears to be production")
        sys.exit(1)

    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": TEST_DATABASE_URI,
            "SECRET_KEY": "test-secret-key-for-testing-only",
            "CRON_SECRET": CRON_SECRET,
        }
    )
    yield app


@pytest.fixture
def db(app: Flask):
    """Create the schema from Base metadata."""
    from opsdesk.models import Base

    with app.app_context():
        Base.metadata.create_all(bind=database.engine)

        yield database

        database.session.remove()
        Base.metadata.drop_all(bind=database.engine)


@pytest.fixture
def db_session(db):
    return db.session


@pytest.fixture
def client(app, db):
    return app.test_client()


@pytest.fixture
def runner(app, db):
    return app.test_cli_runner()


def create_user(session, tenant, email, role, name=None, password=b"password123", **profile):
    """AuthUser, plus an Employees profile for EMPLOYEE users."""
    user = AuthUser(
        tenant_id=tenant.id,
        email=email,
        name=name,
        password_hash=bcrypt.hashpw(password, bcrypt.gensalt(rounds=4)),
        role=role,
    )
    session.add(user)
    session.flush()

    if role == "EMPLOYEE":
        employee = Employees(tenant_id=tenant.id, user_id=user.id, **profile)
        session.add(employee)
        session.commit()
        return employee

    session.commit()
    return user


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def tenant(db_session):
    tenant = Tenant(name="Salon Fuerst", slug="salon-fuerst")
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture
def other_tenant(db_session):
    tenant = Tenant(name="Studio Nord", slug="studio-nord")
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture
def admin_user(db_session, tenant):
    return create_user(db_session, tenant, "admin@fuerst.example", "ADMIN", "Anna Admin")


@pytest.fixture
def other_admin_user(db_session, other_tenant):
    return create_user(db_session, other_tenant, "admin@nord.example", "ADMIN", "Nils Nord")


@pytest.fixture
def employee(db_session, tenant):
    """Employee E: no schedule restrictions, 25 vacation days."""
    return create_user(
        db_session,
        tenant,
        "emma@fuerst.example",
        "EMPLOYEE",
        "Emma",
        vacation_days_total=25,
    )


@pytest.fixture
def second_employee(db_session, tenant):
    """Employee F."""
    return create_user(
        db_session, tenant, "felix@fuerst.example", "EMPLOYEE", "Felix"
    )


@pytest.fixture
def other_employee(db_session, other_tenant):
    return create_user(
        db_session, other_tenant, "olga@nord.example", "EMPLOYEE", "Olga"
    )


@pytest.fixture
def customer(db_session, tenant):
    customer = Customers(
        tenant_id=tenant.id,
        first_name="Test",
        last_name="Customer",
        email="customer@example.com",
    )
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture
def admin_headers(app, admin_user):
    return bearer(issue_token(admin_user))


@pytest.fixture
def other_admin_headers(app, other_admin_user):
    return bearer(issue_token(other_admin_user))


@pytest.fixture
def employee_headers(app, employee):
    return bearer(issue_token(employee.user))


@pytest.fixture
def cron_headers():
    return bearer(CRON_SECRET)


@pytest.fixture
def make_appointment(db_session, tenant, customer):
    """Factory for appointments of the main tenant."""
    from opsdesk.models import Appointment

    def _make(employee, start_at, minutes=60, status="ACCEPTED", tenant_id=None):
        appointment = Appointment(
            tenant_id=tenant_id or tenant.id,
            customer_id=customer.id,
            employee_id=employee.id if employee else None,
            title="Haircut",
            start_at=start_at,
            end_at=start_at + datetime.timedelta(minutes=minutes),
            status=status,
        )
        db_session.add(appointment)
        db_session.commit()
        return appointment

    return _make
