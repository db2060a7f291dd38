import datetime
import json

import jwt
import pytest

from opsdesk.models import Appointment


@pytest.fixture
def signup_data():
    return {
        "tenantName": "Barber & Co",
        "name": "Bea Owner",
        "email": "bea@barber.example",
        "password": "password123",
    }


@pytest.mark.auth
class TestAuthSignup:
    """Test suite for tenant signup."""

    def test_signup_success(self, client, signup_data):
        response = client.post(
            "/api/auth/signup",
            data=json.dumps(signup_data),
            content_type="application/json",
        )

        assert response.status_code == 201
        data = json.loads(response.data)
        assert data["status"] == "success"
        assert data["user"]["email"] == signup_data["email"]
        assert data["user"]["role"] == "ADMIN"
        assert data["tenant"]["slug"] == "barber-co"
        assert data["token"]

    def test_signup_missing_tenant_name(self, client, signup_data):
        signup_data.pop("tenantName")
        response = client.post(
            "/api/auth/signup",
            data=json.dumps(signup_data),
            content_type="application/json",
        )

        assert response.status_code == 400
        data = json.loads(response.data)
        assert data["error"] == "Invalid request body"
        assert "tenantName" in data["details"]

    def test_signup_rejects_unknown_fields(self, client, signup_data):
        signup_data["role"] = "ADMIN"
        signup_data["tenant_id"] = 1
        response = client.post(
            "/api/auth/signup",
            data=json.dumps(signup_data),
            content_type="application/json",
        )

        assert response.status_code == 400
        data = json.loads(response.data)
        assert "tenant_id" in data["details"]

    def test_signup_short_password(self, client, signup_data):
        signup_data["password"] = "short"
        response = client.post("/api/auth/signup", json=signup_data)

        assert response.status_code == 400

    def test_signup_duplicate_email(self, client, signup_data):
        client.post("/api/auth/signup", json=signup_data)

        signup_data["tenantName"] = "Another Shop"
        response = client.post("/api/auth/signup", json=signup_data)

        assert response.status_code == 400
        assert json.loads(response.data)["error"] == "Email already exists"

    def test_signup_non_json_body(self, client, db):
        response = client.post(
            "/api/auth/signup", data="not json", content_type="text/plain"
        )

        assert response.status_code == 400


@pytest.mark.auth
class TestAuthLogin:
    """Test suite for login and session lookup."""

    def test_login_success(self, client, admin_user):
        response = client.post(
            "/api/auth/login",
            json={"email": "admin@fuerst.example", "password": "password123"},
        )

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data["user"]["id"] == admin_user.id
        assert data["token"]

    def test_login_email_is_case_insensitive(self, client, admin_user):
        response = client.post(
            "/api/auth/login",
            json={"email": "Admin@Fuerst.example", "password": "password123"},
        )

        assert response.status_code == 200

    def test_login_wrong_password(self, client, admin_user):
        response = client.post(
            "/api/auth/login",
            json={"email": "admin@fuerst.example", "password": "wrong-password"},
        )

        assert response.status_code == 401
        assert json.loads(response.data)["error"] == "Invalid credentials"

    def test_login_unknown_user(self, client, db):
        response = client.post(
            "/api/auth/login",
            json={"email": "nobody@example.com", "password": "password123"},
        )

        assert response.status_code == 401

    def test_login_token_opens_session(self, client, employee):
        login = client.post(
            "/api/auth/login",
            json={"email": "emma@fuerst.example", "password": "password123"},
        )
        token = json.loads(login.data)["token"]

        response = client.get(
            "/api/auth/me", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data["tenant_id"] == employee.tenant_id
        assert data["role"] == "EMPLOYEE"
        assert data["employee_id"] == employee.id

    def test_me_requires_token(self, client, db):
        response = client.get("/api/auth/me")

        assert response.status_code == 401
        assert json.loads(response.data)["error"] == "Not authorized"

    def test_me_rejects_expired_token(self, app, client, admin_user):
        token = jwt.encode(
            {
                "user_id": admin_user.id,
                "tenant_id": admin_user.tenant_id,
                "role": "ADMIN",
                "exp": datetime.datetime.now(datetime.timezone.utc)
                - datetime.timedelta(minutes=1),
            },
            app.config["SECRET_KEY"],
            algorithm="HS256",
        )

        response = client.get(
            "/api/auth/me", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 401
        assert json.loads(response.data)["error"] == "Session expired"

    def test_me_rejects_foreign_signature(self, client, admin_user):
        token = jwt.encode(
            {"user_id": admin_user.id, "tenant_id": admin_user.tenant_id, "role": "ADMIN"},
            "some-other-secret",
            algorithm="HS256",
        )

        response = client.get(
            "/api/auth/me", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 401


@pytest.mark.auth
class TestEmployeeAccounts:
    """Admins create employee accounts inside their own tenant."""

    def test_admin_creates_employee(self, client, admin_headers, tenant):
        response = client.post(
            "/api/employees",
            json={
                "name": "Paula",
                "email": "paula@fuerst.example",
                "password": "password123",
                "daysOff": ["Sunday"],
                "workStart": "09:00",
                "workEnd": "17:00",
                "salaryType": "FIXED",
                "baseSalary": 2800,
                "payoutDay": 28,
            },
            headers=admin_headers,
        )

        assert response.status_code == 201
        data = json.loads(response.data)["employee"]
        assert data["tenant_id"] == tenant.id
        assert data["days_off"] == ["Sunday"]
        assert data["base_salary"] == 2800.0

        login = client.post(
            "/api/auth/login",
            json={"email": "paula@fuerst.example", "password": "password123"},
        )
        assert json.loads(login.data)["user"]["role"] == "EMPLOYEE"

    def test_invalid_clock_time_rejected(self, client, admin_headers):
        response = client.post(
            "/api/employees",
            json={
                "name": "Paula",
                "email": "paula@fuerst.example",
                "password": "password123",
                "workStart": "9 o'clock",
            },
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert "workStart" in json.loads(response.data)["details"]

    def test_employee_cannot_create_employee(self, client, employee_headers):
        response = client.post(
            "/api/employees",
            json={
                "name": "Mallory",
                "email": "mallory@fuerst.example",
                "password": "password123",
            },
            headers=employee_headers,
        )

        assert response.status_code == 403

    def test_list_is_tenant_scoped(
        self, client, admin_headers, employee, second_employee, other_employee
    ):
        response = client.get("/api/employees", headers=admin_headers)

        assert response.status_code == 200
        ids = {e["id"] for e in json.loads(response.data)["employees"]}
        assert ids == {employee.id, second_employee.id}


@pytest.mark.auth
class TestEmployeeProfileChanges:
    """Admins edit and deactivate employees of their own tenant."""

    def test_update_salary_terms_and_schedule(self, client, admin_headers, employee):
        response = client.put(
            f"/api/employees/{employee.id}",
            json={
                "name": "Emma Berger",
                "salaryType": "FIXED",
                "baseSalary": 3100,
                "payoutDay": 15,
                "daysOff": ["Saturday", "Sunday"],
                "workStart": "08:00",
            },
            headers=admin_headers,
        )

        assert response.status_code == 200
        data = json.loads(response.data)["employee"]
        assert data["name"] == "Emma Berger"
        assert data["salary_type"] == "FIXED"
        assert data["base_salary"] == 3100.0
        assert data["payout_day"] == 15
        assert data["days_off"] == ["Saturday", "Sunday"]
        assert data["work_start"] == "08:00"
        assert data["vacation_days_total"] == 25

    def test_payout_day_out_of_range(self, client, admin_headers, employee):
        response = client.put(
            f"/api/employees/{employee.id}",
            json={"payoutDay": 32},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert "payoutDay" in json.loads(response.data)["details"]

    def test_other_tenant_is_not_found(self, client, admin_headers, other_employee):
        update = client.put(
            f"/api/employees/{other_employee.id}",
            json={"payoutDay": 1},
            headers=admin_headers,
        )
        delete = client.delete(f"/api/employees/{other_employee.id}", headers=admin_headers)

        assert update.status_code == 404
        assert delete.status_code == 404

    def test_employee_cannot_edit_or_deactivate(
        self, client, employee_headers, second_employee
    ):
        update = client.put(
            f"/api/employees/{second_employee.id}",
            json={"baseSalary": 9999},
            headers=employee_headers,
        )
        delete = client.delete(
            f"/api/employees/{second_employee.id}", headers=employee_headers
        )

        assert update.status_code == 403
        assert delete.status_code == 403

    def test_deactivated_employee_cannot_log_in(
        self, client, db_session, admin_headers, employee, make_appointment
    ):
        tomorrow = datetime.datetime.combine(
            datetime.date.today() + datetime.timedelta(days=1), datetime.time(10)
        )
        upcoming = make_appointment(employee, tomorrow)

        response = client.delete(f"/api/employees/{employee.id}", headers=admin_headers)

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data["employee"]["is_active"] is False
        assert data["flaggedAppointments"] == 1

        db_session.expire_all()
        assert db_session.get(Appointment, upcoming.id).status == "NEEDS_REASSIGNMENT"

        login = client.post(
            "/api/auth/login",
            json={"email": "emma@fuerst.example", "password": "password123"},
        )
        assert login.status_code == 401

    def test_inactive_flag_through_update_deactivates(
        self, client, admin_headers, employee
    ):
        response = client.put(
            f"/api/employees/{employee.id}",
            json={"isActive": False, "payoutDay": 1},
            headers=admin_headers,
        )

        assert response.status_code == 200
        data = json.loads(response.data)["employee"]
        assert data["is_active"] is False
        assert data["payout_day"] == 1

    def test_reassign_to_deactivated_employee_is_not_found(
        self, client, admin_headers, employee, second_employee, make_appointment
    ):
        appointment = make_appointment(
            employee, datetime.datetime(2024, 6, 10, 9), status="NEEDS_REASSIGNMENT"
        )
        client.delete(f"/api/employees/{second_employee.id}", headers=admin_headers)

        response = client.put(
            f"/api/appointments/{appointment.id}/reassign",
            json={"employeeId": second_employee.id, "adminOverride": True},
            headers=admin_headers,
        )

        assert response.status_code == 404
        assert json.loads(response.data)["error"] == "Employee not found"
