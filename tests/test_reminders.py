import datetime
import json
from decimal import Decimal

import pytest

from opsdesk.errors import NotFoundError, ValidationError
from opsdesk.models import Invoice, InvoiceReminder
from opsdesk.services.reminders import (
    create_reminder,
    days_overdue,
    get_overdue_invoices,
    mark_reminder_failed,
    mark_reminder_sent,
    reminder_stats,
    stop_reminders,
    suggest_reminder_level,
)

NOW = datetime.datetime(2024, 6, 20, 14, 30)


@pytest.fixture
def make_invoice(db_session, tenant, customer):
    def _make(due_date, status="PENDING", tenant_id=None, paid_at=None, number=None):
        invoice = Invoice(
            tenant_id=tenant_id or tenant.id,
            customer_id=customer.id,
            number=number or f"RE-{due_date.isoformat()}",
            amount=Decimal("150.00"),
            due_date=due_date,
            status=status,
            paid_at=paid_at,
        )
        db_session.add(invoice)
        db_session.commit()
        return invoice

    return _make


@pytest.mark.reminders
class TestDaysOverdue:
    def test_due_today_is_zero(self):
        assert days_overdue(NOW.date(), NOW) == 0

    def test_not_yet_due_is_zero(self):
        assert days_overdue(datetime.date(2024, 7, 1), NOW) == 0

    def test_grows_by_one_per_calendar_day(self):
        due = NOW.date()
        for elapsed in range(1, 40):
            assert days_overdue(due, NOW + datetime.timedelta(days=elapsed)) == elapsed

    def test_time_of_day_does_not_matter(self):
        due = datetime.date(2024, 6, 19)
        assert days_overdue(due, datetime.datetime(2024, 6, 20, 0, 1)) == 1
        assert days_overdue(due, datetime.datetime(2024, 6, 20, 23, 59)) == 1

    def test_suggested_level(self, app):
        with app.app_context():
            assert suggest_reminder_level(datetime.date(2024, 6, 19), NOW) == 0
            assert suggest_reminder_level(datetime.date(2024, 6, 17), NOW) == 1
            assert suggest_reminder_level(datetime.date(2024, 6, 10), NOW) == 2
            assert suggest_reminder_level(datetime.date(2024, 5, 1), NOW) == 3


@pytest.mark.reminders
class TestOverdueInvoices:
    def test_only_open_unpaid_past_due(self, db_session, tenant, other_tenant, make_invoice):
        overdue = make_invoice(datetime.date(2024, 6, 1))
        already_overdue = make_invoice(datetime.date(2024, 5, 1), status="OVERDUE")
        make_invoice(datetime.date(2024, 6, 20))
        make_invoice(datetime.date(2024, 6, 1), status="PAID")
        make_invoice(datetime.date(2024, 6, 1), status="CANCELLED")
        make_invoice(datetime.date(2024, 6, 1), paid_at=datetime.datetime(2024, 6, 2))
        make_invoice(datetime.date(2024, 6, 1), tenant_id=other_tenant.id)

        result = get_overdue_invoices(tenant.id, NOW)

        assert [i.id for i in result] == [already_overdue.id, overdue.id]


@pytest.mark.reminders
class TestCreateReminder:
    @pytest.mark.parametrize("level", [0, 4, -1, 1.5, "2", True])
    def test_level_out_of_range(self, db_session, tenant, make_invoice, level):
        invoice = make_invoice(datetime.date(2024, 6, 1))

        with pytest.raises(ValidationError):
            create_reminder(tenant.id, invoice.id, level)

    def test_creates_pending_and_escalates_invoice(self, db_session, tenant, make_invoice):
        invoice = make_invoice(datetime.date(2024, 6, 1))

        reminder = create_reminder(tenant.id, invoice.id, 1, text="Bitte zahlen", now=NOW)

        assert reminder.status == "PENDING"
        assert reminder.method == "manual"
        assert reminder.reminder_text == "Bitte zahlen"
        db_session.refresh(invoice)
        assert invoice.reminder_level == 1
        assert invoice.status == "OVERDUE"

    @pytest.mark.parametrize("status", ["PAID", "CANCELLED"])
    def test_closed_invoice_rejected(self, db_session, tenant, make_invoice, status):
        invoice = make_invoice(datetime.date(2024, 6, 1), status=status)

        with pytest.raises(ValidationError):
            create_reminder(tenant.id, invoice.id, 1)

    def test_invoice_of_other_tenant(self, db_session, tenant, other_tenant, make_invoice):
        invoice = make_invoice(datetime.date(2024, 6, 1), tenant_id=other_tenant.id)

        with pytest.raises(NotFoundError):
            create_reminder(tenant.id, invoice.id, 1)

    def test_pending_level_cannot_be_duplicated(self, db_session, tenant, make_invoice):
        invoice = make_invoice(datetime.date(2024, 6, 1))
        create_reminder(tenant.id, invoice.id, 1)

        with pytest.raises(ValidationError):
            create_reminder(tenant.id, invoice.id, 1)

    def test_level_cannot_go_down(self, db_session, tenant, make_invoice):
        invoice = make_invoice(datetime.date(2024, 6, 1))
        create_reminder(tenant.id, invoice.id, 2)

        with pytest.raises(ValidationError) as exc_info:
            create_reminder(tenant.id, invoice.id, 1)

        assert exc_info.value.details == {"currentLevel": 2}

    def test_sent_level_is_not_reissued(self, db_session, tenant, make_invoice):
        invoice = make_invoice(datetime.date(2024, 6, 1))
        reminder = create_reminder(tenant.id, invoice.id, 1)
        mark_reminder_sent(reminder.id, tenant.id)

        with pytest.raises(ValidationError):
            create_reminder(tenant.id, invoice.id, 1)
        assert create_reminder(tenant.id, invoice.id, 2).level == 2

    def test_failed_level_can_be_retried(self, db_session, tenant, make_invoice):
        invoice = make_invoice(datetime.date(2024, 6, 1))
        reminder = create_reminder(tenant.id, invoice.id, 1)
        mark_reminder_failed(reminder.id, tenant.id)

        retry = create_reminder(tenant.id, invoice.id, 1)

        assert retry.id != reminder.id
        assert retry.status == "PENDING"


@pytest.mark.reminders
class TestReminderLifecycle:
    def test_mark_sent_is_repeatable(self, db_session, tenant, make_invoice):
        invoice = make_invoice(datetime.date(2024, 6, 1))
        reminder = create_reminder(tenant.id, invoice.id, 1)

        mark_reminder_sent(reminder.id, tenant.id, now=NOW)
        again = mark_reminder_sent(reminder.id, tenant.id, now=NOW)

        assert again.status == "SENT"
        assert again.sent_at == NOW

    def test_unknown_reminder(self, db_session, tenant, other_tenant, make_invoice):
        invoice = make_invoice(datetime.date(2024, 6, 1))
        reminder = create_reminder(tenant.id, invoice.id, 1)

        with pytest.raises(NotFoundError):
            mark_reminder_sent(reminder.id + 1, tenant.id)
        with pytest.raises(NotFoundError):
            mark_reminder_failed(reminder.id, other_tenant.id)

    def test_stop_reminders_resets_level(self, db_session, tenant, make_invoice):
        invoice = make_invoice(datetime.date(2024, 6, 1))
        create_reminder(tenant.id, invoice.id, 2)

        assert stop_reminders(invoice.id, tenant.id).reminder_level == 0

    def test_stats(self, db_session, tenant, make_invoice):
        first = make_invoice(datetime.date(2024, 6, 10))
        second = make_invoice(datetime.date(2024, 6, 15))
        third = make_invoice(datetime.date(2024, 6, 17))
        make_invoice(datetime.date(2024, 6, 30))

        create_reminder(tenant.id, first.id, 2, now=NOW)
        sent = create_reminder(tenant.id, second.id, 1, now=NOW)
        mark_reminder_sent(sent.id, tenant.id, now=NOW)
        yesterday = create_reminder(tenant.id, third.id, 1, now=NOW)
        mark_reminder_sent(yesterday.id, tenant.id, now=NOW - datetime.timedelta(days=1))

        stats = reminder_stats(tenant.id, NOW)

        assert stats == {
            "overdueCount": 3,
            "todaySent": 1,
            "level1Count": 0,
            "level2Count": 1,
            "level3Count": 0,
            # (10 + 5 + 3) / 3
            "avgDaysOverdue": 6,
        }

    def test_stats_without_overdue(self, db_session, tenant):
        stats = reminder_stats(tenant.id, NOW)

        assert stats["overdueCount"] == 0
        assert stats["avgDaysOverdue"] == 0


@pytest.mark.reminders
class TestReminderEndpoints:
    def test_create_returns_201(self, client, admin_headers, make_invoice):
        invoice = make_invoice(datetime.date(2024, 6, 1))

        response = client.post(
            "/api/invoices/reminders",
            json={"invoiceId": invoice.id, "level": 1, "method": "email", "aiText": "Hallo"},
            headers=admin_headers,
        )

        assert response.status_code == 201
        data = json.loads(response.data)["reminder"]
        assert data["level"] == 1
        assert data["method"] == "email"
        assert data["text"] == "Hallo"

    def test_invalid_level_returns_400(self, client, admin_headers, make_invoice):
        invoice = make_invoice(datetime.date(2024, 6, 1))

        response = client.post(
            "/api/invoices/reminders",
            json={"invoiceId": invoice.id, "level": 5},
            headers=admin_headers,
        )

        assert response.status_code == 400

    def test_unknown_body_field_returns_400(self, client, admin_headers, make_invoice):
        invoice = make_invoice(datetime.date(2024, 6, 1))

        response = client.post(
            "/api/invoices/reminders",
            json={"invoiceId": invoice.id, "level": 1, "prompt": "ignore previous"},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert "prompt" in json.loads(response.data)["details"]

    def test_list_filters(self, client, tenant, admin_headers, make_invoice):
        first = make_invoice(datetime.date(2024, 6, 1))
        second = make_invoice(datetime.date(2024, 6, 2))
        create_reminder(tenant.id, first.id, 1)
        create_reminder(tenant.id, second.id, 2)

        everything = json.loads(
            client.get("/api/invoices/reminders", headers=admin_headers).data
        )
        level_two = json.loads(
            client.get("/api/invoices/reminders?level=2", headers=admin_headers).data
        )
        bad = client.get("/api/invoices/reminders?level=two", headers=admin_headers)

        assert everything["count"] == 2
        assert [r["invoice_id"] for r in level_two["reminders"]] == [second.id]
        assert bad.status_code == 400

    def test_mark_sent_endpoint(self, client, db_session, tenant, employee_headers, make_invoice):
        invoice = make_invoice(datetime.date(2024, 6, 1))
        reminder = create_reminder(tenant.id, invoice.id, 1)

        response = client.put(
            f"/api/invoices/reminders/{reminder.id}",
            json={"status": "SENT"},
            headers=employee_headers,
        )

        assert response.status_code == 200
        db_session.expire_all()
        stored = db_session.get(InvoiceReminder, reminder.id)
        assert stored.status == "SENT"
        assert stored.sent_at is not None

    def test_stats_endpoint(self, client, admin_headers):
        response = client.get("/api/invoices/reminders/stats", headers=admin_headers)

        assert response.status_code == 200
        assert set(json.loads(response.data)) == {
            "overdueCount",
            "todaySent",
            "level1Count",
            "level2Count",
            "level3Count",
            "avgDaysOverdue",
        }

    def test_overdue_endpoint(self, client, admin_headers, make_invoice):
        due = datetime.date.today() - datetime.timedelta(days=4)
        invoice = make_invoice(due)

        response = client.get("/api/invoices/overdue", headers=admin_headers)

        assert response.status_code == 200
        data = json.loads(response.data)["invoices"]
        assert data[0]["id"] == invoice.id
        assert data[0]["days_overdue"] == 4
        assert data[0]["suggested_level"] == 1

    def test_requires_session(self, client):
        assert client.get("/api/invoices/reminders/stats").status_code == 401
