from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DECIMAL,
    Date,
    DateTime,
    Enum,
    ForeignKeyConstraint,
    Index,
    Integer,
    LargeBinary,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column, relationship

Base = declarative_base()
metadata = Base.metadata

APPOINTMENT_STATUSES = (
    "PENDING",
    "ACCEPTED",
    "IN_PROGRESS",
    "COMPLETED",
    "CANCELLED",
    "NEEDS_REASSIGNMENT",
)
EXPENSE_CATEGORIES = (
    "GEHALT",
    "MIETE",
    "MARKETING",
    "MATERIAL",
    "VERSICHERUNG",
    "STEUERN",
    "SONSTIGES",
)
RECURRING_INTERVALS = ("DAILY", "WEEKLY", "MONTHLY", "YEARLY")


def _iso(value):
    return value.isoformat() if value else None


def _money(value):
    return float(value) if value is not None else None


class Tenant(Base):
    __tablename__ = "tenant"
    __table_args__ = (Index("uq_tenant_slug", "slug", unique=True),)

    id = mapped_column(Integer, primary_key=True)
    name = mapped_column(String(255), nullable=False)
    slug = mapped_column(String(100), nullable=False)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    users: Mapped[List["AuthUser"]] = relationship(
        "AuthUser", uselist=True, back_populates="tenant"
    )
    employees: Mapped[List["Employees"]] = relationship(
        "Employees", uselist=True, back_populates="tenant"
    )

    def to_dict(self):
        return {"id": self.id, "name": self.name, "slug": self.slug}


class AuthUser(Base):
    __tablename__ = "auth_user"
    __table_args__ = (
        ForeignKeyConstraint(
            ["tenant_id"], ["tenant.id"], ondelete="CASCADE", name="fk_user_tenant"
        ),
        Index("uq_user_email", "email", unique=True),
        Index("fk_user_tenant", "tenant_id"),
    )

    id = mapped_column(Integer, primary_key=True)
    tenant_id = mapped_column(Integer, nullable=False)
    email = mapped_column(String(255), nullable=False)
    password_hash = mapped_column(LargeBinary(72), nullable=False)
    role = mapped_column(Enum("ADMIN", "EMPLOYEE", name="user_role"), nullable=False)
    name = mapped_column(String(255))
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="users")
    employee: Mapped[Optional["Employees"]] = relationship(
        "Employees", uselist=False, back_populates="user"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
        }


class Employees(Base):
    __tablename__ = "employees"
    __table_args__ = (
        ForeignKeyConstraint(
            ["tenant_id"], ["tenant.id"], ondelete="CASCADE", name="fk_emp_tenant"
        ),
        ForeignKeyConstraint(
            ["user_id"], ["auth_user.id"], ondelete="CASCADE", name="fk_emp_user"
        ),
        Index("fk_emp_tenant", "tenant_id"),
        Index("uq_emp_user", "user_id", unique=True),
    )

    id = mapped_column(Integer, primary_key=True)
    tenant_id = mapped_column(Integer, nullable=False)
    user_id = mapped_column(Integer, nullable=False)
    is_active = mapped_column(Boolean, nullable=False, default=True)
    is_sick = mapped_column(Boolean, nullable=False, default=False)
    sick_days = mapped_column(Integer, nullable=False, default=0)
    vacation_days_total = mapped_column(Integer)
    vacation_days_used = mapped_column(Integer, nullable=False, default=0)
    next_available_date = mapped_column(Date)
    # Comma separated weekday names, e.g. "Saturday,Sunday"
    days_off = mapped_column(String(100))
    work_start = mapped_column(String(5))
    work_end = mapped_column(String(5))
    break_start = mapped_column(String(5))
    break_end = mapped_column(String(5))
    salary_type = mapped_column(Enum("FIXED", "HOURLY", "COMMISSION", name="salary_type"))
    base_salary = mapped_column(DECIMAL(10, 2))
    payout_day = mapped_column(Integer)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="employees")
    user: Mapped["AuthUser"] = relationship("AuthUser", back_populates="employee")
    appointment: Mapped[List["Appointment"]] = relationship(
        "Appointment", uselist=True, back_populates="employee"
    )
    vacation_request: Mapped[List["VacationRequest"]] = relationship(
        "VacationRequest", uselist=True, back_populates="employee"
    )

    @property
    def display_name(self):
        if self.user is None:
            return f"Employee {self.id}"
        return self.user.name or self.user.email

    @property
    def days_off_list(self):
        if not self.days_off:
            return []
        return [day.strip() for day in self.days_off.split(",") if day.strip()]

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "user_id": self.user_id,
            "name": self.display_name,
            "email": self.user.email if self.user else None,
            "is_active": self.is_active,
            "is_sick": self.is_sick,
            "sick_days": self.sick_days,
            "vacation_days_total": self.vacation_days_total,
            "vacation_days_used": self.vacation_days_used,
            "next_available_date": _iso(self.next_available_date),
            "days_off": self.days_off_list,
            "work_start": self.work_start,
            "work_end": self.work_end,
            "break_start": self.break_start,
            "break_end": self.break_end,
            "salary_type": self.salary_type,
            "base_salary": _money(self.base_salary),
            "payout_day": self.payout_day,
        }


class Customers(Base):
    __tablename__ = "customers"
    __table_args__ = (
        ForeignKeyConstraint(
            ["tenant_id"], ["tenant.id"], ondelete="CASCADE", name="fk_cust_tenant"
        ),
        Index("fk_cust_tenant", "tenant_id"),
    )

    id = mapped_column(Integer, primary_key=True)
    tenant_id = mapped_column(Integer, nullable=False)
    first_name = mapped_column(String(100))
    last_name = mapped_column(String(100))
    email = mapped_column(String(255))
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    appointment: Mapped[List["Appointment"]] = relationship(
        "Appointment", uselist=True, back_populates="customer"
    )
    invoice: Mapped[List["Invoice"]] = relationship(
        "Invoice", uselist=True, back_populates="customer"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
        }


class Appointment(Base):
    __tablename__ = "appointment"
    __table_args__ = (
        ForeignKeyConstraint(
            ["tenant_id"], ["tenant.id"], ondelete="CASCADE", name="fk_ap_tenant"
        ),
        ForeignKeyConstraint(["customer_id"], ["customers.id"], name="fk_ap_customer"),
        ForeignKeyConstraint(["employee_id"], ["employees.id"], name="fk_ap_employee"),
        CheckConstraint("start_at < end_at", name="ck_ap_interval"),
        Index("idx_ap_employee_start", "employee_id", "start_at"),
        Index("idx_ap_tenant_status", "tenant_id", "status"),
    )

    id = mapped_column(Integer, primary_key=True)
    tenant_id = mapped_column(Integer, nullable=False)
    customer_id = mapped_column(Integer)
    employee_id = mapped_column(Integer)
    title = mapped_column(String(255))
    start_at = mapped_column(DateTime, nullable=False)
    end_at = mapped_column(DateTime, nullable=False)
    status = mapped_column(
        Enum(*APPOINTMENT_STATUSES, name="appointment_status"),
        nullable=False,
        default="PENDING",
    )
    notes = mapped_column(Text)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    customer: Mapped[Optional["Customers"]] = relationship(
        "Customers", back_populates="appointment"
    )
    employee: Mapped[Optional["Employees"]] = relationship(
        "Employees", back_populates="appointment"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "title": self.title,
            "customer_id": self.customer_id,
            "customer": self.customer.to_dict() if self.customer else None,
            "employee_id": self.employee_id,
            "employee_name": self.employee.display_name if self.employee else None,
            "start_at": _iso(self.start_at),
            "end_at": _iso(self.end_at),
            "status": self.status,
            "notes": self.notes,
        }


class VacationRequest(Base):
    __tablename__ = "vacation_request"
    __table_args__ = (
        ForeignKeyConstraint(
            ["employee_id"], ["employees.id"], ondelete="CASCADE", name="fk_vr_emp"
        ),
        Index("idx_vr_employee_status", "employee_id", "status"),
    )

    id = mapped_column(Integer, primary_key=True)
    employee_id = mapped_column(Integer, nullable=False)
    start_date = mapped_column(Date, nullable=False)
    end_date = mapped_column(Date, nullable=False)
    days = mapped_column(Integer, nullable=False)
    leave_reason = mapped_column(String(100), nullable=False)
    status = mapped_column(
        Enum("PENDING", "APPROVED", "REJECTED", name="vacation_status"),
        nullable=False,
        default="PENDING",
    )
    decision_note = mapped_column(Text)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    employee: Mapped["Employees"] = relationship(
        "Employees", back_populates="vacation_request"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "employee_name": self.employee.display_name if self.employee else None,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "days": self.days,
            "leave_reason": self.leave_reason,
            "status": self.status,
            "decision_note": self.decision_note,
            "created_at": _iso(self.created_at),
        }


class RecurringExpense(Base):
    __tablename__ = "recurring_expense"
    __table_args__ = (
        ForeignKeyConstraint(
            ["tenant_id"], ["tenant.id"], ondelete="CASCADE", name="fk_re_tenant"
        ),
        ForeignKeyConstraint(
            ["employee_id"], ["employees.id"], ondelete="SET NULL", name="fk_re_emp"
        ),
        Index("idx_re_due", "is_active", "next_run"),
    )

    id = mapped_column(Integer, primary_key=True)
    tenant_id = mapped_column(Integer, nullable=False)
    employee_id = mapped_column(Integer)
    name = mapped_column(String(255), nullable=False)
    amount = mapped_column(DECIMAL(10, 2), nullable=False)
    category = mapped_column(
        Enum(*EXPENSE_CATEGORIES, name="expense_category"), nullable=False
    )
    description = mapped_column(Text)
    interval = mapped_column(
        Enum(*RECURRING_INTERVALS, name="recurring_interval"), nullable=False
    )
    start_date = mapped_column(Date, nullable=False)
    next_run = mapped_column(Date, nullable=False)
    is_active = mapped_column(Boolean, nullable=False, default=True)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    expense: Mapped[List["Expense"]] = relationship(
        "Expense", uselist=True, back_populates="recurring_expense"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "employee_id": self.employee_id,
            "name": self.name,
            "amount": _money(self.amount),
            "category": self.category,
            "description": self.description,
            "interval": self.interval,
            "start_date": _iso(self.start_date),
            "next_run": _iso(self.next_run),
            "is_active": self.is_active,
        }


class Expense(Base):
    __tablename__ = "expense"
    __table_args__ = (
        ForeignKeyConstraint(
            ["tenant_id"], ["tenant.id"], ondelete="CASCADE", name="fk_ex_tenant"
        ),
        ForeignKeyConstraint(
            ["employee_id"], ["employees.id"], ondelete="SET NULL", name="fk_ex_emp"
        ),
        ForeignKeyConstraint(
            ["recurring_expense_id"],
            ["recurring_expense.id"],
            ondelete="SET NULL",
            name="fk_ex_recurring",
        ),
        # One materialized expense per template and period
        UniqueConstraint(
            "recurring_expense_id", "period_key", name="uq_ex_template_period"
        ),
        Index("idx_ex_tenant_date", "tenant_id", "date"),
    )

    id = mapped_column(Integer, primary_key=True)
    tenant_id = mapped_column(Integer, nullable=False)
    employee_id = mapped_column(Integer)
    recurring_expense_id = mapped_column(Integer)
    period_key = mapped_column(String(10))
    name = mapped_column(String(255), nullable=False)
    amount = mapped_column(DECIMAL(10, 2), nullable=False)
    category = mapped_column(
        Enum(*EXPENSE_CATEGORIES, name="expense_category"), nullable=False
    )
    description = mapped_column(Text)
    date = mapped_column(Date, nullable=False)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    recurring_expense: Mapped[Optional["RecurringExpense"]] = relationship(
        "RecurringExpense", back_populates="expense"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "employee_id": self.employee_id,
            "recurring_expense_id": self.recurring_expense_id,
            "name": self.name,
            "amount": _money(self.amount),
            "category": self.category,
            "description": self.description,
            "date": _iso(self.date),
        }


class Invoice(Base):
    __tablename__ = "invoice"
    __table_args__ = (
        ForeignKeyConstraint(
            ["tenant_id"], ["tenant.id"], ondelete="CASCADE", name="fk_inv_tenant"
        ),
        ForeignKeyConstraint(["customer_id"], ["customers.id"], name="fk_inv_customer"),
        Index("idx_inv_tenant_status_due", "tenant_id", "status", "due_date"),
    )

    id = mapped_column(Integer, primary_key=True)
    tenant_id = mapped_column(Integer, nullable=False)
    customer_id = mapped_column(Integer)
    number = mapped_column(String(50))
    amount = mapped_column(DECIMAL(10, 2), nullable=False)
    due_date = mapped_column(Date)
    status = mapped_column(
        Enum("PENDING", "PAID", "OVERDUE", "CANCELLED", name="invoice_status"),
        nullable=False,
        default="PENDING",
    )
    reminder_level = mapped_column(Integer, nullable=False, default=0)
    paid_at = mapped_column(DateTime)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    customer: Mapped[Optional["Customers"]] = relationship(
        "Customers", back_populates="invoice"
    )
    invoice_reminder: Mapped[List["InvoiceReminder"]] = relationship(
        "InvoiceReminder", uselist=True, back_populates="invoice"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "number": self.number,
            "customer": self.customer.to_dict() if self.customer else None,
            "amount": _money(self.amount),
            "due_date": _iso(self.due_date),
            "status": self.status,
            "reminder_level": self.reminder_level,
            "paid_at": _iso(self.paid_at),
        }


class InvoiceReminder(Base):
    __tablename__ = "invoice_reminder"
    __table_args__ = (
        ForeignKeyConstraint(
            ["tenant_id"], ["tenant.id"], ondelete="CASCADE", name="fk_rem_tenant"
        ),
        ForeignKeyConstraint(
            ["invoice_id"], ["invoice.id"], ondelete="CASCADE", name="fk_rem_invoice"
        ),
        CheckConstraint("level BETWEEN 1 AND 3", name="ck_rem_level"),
        Index("idx_rem_tenant_level_status", "tenant_id", "level", "status"),
    )

    id = mapped_column(Integer, primary_key=True)
    tenant_id = mapped_column(Integer, nullable=False)
    invoice_id = mapped_column(Integer, nullable=False)
    level = mapped_column(Integer, nullable=False)
    status = mapped_column(
        Enum("PENDING", "SENT", "FAILED", name="reminder_status"),
        nullable=False,
        default="PENDING",
    )
    method = mapped_column(String(20), nullable=False, default="manual")
    reminder_text = mapped_column("text", Text)
    reminder_date = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    sent_at = mapped_column(DateTime)

    invoice: Mapped["Invoice"] = relationship(
        "Invoice", back_populates="invoice_reminder"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "invoice_number": self.invoice.number if self.invoice else None,
            "level": self.level,
            "status": self.status,
            "method": self.method,
            "text": self.reminder_text,
            "reminder_date": _iso(self.reminder_date),
            "sent_at": _iso(self.sent_at),
        }
