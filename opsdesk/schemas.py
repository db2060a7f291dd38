"""Request body schemas. Unknown keys are rejected before any processing."""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Literal, Optional

import pydantic
from flask import request
from pydantic import BaseModel, ConfigDict, Field, field_validator

from opsdesk.errors import ValidationError
from opsdesk.models import APPOINTMENT_STATUSES, EXPENSE_CATEGORIES, RECURRING_INTERVALS


def naive_utc(value: datetime) -> datetime:
    # Stored timestamps are naive; aware input is normalized to UTC first
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class RequestSchema(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class SignupRequest(RequestSchema):
    tenant_name: str = Field(alias="tenantName", min_length=1)
    name: Optional[str] = None
    email: str = Field(min_length=3)
    password: str = Field(min_length=8)


class LoginRequest(RequestSchema):
    email: str
    password: str


class EmployeeCreateRequest(RequestSchema):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    password: str = Field(min_length=8)
    vacation_days_total: Optional[int] = Field(default=None, alias="vacationDaysTotal", ge=0)
    days_off: list[str] = Field(default_factory=list, alias="daysOff")
    work_start: Optional[str] = Field(default=None, alias="workStart")
    work_end: Optional[str] = Field(default=None, alias="workEnd")
    break_start: Optional[str] = Field(default=None, alias="breakStart")
    break_end: Optional[str] = Field(default=None, alias="breakEnd")
    salary_type: Optional[Literal["FIXED", "HOURLY", "COMMISSION"]] = Field(
        default=None, alias="salaryType"
    )
    base_salary: Optional[Decimal] = Field(default=None, alias="baseSalary", ge=0)
    payout_day: Optional[int] = Field(default=None, alias="payoutDay", ge=1, le=31)

    @field_validator("work_start", "work_end", "break_start", "break_end")
    @classmethod
    def validate_clock_time(cls, v):
        if v is not None:
            datetime.strptime(v, "%H:%M")
        return v


class ReassignRequest(RequestSchema):
    employee_id: int = Field(alias="employeeId")
    admin_override: bool = Field(default=False, alias="adminOverride")


class AvailabilityRequest(RequestSchema):
    employee_id: int = Field(alias="employeeId")
    start_time: datetime = Field(alias="startTime")
    end_time: datetime = Field(alias="endTime")

    @field_validator("start_time", "end_time")
    @classmethod
    def as_naive_utc(cls, v):
        return naive_utc(v)


class EmployeeUpdateRequest(RequestSchema):
    name: Optional[str] = Field(default=None, min_length=1)
    vacation_days_total: Optional[int] = Field(default=None, alias="vacationDaysTotal", ge=0)
    days_off: Optional[list[str]] = Field(default=None, alias="daysOff")
    work_start: Optional[str] = Field(default=None, alias="workStart")
    work_end: Optional[str] = Field(default=None, alias="workEnd")
    break_start: Optional[str] = Field(default=None, alias="breakStart")
    break_end: Optional[str] = Field(default=None, alias="breakEnd")
    salary_type: Optional[Literal["FIXED", "HOURLY", "COMMISSION"]] = Field(
        default=None, alias="salaryType"
    )
    base_salary: Optional[Decimal] = Field(default=None, alias="baseSalary", ge=0)
    payout_day: Optional[int] = Field(default=None, alias="payoutDay", ge=1, le=31)
    is_active: Optional[bool] = Field(default=None, alias="isActive")

    @field_validator("work_start", "work_end", "break_start", "break_end")
    @classmethod
    def validate_clock_time(cls, v):
        if v is not None:
            datetime.strptime(v, "%H:%M")
        return v


class AppointmentCreateRequest(RequestSchema):
    title: str = Field(min_length=1)
    start_time: datetime = Field(alias="startTime")
    end_time: datetime = Field(alias="endTime")
    customer_id: Optional[int] = Field(default=None, alias="customerId")
    employee_id: Optional[int] = Field(default=None, alias="employeeId")
    status: str = "PENDING"
    notes: Optional[str] = None
    admin_override: bool = Field(default=False, alias="adminOverride")

    @field_validator("start_time", "end_time")
    @classmethod
    def as_naive_utc(cls, v):
        return naive_utc(v)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v not in APPOINTMENT_STATUSES:
            raise ValueError(f"status must be one of {', '.join(APPOINTMENT_STATUSES)}")
        return v


class AppointmentUpdateRequest(RequestSchema):
    title: Optional[str] = Field(default=None, min_length=1)
    start_time: Optional[datetime] = Field(default=None, alias="startTime")
    end_time: Optional[datetime] = Field(default=None, alias="endTime")
    customer_id: Optional[int] = Field(default=None, alias="customerId")
    employee_id: Optional[int] = Field(default=None, alias="employeeId")
    status: Optional[str] = None
    notes: Optional[str] = None
    admin_override: bool = Field(default=False, alias="adminOverride")

    @field_validator("start_time", "end_time")
    @classmethod
    def as_naive_utc(cls, v):
        return naive_utc(v) if v is not None else v

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v is not None and v not in APPOINTMENT_STATUSES:
            raise ValueError(f"status must be one of {', '.join(APPOINTMENT_STATUSES)}")
        return v


class VacationSubmitRequest(RequestSchema):
    start_date: date = Field(alias="startDate")
    end_date: date = Field(alias="endDate")
    leave_reason: str = Field(alias="leaveReason", min_length=1)


class VacationDecisionRequest(RequestSchema):
    request_id: int = Field(alias="requestId")
    action: Literal["approve", "deny"]
    reason: Optional[str] = None


class SickRequest(RequestSchema):
    action: Literal["report", "confirm", "recover"]
    employee_id: Optional[int] = Field(default=None, alias="employeeId")


class RecurringExpenseCreateRequest(RequestSchema):
    name: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    category: str
    interval: str
    start_date: date = Field(alias="startDate")
    description: Optional[str] = None
    employee_id: Optional[int] = Field(default=None, alias="employeeId")
    is_active: bool = Field(default=True, alias="isActive")

    @field_validator("category")
    @classmethod
    def validate_category(cls, v):
        if v not in EXPENSE_CATEGORIES:
            raise ValueError(f"category must be one of {', '.join(EXPENSE_CATEGORIES)}")
        return v

    @field_validator("interval")
    @classmethod
    def validate_interval(cls, v):
        if v not in RECURRING_INTERVALS:
            raise ValueError(f"interval must be one of {', '.join(RECURRING_INTERVALS)}")
        return v


class RecurringExpenseUpdateRequest(RequestSchema):
    name: Optional[str] = Field(default=None, min_length=1)
    amount: Optional[Decimal] = Field(default=None, gt=0)
    description: Optional[str] = None
    is_active: Optional[bool] = Field(default=None, alias="isActive")


class ReminderCreateRequest(RequestSchema):
    invoice_id: int = Field(alias="invoiceId")
    level: int
    method: str = "manual"
    text: Optional[str] = Field(default=None, alias="aiText")


class ReminderUpdateRequest(RequestSchema):
    status: Literal["SENT", "FAILED"]


def parse_body(schema):
    """Validate the JSON body against ``schema`` or raise ValidationError."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    try:
        return schema.model_validate(data)
    except pydantic.ValidationError as e:
        details = {
            ".".join(str(part) for part in err["loc"]) or "body": err["msg"]
            for err in e.errors()
        }
        raise ValidationError("Invalid request body", details=details)
