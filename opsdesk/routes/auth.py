import re

import bcrypt
from flask import Blueprint, g, jsonify
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from opsdesk.errors import NotFoundError, Unauthorized, ValidationError
from opsdesk.extensions import db
from opsdesk.models import AuthUser, Employees, Tenant
from opsdesk.schemas import LoginRequest, SignupRequest, parse_body
from opsdesk.utils.session import issue_token, login_required

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def hash_password(password: str) -> bytes:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "tenant"


def unique_slug(name: str) -> str:
    base = slugify(name)
    slug = base
    suffix = 1
    while db.session.scalar(select(Tenant.id).where(Tenant.slug == slug)):
        suffix += 1
        slug = f"{base}-{suffix}"
    return slug


@auth_bp.route("/signup", methods=["POST"])
def signup():
    """
    Register a new business
    ---
    tags:
      - Authentication
    summary: Create a tenant and its first administrator
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [tenantName, email, password]
          properties:
            tenantName:
              type: string
              example: Salon Fuerst
            name:
              type: string
            email:
              type: string
              format: email
            password:
              type: string
              minLength: 8
    responses:
      201:
        description: Tenant and admin created
      400:
        description: Invalid body or email already registered
    """
    data = parse_body(SignupRequest)
    email = data.email.strip().lower()

    existing = db.session.scalar(select(AuthUser).where(AuthUser.email == email))
    if existing:
        raise ValidationError("Email already exists")

    try:
        tenant = Tenant(name=data.tenant_name, slug=unique_slug(data.tenant_name))
        db.session.add(tenant)
        db.session.flush()

        admin = AuthUser(
            tenant_id=tenant.id,
            email=email,
            name=data.name,
            password_hash=hash_password(data.password),
            role="ADMIN",
        )
        db.session.add(admin)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError("Email already exists")

    return (
        jsonify(
            {
                "status": "success",
                "message": "Tenant registered successfully",
                "tenant": tenant.to_dict(),
                "user": admin.to_dict(),
                "token": issue_token(admin),
            }
        ),
        201,
    )


@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Log in
    ---
    tags:
      - Authentication
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [email, password]
          properties:
            email:
              type: string
            password:
              type: string
    responses:
      200:
        description: Bearer token for the session
      401:
        description: Invalid credentials
    """
    data = parse_body(LoginRequest)

    user = db.session.scalar(
        select(AuthUser).where(AuthUser.email == data.email.strip().lower())
    )
    if not user or not user.password_hash:
        raise Unauthorized("Invalid credentials")

    stored_hash = user.password_hash
    if isinstance(stored_hash, str):
        stored_hash = stored_hash.encode("utf-8")

    if not bcrypt.checkpw(data.password.encode("utf-8"), stored_hash):
        raise Unauthorized("Invalid credentials")

    if user.employee is not None and not user.employee.is_active:
        raise Unauthorized("Account is deactivated")

    return jsonify(
        {
            "status": "success",
            "message": "Login successful",
            "token": issue_token(user),
            "user": user.to_dict(),
        }
    ), 200


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    user = db.session.get(AuthUser, g.session.user_id)
    if not user or user.tenant_id != g.session.tenant_id:
        raise NotFoundError("User not found")

    employee = db.session.scalar(
        select(Employees).where(Employees.user_id == user.id)
    )
    return jsonify(
        {
            "user": user.to_dict(),
            "tenant_id": g.session.tenant_id,
            "role": g.session.role,
            "effective_role": g.session.effective_role,
            "employee_id": employee.id if employee else None,
        }
    ), 200
