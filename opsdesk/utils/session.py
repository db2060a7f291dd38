"""
Session context for every request.

The caller's tenant and role come from the signed bearer token issued at
login. Tenant ids are never accepted from the request body or query string.
"""

import datetime
import hmac
from dataclasses import dataclass
from functools import wraps

import jwt
from flask import current_app, g, request

from opsdesk.errors import Forbidden, Unauthorized

ADMIN = "ADMIN"
EMPLOYEE = "EMPLOYEE"
VIEW_MODE_HEADER = "X-View-Mode"


@dataclass(frozen=True)
class SessionContext:
    user_id: int
    tenant_id: int
    role: str
    effective_role: str

    @property
    def is_admin(self) -> bool:
        return self.effective_role == ADMIN


def effective_role(actual_role: str, view_mode: str = None) -> str:
    """
    Role a request acts with. An admin may look at the app as an employee
    for one request; nobody can view it as a higher role than they hold.
    """
    if actual_role == ADMIN and (view_mode or "").lower() == "employee":
        return EMPLOYEE
    return actual_role


def issue_token(user) -> str:
    payload = {
        "user_id": user.id,
        "tenant_id": user.tenant_id,
        "role": user.role,
        "exp": datetime.datetime.now(datetime.timezone.utc)
        + datetime.timedelta(hours=current_app.config["TOKEN_TTL_HOURS"]),
    }
    return jwt.encode(payload, current_app.config["SECRET_KEY"], algorithm="HS256")


def decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(
            token, current_app.config["SECRET_KEY"], algorithms=["HS256"]
        )
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Session expired")
    except jwt.InvalidTokenError:
        raise Unauthorized("Invalid session token")

    if not payload.get("tenant_id") or not payload.get("user_id"):
        raise Unauthorized("Invalid session token")
    return payload


def _bearer_value():
    header = request.headers.get("Authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        return None
    return value.strip()


def resolve_session() -> SessionContext:
    token = _bearer_value()
    if not token:
        raise Unauthorized("Not authorized")

    payload = decode_token(token)
    role = payload.get("role")
    return SessionContext(
        user_id=payload["user_id"],
        tenant_id=payload["tenant_id"],
        role=role,
        effective_role=effective_role(role, request.headers.get(VIEW_MODE_HEADER)),
    )


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        g.session = resolve_session()
        return view(*args, **kwargs)

    return wrapper


def admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        g.session = resolve_session()
        if not g.session.is_admin:
            raise Forbidden("Not authorized. Administrator role required.")
        return view(*args, **kwargs)

    return wrapper


def cron_secret_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        secret = current_app.config.get("CRON_SECRET")
        provided = _bearer_value()
        if not secret or not provided or not hmac.compare_digest(provided, secret):
            raise Unauthorized("Unauthorized")
        return view(*args, **kwargs)

    return wrapper
