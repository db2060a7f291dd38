import datetime

from flask import request

from opsdesk.errors import ValidationError
from opsdesk.schemas import naive_utc


def date_arg(name, default=None):
    value = request.args.get(name)
    if not value:
        return default
    try:
        return datetime.date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"Invalid '{name}' format. Expected YYYY-MM-DD.")


def datetime_arg(name, required=False):
    value = request.args.get(name)
    if not value:
        if required:
            raise ValidationError(f"Missing required query parameter: '{name}'")
        return None
    try:
        return naive_utc(datetime.datetime.fromisoformat(value))
    except ValueError:
        raise ValidationError(f"Invalid '{name}' format. Expected ISO 8601.")


def int_arg(name):
    value = request.args.get(name)
    if value in (None, ""):
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"Invalid '{name}'. Expected an integer.")
