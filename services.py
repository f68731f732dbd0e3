"""Service wiring and small request-parsing helpers shared by the blueprints."""
from datetime import datetime, time
from decimal import Decimal, InvalidOperation

from flask import current_app, request

from errors import BadRequest
from models import db
from orders import MAX_ITEM_QUANTITY, OrderService
from products import ProductService
from storage import get_storage
from users import UserService


def order_service():
    return OrderService(db.session)


def product_service():
    return ProductService(db.session)


def user_service():
    return UserService(db.session, storage=get_storage())


# ---------- request parsing ----------

def json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest("Expected a JSON object body")
    return data


def to_int(value, field, minimum=None, maximum=None):
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise BadRequest(f"'{field}' must be an integer")
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise BadRequest(f"'{field}' must be an integer")
    if minimum is not None and number < minimum:
        raise BadRequest(f"'{field}' must be at least {minimum}")
    if maximum is not None and number > maximum:
        raise BadRequest(f"'{field}' must be at most {maximum}")
    return number


def to_quantity(value, field="quantity"):
    return to_int(value, field, minimum=1, maximum=MAX_ITEM_QUANTITY)


def to_decimal(value, field):
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise BadRequest(f"'{field}' must be a number")


def to_bool(value, field):
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "1", "yes"):
        return True
    if text in ("false", "0", "no"):
        return False
    raise BadRequest(f"'{field}' must be true or false")


def to_datetime(value, field, end_of_day=False):
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        raise BadRequest(f"'{field}' must be an ISO date (YYYY-MM-DD)")
    # a bare date covers the whole day when used as an upper bound
    if end_of_day and len(value) <= 10:
        parsed = datetime.combine(parsed.date(), time.max)
    return parsed


def arg(name, parser=None, **kwargs):
    """Optional query-string argument, parsed when present."""
    value = request.args.get(name)
    if value is None or value == "":
        return None
    return parser(value, name, **kwargs) if parser else value


def log_action(message):
    current_app.logger.info(message)
