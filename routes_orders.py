# routes_orders.py
from flask import Blueprint, g, jsonify

from auth import login_required, require_self_or_admin, roles_required
from errors import BadRequest
from models import UserRole
from services import (
    arg, json_body, log_action, order_service, to_datetime, to_int, to_quantity,
)

bp = Blueprint("orders", __name__)


def _orders(orders):
    return jsonify([o.to_dict() for o in orders])


def _owned(order_id):
    """Load the order, refusing customers who do not own it."""
    order = order_service().find_one(order_id)
    require_self_or_admin(order.user_id)
    return order


# ---------- Orders ----------

@bp.post("")
@login_required
def create_order():
    data = json_body()
    user_id = to_int(data.get("user_id", g.current_user["user_id"]), "user_id")
    require_self_or_admin(user_id)
    raw_items = data.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise BadRequest("'items' must be a non-empty list")

    items = []
    for i, entry in enumerate(raw_items):
        if not isinstance(entry, dict):
            raise BadRequest(f"items[{i}] must be an object")
        items.append({
            "product_id": to_int(entry.get("product_id"), f"items[{i}].product_id"),
            "quantity": to_quantity(entry.get("quantity"), f"items[{i}].quantity"),
        })

    order = order_service().create(user_id, items, status=data.get("status"))
    log_action(f"Order {order.id} created for user {user_id}")
    return jsonify(order.to_dict()), 201


@bp.get("")
@roles_required(UserRole.ADMIN)
def list_orders():
    return _orders(order_service().find_all())


@bp.get("/<int:order_id>")
@login_required
def get_order(order_id):
    return jsonify(_owned(order_id).to_dict())


@bp.get("/user/<int:user_id>")
@login_required
def orders_by_user(user_id):
    require_self_or_admin(user_id)
    return _orders(order_service().find_by_user(user_id))


@bp.get("/status/<status>")
@roles_required(UserRole.ADMIN)
def orders_by_status(status):
    return _orders(order_service().find_by_status(status))


@bp.put("/<int:order_id>")
@login_required
def update_order(order_id):
    _owned(order_id)
    data = json_body()
    if data.get("user_id") is not None:
        data["user_id"] = to_int(data["user_id"], "user_id")
        require_self_or_admin(data["user_id"])
    order = order_service().update(order_id, data)
    return jsonify(order.to_dict())


@bp.patch("/<int:order_id>/status")
@login_required
def update_order_status(order_id):
    _owned(order_id)
    status = json_body().get("status")
    if not status:
        raise BadRequest("'status' is required")
    order = order_service().update_status(order_id, status)
    log_action(f"Order {order_id} moved to {status}")
    return jsonify(order.to_dict())


@bp.patch("/<int:order_id>/cancel")
@login_required
def cancel_order(order_id):
    _owned(order_id)
    result = order_service().cancel(order_id)
    log_action(f"Order {order_id} cancelled")
    return jsonify(result)


@bp.delete("/<int:order_id>")
@roles_required(UserRole.ADMIN)
def delete_order(order_id):
    return jsonify(order_service().remove(order_id))


# ---------- Reporting ----------

@bp.get("/analytics/stats")
@roles_required(UserRole.ADMIN)
def order_stats():
    stats = order_service().get_stats()
    stats["total_sales"] = str(stats["total_sales"])
    return jsonify(stats)


@bp.get("/recent/list")
@roles_required(UserRole.ADMIN)
def recent_orders():
    limit = arg("limit", to_int, minimum=1, maximum=100) or 10
    return _orders(order_service().get_recent_orders(limit))


@bp.get("/search/daterange")
@roles_required(UserRole.ADMIN)
def orders_by_date_range():
    start = arg("start_date", to_datetime)
    end = arg("end_date", to_datetime, end_of_day=True)
    if start is None or end is None:
        raise BadRequest("'start_date' and 'end_date' are required")
    return _orders(order_service().find_by_date_range(start, end))


@bp.get("/<int:order_id>/total")
@login_required
def order_total(order_id):
    _owned(order_id)
    total = order_service().calculate_order_total(order_id)
    return jsonify({"order_id": order_id, "total": str(total)})


# ---------- Items ----------

@bp.post("/<int:order_id>/items")
@login_required
def add_item(order_id):
    _owned(order_id)
    data = json_body()
    item = order_service().add_item_to_order(
        order_id,
        to_int(data.get("product_id"), "product_id"),
        to_quantity(data.get("quantity")),
    )
    return jsonify(item.to_dict()), 201


@bp.delete("/<int:order_id>/items/<int:item_id>")
@login_required
def remove_item(order_id, item_id):
    _owned(order_id)
    return jsonify(order_service().remove_item_from_order(order_id, item_id))


@bp.patch("/<int:order_id>/items/<int:item_id>/quantity")
@login_required
def update_item_quantity(order_id, item_id):
    _owned(order_id)
    quantity = to_quantity(json_body().get("quantity"))
    item = order_service().update_item_quantity(order_id, item_id, quantity)
    return jsonify(item.to_dict())
