# routes_products.py
from flask import Blueprint, jsonify

from auth import login_required, roles_required
from errors import BadRequest
from models import UserRole
from services import (
    arg, json_body, log_action, product_service, to_bool, to_datetime, to_decimal, to_int,
)

bp = Blueprint("products", __name__)


def _filters():
    return {
        "name": arg("name"),
        "description": arg("description"),
        "price_min": arg("price_min", to_decimal),
        "price_max": arg("price_max", to_decimal),
        "stock_min": arg("stock_min", to_int),
        "stock_max": arg("stock_max", to_int),
        "available": arg("available", to_bool),
        "created_from": arg("created_from", to_datetime),
        "created_to": arg("created_to", to_datetime, end_of_day=True),
        "sort_by": arg("sort_by"),
        "sort_dir": arg("sort_dir"),
        "limit": arg("limit", to_int, minimum=1),
        "offset": arg("offset", to_int, minimum=0),
    }


def _product_payload(data):
    if data.get("price") is not None:
        data["price"] = to_decimal(data["price"], "price")
    if data.get("stock") is not None:
        data["stock"] = to_int(data["stock"], "stock")
    return data


@bp.post("")
@roles_required(UserRole.ADMIN)
def create_product():
    product = product_service().create(_product_payload(json_body()))
    log_action(f"Product {product.id} created")
    return jsonify(product.to_dict()), 201


@bp.get("")
@login_required
def list_products():
    return jsonify([p.to_dict() for p in product_service().find_all(_filters())])


@bp.get("/<int:product_id>")
@login_required
def get_product(product_id):
    return jsonify(product_service().find_one(product_id).to_dict())


@bp.put("/<int:product_id>")
@roles_required(UserRole.ADMIN)
def update_product(product_id):
    product = product_service().update(product_id, _product_payload(json_body()))
    return jsonify(product.to_dict())


@bp.delete("/<int:product_id>")
@roles_required(UserRole.ADMIN)
def delete_product(product_id):
    return jsonify(product_service().remove(product_id))


@bp.get("/search/name")
@login_required
def search_by_name():
    term = arg("name")
    if not term:
        raise BadRequest("'name' is required")
    return jsonify([p.to_dict() for p in product_service().find_by_name(term)])


@bp.get("/stock/low")
@login_required
def low_stock():
    threshold = arg("limit", to_int, minimum=0)
    products = product_service().find_low_stock(10 if threshold is None else threshold)
    return jsonify([p.to_dict() for p in products])


@bp.patch("/<int:product_id>/stock")
@roles_required(UserRole.ADMIN)
def update_stock(product_id):
    stock = to_int(json_body().get("stock"), "stock", minimum=0)
    product = product_service().update_stock(product_id, stock)
    log_action(f"Stock of product {product_id} set to {stock}")
    return jsonify(product.to_dict())


@bp.get("/count/total")
@login_required
def count_products():
    return jsonify({"count": product_service().count(_filters())})
