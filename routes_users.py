# routes_users.py
from flask import Blueprint, g, jsonify, request

from auth import login_required, require_self_or_admin
from errors import BadRequest, Forbidden, Unauthorized
from models import UserRole
from services import json_body, log_action, user_service

bp = Blueprint("users", __name__)


@bp.post("")
def register():
    data = json_body()
    data["role"] = UserRole.CUSTOMER  # admins are promoted, never self-registered
    user = user_service().create(data)
    log_action(f"User {user.id} registered")
    return jsonify(user.to_dict()), 201


@bp.get("")
@login_required
def list_users():
    return jsonify([u.to_dict() for u in user_service().find_all()])


@bp.get("/<int:user_id>")
@login_required
def get_user(user_id):
    return jsonify(user_service().find_one(user_id).to_dict())


@bp.get("/email/<email>")
@login_required
def get_user_by_email(email):
    return jsonify(user_service().find_by_email(email).to_dict())


@bp.put("/<int:user_id>")
@login_required
def update_user(user_id):
    require_self_or_admin(user_id)
    data = json_body()
    data.pop("status", None)
    if data.get("role") is not None and g.current_user["role"] != UserRole.ADMIN:
        raise Forbidden("Only admins can change roles")
    return jsonify(user_service().update(user_id, data).to_dict())


@bp.delete("/deactivate/<int:user_id>")
@login_required
def deactivate_user(user_id):
    require_self_or_admin(user_id)
    return jsonify(user_service().deactivate(user_id))


@bp.delete("/<int:user_id>")
@login_required
def delete_user(user_id):
    require_self_or_admin(user_id)
    return jsonify(user_service().remove(user_id))


@bp.put("/change-password/<int:user_id>")
@login_required
def change_password(user_id):
    require_self_or_admin(user_id)
    data = json_body()
    result = user_service().change_password(
        user_id, data.get("current_password"), data.get("new_password")
    )
    return jsonify(result)


@bp.post("/validate-password")
def validate_password():
    data = json_body()
    user = user_service().validate_password(data.get("email"), data.get("password"))
    if not user:
        raise Unauthorized("Invalid credentials")
    return jsonify(user.to_dict())


# ---------- Profile photo ----------

@bp.post("/<int:user_id>/photo")
@login_required
def upload_photo(user_id):
    require_self_or_admin(user_id)
    file = request.files.get("file")
    if not file or not file.filename:
        raise BadRequest("No file uploaded")
    user = user_service().upload_photo(user_id, file.read(), file.mimetype, file.filename)
    log_action(f"Photo uploaded for user {user_id}")
    return jsonify(user.to_dict())
