# routes_auth.py
from flask import Blueprint, current_app, g, jsonify, request

from auth import bearer_token, get_auth_service, login_required
from errors import BadRequest, Unauthorized
from services import json_body

bp = Blueprint("auth", __name__)


@bp.post("/login")
def login():
    data = json_body()
    identifier = data.get("email") or data.get("username")
    password = data.get("password")
    if not isinstance(identifier, str) or not isinstance(password, str):
        raise BadRequest("Email (or username) and password are required")
    identifier = identifier.strip()
    if not identifier or not password:
        raise BadRequest("Email (or username) and password are required")

    auth = get_auth_service()
    user = auth.validate_user(identifier, password)
    if not user:
        current_app.logger.info(f"Failed login for {identifier}")
        raise Unauthorized("Invalid credentials")
    return jsonify(auth.login(user))


@bp.post("/refresh")
def refresh():
    token = bearer_token()
    if not token:
        data = request.get_json(silent=True)
        token = data.get("refresh_token") if isinstance(data, dict) else None
    if token is not None and not isinstance(token, str):
        raise BadRequest("'refresh_token' must be a string")
    return jsonify(get_auth_service().refresh_token(token))


@bp.get("/me")
@login_required
def me():
    return jsonify(get_auth_service().get_me(g.current_user["user_id"]))
