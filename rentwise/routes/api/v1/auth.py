from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from rentwise.extensions import limiter
from rentwise.services import AuthService

api_auth_bp = Blueprint("api_auth", __name__)


def _user_payload(user):
    return {"id": user.id, "full_name": user.full_name, "email": user.email, "role": user.role}


@api_auth_bp.post("/register")
def api_register():
    payload = request.get_json(silent=True) or {}
    user = AuthService.register_user(
        full_name=payload.get("full_name", ""),
        email=payload.get("email", ""),
        password=payload.get("password", ""),
        role=payload.get("role", ""),
    )
    return jsonify(_user_payload(user)), 201


@api_auth_bp.post("/login")
@limiter.limit("10 per minute")
def api_login():
    payload = request.get_json(silent=True) or {}
    user = AuthService.authenticate_user(payload.get("email", ""), payload.get("password", ""))
    login_user(user)
    return jsonify({**_user_payload(user), "token": AuthService.issue_token(user)})


@api_auth_bp.post("/logout")
@login_required
def api_logout():
    logout_user()
    return jsonify({"ok": True})


@api_auth_bp.get("/me")
@login_required
def api_me():
    return jsonify(_user_payload(current_user))
