from flask import current_app, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from quizhub import db
from quizhub.auth import auth_bp
from quizhub.auth.models import User
from quizhub.auth.utils import is_valid_email, verify_password


def _user_payload(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "usn": user.usn,
    }


@auth_bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    remember = data.get("remember", False)

    if not email or not password:
        return jsonify({"success": False, "error": "Email and password are required"}), 400

    if not is_valid_email(email):
        return jsonify({"success": False, "error": "Please provide a valid email address"}), 400

    user = db.session.query(User).filter_by(email=email).first()
    if user is None or not verify_password(password, user.password_hash):
        current_app.logger.info(f"Failed login for {email}")
        return jsonify({"success": False, "error": "Invalid email or password"}), 401

    login_user(user, remember=bool(remember))
    return jsonify({"success": True, "message": "Logged in", "user": _user_payload(user)}), 200


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout_route():
    logout_user()
    return jsonify({"success": True, "message": "Logged out"}), 200


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify({"success": True, "user": _user_payload(current_user)}), 200
