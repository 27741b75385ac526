from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import (
    create_access_token, create_refresh_token, jwt_required, get_jwt_identity,
)
from academy.extensions import db
from academy.models import User
from academy.utils.auth import get_current_user

bp = Blueprint("auth", __name__)


def make_tokens(user):
    claims = {"role": user.role}
    return {
        "access_token": create_access_token(identity=str(user.id), additional_claims=claims),
        "refresh_token": create_refresh_token(identity=str(user.id), additional_claims=claims),
    }


def validate_password(password, confirm_password):
    min_length = current_app.config.get("MIN_PASSWORD_LENGTH", 6)
    if not password:
        return "Password is required"
    if password != confirm_password:
        return "Passwords do not match"
    if len(password) < min_length:
        return f"Password must be at least {min_length} characters"
    return None


def login_redirect(user, requested=None):
    if user.is_admin:
        return "/admin"
    # Only same-site paths are honoured
    if requested and requested.startswith("/") and not requested.startswith("//"):
        return requested
    return "/dashboard"


@bp.route("/signup", methods=["POST"])
def signup():
    data = request.get_json() or {}
    full_name = str(data.get("full_name") or data.get("name") or "").strip()
    email = str(data.get("email") or "").strip().lower()
    password = data.get("password")
    confirm_password = data.get("confirm_password")

    if not all([full_name, email, password]):
        return jsonify({"error": "Missing required fields"}), 400

    error = validate_password(password, confirm_password)
    if error:
        return jsonify({"error": error}), 400

    if User.query.filter_by(email=email).first():
        return jsonify({"error": "Email already exists."}), 409

    role = "admin" if email in current_app.config.get("ADMIN_EMAILS", []) else "student"
    user = User(full_name=full_name, email=email, role=role)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    current_app.logger.info(f"User {user.id} signed up as {role}")

    return jsonify({
        "message": "Account created",
        "user": user.to_dict(),
        **make_tokens(user),
    }), 201


@bp.route("/login", methods=["POST"])
def login():
    data = request.get_json() or {}
    email = str(data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(password):
        return jsonify({"error": "Invalid credentials"}), 401

    return jsonify({
        "message": "Login successful",
        "user": user.to_dict(),
        "redirect": login_redirect(user, data.get("redirect")),
        **make_tokens(user),
    }), 200


@bp.route("/refresh", methods=["POST"])
@jwt_required(refresh=True)
def refresh():
    user = db.session.get(User, int(get_jwt_identity()))
    if not user:
        return jsonify({"error": "User not found"}), 404
    access_token = create_access_token(
        identity=str(user.id), additional_claims={"role": user.role}
    )
    return jsonify({"access_token": access_token}), 200


@bp.route("/me", methods=["GET"])
@jwt_required()
def me():
    user = get_current_user()
    if not user:
        return jsonify({"error": "User not found"}), 404
    return jsonify({**user.to_dict(), "has_password": user.has_password}), 200


@bp.route("/password", methods=["PUT"])
@jwt_required()
def update_password():
    """Set or change the caller's password; invited users arrive here with an invite token."""
    user = get_current_user()
    if not user:
        return jsonify({"error": "User not found"}), 404

    data = request.get_json() or {}
    error = validate_password(data.get("password"), data.get("confirm_password"))
    if error:
        return jsonify({"error": error}), 400

    user.set_password(data["password"])
    db.session.commit()
    current_app.logger.info(f"Password updated for user {user.id}")
    return jsonify({"message": "Password updated successfully"}), 200
