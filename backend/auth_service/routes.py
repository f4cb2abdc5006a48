"""
Authentication service route handlers.

Provides routes for:
- User registration
- User login (email, or legacy username)
- Password reset (token gated) and authenticated password change
- Profile retrieval and update (/me)
- Admin user listing and deletion

Token logic lives in `auth_service.utils`, permission checks in
`auth_service.guard`, and all storage in `database.ledger`.
"""

import logging
from typing import Any, Dict, Tuple

from flask import Blueprint, Response, current_app, jsonify, request

from backend.auth_service.guard import (
    admin_required,
    current_claims,
    login_required,
    require_self_or_admin,
)
from backend.auth_service.utils import create_token
from backend.common.errors import ValidationError
from backend.common.http import get_ledger, json_body, str_field
from backend.database.ledger import PROFILE_FIELDS

auth_bp = Blueprint("auth", __name__)


# --- REQUEST LOGGING ---
@auth_bp.before_request
def before_request() -> None:
    """
    Log every incoming request method and path to the authentication service.
    Headers are left out since they carry bearer tokens.
    """
    logging.info(f"[Auth] Incoming {request.method} {request.path}")


@auth_bp.after_request
def after_request(response: Response) -> Response:
    """
    Log the response status code for every request.

    Args:
        response (Response): The Flask response object.

    Returns:
        Response: The passed-through response object.
    """
    logging.info(f"[Auth] Response {response.status}")
    return response


def deliver_reset_token(email: str, token: str) -> None:
    """
    Hand a password reset token to the account owner.

    Mail delivery is plugged in as app.config["RESET_TOKEN_SENDER"], a
    callable taking (email, token). Without it the token is logged in debug
    mode and dropped, with a warning, otherwise.
    """
    sender = current_app.config.get("RESET_TOKEN_SENDER")
    if sender:
        sender(email, token)
        return
    if current_app.debug:
        logging.info(f"[Auth] Reset token for {email}: {token}")
    else:
        logging.warning(f"[Auth] RESET_TOKEN_SENDER not configured; reset token for {email} was not delivered")


# --- REGISTER ---
@auth_bp.route("/register", methods=["POST"])
def register() -> Tuple[Response, int]:
    """
    Register a new user in the system.

    Expects a JSON body with:
    - email (str): Unique email address.
    - password (str)
    - username (str, optional): Unique legacy login name.
    - full_name, student_id, faculty, phone_number, bio (optional)

    The global role is never taken from the request; new accounts are "user".

    Returns:
        201: JSON with the user and a new JWT token.
        400: Missing fields or invalid input.
        409: Email or username already exists.
    """
    data: Dict[str, Any] = json_body()
    email = str_field(data, "email")
    password = str_field(data, "password")

    if not email or not password:
        return jsonify({"error": "email and password required"}), 400

    profile = {k: data[k] for k in PROFILE_FIELDS if k in data}

    ledger = get_ledger()
    user = ledger.create_user(email, password, username=str_field(data, "username"), **profile)
    token = create_token(user["user_id"], user["role"])

    return jsonify({"user": user, "token": token}), 201


# --- LOGIN ---
@auth_bp.route("/login", methods=["POST"])
def login() -> Tuple[Response, int]:
    """
    Authenticate a user and return a JWT.

    Expects a JSON body with:
    - email (str) or username (str)
    - password (str)

    Returns:
        200: JSON with the user and JWT token.
        400: Missing credentials.
        401: Invalid credentials (unknown account or wrong password).
    """
    data: Dict[str, Any] = json_body()
    email = str_field(data, "email")
    username = str_field(data, "username")
    password = str_field(data, "password")

    if (not email and not username) or not password:
        return jsonify({"error": "Provide email or username and password"}), 400

    user, token = get_ledger().authenticate(password, email=email, username=username)

    return jsonify({"user": user, "token": token}), 200


# --- PASSWORD RESET ---
@auth_bp.route("/forgot-password", methods=["POST"])
def forgot_password() -> Tuple[Response, int]:
    """
    Start a password reset for an email address.

    The response is the same whether or not the email is registered.

    Returns:
        202: Reset accepted.
        400: Missing email.
    """
    data: Dict[str, Any] = json_body()
    email = (str_field(data, "email") or "").strip().lower()
    if not email:
        return jsonify({"error": "email required"}), 400

    token = get_ledger().request_password_reset(email)
    if token:
        deliver_reset_token(email, token)

    return jsonify({"message": "If the email is registered, a reset token has been sent"}), 202


@auth_bp.route("/change-password", methods=["PUT"])
def change_password() -> Tuple[Response, int]:
    """
    Set a new password with a reset token from /forgot-password.

    Expects JSON: { "email": str, "resetToken": str, "newPassword": str }

    Returns:
        200: Password updated.
        400: Missing fields.
        401: Invalid, expired or already used reset token.
    """
    data: Dict[str, Any] = json_body()
    email = str_field(data, "email")
    reset_token = str_field(data, "resetToken")
    new_password = str_field(data, "newPassword")

    if not email or not reset_token or not new_password:
        return jsonify({"error": "email, resetToken and newPassword required"}), 400

    get_ledger().reset_password(email, reset_token, new_password)

    return jsonify({"message": "Password updated"}), 200


@auth_bp.route("/users/<int:user_id>/password", methods=["PUT"])
def change_user_password(user_id: int) -> Tuple[Response, int]:
    """
    Authenticated password change, by the user themself or a global admin.

    Expects JSON: { "newPassword": str, "currentPassword": str (optional) }

    Returns:
        200: Password changed.
        400: Missing newPassword or wrong currentPassword.
        401/403: Authentication or permission failure.
        404: Unknown user.
    """
    require_self_or_admin(user_id)

    data: Dict[str, Any] = json_body()
    new_password = str_field(data, "newPassword")
    if not new_password:
        raise ValidationError("newPassword required")

    get_ledger().change_password(user_id, new_password, str_field(data, "currentPassword"))

    return jsonify({"message": "Password changed"}), 200


# --- CURRENT USER ---
@auth_bp.route("/me", methods=["GET"])
@login_required
def get_current_user() -> Tuple[Response, int]:
    """
    Retrieve the current user's profile with memberships and registrations.

    Returns:
        200: User profile object.
        401: Authentication failure.
        404: User not found in DB (account deleted after token issue).
    """
    profile = get_ledger().get_profile(current_claims().user_id)
    return jsonify(profile), 200


@auth_bp.route("/me", methods=["PUT"])
@login_required
def update_current_user() -> Tuple[Response, int]:
    """
    Update profile attributes of the current user.

    Allowed fields: username, full_name, student_id, faculty, phone_number, bio

    Returns:
        200: Updated user object.
        400: No valid fields provided.
        409: Username already taken.
    """
    data: Dict[str, Any] = json_body()
    user = get_ledger().update_profile(current_claims().user_id, data)
    return jsonify(user), 200


# --- USERS (ADMIN ONLY) ---
@auth_bp.route("/users", methods=["GET"])
@admin_required
def list_users() -> Tuple[Response, int]:
    """
    Admin-only endpoint to list all users in the system.

    Returns:
        200: List of user objects (never including password data).
        401/403: Unauthorized (not an admin).
    """
    return jsonify(get_ledger().list_users()), 200


@auth_bp.route("/users/<int:user_id>", methods=["DELETE"])
@admin_required
def delete_user(user_id: int) -> Tuple[Response, int]:
    """
    Admin-only endpoint to delete a user with their memberships and registrations.

    Returns:
        200: User deleted.
        401/403: Unauthorized.
        404: Unknown user.
    """
    get_ledger().delete_user(user_id)
    return jsonify({"message": "User deleted"}), 200
