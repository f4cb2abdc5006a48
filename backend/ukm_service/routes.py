"""
UKM service routes: list, create, inspect and delete student organizations,
and join or leave them.
"""

import logging
from typing import Any, Dict, Tuple

from flask import Blueprint, Response, jsonify, request

from backend.auth_service.guard import (
    admin_required,
    current_claims,
    login_required,
)
from backend.common.http import get_ledger, json_body
from backend.database.ledger import UKM_FIELDS

ukm_bp = Blueprint("ukm", __name__)


@ukm_bp.before_request
def before_request() -> None:
    logging.info(f"[UKM] Incoming {request.method} {request.path}")


@ukm_bp.after_request
def after_request(response: Response) -> Response:
    logging.info(f"[UKM] Response {response.status}")
    return response


@ukm_bp.route("", methods=["GET"])
def list_ukm() -> Tuple[Response, int]:
    """
    Get all UKMs with their member counts. Public access allowed.
    """
    return jsonify(get_ledger().list_organizations()), 200


@ukm_bp.route("", methods=["POST"])
@admin_required
def create_ukm() -> Tuple[Response, int]:
    """
    Admin-only: create a UKM. The creator becomes its admin member in the
    same transaction.

    Expects JSON: { "name": str, "description", "category", "logo_url" }

    Returns:
        201: The UKM, including the creator's membership.
        400: Missing name.
        409: Name already taken.
    """
    data: Dict[str, Any] = json_body()
    if not data.get("name"):
        return jsonify({"error": "name is required"}), 400

    meta = {k: data[k] for k in UKM_FIELDS if k in data}
    ukm = get_ledger().create_organization(data["name"], meta, current_claims().user_id)
    return jsonify(ukm), 201


@ukm_bp.route("/<int:ukm_id>", methods=["GET"])
def get_ukm(ukm_id: int) -> Tuple[Response, int]:
    """
    Get UKM detail with its members and events. Public access allowed.

    Returns:
        200: UKM object with "members" and "events".
        404: UKM not found.
    """
    return jsonify(get_ledger().get_organization(ukm_id)), 200


@ukm_bp.route("/<int:ukm_id>", methods=["DELETE"])
@admin_required
def delete_ukm(ukm_id: int) -> Tuple[Response, int]:
    """
    Admin-only: delete a UKM with its events, registrations, reports and memberships.
    """
    get_ledger().delete_organization(ukm_id)
    return jsonify({"message": "UKM deleted"}), 200


# --- MEMBERSHIP ---
@ukm_bp.route("/<int:ukm_id>/join", methods=["POST"])
@login_required
def join_ukm(ukm_id: int) -> Tuple[Response, int]:
    """
    Join a UKM as member. Joining again is not an error.

    Returns:
        201: Newly joined.
        200: Already a member; existing membership returned unchanged.
        404: UKM not found.
    """
    membership, created = get_ledger().join_organization(current_claims().user_id, ukm_id)
    if created:
        return jsonify(membership), 201
    return jsonify({**membership, "message": "Already a member"}), 200


@ukm_bp.route("/<int:ukm_id>/leave", methods=["DELETE"])
@login_required
def leave_ukm(ukm_id: int) -> Tuple[Response, int]:
    """
    Leave a UKM. Leaving a UKM you are not in is not an error.
    """
    removed = get_ledger().leave_organization(current_claims().user_id, ukm_id)
    message = "Left UKM" if removed else "Not a member"
    return jsonify({"message": message}), 200
