"""
Events service routes: create, read, update and delete UKM events, and
register or unregister for them.

Writes on an event are limited to admin members of the owning UKM and to
global admins.
"""

import logging
from typing import Any, Dict, Tuple

from flask import Blueprint, Response, jsonify, request

from backend.auth_service.guard import (
    current_claims,
    login_required,
    require_event_admin,
    require_ukm_admin,
)
from backend.common.http import get_ledger, json_body

events_bp = Blueprint("events", __name__)


@events_bp.before_request
def before_request() -> None:
    logging.info(f"[Events] Incoming {request.method} {request.path}")


@events_bp.after_request
def after_request(response: Response) -> Response:
    logging.info(f"[Events] Response {response.status}")
    return response


@events_bp.route("/<int:ukm_id>/events", methods=["GET"])
def list_events(ukm_id: int) -> Tuple[Response, int]:
    """
    All events of a UKM, soonest first (undated events last).

    Returns:
        200: List of event objects.
        404: UKM not found.
    """
    return jsonify(get_ledger().list_events(ukm_id)), 200


@events_bp.route("/events/<int:event_id>", methods=["GET"])
def get_event(event_id: int) -> Tuple[Response, int]:
    """
    Event detail with the owning UKM's name and participant count.
    """
    return jsonify(get_ledger().get_event(event_id)), 200


@events_bp.route("/<int:ukm_id>/events", methods=["POST"])
def create_event(ukm_id: int) -> Tuple[Response, int]:
    """
    Create an event for a UKM.

    Permission:
    - Global admin
    - OR admin member of this UKM

    Expects JSON: { "name": str, "description", "event_date" (ISO-8601),
                    "location", "status" }

    Returns:
        201: The new event.
        400: Validation error.
        401/403: Authentication or permission failure.
        404: UKM not found.
    """
    ledger = get_ledger()
    claims = require_ukm_admin(ledger, ukm_id)

    data: Dict[str, Any] = json_body()
    event = ledger.create_event(ukm_id, data, created_by=claims.user_id)
    return jsonify(event), 201


@events_bp.route("/events/<int:event_id>", methods=["PUT"])
def update_event(event_id: int) -> Tuple[Response, int]:
    """
    Update an event. Only the supplied fields change.

    Returns:
        200: The updated event.
        400: Validation error or no fields.
        401/403: Authentication or permission failure.
        404: Event not found.
    """
    ledger = get_ledger()
    require_event_admin(ledger, event_id)

    data: Dict[str, Any] = json_body()
    if not data:
        return jsonify({"error": "No update data provided"}), 400

    return jsonify(ledger.update_event(event_id, data)), 200


@events_bp.route("/events/<int:event_id>", methods=["DELETE"])
def delete_event(event_id: int) -> Tuple[Response, int]:
    """
    Delete an event together with its registrations.
    """
    ledger = get_ledger()
    require_event_admin(ledger, event_id)

    ledger.delete_event(event_id)
    return jsonify({"message": "Event deleted"}), 200


# =======================================================
#          EVENT REGISTRATION (JOIN & UNJOIN)
# =======================================================

@events_bp.route("/events/<int:event_id>/register", methods=["POST"])
@login_required
def register_event(event_id: int) -> Tuple[Response, int]:
    """
    Register the caller for an event. Registering twice keeps a single row.

    Returns:
        201: Newly registered.
        200: Already registered; existing registration returned.
        404: Event not found.
    """
    registration, created = get_ledger().register_for_event(current_claims().user_id, event_id)
    if created:
        return jsonify(registration), 201
    return jsonify({**registration, "message": "Already registered"}), 200


@events_bp.route("/events/<int:event_id>/unregister", methods=["DELETE"])
@login_required
def unregister_event(event_id: int) -> Tuple[Response, int]:
    """
    Remove the caller's registration.

    Returns:
        200: Unregistered.
        404: The caller was not registered for this event.
    """
    get_ledger().unregister_from_event(current_claims().user_id, event_id)
    return jsonify({"message": "Unregistered from event"}), 200


@events_bp.route("/events/<int:event_id>/participants", methods=["GET"])
def get_participants(event_id: int) -> Tuple[Response, int]:
    """
    Registrants of an event in registration order.
    Restricted to admin members of the owning UKM and global admins.
    """
    ledger = get_ledger()
    require_event_admin(ledger, event_id)

    return jsonify(ledger.list_participants(event_id)), 200
