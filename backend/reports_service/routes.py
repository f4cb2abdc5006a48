"""
Reports service routes: activity reports written by a UKM's admins.
"""

import logging
from typing import Any, Dict, Tuple

from flask import Blueprint, Response, jsonify, request

from backend.auth_service.guard import require_ukm_admin
from backend.common.http import get_ledger, json_body

reports_bp = Blueprint("reports", __name__)


@reports_bp.before_request
def before_request() -> None:
    logging.info(f"[Reports] Incoming {request.method} {request.path}")


@reports_bp.after_request
def after_request(response: Response) -> Response:
    logging.info(f"[Reports] Response {response.status}")
    return response


@reports_bp.route("/<int:ukm_id>/reports", methods=["GET"])
def list_reports(ukm_id: int) -> Tuple[Response, int]:
    """
    Reports of a UKM, newest first. UKM admins and global admins only.
    """
    ledger = get_ledger()
    require_ukm_admin(ledger, ukm_id)
    return jsonify(ledger.list_reports(ukm_id)), 200


@reports_bp.route("/<int:ukm_id>/reports", methods=["POST"])
def create_report(ukm_id: int) -> Tuple[Response, int]:
    """
    Create a report for a UKM.

    Expects JSON: { "title": str, "content": str, "period": str }

    Returns:
        201: The new report.
        400: Missing title.
        401/403: Authentication or permission failure.
        404: UKM not found.
    """
    ledger = get_ledger()
    claims = require_ukm_admin(ledger, ukm_id)

    data: Dict[str, Any] = json_body()
    report = ledger.create_report(ukm_id, data, created_by=claims.user_id)
    return jsonify(report), 201
