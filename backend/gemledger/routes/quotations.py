# Overview: Flask API routes for quotation operations; parses input and returns JSON responses.

# backend/gemledger/routes/quotations.py
"""
Quotation API Routes

Sending goes through the approval gate: the response says whether the
quotation went out (SENT) or is waiting for approval (PENDING_APPROVAL).
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError, error_response_body
from ..extensions import db
from ..services import quotation_service
from ..decorators import require_auth


quotations_bp = Blueprint("quotations", __name__, url_prefix="/api/quotations")


@quotations_bp.post("")
@require_auth
def create_quotation_route():
    """
    Create a DRAFT quotation.

    Request body:
    {
        "customer_name": "R. Mehta",
        "customer_mobile": "+91...",            (optional)
        "expiry_date": "2026-03-01",            (optional, default 7 days)
        "items": [
            {"inventory_item_id": 4, "price_override_type": "PERCENT", "price_override_value": 10},
            {"item_name": "Custom setting", "final_unit_price_cents": 250000, "quantity": 1}
        ]
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        quotation = quotation_service.create_quotation(
            db.session,
            items=data.get("items"),
            customer_name=data.get("customer_name"),
            customer_mobile=data.get("customer_mobile"),
            customer_email=data.get("customer_email"),
            customer_city=data.get("customer_city"),
            expiry_date=data.get("expiry_date"),
            actor=g.current_user,
        )
        return jsonify({"quotation": quotation.to_dict()}), 201

    except LedgerError as e:
        return jsonify(error_response_body(e)), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create quotation")
        return jsonify({"error": "Internal server error"}), 500


@quotations_bp.post("/<int:quotation_id>/send")
@require_auth
def send_quotation_route(quotation_id: int):
    try:
        decision = quotation_service.evaluate_send(db.session, quotation_id, actor=g.current_user)
        quotation = quotation_service.get_quotation(db.session, quotation_id)
        return jsonify({
            "decision": decision.to_dict(),
            "quotation": quotation.to_dict(include_items=False),
        }), 200

    except LedgerError as e:
        return jsonify(error_response_body(e)), e.status_code
    except Exception:
        current_app.logger.exception("Failed to send quotation %s", quotation_id)
        return jsonify({"error": "Internal server error"}), 500


def _status_action(quotation_id: int, action, description: str, **kwargs):
    try:
        quotation = action(db.session, quotation_id, actor=g.current_user, **kwargs)
        return jsonify({"quotation": quotation.to_dict(include_items=False)}), 200
    except LedgerError as e:
        return jsonify(error_response_body(e)), e.status_code
    except Exception:
        current_app.logger.exception("Failed to %s quotation %s", description, quotation_id)
        return jsonify({"error": "Internal server error"}), 500


@quotations_bp.post("/<int:quotation_id>/approve")
@require_auth
def approve_quotation_route(quotation_id: int):
    return _status_action(quotation_id, quotation_service.approve_quotation, "approve")


@quotations_bp.post("/<int:quotation_id>/reject")
@require_auth
def reject_quotation_route(quotation_id: int):
    data = request.get_json(silent=True) or {}
    return _status_action(
        quotation_id, quotation_service.reject_quotation, "reject", reason=data.get("reason")
    )


@quotations_bp.post("/<int:quotation_id>/cancel")
@require_auth
def cancel_quotation_route(quotation_id: int):
    data = request.get_json(silent=True) or {}
    return _status_action(
        quotation_id, quotation_service.cancel_quotation, "cancel", reason=data.get("reason")
    )
