# Overview: Public (unauthenticated) invoice view addressed by token.

from flask import Blueprint, jsonify, current_app

from ..errors import NotFound
from ..extensions import db
from ..services import invoice_service


public_bp = Blueprint("public", __name__)


@public_bp.get("/invoice/<token>")
def public_invoice_route(token: str):
    """
    Customer-facing invoice.

    Returns:
        200: invoice view, or {"state": "disabled", ...} for a disabled link
        404: unknown token
    """
    try:
        invoice = invoice_service.get_invoice_by_token(db.session, token)
        if not invoice.is_active:
            return jsonify({"state": "disabled", "message": "Invoice link disabled"}), 200
        return jsonify(invoice_service.public_invoice_view(invoice)), 200

    except NotFound:
        return jsonify({"error": "Invoice not found"}), 404
    except Exception:
        current_app.logger.exception("Failed to render public invoice")
        return jsonify({"error": "Internal server error"}), 500
