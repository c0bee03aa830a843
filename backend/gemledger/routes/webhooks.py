# Overview: Payment gateway webhook endpoint; authenticated by HMAC signature, not by session.

from flask import Blueprint, request, jsonify, current_app

from ..errors import LedgerError
from ..extensions import db
from ..services import webhook_service


webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/api/webhooks")


@webhooks_bp.post("/razorpay")
def razorpay_webhook_route():
    """
    Razorpay event delivery.

    The signature covers the exact request bytes, so the raw body is read
    before any JSON parsing.

    Returns:
        200: {"status": "ok"} (also for ignored or dropped events)
        400: missing/invalid signature or malformed body
        500: webhook secret not configured
    """
    try:
        webhook_service.handle_event(
            db.session,
            request.get_data(cache=True),
            request.headers.get(webhook_service.SIGNATURE_HEADER),
            current_app.config.get("RAZORPAY_WEBHOOK_SECRET"),
        )
        return jsonify({"status": "ok"}), 200

    except LedgerError as e:
        return jsonify({"message": e.message}), e.status_code
    except Exception:
        current_app.logger.exception("Webhook handler error")
        return jsonify({"message": "Internal Server Error"}), 500
