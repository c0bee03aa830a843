# Overview: Flask API routes for invoice operations; parses input and returns JSON responses.

# backend/gemledger/routes/invoices.py
"""
Invoice API Routes

DESIGN:
- Create an invoice for one sale (or update its display options)
- Create one invoice for several sales
- Record payments / reset to UNPAID through the payment ledger
- Enable or disable the public invoice link
- Read invoice detail, payment summary and version history
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError, error_response_body, status_for_code
from ..extensions import db
from ..models import Invoice
from ..services import invoice_service, payment_service, version_service
from ..decorators import require_auth


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _ledger_error(e: LedgerError):
    return jsonify(error_response_body(e)), e.status_code


# =============================================================================
# INVOICE CREATION
# =============================================================================

@invoices_bp.post("/from-sale/<int:sale_id>")
@require_auth
def create_from_sale_route(sale_id: int):
    """
    Create the invoice for a sale, or update its display options.

    Request body (all optional):
    {
        "display_options": {"showWeight": true, "showPrice": false, ...}
    }

    Returns:
        201: invoice created
        200: existing invoice updated
        400: malformed display options
        404: sale not found
    """
    try:
        data = request.get_json(silent=True) or {}
        invoice, created = invoice_service.create_or_update_invoice_from_sale(
            db.session,
            sale_id,
            data.get("display_options"),
            actor=g.current_user,
        )
        return jsonify({
            "invoice": invoice_service.invoice_detail(invoice),
            "created": created,
        }), 201 if created else 200

    except LedgerError as e:
        return _ledger_error(e)
    except Exception:
        current_app.logger.exception("Failed to create invoice for sale %s", sale_id)
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.post("")
@require_auth
def create_invoice_route():
    """
    Bill several sales on one invoice.

    Request body:
    {
        "sale_ids": [1, 2, 3],
        "display_options": {...}   (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        invoice = invoice_service.create_invoice_for_sales(
            db.session,
            data.get("sale_ids"),
            data.get("display_options"),
            actor=g.current_user,
        )
        return jsonify({"invoice": invoice_service.invoice_detail(invoice)}), 201

    except LedgerError as e:
        return _ledger_error(e)
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# INVOICE QUERIES
# =============================================================================

@invoices_bp.get("/<int:invoice_id>")
@require_auth
def get_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(db.session, invoice_id)
        return jsonify({"invoice": invoice_service.invoice_detail(invoice)}), 200
    except LedgerError as e:
        return _ledger_error(e)
    except Exception:
        current_app.logger.exception("Failed to get invoice %s", invoice_id)
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/<int:invoice_id>/payments")
@require_auth
def get_invoice_payments_route(invoice_id: int):
    try:
        return jsonify(payment_service.get_payment_summary(db.session, invoice_id)), 200
    except LedgerError as e:
        return _ledger_error(e)
    except Exception:
        current_app.logger.exception("Failed to get payments for invoice %s", invoice_id)
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/<int:invoice_id>/versions")
@require_auth
def list_versions_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(db.session, invoice_id)
        versions = version_service.list_invoice_versions(db.session, invoice.id)
        return jsonify({"versions": [v.to_dict() for v in versions]}), 200
    except LedgerError as e:
        return _ledger_error(e)
    except Exception:
        current_app.logger.exception("Failed to list versions for invoice %s", invoice_id)
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PAYMENT STATUS
# =============================================================================

@invoices_bp.post("/<int:invoice_id>/payment-status")
@require_auth
def update_payment_status_route(invoice_id: int):
    """
    Set an invoice to PAID / PARTIAL (records a payment) or UNPAID (reset).

    Request body:
    {
        "status": "PARTIAL",
        "paymentDetails": {
            "amount_cents": 45000,
            "method": "UPI",
            "date": "2026-02-01",
            "reference": "UTR123",   (optional)
            "notes": "..."           (optional)
        }
    }

    Returns the {success, message} result; non-2xx when success is false.
    """
    try:
        data = request.get_json(silent=True) or {}
        status = data.get("status")
        if not status:
            return jsonify({"success": False, "message": "status required", "error": "VALIDATION_ERROR"}), 400

        details = data.get("paymentDetails", data.get("payment_details"))

        if db.session.get(Invoice, invoice_id) is not None:
            version_service.try_create_invoice_version(db.session, invoice_id, "Payment Update")
        result = payment_service.update_invoice_payment_status(
            db.session,
            invoice_id,
            status,
            details,
            actor=g.current_user,
        )
        if result["success"]:
            return jsonify(result), 200
        return jsonify(result), status_for_code(result.get("error"))

    except Exception:
        current_app.logger.exception("Failed to update payment status for invoice %s", invoice_id)
        return jsonify({"success": False, "message": "Internal server error"}), 500


# =============================================================================
# PUBLIC LINK
# =============================================================================

@invoices_bp.patch("/<int:invoice_id>/active")
@require_auth
def set_active_route(invoice_id: int):
    """Request body: {"is_active": false}"""
    try:
        data = request.get_json(silent=True) or {}
        invoice = invoice_service.set_invoice_active(
            db.session,
            invoice_id,
            data.get("is_active"),
            actor=g.current_user,
        )
        return jsonify({"invoice": invoice.to_dict()}), 200
    except LedgerError as e:
        return _ledger_error(e)
    except Exception:
        current_app.logger.exception("Failed to update invoice %s", invoice_id)
        return jsonify({"error": "Internal server error"}), 500
