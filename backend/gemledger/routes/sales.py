# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError, ValidationError, error_response_body
from ..extensions import db
from ..services import sales_service
from ..decorators import require_auth
from gemledger.time_utils import parse_iso_date


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
def record_sale_route():
    """
    Record a sale of an in-stock inventory item.

    Request body:
    {
        "inventory_item_id": 1,
        "customer_name": "A. Sharma",       (optional)
        "customer_phone": "+91...",          (optional)
        "sale_price_cents": 150000,          (optional, defaults to selling price)
        "discount_cents": 0,                 (optional)
        "sale_date": "2026-01-31"            (optional)
    }

    Returns:
        201: created sale
        400: invalid input
        404: inventory item not found
        409: item not in stock
    """
    try:
        data = request.get_json(silent=True) or {}
        inventory_item_id = data.get("inventory_item_id")
        if inventory_item_id is None:
            return jsonify({"error": "inventory_item_id required"}), 400

        try:
            sale_date = parse_iso_date(data.get("sale_date"))
        except ValueError:
            raise ValidationError("sale_date must be an ISO-8601 date")

        sale = sales_service.record_sale(
            db.session,
            inventory_item_id=inventory_item_id,
            customer_name=data.get("customer_name"),
            customer_phone=data.get("customer_phone"),
            sale_price_cents=data.get("sale_price_cents"),
            discount_cents=data.get("discount_cents", 0),
            sale_date=sale_date,
            actor=g.current_user,
        )
        return jsonify({"sale": sale.to_dict()}), 201

    except LedgerError as e:
        return jsonify(error_response_body(e)), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500
