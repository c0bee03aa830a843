# Overview: Immutable invoice version history (JSON snapshots).

from __future__ import annotations

import json
import logging

from sqlalchemy import func

from ..models import Invoice, InvoiceVersion
from .display_options import decode, to_mapping
from .payment_service import linked_sales


logger = logging.getLogger(__name__)


def build_invoice_snapshot(invoice: Invoice) -> dict:
    """Full picture of an invoice: header, display options, sales and payments."""
    return {
        "invoice": invoice.to_dict(),
        "display_options": to_mapping(decode(invoice.display_options_json)),
        "sales": [sale.to_dict() for sale in linked_sales(invoice)],
        "payments": [payment.to_dict() for payment in invoice.payments],
    }


def create_invoice_version(session, invoice_id: int, reason: str = "Edit") -> InvoiceVersion:
    """
    Append the next version snapshot for an invoice and commit it.

    Version numbers are 1, 2, 3... per invoice (unique per invoice).
    """
    invoice = session.get(Invoice, invoice_id)
    if invoice is None:
        raise LookupError(f"Invoice {invoice_id} not found for versioning")

    current = (
        session.query(func.max(InvoiceVersion.version_number))
        .filter(InvoiceVersion.invoice_id == invoice_id)
        .scalar()
    ) or 0

    version = InvoiceVersion(
        invoice_id=invoice_id,
        version_number=current + 1,
        snapshot=json.dumps(build_invoice_snapshot(invoice), default=str, sort_keys=True),
        reason=reason,
    )
    session.add(version)
    session.commit()
    logger.info("Created version %s for invoice %s", version.version_number, invoice.invoice_number)
    return version


def try_create_invoice_version(session, invoice_id: int, reason: str) -> InvoiceVersion | None:
    """
    Best-effort snapshot taken before a mutation.

    Failures are logged and swallowed so the caller can still proceed; the
    caller's own transaction is unaffected because the snapshot commits
    (or rolls back) on its own beforehand.
    """
    try:
        return create_invoice_version(session, invoice_id, reason)
    except Exception:
        session.rollback()
        logger.exception("Failed to create version for invoice %s", invoice_id)
        return None


def list_invoice_versions(session, invoice_id: int) -> list[InvoiceVersion]:
    return (
        session.query(InvoiceVersion)
        .filter_by(invoice_id=invoice_id)
        .order_by(InvoiceVersion.version_number)
        .all()
    )
