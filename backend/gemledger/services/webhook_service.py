# Overview: Payment gateway webhook verification and reconciliation into the payment ledger.

"""
Razorpay Webhook Reconciler

WHY: The gateway confirms online payments asynchronously and may deliver the
same event more than once. A captured payment must settle its invoice exactly
once, and nothing may be touched unless the body is authentic.

DESIGN:
- Signature: hex HMAC-SHA256 of the raw body keyed by the shared secret,
  compared in constant time before the body is even parsed.
- payment.captured: snapshot the invoice, then record a PAID payment through
  the payment ledger (method ONLINE, reference = gateway payment id).
- Replays are no-ops: a payment already recorded under the same reference,
  or an invoice whose sales are all PAID, is not charged again.
- payment.failed: audit event only.
- Every other event is acknowledged and ignored.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging

from ..errors import ConfigurationError, InvalidSignature, ValidationError
from ..models import Invoice, Payment
from ..models.statuses import PaymentMethod, PaymentStatus
from .activity_service import (
    ACTION_STATUS_CHANGE,
    ACTION_UNRECONCILED_PAYMENT,
    SOURCE_WEBHOOK,
    log_activity,
)
from .concurrency import transaction_scope
from .payment_service import apply_payment, is_settled, linked_sales, resync_sale_statuses
from .version_service import try_create_invoice_version


logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Razorpay-Signature"
SYSTEM_NAME = "Razorpay Webhook"
VERSION_REASON = "Payment Update (Webhook)"

EVENT_CAPTURED = "payment.captured"
EVENT_FAILED = "payment.failed"

# Outcomes reported back to the caller (the HTTP answer is "ok" for all)
OUTCOME_IGNORED = "ignored"
OUTCOME_RECORDED = "recorded"
OUTCOME_DUPLICATE = "duplicate"
OUTCOME_RESYNCED = "resynced"
OUTCOME_UNRECONCILED = "unreconciled"
OUTCOME_UNKNOWN_INVOICE = "unknown_invoice"
OUTCOME_FAILURE_LOGGED = "failure_logged"


def compute_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_signature(raw_body: bytes, signature: str | None, secret: str | None) -> None:
    """
    Raise unless signature authenticates raw_body.

    Raises:
        InvalidSignature: signature missing or wrong
        ConfigurationError: no webhook secret configured
    """
    if not signature:
        logger.warning("Webhook rejected: no signature header")
        raise InvalidSignature("No signature")
    if not secret:
        logger.error("RAZORPAY_WEBHOOK_SECRET is not configured; webhook cannot be verified")
        raise ConfigurationError("Server configuration error")

    expected = compute_signature(raw_body, secret)
    if not hmac.compare_digest(expected, signature.strip()):
        logger.warning("Webhook rejected: invalid signature")
        raise InvalidSignature("Invalid signature")


def _parse_event(raw_body: bytes) -> dict:
    try:
        event = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        raise ValidationError("Malformed webhook body")
    if not isinstance(event, dict):
        raise ValidationError("Malformed webhook body")
    return event


def _payment_entity(event: dict) -> dict:
    payment = ((event.get("payload") or {}).get("payment") or {}).get("entity")
    if not isinstance(payment, dict):
        raise ValidationError("Webhook body has no payment entity")
    return payment


def _invoice_ref(payment: dict):
    notes = payment.get("notes")
    if not isinstance(notes, dict):
        return None
    return notes.get("invoiceId") or None


def _find_invoice(session, invoice_ref) -> Invoice | None:
    try:
        invoice_id = int(invoice_ref)
    except (TypeError, ValueError):
        return None
    return session.get(Invoice, invoice_id)


def _amount_cents(payment: dict) -> int:
    # Gateway amounts are already in minor units (paise)
    amount = payment.get("amount")
    if isinstance(amount, int) and not isinstance(amount, bool):
        return amount
    return 0


# =============================================================================
# EVENT HANDLERS
# =============================================================================

def _record_unreconciled(session, payment: dict) -> dict:
    payment_id = payment.get("id")
    logger.warning("Payment %s captured but no invoiceId in notes", payment_id)
    with transaction_scope(session):
        log_activity(
            session,
            entity_type="Payment",
            entity_id=payment_id or "unknown",
            entity_identifier=payment_id,
            action_type=ACTION_UNRECONCILED_PAYMENT,
            new_data={
                "paymentId": payment_id,
                "amount": payment.get("amount"),
                "currency": payment.get("currency"),
                "email": payment.get("email"),
                "contact": payment.get("contact"),
            },
            source=SOURCE_WEBHOOK,
            system_name=SYSTEM_NAME,
        )
    return {"status": "ok", "outcome": OUTCOME_UNRECONCILED}


def _handle_captured(session, payment: dict) -> dict:
    payment_id = payment.get("id")
    invoice_ref = _invoice_ref(payment)
    if not invoice_ref:
        return _record_unreconciled(session, payment)

    logger.info("Payment captured for invoice %s, payment id %s", invoice_ref, payment_id)

    invoice = _find_invoice(session, invoice_ref)
    if invoice is None:
        logger.warning("Invoice %s not found during payment webhook processing", invoice_ref)
        return {"status": "ok", "outcome": OUTCOME_UNKNOWN_INVOICE}
    invoice_id = invoice.id

    # Committed on its own; a failed snapshot never blocks reconciliation
    try_create_invoice_version(session, invoice_id, VERSION_REASON)
    invoice = session.get(Invoice, invoice_id)

    sales = linked_sales(invoice)
    already_recorded = payment_id is not None and session.query(Payment.id).filter_by(
        invoice_id=invoice_id, reference=payment_id
    ).first() is not None
    if already_recorded or (sales and all(s.payment_status == PaymentStatus.PAID.value for s in sales)):
        logger.info("Payment %s for invoice %s already reconciled", payment_id, invoice.invoice_number)
        return {"status": "ok", "outcome": OUTCOME_DUPLICATE}

    if is_settled(invoice.paid_cents, invoice.total_cents):
        # Ledger is settled but some sale lags behind; only fan the status out
        resync_sale_statuses(session, invoice_id)
        return {"status": "ok", "outcome": OUTCOME_RESYNCED}

    unpaid_sale_ids = [s.id for s in sales if s.payment_status != PaymentStatus.PAID.value]

    recorded = apply_payment(
        session,
        invoice_id,
        target_status=PaymentStatus.PAID,
        amount_cents=_amount_cents(payment),
        method=PaymentMethod.ONLINE.value,
        reference=payment_id,
        notes=f"Razorpay payment {payment_id}",
        source=SOURCE_WEBHOOK,
        system_name=SYSTEM_NAME,
    )

    with transaction_scope(session):
        invoice = session.get(Invoice, invoice_id)
        for sale in linked_sales(invoice):
            if sale.id in unpaid_sale_ids and sale.payment_status == PaymentStatus.PAID.value:
                sale.payment_method = PaymentMethod.ONLINE.value
                note = f"Paid via Razorpay: {payment_id}"
                sale.notes = f"{sale.notes}\n{note}" if sale.notes else note
        log_activity(
            session,
            entity_type="Invoice",
            entity_id=invoice.id,
            entity_identifier=invoice.invoice_number,
            action_type=ACTION_STATUS_CHANGE,
            new_data={
                "paymentStatus": invoice.payment_status,
                "paymentId": payment_id,
                "amount": payment.get("amount"),
                "ledgerPaymentId": recorded.id,
            },
            source=SOURCE_WEBHOOK,
            system_name=SYSTEM_NAME,
        )
    return {"status": "ok", "outcome": OUTCOME_RECORDED, "payment_id": recorded.id}


def _handle_failed(session, payment: dict) -> dict:
    invoice_ref = _invoice_ref(payment)
    if not invoice_ref:
        return {"status": "ok", "outcome": OUTCOME_IGNORED}

    invoice = _find_invoice(session, invoice_ref)
    with transaction_scope(session):
        log_activity(
            session,
            entity_type="Invoice",
            entity_id=invoice.id if invoice else invoice_ref,
            entity_identifier=invoice.invoice_number if invoice else str(invoice_ref),
            action_type=ACTION_STATUS_CHANGE,
            new_data={
                "paymentStatus": "FAILED",
                "paymentId": payment.get("id"),
                "reason": payment.get("error_description"),
            },
            source=SOURCE_WEBHOOK,
            system_name=SYSTEM_NAME,
        )
    return {"status": "ok", "outcome": OUTCOME_FAILURE_LOGGED}


def handle_event(session, raw_body: bytes, signature: str | None, secret: str | None) -> dict:
    """
    Verify and process one webhook delivery.

    Returns {"status": "ok", "outcome": ...} for every authentic, well-formed
    delivery, including the ones that are dropped.

    Raises:
        InvalidSignature: missing or wrong signature (nothing is written)
        ConfigurationError: webhook secret not configured
        ValidationError: body is not a JSON payment event
    """
    verify_signature(raw_body, signature, secret)
    event = _parse_event(raw_body)
    event_type = event.get("event")

    if event_type == EVENT_CAPTURED:
        return _handle_captured(session, _payment_entity(event))
    if event_type == EVENT_FAILED:
        return _handle_failed(session, _payment_entity(event))

    logger.info("Ignoring webhook event %s", event_type)
    return {"status": "ok", "outcome": OUTCOME_IGNORED}
