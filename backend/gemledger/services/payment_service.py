# Overview: Service-layer operations for the invoice payment ledger; encapsulates business logic and database work.

"""
Payment Ledger Service

WHY: An invoice's paid total and payment status must always agree with its
payment rows, and every sale on the invoice must show the same status.
This module is the only writer of Invoice.paid_cents, Invoice.payment_status
and Sale.payment_status.

DESIGN PRINCIPLES:
- Payments are separate rows owned by the invoice (many-to-one)
- Append-only: payments are never edited; reset_to_unpaid is the one
  destructive operation and it is audited
- Selecting PAID always settles the invoice in full
- A PARTIAL payment that reaches the total (within 1 cent) is upgraded to PAID
  and the paid total is capped at the invoice total
- Payment insert + invoice update + sale fan-out + audit row commit together
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from ..errors import InvalidAmount, LedgerError, NotFound, ValidationError
from ..models import Invoice, Payment, Sale
from ..models.statuses import PaymentMethod, PaymentStatus
from gemledger.time_utils import parse_iso_date, utcnow
from .activity_service import (
    ACTION_PAYMENT,
    ACTION_RESET,
    SOURCE_WEB,
    log_activity,
)
from .concurrency import lock_for_update, run_with_retry, transaction_scope
from .lifecycle_service import invoice_status_for, parse_payment_status


logger = logging.getLogger(__name__)

# Fixed tolerance: paid within one cent of the total counts as fully paid
EPSILON_CENTS = 1

RECORDABLE_STATUSES = (PaymentStatus.PAID, PaymentStatus.PARTIAL)

VALID_METHODS = [m.value for m in PaymentMethod]


# =============================================================================
# STATUS DERIVATION
# =============================================================================

def is_settled(paid_cents: int, total_cents: int) -> bool:
    return paid_cents >= total_cents - EPSILON_CENTS


def derive_payment_status(paid_cents: int, total_cents: int) -> PaymentStatus:
    """
    UNPAID:  nothing paid
    PARTIAL: something paid, more than one cent still due
    PAID:    paid >= total - 1 cent
    """
    if is_settled(paid_cents, total_cents):
        return PaymentStatus.PAID
    if paid_cents <= 0:
        return PaymentStatus.UNPAID
    return PaymentStatus.PARTIAL


def linked_sales(invoice: Invoice) -> list[Sale]:
    """Sales covered by an invoice: all current sales, else the legacy 1:1 sale."""
    if invoice.sales:
        return list(invoice.sales)
    if invoice.legacy_sale is not None:
        return [invoice.legacy_sale]
    return []


def _set_invoice_state(invoice: Invoice, paid_cents: int, status: PaymentStatus) -> None:
    """Write paid total and both statuses, then fan the status out to the sales."""
    invoice.paid_cents = paid_cents
    invoice.payment_status = status.value
    invoice.status = invoice_status_for(status).value
    for sale in linked_sales(invoice):
        if sale.payment_status != status.value:
            sale.payment_status = status.value


def _get_invoice_locked(session, invoice_id: int) -> Invoice:
    invoice = lock_for_update(session.query(Invoice).filter_by(id=invoice_id)).first()
    if not invoice:
        raise NotFound(f"Invoice {invoice_id} not found")
    return invoice


def _ledger_snapshot(invoice: Invoice) -> dict:
    return {
        "paid_cents": invoice.paid_cents,
        "payment_status": invoice.payment_status,
        "status": invoice.status,
    }


# =============================================================================
# INPUT NORMALIZATION
# =============================================================================

def validate_method(method: Any) -> str:
    text = str(method or "").strip().upper()
    if text not in VALID_METHODS:
        raise ValidationError(f"Invalid payment method: {method}. Must be one of {VALID_METHODS}")
    return text


def _to_cents(value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError("amount must be a number")
    if isinstance(value, int):
        return value * 100
    if isinstance(value, float):
        return int(round(value * 100))
    text = str(value).strip().replace(",", "").replace("₹", "")
    if not text:
        raise ValidationError("amount is required")
    try:
        return int(round(float(text) * 100))
    except ValueError:
        raise ValidationError("amount must be a number")


def _to_int_cents(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return int(value.strip())
        raise ValidationError("amount_cents must be an integer")
    return value


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def parse_payment_details(details: Any) -> dict:
    """
    Normalize {amount_cents | amount, method, date, reference?, notes?}.

    amount_cents is integer minor units; amount is a decimal rupee figure.
    """
    if not isinstance(details, dict):
        raise ValidationError("paymentDetails must be an object")

    if details.get("amount_cents") is not None:
        amount_cents = _to_int_cents(details["amount_cents"])
    elif details.get("amount") is not None:
        amount_cents = _to_cents(details["amount"])
    else:
        raise ValidationError("paymentDetails.amount_cents is required")

    raw_date = details.get("date")
    if raw_date in (None, ""):
        raise ValidationError("paymentDetails.date is required")
    if isinstance(raw_date, date):
        paid_on = raw_date
    else:
        try:
            paid_on = parse_iso_date(str(raw_date))
        except ValueError:
            raise ValidationError("paymentDetails.date must be an ISO-8601 date")

    return {
        "amount_cents": amount_cents,
        "method": validate_method(details.get("method")),
        "paid_on": paid_on,
        "reference": _to_text(details.get("reference")),
        "notes": _to_text(details.get("notes")),
    }


# =============================================================================
# LEDGER MUTATIONS
# =============================================================================

def apply_payment(
    session,
    invoice_id: int,
    *,
    target_status,
    amount_cents: int,
    method: str,
    paid_on: date | None = None,
    reference: str | None = None,
    notes: str | None = None,
    actor=None,
    source: str = SOURCE_WEB,
    system_name: str | None = None,
) -> Payment:
    """
    Record one payment against an invoice.

    Args:
        target_status: PAID or PARTIAL, as chosen by the operator
        amount_cents: Amount typed by the operator (cents). For PAID, an amount
            below the remaining balance is replaced by the remaining balance.

    Returns:
        The new Payment row

    Raises:
        NotFound: invoice does not exist
        ValidationError: bad status or method
        InvalidAmount: nothing to record (non-positive amount, or the
            invoice is already fully paid)
    """
    target = parse_payment_status(target_status)
    if target not in RECORDABLE_STATUSES:
        raise ValidationError("Payments can only be recorded as PAID or PARTIAL")
    method = validate_method(method)
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int):
        raise ValidationError("amount_cents must be an integer")

    def _op() -> Payment:
        with transaction_scope(session):
            invoice = _get_invoice_locked(session, invoice_id)
            before = _ledger_snapshot(invoice)

            remaining = invoice.total_cents - invoice.paid_cents
            if is_settled(invoice.paid_cents, invoice.total_cents):
                raise InvalidAmount(f"Invoice {invoice.invoice_number} is already fully paid")

            to_record = amount_cents
            if target is PaymentStatus.PAID and amount_cents < remaining:
                to_record = remaining

            if to_record <= 0:
                raise InvalidAmount("Payment amount must be positive")

            payment = Payment(
                invoice_id=invoice.id,
                amount_cents=to_record,
                method=method,
                payment_date=paid_on or utcnow().date(),
                reference=reference,
                notes=notes,
                created_by_user_id=actor.id if actor is not None else None,
            )
            session.add(payment)

            new_paid = invoice.paid_cents + to_record
            if is_settled(new_paid, invoice.total_cents):
                # Overpayment or rounding: settle exactly at the total
                status = PaymentStatus.PAID
                new_paid = invoice.total_cents
            else:
                status = PaymentStatus.PARTIAL

            _set_invoice_state(invoice, new_paid, status)
            session.flush()

            log_activity(
                session,
                entity_type="Invoice",
                entity_id=invoice.id,
                entity_identifier=invoice.invoice_number,
                action_type=ACTION_PAYMENT,
                old_data=before,
                new_data={
                    **_ledger_snapshot(invoice),
                    "payment_id": payment.id,
                    "amount_cents": to_record,
                    "requested_status": target.value,
                    "method": method,
                    "reference": reference,
                },
                actor=actor,
                source=source,
                system_name=system_name,
            )
        return payment

    return run_with_retry(session, _op)


def reset_to_unpaid(session, invoice_id: int, *, actor=None) -> Invoice:
    """
    Delete every payment on the invoice and mark it (and its sales) UNPAID.

    DESTRUCTIVE: there is no undo. Callers must confirm intent first. The
    deleted rows are preserved only in the RESET audit event.
    """
    def _op() -> Invoice:
        with transaction_scope(session):
            invoice = _get_invoice_locked(session, invoice_id)
            before = _ledger_snapshot(invoice)
            before["payments"] = [p.to_dict() for p in invoice.payments]

            # delete-orphan cascade removes the rows
            invoice.payments.clear()
            _set_invoice_state(invoice, 0, PaymentStatus.UNPAID)
            session.flush()

            log_activity(
                session,
                entity_type="Invoice",
                entity_id=invoice.id,
                entity_identifier=invoice.invoice_number,
                action_type=ACTION_RESET,
                old_data=before,
                new_data={**_ledger_snapshot(invoice), "payments": []},
                actor=actor,
            )
        return invoice

    return run_with_retry(session, _op)


def resync_sale_statuses(session, invoice_id: int) -> int:
    """
    Re-apply the invoice's current payment status to all of its sales.

    Returns the number of sales whose status changed.
    """
    def _op() -> int:
        with transaction_scope(session):
            invoice = _get_invoice_locked(session, invoice_id)
            status = derive_payment_status(invoice.paid_cents, invoice.total_cents)
            changed = [s for s in linked_sales(invoice) if s.payment_status != status.value]
            _set_invoice_state(invoice, invoice.paid_cents, status)
        return len(changed)

    return run_with_retry(session, _op)


def initialize_invoice_state(invoice: Invoice) -> None:
    """
    Set the starting ledger state of a freshly built invoice (nothing paid).

    Used by the invoice aggregator so that even a zero-total invoice starts in
    a state consistent with the ledger invariants.
    """
    _set_invoice_state(invoice, 0, derive_payment_status(0, invoice.total_cents))


# =============================================================================
# ACTION SURFACE
# =============================================================================

def update_invoice_payment_status(
    session,
    invoice_id: int,
    status,
    payment_details: dict | None = None,
    *,
    actor=None,
) -> dict:
    """
    Operator action: set an invoice to PAID / PARTIAL (recording a payment)
    or back to UNPAID (destructive reset).

    Never raises. Returns {"success": bool, "message": str} plus "error"
    (an error code) on failure, or "invoice"/"payment" on success.
    """
    try:
        target = parse_payment_status(status)

        if target is PaymentStatus.UNPAID:
            invoice = reset_to_unpaid(session, invoice_id, actor=actor)
            return {
                "success": True,
                "message": "Payment status reset to UNPAID; all payments removed",
                "invoice": invoice.to_dict(),
            }

        if not payment_details:
            raise ValidationError("Payment details are required unless status is UNPAID")
        details = parse_payment_details(payment_details)

        payment = apply_payment(
            session,
            invoice_id,
            target_status=target,
            amount_cents=details["amount_cents"],
            method=details["method"],
            paid_on=details["paid_on"],
            reference=details["reference"],
            notes=details["notes"],
            actor=actor,
        )
        invoice = session.get(Invoice, invoice_id)
        return {
            "success": True,
            "message": (
                f"Recorded payment of {format_amount(payment.amount_cents)}; "
                f"invoice is {invoice.payment_status}"
            ),
            "invoice": invoice.to_dict(),
            "payment": payment.to_dict(),
        }

    except LedgerError as exc:
        return {"success": False, "message": exc.message, "error": exc.code}
    except Exception:
        session.rollback()
        logger.exception("Failed to update payment status for invoice %s", invoice_id)
        return {"success": False, "message": "Failed to update payment status", "error": "INTERNAL_ERROR"}


# =============================================================================
# REPORTING
# =============================================================================

def format_amount(cents: int) -> str:
    return f"{cents / 100:,.2f}"


def get_invoice_payments(session, invoice_id: int) -> list[Payment]:
    return (
        session.query(Payment)
        .filter_by(invoice_id=invoice_id)
        .order_by(Payment.payment_date, Payment.id)
        .all()
    )


def get_payment_summary(session, invoice_id: int) -> dict:
    """
    Get payment summary for an invoice.

    Returns:
        - total_cents / paid_cents / remaining_cents
        - payment_status and lifecycle status
        - ledger_total_cents: raw sum of payment rows (may exceed paid_cents
          when an overpayment was capped)
        - payments: list of payment records
    """
    invoice = session.get(Invoice, invoice_id)
    if not invoice:
        raise NotFound(f"Invoice {invoice_id} not found")

    payments = get_invoice_payments(session, invoice_id)
    return {
        "invoice_id": invoice.id,
        "invoice_number": invoice.invoice_number,
        "total_cents": invoice.total_cents,
        "paid_cents": invoice.paid_cents,
        "remaining_cents": invoice.remaining_cents,
        "ledger_total_cents": sum(p.amount_cents for p in payments),
        "payment_status": invoice.payment_status,
        "status": invoice.status,
        "sales": [{"id": s.id, "payment_status": s.payment_status} for s in linked_sales(invoice)],
        "payments": [p.to_dict() for p in payments],
    }
