# Overview: Single validation point for quotation and invoice status transitions.

"""
Status Lifecycle Rules

QUOTATIONS:
    DRAFT ---send---> SENT
      |                 |
      +--send (gated)-> PENDING_APPROVAL --approve--> APPROVED --> SENT
                          |
                          +--reject--> DRAFT

    SENT / APPROVED / ACTIVE -> ACCEPTED -> CONVERTED
    Any open status -> CANCELLED; SENT / APPROVED / ACTIVE -> EXPIRED
    CONVERTED, CANCELLED and EXPIRED are terminal.

INVOICE PAYMENT STATUS:
    Derived, never chosen: payment_service computes it from paid vs total.
    The only non-derived move is the explicit reset back to UNPAID.
"""

from __future__ import annotations

from ..errors import InvalidState, ValidationError
from ..models.statuses import InvoiceStatus, PaymentStatus, QuotationStatus


QS = QuotationStatus

QUOTATION_TRANSITIONS: dict[QuotationStatus, frozenset[QuotationStatus]] = {
    QS.DRAFT: frozenset({QS.SENT, QS.PENDING_APPROVAL, QS.CANCELLED}),
    QS.PENDING_APPROVAL: frozenset({QS.APPROVED, QS.DRAFT, QS.CANCELLED}),
    QS.APPROVED: frozenset({QS.SENT, QS.ACCEPTED, QS.CANCELLED, QS.EXPIRED}),
    QS.SENT: frozenset({QS.ACCEPTED, QS.CANCELLED, QS.EXPIRED}),
    QS.ACTIVE: frozenset({QS.ACCEPTED, QS.CONVERTED, QS.CANCELLED, QS.EXPIRED}),
    QS.ACCEPTED: frozenset({QS.CONVERTED, QS.CANCELLED}),
    QS.CONVERTED: frozenset(),
    QS.CANCELLED: frozenset(),
    QS.EXPIRED: frozenset(),
}

EXPIRABLE_QUOTATION_STATUSES = frozenset({QS.SENT, QS.APPROVED, QS.ACTIVE})


def parse_quotation_status(value) -> QuotationStatus:
    try:
        return QuotationStatus(value)
    except ValueError:
        raise ValidationError(
            f"Invalid quotation status '{value}'. Must be one of: "
            f"{', '.join(s.value for s in QuotationStatus)}"
        )


def can_transition_quotation(from_status, to_status) -> bool:
    from_status = parse_quotation_status(from_status)
    to_status = parse_quotation_status(to_status)
    return to_status in QUOTATION_TRANSITIONS[from_status]


def require_quotation_transition(from_status, to_status) -> QuotationStatus:
    """
    Raise InvalidState unless from_status -> to_status is allowed.

    Returns the target status as an enum member.
    """
    if not can_transition_quotation(from_status, to_status):
        raise InvalidState(
            f"Cannot move quotation from {QuotationStatus(from_status).value} "
            f"to {QuotationStatus(to_status).value}"
        )
    return QuotationStatus(to_status)


def parse_payment_status(value) -> PaymentStatus:
    try:
        return PaymentStatus(value)
    except ValueError:
        raise ValidationError(
            f"Invalid payment status '{value}'. Must be one of: "
            f"{', '.join(s.value for s in PaymentStatus)}"
        )


def invoice_status_for(payment_status: PaymentStatus) -> InvoiceStatus:
    """Lifecycle status implied by a payment status."""
    if payment_status is PaymentStatus.PAID:
        return InvoiceStatus.PAID
    return InvoiceStatus.ISSUED
