# Overview: Service-layer operations for invoices; aggregates sales into invoices.

"""
Invoice Aggregator

WHY: A finalized sale (or a group of sales for one customer) is billed on a
single invoice carrying the authoritative payment totals.

DESIGN:
- Creation allocates INV-<year>-<seq> from the atomic document sequence and a
  32-hex public token, copies totals from the sales and links them.
- Regenerating an invoice for an already-invoiced sale only replaces the
  display options; totals are never recomputed by an update.
- Payment fields start in a ledger-consistent state and are afterwards
  changed by payment_service only.
"""

from __future__ import annotations

import secrets

from ..errors import InvalidState, NotFound, ValidationError
from ..models import Invoice, Sale
from .activity_service import ACTION_CREATE, ACTION_EDIT, log_activity
from .concurrency import lock_for_update, run_with_retry, transaction_scope
from .display_options import InvoiceDisplayOptions, decode, encode, from_mapping, to_mapping
from .document_service import DOC_TYPE_INVOICE, next_document_number
from .payment_service import initialize_invoice_state, linked_sales


def generate_invoice_token() -> str:
    """32 hex characters (16 bytes) from a CSPRNG."""
    return secrets.token_hex(16)


def _coerce_options(display_options) -> InvoiceDisplayOptions:
    if isinstance(display_options, InvoiceDisplayOptions):
        return display_options
    return from_mapping(display_options)


def _new_invoice(session, sales: list[Sale], options: InvoiceDisplayOptions, actor) -> Invoice:
    invoice = Invoice(
        invoice_number=next_document_number(session, document_type=DOC_TYPE_INVOICE),
        token=generate_invoice_token(),
        subtotal_cents=sum(s.net_amount_cents for s in sales),
        discount_total_cents=sum(s.discount_cents for s in sales),
        tax_total_cents=0,
        total_cents=sum(s.net_amount_cents for s in sales),
        is_active=True,
        display_options_json=encode(options),
        created_by_user_id=actor.id if actor is not None else None,
    )
    session.add(invoice)
    session.flush()

    for sale in sales:
        sale.invoice = invoice
    session.flush()

    initialize_invoice_state(invoice)
    session.flush()

    log_activity(
        session,
        entity_type="Invoice",
        entity_id=invoice.id,
        entity_identifier=invoice.invoice_number,
        action_type=ACTION_CREATE,
        new_data={
            **invoice.to_dict(),
            "sale_ids": [s.id for s in sales],
            "display_options": to_mapping(options),
        },
        actor=actor,
    )
    return invoice


def create_or_update_invoice_from_sale(
    session,
    sale_id: int,
    display_options=None,
    *,
    actor=None,
) -> tuple[Invoice, bool]:
    """
    Create the invoice for a sale, or update the display options of its
    existing invoice.

    Returns:
        (invoice, created) where created is False on the update path

    Raises:
        NotFound: sale does not exist
        ValidationError: malformed display options
    """
    options = _coerce_options(display_options)

    def _op() -> tuple[Invoice, bool]:
        with transaction_scope(session):
            sale = lock_for_update(session.query(Sale).filter_by(id=sale_id)).first()
            if not sale:
                raise NotFound(f"Sale {sale_id} not found")

            existing = sale.invoice or sale.legacy_invoice
            if existing is not None:
                before = to_mapping(decode(existing.display_options_json))
                existing.display_options_json = encode(options)
                log_activity(
                    session,
                    entity_type="Invoice",
                    entity_id=existing.id,
                    entity_identifier=existing.invoice_number,
                    action_type=ACTION_EDIT,
                    old_data={"display_options": before},
                    new_data={"display_options": to_mapping(options)},
                    actor=actor,
                )
                return existing, False

            return _new_invoice(session, [sale], options, actor), True

    return run_with_retry(session, _op)


def create_invoice_for_sales(
    session,
    sale_ids: list[int],
    display_options=None,
    *,
    actor=None,
) -> Invoice:
    """
    Bill several sales on one invoice (current 1:N model).

    Raises:
        ValidationError: no sale ids given
        NotFound: any sale does not exist
        InvalidState: any sale is already invoiced
    """
    if not isinstance(sale_ids, (list, tuple)) or not sale_ids:
        raise ValidationError("sale_ids must be a non-empty list")
    ordered_ids = list(dict.fromkeys(sale_ids))
    options = _coerce_options(display_options)

    def _op() -> Invoice:
        with transaction_scope(session):
            sales = (
                lock_for_update(session.query(Sale).filter(Sale.id.in_(ordered_ids)))
                .order_by(Sale.id)
                .all()
            )
            found = {s.id for s in sales}
            missing = [sid for sid in ordered_ids if sid not in found]
            if missing:
                raise NotFound(f"Sale(s) not found: {', '.join(str(m) for m in missing)}")

            invoiced = [s.id for s in sales if s.is_invoiced()]
            if invoiced:
                raise InvalidState(f"Sale(s) already invoiced: {', '.join(str(i) for i in invoiced)}")

            return _new_invoice(session, sales, options, actor)

    return run_with_retry(session, _op)


def set_invoice_active(session, invoice_id: int, is_active: bool, *, actor=None) -> Invoice:
    """Enable or disable the public link of an invoice."""
    if not isinstance(is_active, bool):
        raise ValidationError("is_active must be true or false")

    with transaction_scope(session):
        invoice = get_invoice(session, invoice_id)
        if invoice.is_active != is_active:
            log_activity(
                session,
                entity_type="Invoice",
                entity_id=invoice.id,
                entity_identifier=invoice.invoice_number,
                action_type=ACTION_EDIT,
                old_data={"is_active": invoice.is_active},
                new_data={"is_active": is_active},
                actor=actor,
            )
            invoice.is_active = is_active
    return invoice


def get_invoice(session, invoice_id: int) -> Invoice:
    invoice = session.get(Invoice, invoice_id)
    if not invoice:
        raise NotFound(f"Invoice {invoice_id} not found")
    return invoice


def get_invoice_by_token(session, token: str) -> Invoice:
    """Public lookup. Disabled invoices are returned; callers decide how to render them."""
    invoice = session.query(Invoice).filter_by(token=token).first() if token else None
    if not invoice:
        raise NotFound("Invoice not found")
    return invoice


def get_display_options(invoice: Invoice) -> InvoiceDisplayOptions:
    return decode(invoice.display_options_json)


def invoice_detail(invoice: Invoice) -> dict:
    """Back-office view: header, display options and linked sales."""
    data = invoice.to_dict()
    data["display_options"] = to_mapping(get_display_options(invoice))
    data["sales"] = [s.to_dict() for s in linked_sales(invoice)]
    return data


def public_invoice_view(invoice: Invoice) -> dict:
    """
    Customer-facing view of an active invoice.

    Each display toggle adds its field to the line items; totals and
    payment state are always shown.
    """
    options = get_display_options(invoice)
    sales = linked_sales(invoice)
    lines = []
    for sale in sales:
        item = sale.inventory_item
        line = {
            "item_name": item.item_name if item else "Item",
            "amount_cents": sale.net_amount_cents,
        }
        if item is not None:
            if options.show_sku:
                line["sku"] = item.sku
            if options.show_weight:
                line["weight"] = item.weight_label()
            if options.show_ratti:
                line["weight_ratti"] = item.weight_ratti()
            if options.show_dimensions:
                line["dimensions"] = item.dimensions
            if options.show_gem_type:
                line["gem_type"] = item.gem_type
            if options.show_category:
                line["category"] = item.category
            if options.show_color:
                line["color"] = item.color
            if options.show_shape:
                line["shape"] = item.shape
            if options.show_rashi:
                line["rashi"] = item.rashi
            if options.show_certificates:
                line["certificates"] = item.certificate_numbers
        if options.show_price:
            line["sale_price_cents"] = sale.sale_price_cents
            line["discount_cents"] = sale.discount_cents
        lines.append(line)

    return {
        "state": "active",
        "invoice_number": invoice.invoice_number,
        "date": invoice.to_dict()["created_at"],
        "customer_name": sales[0].customer_name if sales else None,
        "lines": lines,
        "subtotal_cents": invoice.subtotal_cents,
        "discount_total_cents": invoice.discount_total_cents,
        "tax_total_cents": invoice.tax_total_cents,
        "total_cents": invoice.total_cents,
        "paid_cents": invoice.paid_cents,
        "balance_due_cents": invoice.remaining_cents,
        "payment_status": invoice.payment_status,
    }
