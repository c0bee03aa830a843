from __future__ import annotations

import json

from ..extensions import db
from gemledger.time_utils import to_utc_z, to_iso_date
from .statuses import InvoiceStatus, PaymentStatus


class Sale(db.Model):
    """
    One sold inventory line.

    WHY: A sale is recorded when a stone is marked sold. Its payment status is
    never edited directly; it mirrors the payment status of its invoice and is
    written only by the payment ledger.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_invoice", "invoice_id"),
        db.Index("ix_sales_payment_status", "payment_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=True, index=True)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(64), nullable=True)
    sale_date = db.Column(db.Date, nullable=False)

    # All amounts in cents; net = sale price - discount
    sale_price_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    net_amount_cents = db.Column(db.Integer, nullable=False)

    payment_status = db.Column(db.String(16), nullable=False, default=PaymentStatus.UNPAID.value)  # UNPAID, PARTIAL, PAID
    payment_method = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Current model: many sales per invoice
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True)
    # Older data: one invoice per sale
    legacy_invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True, unique=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    inventory_item = db.relationship("InventoryItem", backref=db.backref("sales", lazy=True))
    invoice = db.relationship(
        "Invoice",
        foreign_keys=[invoice_id],
        backref=db.backref("sales", lazy=True, order_by="Sale.id"),
    )
    legacy_invoice = db.relationship(
        "Invoice",
        foreign_keys=[legacy_invoice_id],
        backref=db.backref("legacy_sale", uselist=False),
    )
    __mapper_args__ = {"version_id_col": version_id}

    def is_invoiced(self) -> bool:
        return self.invoice_id is not None or self.legacy_invoice_id is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_item_id": self.inventory_item_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "sale_date": to_iso_date(self.sale_date),
            "sale_price_cents": self.sale_price_cents,
            "discount_cents": self.discount_cents,
            "net_amount_cents": self.net_amount_cents,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "invoice_id": self.invoice_id,
            "legacy_invoice_id": self.legacy_invoice_id,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }


class Invoice(db.Model):
    """
    Billing document over one legacy sale or many current sales.

    INVARIANTS (maintained by payment_service only):
    - 0 <= paid_cents <= total_cents
    - payment_status == PAID  <=>  paid_cents >= total_cents - 1
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_invoices_number"),
        db.UniqueConstraint("token", name="uq_invoices_token"),
        db.Index("ix_invoices_payment_status", "payment_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "INV-2026-0042")
    invoice_number = db.Column(db.String(32), nullable=False)

    # Opaque 32-hex token for the unauthenticated public view
    token = db.Column(db.String(64), nullable=False)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_total_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_total_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    # Denormalized running total of payments
    paid_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_status = db.Column(db.String(16), nullable=False, default=PaymentStatus.UNPAID.value)

    # Lifecycle status
    status = db.Column(db.String(16), nullable=False, default=InvoiceStatus.ISSUED.value)  # ISSUED, PAID
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Serialized display toggles; decoded by services.display_options only
    display_options_json = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    payments = db.relationship(
        "Payment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="Payment.id",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def remaining_cents(self) -> int:
        return max(self.total_cents - self.paid_cents, 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "token": self.token,
            "subtotal_cents": self.subtotal_cents,
            "discount_total_cents": self.discount_total_cents,
            "tax_total_cents": self.tax_total_cents,
            "total_cents": self.total_cents,
            "paid_cents": self.paid_cents,
            "remaining_cents": self.remaining_cents,
            "payment_status": self.payment_status,
            "status": self.status,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class Payment(db.Model):
    """
    Immutable ledger entry for money received against an invoice.

    Rows are only ever inserted, except when an invoice is explicitly reset
    to UNPAID, which deletes all of its payments (audited).
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_invoice_created", "invoice_id", "created_at"),
        db.Index("ix_payments_reference", "reference"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(32), nullable=False)
    payment_date = db.Column(db.Date, nullable=False)

    # Cheque number, UTR, gateway payment id, etc.
    reference = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    invoice = db.relationship("Invoice", back_populates="payments")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "amount_cents": self.amount_cents,
            "method": self.method,
            "payment_date": to_iso_date(self.payment_date),
            "reference": self.reference,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class InvoiceVersion(db.Model):
    """
    Point-in-time JSON snapshot of an invoice.

    IMMUTABLE: versions are appended, never updated or deleted.
    """
    __tablename__ = "invoice_versions"
    __table_args__ = (
        db.UniqueConstraint("invoice_id", "version_number", name="uq_invoice_versions_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    version_number = db.Column(db.Integer, nullable=False)
    snapshot = db.Column(db.Text, nullable=False)
    reason = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    invoice = db.relationship("Invoice", backref=db.backref("versions", lazy=True, order_by="InvoiceVersion.version_number"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "version_number": self.version_number,
            "snapshot": json.loads(self.snapshot),
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
        }
