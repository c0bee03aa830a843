from __future__ import annotations

from ..extensions import db
from gemledger.time_utils import to_utc_z, to_iso_date
from .statuses import QuotationStatus


class Quotation(db.Model):
    """
    Customer-facing price offer.

    STATE MACHINE: see services.lifecycle_service.QUOTATION_TRANSITIONS.
    DRAFT -> SENT happens only through the approval gate, which may hold the
    quotation at PENDING_APPROVAL instead.
    """
    __tablename__ = "quotations"
    __table_args__ = (
        db.UniqueConstraint("quotation_number", name="uq_quotations_number"),
        db.UniqueConstraint("token", name="uq_quotations_token"),
        db.Index("ix_quotations_status_expiry", "status", "expiry_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    quotation_number = db.Column(db.String(32), nullable=False)
    token = db.Column(db.String(64), nullable=False)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_mobile = db.Column(db.String(64), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_city = db.Column(db.String(128), nullable=True)

    expiry_date = db.Column(db.Date, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(24), nullable=False, default=QuotationStatus.DRAFT.value, index=True)

    # Why the approval gate held the quotation (null when it went straight out)
    approval_reason = db.Column(db.String(255), nullable=True)
    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship(
        "QuotationItem",
        back_populates="quotation",
        cascade="all, delete-orphan",
        order_by="QuotationItem.id",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "quotation_number": self.quotation_number,
            "token": self.token,
            "customer_name": self.customer_name,
            "customer_mobile": self.customer_mobile,
            "customer_email": self.customer_email,
            "customer_city": self.customer_city,
            "expiry_date": to_iso_date(self.expiry_date),
            "total_cents": self.total_cents,
            "status": self.status,
            "approval_reason": self.approval_reason,
            "approved_by_user_id": self.approved_by_user_id,
            "approved_at": to_utc_z(self.approved_at),
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class QuotationItem(db.Model):
    """Priced line on a quotation. Items without an inventory link are custom lines."""
    __tablename__ = "quotation_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    quotation_id = db.Column(db.Integer, db.ForeignKey("quotations.id"), nullable=False, index=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=True, index=True)

    sku = db.Column(db.String(64), nullable=True)
    item_name = db.Column(db.String(255), nullable=False)
    weight = db.Column(db.String(32), nullable=True)

    erp_base_price_cents = db.Column(db.Integer, nullable=False, default=0)
    price_override_type = db.Column(db.String(16), nullable=True)  # AMOUNT, PERCENT
    # AMOUNT overrides are cents; PERCENT overrides are a discount percentage
    price_override_value = db.Column(db.Float, nullable=True)
    final_unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)

    quotation = db.relationship("Quotation", back_populates="items")
    inventory_item = db.relationship("InventoryItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quotation_id": self.quotation_id,
            "inventory_item_id": self.inventory_item_id,
            "sku": self.sku,
            "item_name": self.item_name,
            "weight": self.weight,
            "erp_base_price_cents": self.erp_base_price_cents,
            "price_override_type": self.price_override_type,
            "price_override_value": self.price_override_value,
            "final_unit_price_cents": self.final_unit_price_cents,
            "quantity": self.quantity,
            "subtotal_cents": self.subtotal_cents,
        }


class ApprovalRule(db.Model):
    """
    Ordered quotation approval rule.

    MARGIN: threshold_value is the minimum acceptable margin percentage.
    AMOUNT: threshold_value is the maximum total (cents) allowed without approval.
    """
    __tablename__ = "approval_rules"
    __table_args__ = (
        db.Index("ix_approval_rules_active_position", "is_active", "position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    rule_type = db.Column(db.String(16), nullable=False)  # MARGIN, AMOUNT
    threshold_value = db.Column(db.Float, nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    description = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "rule_type": self.rule_type,
            "threshold_value": self.threshold_value,
            "position": self.position,
            "is_active": self.is_active,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }
