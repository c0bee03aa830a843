from __future__ import annotations

from ..extensions import db
from gemledger.time_utils import to_utc_z
from .statuses import InventoryStatus, PricingMode


class InventoryItem(db.Model):
    """
    A single stone (or lot) held in stock.

    Pricing is either per carat (rate x weight) or a flat amount, for both
    the purchase side (cost) and the selling side (ERP base price).
    All amounts in cents.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_inventory_items_sku"),
        db.Index("ix_inventory_items_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False)
    item_name = db.Column(db.String(255), nullable=False)

    pricing_mode = db.Column(db.String(16), nullable=False, default=PricingMode.FLAT.value)  # PER_CARAT, FLAT
    weight_value = db.Column(db.Float, nullable=False, default=0.0)
    weight_unit = db.Column(db.String(16), nullable=False, default="ct")

    # Descriptive attributes shown on customer documents
    gem_type = db.Column(db.String(64), nullable=True)
    category = db.Column(db.String(64), nullable=True)
    color = db.Column(db.String(64), nullable=True)
    shape = db.Column(db.String(64), nullable=True)
    dimensions = db.Column(db.String(64), nullable=True)
    rashi = db.Column(db.String(64), nullable=True)
    certificate_numbers = db.Column(db.String(255), nullable=True)

    purchase_rate_per_carat_cents = db.Column(db.Integer, nullable=True)
    flat_purchase_cost_cents = db.Column(db.Integer, nullable=True)
    selling_rate_per_carat_cents = db.Column(db.Integer, nullable=True)
    flat_selling_price_cents = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=InventoryStatus.IN_STOCK.value)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def is_per_carat(self) -> bool:
        return self.pricing_mode == PricingMode.PER_CARAT.value

    def purchase_cost_cents(self) -> int:
        """Landed purchase cost of the whole item."""
        if self.is_per_carat():
            return int(round((self.purchase_rate_per_carat_cents or 0) * (self.weight_value or 0)))
        return self.flat_purchase_cost_cents or 0

    def selling_price_cents(self) -> int:
        if self.is_per_carat():
            return int(round((self.selling_rate_per_carat_cents or 0) * (self.weight_value or 0)))
        return self.flat_selling_price_cents or 0

    def weight_ratti(self) -> float:
        """Weight in ratti, rounded to 2 places (1 ct = 1.09 ratti, 1 g = 5.45 ratti)."""
        factor = {"ct": 1.09, "cts": 1.09, "g": 5.45, "grams": 5.45, "ratti": 1.0}.get((self.weight_unit or "").lower(), 0.0)
        return round((self.weight_value or 0) * factor, 2)

    def weight_label(self) -> str:
        return f"{self.weight_value:g} {self.weight_unit}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "item_name": self.item_name,
            "pricing_mode": self.pricing_mode,
            "weight_value": self.weight_value,
            "weight_unit": self.weight_unit,
            "gem_type": self.gem_type,
            "category": self.category,
            "color": self.color,
            "shape": self.shape,
            "status": self.status,
            "selling_price_cents": self.selling_price_cents(),
            "created_at": to_utc_z(self.created_at),
        }
