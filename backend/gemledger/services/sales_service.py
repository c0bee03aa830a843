# Overview: Service-layer operations for sales; records sold inventory lines.

from __future__ import annotations

from datetime import date

from ..errors import InvalidState, NotFound, ValidationError
from ..models import InventoryItem, Sale
from ..models.statuses import InventoryStatus, PaymentStatus
from gemledger.time_utils import utcnow
from .activity_service import ACTION_CREATE, log_activity
from .concurrency import lock_for_update, run_with_retry, transaction_scope


def _validate_cents(name: str, value, *, allow_none: bool = False) -> int | None:
    if value is None and allow_none:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer")
    if value < 0:
        raise ValidationError(f"{name} must be >= 0")
    return value


def record_sale(
    session,
    *,
    inventory_item_id: int,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    sale_price_cents: int | None = None,
    discount_cents: int = 0,
    sale_date: date | None = None,
    actor=None,
) -> Sale:
    """
    Mark an in-stock item sold and record the sale.

    The sale price defaults to the item's selling price. New sales always
    start UNPAID; their payment status afterwards follows their invoice.

    Raises:
        NotFound: inventory item does not exist
        InvalidState: item is not IN_STOCK
        ValidationError: bad amounts
    """
    sale_price_cents = _validate_cents("sale_price_cents", sale_price_cents, allow_none=True)
    discount_cents = _validate_cents("discount_cents", discount_cents)

    def _op() -> Sale:
        with transaction_scope(session):
            item = lock_for_update(session.query(InventoryItem).filter_by(id=inventory_item_id)).first()
            if not item:
                raise NotFound(f"Inventory item {inventory_item_id} not found")
            if item.status != InventoryStatus.IN_STOCK.value:
                raise InvalidState(f"Item {item.sku} is {item.status}, not IN_STOCK")

            price = sale_price_cents if sale_price_cents is not None else item.selling_price_cents()
            if discount_cents > price:
                raise ValidationError("discount_cents cannot exceed the sale price")

            sale = Sale(
                inventory_item_id=item.id,
                customer_name=customer_name,
                customer_phone=customer_phone,
                sale_date=sale_date or utcnow().date(),
                sale_price_cents=price,
                discount_cents=discount_cents,
                net_amount_cents=price - discount_cents,
                payment_status=PaymentStatus.UNPAID.value,
                created_by_user_id=actor.id if actor is not None else None,
            )
            session.add(sale)
            item.status = InventoryStatus.SOLD.value
            session.flush()

            log_activity(
                session,
                entity_type="Sale",
                entity_id=sale.id,
                entity_identifier=item.sku,
                action_type=ACTION_CREATE,
                new_data=sale.to_dict(),
                actor=actor,
            )
        return sale

    return run_with_retry(session, _op)
