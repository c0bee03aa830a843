# Overview: Service-layer operations for quotations; pricing, approval gate and lifecycle moves.

"""
Quotation Service

WHY: A quotation whose margin or value breaches a configured rule must not
reach the customer without a manager's approval.

DESIGN:
- Lines are priced from the inventory selling price (the ERP base price),
  optionally overridden by a fixed AMOUNT (cents) or a PERCENT discount.
- Sending a DRAFT goes through evaluate_send: it either goes out (SENT) or
  is held at PENDING_APPROVAL with the reason of the first breached rule.
- Every status move is validated by lifecycle_service and audited in the
  same transaction as the status write.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import date, timedelta

from ..errors import InvalidState, NotFound, ValidationError
from ..models import InventoryItem, Quotation, QuotationItem
from ..models.statuses import PriceOverrideType, QuotationStatus
from gemledger.time_utils import parse_iso_date, utcnow
from .activity_service import (
    ACTION_CREATE,
    ACTION_STATUS_CHANGE,
    SOURCE_CRON,
    SOURCE_WEB,
    log_activity,
)
from .approval_service import (
    compute_margin_percent,
    evaluate_rules,
    get_active_rules,
    quotation_cost_cents,
)
from .concurrency import lock_for_update, run_with_retry, transaction_scope
from .document_service import DOC_TYPE_QUOTATION, next_document_number
from .lifecycle_service import EXPIRABLE_QUOTATION_STATUSES, require_quotation_transition


logger = logging.getLogger(__name__)

DEFAULT_VALIDITY_DAYS = 7
DEFAULT_CUSTOMER_NAME = "Unknown Customer"


@dataclass(frozen=True)
class SendDecision:
    new_status: QuotationStatus
    requires_approval: bool
    reason: str | None = None

    def to_dict(self) -> dict:
        return {
            "new_status": self.new_status.value,
            "requires_approval": self.requires_approval,
            "reason": self.reason,
        }


def generate_quotation_token() -> str:
    return secrets.token_hex(16)


# =============================================================================
# PRICING
# =============================================================================

def _parse_expiry(value) -> date:
    if value in (None, ""):
        return utcnow().date() + timedelta(days=DEFAULT_VALIDITY_DAYS)
    if isinstance(value, date):
        return value
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError("expiry_date must be an ISO-8601 date")


def _positive_int(name: str, value, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"{name} must be a positive integer")
    return value


def price_line(erp_base_price_cents: int, override_type=None, override_value=None,
               final_unit_price_cents=None) -> int:
    """
    Final unit price of a quotation line, in cents.

    AMOUNT replaces the base price, PERCENT discounts it, and with no
    override an explicit positive final price wins over the base price.
    """
    if override_type is not None:
        try:
            kind = PriceOverrideType(str(override_type).upper())
        except ValueError:
            raise ValidationError(f"Invalid price override type: {override_type}")
        if override_value is None:
            return erp_base_price_cents
        if isinstance(override_value, bool) or not isinstance(override_value, (int, float)):
            raise ValidationError("price_override_value must be a number")
        if kind is PriceOverrideType.AMOUNT:
            if override_value < 0:
                raise ValidationError("AMOUNT override cannot be negative")
            return int(round(override_value))
        if not 0 <= override_value <= 100:
            raise ValidationError("PERCENT override must be between 0 and 100")
        discount = erp_base_price_cents * override_value / 100
        return int(round(erp_base_price_cents - discount))

    if isinstance(final_unit_price_cents, int) and not isinstance(final_unit_price_cents, bool) \
            and final_unit_price_cents > 0:
        return final_unit_price_cents
    return erp_base_price_cents


def _build_item(session, data: dict) -> QuotationItem:
    if not isinstance(data, dict):
        raise ValidationError("Each item must be an object")

    inventory_item = None
    inventory_item_id = data.get("inventory_item_id")
    if inventory_item_id is not None:
        inventory_item = session.get(InventoryItem, inventory_item_id)
        if not inventory_item:
            raise NotFound(f"Inventory item {inventory_item_id} not found")

    if inventory_item is not None:
        item_name = inventory_item.item_name
        sku = inventory_item.sku
        weight = inventory_item.weight_label()
        erp_base = inventory_item.selling_price_cents()
    else:
        item_name = (data.get("item_name") or "").strip()
        if not item_name:
            raise ValidationError("item_name is required for items without inventory")
        sku = data.get("sku")
        weight = data.get("weight")
        erp_base = data.get("erp_base_price_cents") or 0
        if isinstance(erp_base, bool) or not isinstance(erp_base, int) or erp_base < 0:
            raise ValidationError("erp_base_price_cents must be a non-negative integer")

    override_type = data.get("price_override_type")
    override_value = data.get("price_override_value")
    final_price = price_line(erp_base, override_type, override_value, data.get("final_unit_price_cents"))
    quantity = _positive_int("quantity", data.get("quantity"), 1)

    return QuotationItem(
        inventory_item=inventory_item,
        sku=sku,
        item_name=item_name,
        weight=weight,
        erp_base_price_cents=erp_base,
        price_override_type=str(override_type).upper() if override_type else None,
        price_override_value=float(override_value) if override_value is not None else None,
        final_unit_price_cents=final_price,
        quantity=quantity,
        subtotal_cents=final_price * quantity,
    )


# =============================================================================
# CREATION
# =============================================================================

def create_quotation(
    session,
    *,
    items: list[dict],
    customer_name: str | None = None,
    customer_mobile: str | None = None,
    customer_email: str | None = None,
    customer_city: str | None = None,
    expiry_date=None,
    actor=None,
) -> Quotation:
    """
    Price the lines and store a new DRAFT quotation.

    Raises:
        ValidationError: no items, or a malformed line
        NotFound: a referenced inventory item does not exist
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("A quotation needs at least one item")
    expiry = _parse_expiry(expiry_date)

    def _op() -> Quotation:
        with transaction_scope(session):
            number = next_document_number(session, document_type=DOC_TYPE_QUOTATION)
            lines = [_build_item(session, data) for data in items]

            quotation = Quotation(
                quotation_number=number,
                token=generate_quotation_token(),
                customer_name=(customer_name or "").strip() or DEFAULT_CUSTOMER_NAME,
                customer_mobile=customer_mobile,
                customer_email=customer_email,
                customer_city=customer_city,
                expiry_date=expiry,
                status=QuotationStatus.DRAFT.value,
                total_cents=sum(line.subtotal_cents for line in lines),
                created_by_user_id=actor.id if actor is not None else None,
            )
            quotation.items.extend(lines)
            session.add(quotation)
            session.flush()

            log_activity(
                session,
                entity_type="Quotation",
                entity_id=quotation.id,
                entity_identifier=quotation.quotation_number,
                action_type=ACTION_CREATE,
                new_data=quotation.to_dict(),
                actor=actor,
            )
        return quotation

    return run_with_retry(session, _op)


def get_quotation(session, quotation_id: int) -> Quotation:
    quotation = session.get(Quotation, quotation_id)
    if not quotation:
        raise NotFound(f"Quotation {quotation_id} not found")
    return quotation


# =============================================================================
# STATUS MOVES
# =============================================================================

def _get_quotation_locked(session, quotation_id: int) -> Quotation:
    quotation = lock_for_update(session.query(Quotation).filter_by(id=quotation_id)).first()
    if not quotation:
        raise NotFound(f"Quotation {quotation_id} not found")
    return quotation


def _move(session, quotation: Quotation, to_status: QuotationStatus, *, actor=None,
          source: str = SOURCE_WEB, reason: str | None = None) -> None:
    """Validate, write and audit one status move. Runs inside the caller's transaction."""
    old_status = quotation.status
    require_quotation_transition(old_status, to_status)
    quotation.status = to_status.value

    new_data = {"status": to_status.value}
    if reason:
        new_data["reason"] = reason
    log_activity(
        session,
        entity_type="Quotation",
        entity_id=quotation.id,
        entity_identifier=quotation.quotation_number,
        action_type=ACTION_STATUS_CHANGE,
        old_data={"status": old_status},
        new_data=new_data,
        actor=actor,
        source=source,
    )


def evaluate_send(session, quotation_id: int, actor=None) -> SendDecision:
    """
    Send a DRAFT quotation, or hold it for approval.

    Margin is (revenue - purchase cost) / revenue * 100 where revenue is the
    quotation total. Active rules are checked in position order and the
    first breach holds the quotation at PENDING_APPROVAL.

    Raises:
        NotFound: quotation does not exist
        InvalidState: quotation is not DRAFT
    """
    def _op() -> SendDecision:
        with transaction_scope(session):
            quotation = _get_quotation_locked(session, quotation_id)
            if quotation.status != QuotationStatus.DRAFT.value:
                raise InvalidState(
                    f"Only DRAFT quotations can be sent (quotation is {quotation.status})"
                )

            revenue = quotation.total_cents
            margin = compute_margin_percent(revenue, quotation_cost_cents(quotation))
            breach = evaluate_rules(
                get_active_rules(session),
                margin_percent=margin,
                total_revenue_cents=revenue,
            )

            if breach is not None:
                decision = SendDecision(QuotationStatus.PENDING_APPROVAL, True, breach.reason)
                quotation.approval_reason = breach.reason
            else:
                decision = SendDecision(QuotationStatus.SENT, False, None)
                quotation.approval_reason = None

            _move(session, quotation, decision.new_status, actor=actor, reason=decision.reason)
        logger.info(
            "Quotation %s -> %s (margin %.2f%%)",
            quotation.quotation_number, decision.new_status.value, margin,
        )
        return decision

    return run_with_retry(session, _op)


def _simple_move(session, quotation_id: int, to_status: QuotationStatus, *, actor=None,
                 reason: str | None = None, before_write=None) -> Quotation:
    def _op() -> Quotation:
        with transaction_scope(session):
            quotation = _get_quotation_locked(session, quotation_id)
            require_quotation_transition(quotation.status, to_status)
            if before_write is not None:
                before_write(quotation)
            _move(session, quotation, to_status, actor=actor, reason=reason)
        return quotation

    return run_with_retry(session, _op)


def approve_quotation(session, quotation_id: int, *, actor=None) -> Quotation:
    """PENDING_APPROVAL -> APPROVED, stamping who approved and when."""
    def _stamp(quotation: Quotation) -> None:
        quotation.approved_by_user_id = actor.id if actor is not None else None
        quotation.approved_at = utcnow()

    return _simple_move(session, quotation_id, QuotationStatus.APPROVED, actor=actor, before_write=_stamp)


def reject_quotation(session, quotation_id: int, *, actor=None, reason: str | None = None) -> Quotation:
    """PENDING_APPROVAL -> DRAFT so the quotation can be repriced."""
    return _simple_move(session, quotation_id, QuotationStatus.DRAFT, actor=actor, reason=reason)


def cancel_quotation(session, quotation_id: int, *, actor=None, reason: str | None = None) -> Quotation:
    return _simple_move(session, quotation_id, QuotationStatus.CANCELLED, actor=actor, reason=reason)


def expire_quotations(session, today: date | None = None) -> list[str]:
    """
    Batch job: expire open quotations whose expiry date has passed.

    Returns the quotation numbers that were expired.
    """
    today = today or utcnow().date()
    statuses = [s.value for s in EXPIRABLE_QUOTATION_STATUSES]

    def _op() -> list[str]:
        with transaction_scope(session):
            due = (
                lock_for_update(
                    session.query(Quotation).filter(
                        Quotation.status.in_(statuses),
                        Quotation.expiry_date < today,
                    )
                )
                .order_by(Quotation.id)
                .all()
            )
            for quotation in due:
                _move(session, quotation, QuotationStatus.EXPIRED, source=SOURCE_CRON)
            numbers = [q.quotation_number for q in due]
        if numbers:
            logger.info("Expired %d quotation(s): %s", len(numbers), ", ".join(numbers))
        return numbers

    return run_with_retry(session, _op)
