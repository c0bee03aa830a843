# Overview: Quotation approval rules; ordered, first-match-wins threshold evaluation.

"""
Approval Rules

MARGIN rule: matches when margin % < threshold (minimum acceptable margin).
AMOUNT rule: matches when quotation total > threshold (cents).

Rules are evaluated in (position, id) order and the first match wins.
No other rule kinds exist.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..errors import NotFound, ValidationError
from ..models import ApprovalRule, Quotation
from ..models.statuses import RuleType
from .activity_service import ACTION_CREATE, ACTION_EDIT, log_activity
from .concurrency import transaction_scope


@dataclass(frozen=True)
class RuleBreach:
    rule_id: int | None
    rule_type: RuleType
    reason: str


def quotation_cost_cents(quotation: Quotation) -> int:
    """
    Purchase cost of everything on the quotation.

    Per-carat items cost rate x weight, flat items their flat cost; custom
    lines without an inventory link cost nothing.
    """
    total = 0
    for item in quotation.items:
        if item.inventory_item is not None:
            total += item.inventory_item.purchase_cost_cents()
    return total


def compute_margin_percent(revenue_cents: int, cost_cents: int) -> float:
    if revenue_cents <= 0:
        return 0.0
    return (revenue_cents - cost_cents) / revenue_cents * 100


def _rule_type(rule) -> RuleType:
    return RuleType(rule.rule_type)


def evaluate_rules(
    rules: Iterable[ApprovalRule],
    *,
    margin_percent: float,
    total_revenue_cents: int,
) -> RuleBreach | None:
    """Return the first breached rule, or None when the quotation may go out."""
    for rule in rules:
        kind = _rule_type(rule)
        threshold = rule.threshold_value
        if kind is RuleType.MARGIN and margin_percent < threshold:
            return RuleBreach(
                rule_id=rule.id,
                rule_type=kind,
                reason=f"Margin {margin_percent:.2f}% is below threshold {threshold:g}%",
            )
        if kind is RuleType.AMOUNT and total_revenue_cents > threshold:
            return RuleBreach(
                rule_id=rule.id,
                rule_type=kind,
                reason=(
                    f"Total amount {total_revenue_cents / 100:.2f} exceeds "
                    f"threshold {threshold / 100:.2f}"
                ),
            )
    return None


def get_active_rules(session) -> list[ApprovalRule]:
    return (
        session.query(ApprovalRule)
        .filter_by(is_active=True)
        .order_by(ApprovalRule.position, ApprovalRule.id)
        .all()
    )


def list_rules(session, include_inactive: bool = False) -> list[ApprovalRule]:
    query = session.query(ApprovalRule)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(ApprovalRule.position, ApprovalRule.id).all()


def add_rule(
    session,
    *,
    rule_type: str,
    threshold_value: float,
    position: int | None = None,
    description: str | None = None,
    actor=None,
) -> ApprovalRule:
    """
    Append a rule. Without an explicit position it goes after every
    existing rule.
    """
    try:
        kind = RuleType(str(rule_type).upper())
    except ValueError:
        raise ValidationError(f"Invalid rule type: {rule_type}. Must be MARGIN or AMOUNT")

    if isinstance(threshold_value, bool) or not isinstance(threshold_value, (int, float)):
        raise ValidationError("threshold_value must be a number")
    if threshold_value < 0:
        raise ValidationError("threshold_value must be >= 0")

    with transaction_scope(session):
        if position is None:
            last = session.query(ApprovalRule).order_by(ApprovalRule.position.desc()).first()
            position = (last.position + 1) if last else 0

        rule = ApprovalRule(
            rule_type=kind.value,
            threshold_value=float(threshold_value),
            position=position,
            description=description,
            is_active=True,
        )
        session.add(rule)
        session.flush()
        log_activity(
            session,
            entity_type="ApprovalRule",
            entity_id=rule.id,
            action_type=ACTION_CREATE,
            new_data=rule.to_dict(),
            actor=actor,
        )
    return rule


def deactivate_rule(session, rule_id: int, *, actor=None) -> ApprovalRule:
    with transaction_scope(session):
        rule = session.get(ApprovalRule, rule_id)
        if not rule:
            raise NotFound(f"Approval rule {rule_id} not found")
        if rule.is_active:
            rule.is_active = False
            log_activity(
                session,
                entity_type="ApprovalRule",
                entity_id=rule.id,
                action_type=ACTION_EDIT,
                old_data={"is_active": True},
                new_data={"is_active": False},
                actor=actor,
            )
    return rule
