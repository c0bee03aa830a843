"""
Quotation pricing, approval gate and lifecycle tests.
"""

from datetime import date, timedelta

import pytest

from gemledger.errors import InvalidState, NotFound, ValidationError
from gemledger.models import ActivityLog, ApprovalRule, Quotation
from gemledger.models.statuses import PricingMode, QuotationStatus
from gemledger.services import approval_service, quotation_service
from gemledger.services.lifecycle_service import (
    QUOTATION_TRANSITIONS,
    can_transition_quotation,
    require_quotation_transition,
)
from gemledger.services.quotation_service import price_line
from gemledger.time_utils import utcnow


def _quote(db_session, item, final_cents=None, **kwargs):
    line = {"inventory_item_id": item.id}
    if final_cents is not None:
        line.update({"price_override_type": "AMOUNT", "price_override_value": final_cents})
    return quotation_service.create_quotation(
        db_session, items=[line], customer_name="R. Mehta", **kwargs
    )


class TestPricing:

    def test_amount_override(self):
        assert price_line(100000, "AMOUNT", 95000) == 95000

    def test_percent_override(self):
        assert price_line(100000, "PERCENT", 12.5) == 87500

    def test_explicit_final_price_without_override(self):
        assert price_line(100000, None, None, 80000) == 80000
        assert price_line(100000, None, None, 0) == 100000

    def test_invalid_percent(self):
        with pytest.raises(ValidationError):
            price_line(100000, "PERCENT", 120)

    def test_create_quotation(self, db_session, make_item):
        item = make_item(selling_cents=100000)
        quotation = quotation_service.create_quotation(
            db_session,
            items=[
                {"inventory_item_id": item.id, "price_override_type": "PERCENT", "price_override_value": 10},
                {"item_name": "Silver ring setting", "final_unit_price_cents": 5000, "quantity": 2},
            ],
            customer_name="R. Mehta",
            expiry_date="2026-12-31",
        )

        assert quotation.status == QuotationStatus.DRAFT.value
        assert quotation.quotation_number == f"QTN-{utcnow().year}-0001"
        assert quotation.expiry_date == date(2026, 12, 31)
        assert [i.subtotal_cents for i in quotation.items] == [90000, 10000]
        assert quotation.items[0].erp_base_price_cents == 100000
        assert quotation.items[0].sku == item.sku
        assert quotation.total_cents == 100000

    def test_default_expiry_and_customer(self, db_session, make_item):
        quotation = quotation_service.create_quotation(
            db_session, items=[{"inventory_item_id": make_item().id}]
        )
        assert quotation.customer_name == "Unknown Customer"
        assert quotation.expiry_date == utcnow().date() + timedelta(days=7)

    def test_empty_items_rejected(self, db_session):
        with pytest.raises(ValidationError):
            quotation_service.create_quotation(db_session, items=[])

    def test_unknown_inventory_item(self, db_session):
        with pytest.raises(NotFound):
            quotation_service.create_quotation(db_session, items=[{"inventory_item_id": 987654}])
        assert db_session.query(Quotation).count() == 0


class TestApprovalGate:

    def test_low_margin_held_for_approval(self, db_session, make_item, margin_rule):
        # Cost 950 on revenue 1000 -> margin 5%
        item = make_item(selling_cents=100000, cost_cents=95000)
        quotation = _quote(db_session, item)

        decision = quotation_service.evaluate_send(db_session, quotation.id)

        assert decision.new_status is QuotationStatus.PENDING_APPROVAL
        assert decision.requires_approval is True
        assert "5.00%" in decision.reason
        assert "threshold 10%" in decision.reason
        assert quotation.status == QuotationStatus.PENDING_APPROVAL.value
        assert quotation.approval_reason == decision.reason

    def test_healthy_margin_sent(self, db_session, make_item, margin_rule):
        item = make_item(selling_cents=100000, cost_cents=60000)
        quotation = _quote(db_session, item)

        decision = quotation_service.evaluate_send(db_session, quotation.id)

        assert decision.new_status is QuotationStatus.SENT
        assert decision.requires_approval is False
        assert decision.reason is None

    def test_no_rules_always_sent(self, db_session, make_item):
        item = make_item(selling_cents=100000, cost_cents=99000)
        decision = quotation_service.evaluate_send(db_session, _quote(db_session, item).id)
        assert decision.new_status is QuotationStatus.SENT

    def test_amount_rule(self, db_session, make_item):
        approval_service.add_rule(db_session, rule_type="AMOUNT", threshold_value=100000)
        item = make_item(selling_cents=120000, cost_cents=10000)

        decision = quotation_service.evaluate_send(db_session, _quote(db_session, item).id)

        assert decision.new_status is QuotationStatus.PENDING_APPROVAL
        assert decision.reason == "Total amount 1200.00 exceeds threshold 1000.00"

    def test_first_matching_rule_wins(self, db_session, make_item):
        approval_service.add_rule(db_session, rule_type="AMOUNT", threshold_value=50000, position=1)
        approval_service.add_rule(db_session, rule_type="MARGIN", threshold_value=20, position=0)
        item = make_item(selling_cents=100000, cost_cents=90000)

        decision = quotation_service.evaluate_send(db_session, _quote(db_session, item).id)

        assert decision.reason.startswith("Margin 10.00%")

    def test_inactive_rules_ignored(self, db_session, make_item, margin_rule):
        approval_service.deactivate_rule(db_session, margin_rule.id)
        item = make_item(selling_cents=100000, cost_cents=95000)
        decision = quotation_service.evaluate_send(db_session, _quote(db_session, item).id)
        assert decision.new_status is QuotationStatus.SENT

    def test_per_carat_cost(self, db_session, make_item, margin_rule):
        item = make_item(
            selling_cents=None,
            cost_cents=None,
            pricing_mode=PricingMode.PER_CARAT.value,
            weight_value=2.0,
            purchase_rate_per_carat_cents=47500,
            selling_rate_per_carat_cents=50000,
        )
        quotation = _quote(db_session, item)
        assert quotation.total_cents == 100000

        decision = quotation_service.evaluate_send(db_session, quotation.id)
        assert "5.00%" in decision.reason

    def test_send_is_audited(self, db_session, make_item, margin_rule):
        quotation = _quote(db_session, make_item(selling_cents=100000, cost_cents=95000))
        quotation_service.evaluate_send(db_session, quotation.id)

        entry = db_session.query(ActivityLog).filter_by(
            entity_type="Quotation", action_type="STATUS_CHANGE"
        ).one()
        data = entry.to_dict()
        assert data["old_data"] == {"status": "DRAFT"}
        assert data["new_data"]["status"] == "PENDING_APPROVAL"
        assert "5.00%" in data["new_data"]["reason"]

    def test_only_draft_can_be_sent(self, db_session, make_item):
        quotation = _quote(db_session, make_item())
        quotation_service.evaluate_send(db_session, quotation.id)
        with pytest.raises(InvalidState):
            quotation_service.evaluate_send(db_session, quotation.id)

    def test_missing_quotation(self, db_session):
        with pytest.raises(NotFound):
            quotation_service.evaluate_send(db_session, 5555)


class TestLifecycle:

    def test_every_status_has_transitions(self):
        assert set(QUOTATION_TRANSITIONS) == set(QuotationStatus)

    @pytest.mark.parametrize("terminal", ["CONVERTED", "CANCELLED", "EXPIRED"])
    def test_terminal_statuses(self, terminal):
        assert not any(can_transition_quotation(terminal, s) for s in QuotationStatus)

    def test_draft_cannot_skip_to_approved(self):
        with pytest.raises(InvalidState):
            require_quotation_transition("DRAFT", "APPROVED")

    def test_approve_and_reject(self, db_session, make_item, margin_rule, user):
        first = _quote(db_session, make_item(selling_cents=100000, cost_cents=95000))
        second = _quote(db_session, make_item(selling_cents=100000, cost_cents=95000))
        quotation_service.evaluate_send(db_session, first.id)
        quotation_service.evaluate_send(db_session, second.id)

        approved = quotation_service.approve_quotation(db_session, first.id, actor=user)
        rejected = quotation_service.reject_quotation(db_session, second.id, actor=user)

        assert approved.status == "APPROVED"
        assert approved.approved_by_user_id == user.id
        assert approved.approved_at is not None
        assert rejected.status == "DRAFT"

    def test_approve_requires_pending(self, db_session, make_item):
        quotation = _quote(db_session, make_item())
        with pytest.raises(InvalidState):
            quotation_service.approve_quotation(db_session, quotation.id)
        assert quotation.approved_at is None

    def test_cancel(self, db_session, make_item):
        quotation = _quote(db_session, make_item())
        quotation_service.cancel_quotation(db_session, quotation.id)
        assert quotation.status == "CANCELLED"
        with pytest.raises(InvalidState):
            quotation_service.cancel_quotation(db_session, quotation.id)

    def test_expire_quotations(self, db_session, make_item):
        today = date(2026, 6, 1)
        stale = _quote(db_session, make_item(), expiry_date="2026-05-31")
        fresh = _quote(db_session, make_item(), expiry_date="2026-06-01")
        draft = _quote(db_session, make_item(), expiry_date="2026-05-01")
        quotation_service.evaluate_send(db_session, stale.id)
        quotation_service.evaluate_send(db_session, fresh.id)

        expired = quotation_service.expire_quotations(db_session, today=today)

        assert expired == [stale.quotation_number]
        assert stale.status == "EXPIRED"
        assert fresh.status == "SENT"
        assert draft.status == "DRAFT"


class TestRules:

    def test_add_rule_appends(self, db_session):
        first = approval_service.add_rule(db_session, rule_type="margin", threshold_value=15)
        second = approval_service.add_rule(db_session, rule_type="AMOUNT", threshold_value=500000)
        assert first.rule_type == "MARGIN"
        assert second.position == first.position + 1
        assert [r.id for r in approval_service.list_rules(db_session)] == [first.id, second.id]

    def test_bad_rule_type(self, db_session):
        with pytest.raises(ValidationError):
            approval_service.add_rule(db_session, rule_type="DISCOUNT", threshold_value=5)
        assert db_session.query(ApprovalRule).count() == 0

    def test_deactivate_missing_rule(self, db_session):
        with pytest.raises(NotFound):
            approval_service.deactivate_rule(db_session, 77)

    def test_evaluate_rules_pure(self):
        rules = [ApprovalRule(id=1, rule_type="MARGIN", threshold_value=10, position=0)]
        assert approval_service.evaluate_rules(rules, margin_percent=12.0, total_revenue_cents=1) is None
        breach = approval_service.evaluate_rules(rules, margin_percent=9.5, total_revenue_cents=1)
        assert breach.reason == "Margin 9.50% is below threshold 10%"

    def test_zero_revenue_margin(self):
        assert approval_service.compute_margin_percent(0, 100) == 0.0
