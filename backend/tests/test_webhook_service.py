"""
Razorpay webhook reconciliation tests.

Verifies:
- missing / wrong signatures are rejected before anything is written
- an unconfigured secret is a server error
- a captured payment settles the invoice and every sale exactly once
- captured payments without an invoice id are dropped but audited
- failed payments are audited only
"""

import json

import pytest

from gemledger.errors import ConfigurationError, InvalidSignature, ValidationError
from gemledger.models import ActivityLog, InvoiceVersion, Payment
from gemledger.services import webhook_service
from gemledger.services.payment_service import apply_payment, linked_sales


SECRET = "whsec_test_secret"


class TestSignature:

    def test_valid_signature(self, signer):
        body = b'{"event": "ping"}'
        webhook_service.verify_signature(body, signer(body), SECRET)

    def test_missing_signature(self):
        with pytest.raises(InvalidSignature):
            webhook_service.verify_signature(b"{}", None, SECRET)

    def test_missing_secret(self, signer):
        with pytest.raises(ConfigurationError):
            webhook_service.verify_signature(b"{}", signer(b"{}"), None)

    def test_missing_signature_checked_before_secret(self):
        with pytest.raises(InvalidSignature):
            webhook_service.verify_signature(b"{}", "", None)

    def test_tampered_body(self, signer):
        with pytest.raises(InvalidSignature):
            webhook_service.verify_signature(b'{"amount": 2}', signer(b'{"amount": 1}'), SECRET)


class TestCapturedPayment:

    def test_settles_invoice_and_sales(self, db_session, make_invoice, captured_event, signer):
        invoice = make_invoice(30000, 20000)
        body = captured_event(invoice.id, payment_id="pay_ABC", amount=50000)

        result = webhook_service.handle_event(db_session, body, signer(body), SECRET)

        assert result["status"] == "ok"
        assert result["outcome"] == webhook_service.OUTCOME_RECORDED
        assert invoice.paid_cents == 50000
        assert invoice.payment_status == "PAID"
        for sale in linked_sales(invoice):
            assert sale.payment_status == "PAID"
            assert sale.payment_method == "ONLINE"
            assert sale.notes.endswith("Paid via Razorpay: pay_ABC")

        payment = db_session.query(Payment).filter_by(invoice_id=invoice.id).one()
        assert payment.method == "ONLINE"
        assert payment.reference == "pay_ABC"

    def test_snapshot_taken_first(self, db_session, make_invoice, captured_event, signer):
        invoice = make_invoice(50000)
        body = captured_event(invoice.id)
        webhook_service.handle_event(db_session, body, signer(body), SECRET)

        version = db_session.query(InvoiceVersion).filter_by(invoice_id=invoice.id).one()
        assert version.reason == "Payment Update (Webhook)"
        assert version.to_dict()["snapshot"]["invoice"]["payment_status"] == "UNPAID"

    def test_replay_is_idempotent(self, db_session, make_invoice, captured_event, signer):
        invoice = make_invoice(50000)
        body = captured_event(invoice.id, payment_id="pay_DUP")

        webhook_service.handle_event(db_session, body, signer(body), SECRET)
        again = webhook_service.handle_event(db_session, body, signer(body), SECRET)

        assert again["outcome"] == webhook_service.OUTCOME_DUPLICATE
        assert invoice.paid_cents == 50000
        assert db_session.query(Payment).filter_by(invoice_id=invoice.id).count() == 1
        sale = linked_sales(invoice)[0]
        assert sale.notes.count("pay_DUP") == 1

    def test_settles_remaining_after_partial(self, db_session, make_invoice, captured_event, signer):
        invoice = make_invoice(50000)
        apply_payment(db_session, invoice.id, target_status="PARTIAL", amount_cents=20000, method="CASH")
        body = captured_event(invoice.id, amount=30000)

        webhook_service.handle_event(db_session, body, signer(body), SECRET)

        assert invoice.paid_cents == 50000
        assert invoice.payment_status == "PAID"

    def test_legacy_invoice_settled_once(self, db_session, make_legacy_invoice, captured_event, signer):
        invoice = make_legacy_invoice(50000)
        sale = invoice.legacy_sale
        body = captured_event(invoice.id, payment_id="pay_LEGACY")

        first = webhook_service.handle_event(db_session, body, signer(body), SECRET)
        again = webhook_service.handle_event(db_session, body, signer(body), SECRET)

        assert first["outcome"] == webhook_service.OUTCOME_RECORDED
        assert again["outcome"] == webhook_service.OUTCOME_DUPLICATE
        assert invoice.paid_cents == 50000
        assert sale.payment_status == "PAID"
        assert sale.payment_method == "ONLINE"
        assert sale.notes.count("pay_LEGACY") == 1
        assert db_session.query(Payment).filter_by(invoice_id=invoice.id).count() == 1

    def test_bad_signature_changes_nothing(self, db_session, make_invoice, captured_event):
        invoice = make_invoice(50000)
        body = captured_event(invoice.id)

        with pytest.raises(InvalidSignature):
            webhook_service.handle_event(db_session, body, "deadbeef", SECRET)

        assert invoice.paid_cents == 0
        assert db_session.query(Payment).count() == 0
        assert db_session.query(InvoiceVersion).count() == 0
        assert db_session.query(ActivityLog).filter_by(source="WEBHOOK").count() == 0

    def test_missing_invoice_id_is_audited(self, db_session, captured_event, signer):
        body = captured_event(None, payment_id="pay_ORPHAN")

        result = webhook_service.handle_event(db_session, body, signer(body), SECRET)

        assert result["outcome"] == webhook_service.OUTCOME_UNRECONCILED
        entry = db_session.query(ActivityLog).filter_by(action_type="UNRECONCILED_PAYMENT").one()
        assert entry.entity_identifier == "pay_ORPHAN"
        assert entry.user_name == "Razorpay Webhook"
        assert db_session.query(Payment).count() == 0

    def test_unknown_invoice_dropped(self, db_session, captured_event, signer):
        body = captured_event(123456)
        result = webhook_service.handle_event(db_session, body, signer(body), SECRET)
        assert result["outcome"] == webhook_service.OUTCOME_UNKNOWN_INVOICE
        assert db_session.query(Payment).count() == 0

    def test_malformed_body(self, db_session, signer):
        body = b"not json"
        with pytest.raises(ValidationError):
            webhook_service.handle_event(db_session, body, signer(body), SECRET)


class TestOtherEvents:

    def test_failed_payment_audited_only(self, db_session, make_invoice, signer):
        invoice = make_invoice(50000)
        body = json.dumps({
            "event": "payment.failed",
            "payload": {"payment": {"entity": {
                "id": "pay_FAIL",
                "notes": {"invoiceId": str(invoice.id)},
                "error_description": "Card declined",
            }}},
        }).encode()

        result = webhook_service.handle_event(db_session, body, signer(body), SECRET)

        assert result["outcome"] == webhook_service.OUTCOME_FAILURE_LOGGED
        assert invoice.paid_cents == 0
        entry = db_session.query(ActivityLog).filter_by(source="WEBHOOK").one()
        assert entry.to_dict()["new_data"]["paymentStatus"] == "FAILED"
        assert entry.to_dict()["new_data"]["reason"] == "Card declined"

    def test_unrelated_event_ignored(self, db_session, signer):
        body = b'{"event": "order.paid", "payload": {}}'
        result = webhook_service.handle_event(db_session, body, signer(body), SECRET)
        assert result == {"status": "ok", "outcome": webhook_service.OUTCOME_IGNORED}
