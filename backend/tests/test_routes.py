"""
HTTP surface tests.

Verifies:
- protected endpoints return 401 without a token
- login / logout
- sale -> invoice -> payment flow over HTTP
- public invoice view (unknown, active, disabled)
- quotation send over HTTP
- webhook signature handling and status codes
"""

import pytest

from gemledger.models import Payment


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/sales"),
            ("POST", "/api/invoices"),
            ("POST", "/api/invoices/from-sale/1"),
            ("GET", "/api/invoices/1"),
            ("GET", "/api/invoices/1/payments"),
            ("GET", "/api/invoices/1/versions"),
            ("POST", "/api/invoices/1/payment-status"),
            ("PATCH", "/api/invoices/1/active"),
            ("POST", "/api/quotations"),
            ("POST", "/api/quotations/1/send"),
            ("POST", "/api/quotations/1/approve"),
            ("POST", "/api/auth/logout"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        response = client.open(path, method=method, json={})
        assert response.status_code == 401
        assert response.json["error"] == "Authentication required"

    def test_bad_token(self, client, db_session):
        response = client.get("/api/invoices/1", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401


class TestAuth:

    def test_login_and_logout(self, client, user):
        response = client.post("/api/auth/login", json={"username": "owner", "password": "Password123"})
        assert response.status_code == 200
        token = response.json["token"]
        headers = {"Authorization": f"Bearer {token}"}

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/invoices/1", headers=headers).status_code == 401

    def test_wrong_password(self, client, user):
        response = client.post("/api/auth/login", json={"username": "owner", "password": "wrong-pass1"})
        assert response.status_code == 401

    def test_missing_credentials(self, client, db_session):
        assert client.post("/api/auth/login", json={}).status_code == 400


class TestHealth:

    def test_health(self, client, db_session):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json["status"] == "ok"


class TestInvoiceFlow:

    def test_sale_invoice_payment(self, client, headers, make_item):
        item = make_item(selling_cents=50000)

        sale = client.post("/api/sales", json={"inventory_item_id": item.id}, headers=headers)
        assert sale.status_code == 201
        sale_id = sale.json["sale"]["id"]

        created = client.post(f"/api/invoices/from-sale/{sale_id}", json={}, headers=headers)
        assert created.status_code == 201
        invoice_id = created.json["invoice"]["id"]

        updated = client.post(
            f"/api/invoices/from-sale/{sale_id}",
            json={"display_options": {"showPrice": False}},
            headers=headers,
        )
        assert updated.status_code == 200
        assert updated.json["created"] is False
        assert updated.json["invoice"]["display_options"]["showPrice"] is False

        paid = client.post(
            f"/api/invoices/{invoice_id}/payment-status",
            json={"status": "PAID", "paymentDetails": {"amount_cents": 100, "method": "CASH", "date": "2026-02-01"}},
            headers=headers,
        )
        assert paid.status_code == 200
        assert paid.json["success"] is True
        assert paid.json["invoice"]["paid_cents"] == 50000

        detail = client.get(f"/api/invoices/{invoice_id}", headers=headers)
        assert detail.json["invoice"]["sales"][0]["payment_status"] == "PAID"

        versions = client.get(f"/api/invoices/{invoice_id}/versions", headers=headers)
        assert [v["reason"] for v in versions.json["versions"]] == ["Payment Update"]

    def test_sold_item_cannot_be_sold_again(self, client, headers, make_item):
        item = make_item()
        assert client.post("/api/sales", json={"inventory_item_id": item.id}, headers=headers).status_code == 201
        again = client.post("/api/sales", json={"inventory_item_id": item.id}, headers=headers)
        assert again.status_code == 409

    def test_payment_failure_maps_status(self, client, headers, make_invoice):
        invoice = make_invoice(50000)
        response = client.post(
            f"/api/invoices/{invoice.id}/payment-status",
            json={"status": "PARTIAL", "paymentDetails": {"amount_cents": 0, "method": "CASH", "date": "2026-02-01"}},
            headers=headers,
        )
        assert response.status_code == 400
        assert response.json == {
            "success": False,
            "message": "Payment amount must be positive",
            "error": "INVALID_AMOUNT",
        }

    def test_missing_invoice(self, client, headers):
        assert client.get("/api/invoices/999", headers=headers).status_code == 404

    def test_multi_sale_invoice(self, client, headers, make_sale):
        sales = [make_sale(net_cents=10000), make_sale(net_cents=15000)]
        response = client.post("/api/invoices", json={"sale_ids": [s.id for s in sales]}, headers=headers)
        assert response.status_code == 201
        assert response.json["invoice"]["total_cents"] == 25000
        assert len(response.json["invoice"]["sales"]) == 2

    def test_payments_summary(self, client, headers, make_invoice):
        invoice = make_invoice(50000)
        response = client.get(f"/api/invoices/{invoice.id}/payments", headers=headers)
        assert response.status_code == 200
        assert response.json["remaining_cents"] == 50000


class TestPublicInvoice:

    def test_unknown_token(self, client, db_session):
        assert client.get("/invoice/" + "f" * 32).status_code == 404

    def test_active_and_disabled(self, client, headers, make_invoice):
        invoice = make_invoice(50000)

        active = client.get(f"/invoice/{invoice.token}")
        assert active.status_code == 200
        assert active.json["state"] == "active"
        assert active.json["invoice_number"] == invoice.invoice_number

        toggled = client.patch(f"/api/invoices/{invoice.id}/active", json={"is_active": False}, headers=headers)
        assert toggled.status_code == 200

        disabled = client.get(f"/invoice/{invoice.token}")
        assert disabled.json == {"state": "disabled", "message": "Invoice link disabled"}


class TestQuotationRoutes:

    def test_create_and_send_held(self, client, headers, make_item, margin_rule):
        item = make_item(selling_cents=100000, cost_cents=95000)
        created = client.post(
            "/api/quotations",
            json={"customer_name": "R. Mehta", "items": [{"inventory_item_id": item.id}]},
            headers=headers,
        )
        assert created.status_code == 201
        quotation_id = created.json["quotation"]["id"]

        sent = client.post(f"/api/quotations/{quotation_id}/send", headers=headers)
        assert sent.status_code == 200
        assert sent.json["decision"]["new_status"] == "PENDING_APPROVAL"
        assert "5.00%" in sent.json["decision"]["reason"]

        approved = client.post(f"/api/quotations/{quotation_id}/approve", headers=headers)
        assert approved.json["quotation"]["status"] == "APPROVED"

        resent = client.post(f"/api/quotations/{quotation_id}/send", headers=headers)
        assert resent.status_code == 409


class TestWebhookRoute:

    def test_valid_delivery(self, client, db_session, make_invoice, captured_event, signer):
        invoice = make_invoice(50000)
        body = captured_event(invoice.id)

        response = client.post(
            "/api/webhooks/razorpay",
            data=body,
            headers={"X-Razorpay-Signature": signer(body), "Content-Type": "application/json"},
        )

        assert response.status_code == 200
        assert response.json == {"status": "ok"}
        assert invoice.payment_status == "PAID"

    def test_missing_signature(self, client, db_session, make_invoice, captured_event):
        invoice = make_invoice(50000)
        response = client.post("/api/webhooks/razorpay", data=captured_event(invoice.id))
        assert response.status_code == 400
        assert db_session.query(Payment).count() == 0

    def test_invalid_signature(self, client, db_session, make_invoice, captured_event):
        invoice = make_invoice(50000)
        response = client.post(
            "/api/webhooks/razorpay",
            data=captured_event(invoice.id),
            headers={"X-Razorpay-Signature": "0" * 64},
        )
        assert response.status_code == 400
        assert invoice.paid_cents == 0

    def test_unconfigured_secret(self, app, client, db_session, captured_event, signer):
        body = captured_event(1)
        app.config["RAZORPAY_WEBHOOK_SECRET"] = None
        try:
            response = client.post(
                "/api/webhooks/razorpay", data=body, headers={"X-Razorpay-Signature": signer(body)}
            )
        finally:
            app.config["RAZORPAY_WEBHOOK_SECRET"] = "whsec_test_secret"
        assert response.status_code == 500
