"""
Pytest fixtures for Gem Ledger backend tests.

Provides an in-memory database, test client, users with bearer tokens,
and factories for inventory items, sales and invoices.
"""

import hashlib
import hmac
import json

import pytest
from gemledger import create_app
from gemledger.extensions import db
from gemledger.models import InventoryItem, ApprovalRule
from gemledger.models.statuses import PricingMode
from gemledger.services import auth_service, sales_service, invoice_service


WEBHOOK_SECRET = "whsec_test_secret"
TEST_PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'RAZORPAY_WEBHOOK_SECRET': WEBHOOK_SECRET,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def user(db_session):
    """Back-office user (cheap bcrypt rounds keep the suite fast)."""
    return auth_service.create_user(
        db_session, "owner", TEST_PASSWORD, email="owner@gems.local", display_name="Shop Owner", rounds=4
    )


@pytest.fixture(scope='function')
def token(client, user):
    return get_auth_token(client, user.username, TEST_PASSWORD)


@pytest.fixture(scope='function')
def headers(token):
    return auth_headers(token)


@pytest.fixture(scope='function')
def make_item(db_session):
    """Factory: flat-priced stone in stock."""
    counter = {"n": 0}

    def _make(selling_cents=100000, cost_cents=60000, **kwargs):
        counter["n"] += 1
        item = InventoryItem(
            sku=kwargs.pop("sku", f"GEM-{counter['n']:04d}"),
            item_name=kwargs.pop("item_name", "Blue Sapphire"),
            pricing_mode=kwargs.pop("pricing_mode", PricingMode.FLAT.value),
            weight_value=kwargs.pop("weight_value", 2.5),
            weight_unit=kwargs.pop("weight_unit", "ct"),
            flat_selling_price_cents=selling_cents,
            flat_purchase_cost_cents=cost_cents,
            **kwargs,
        )
        db_session.add(item)
        db_session.commit()
        return item

    return _make


@pytest.fixture(scope='function')
def make_sale(db_session, make_item):
    """Factory: recorded sale at a given net amount."""
    def _make(net_cents=50000, customer_name="A. Sharma", actor=None):
        item = make_item(selling_cents=net_cents)
        return sales_service.record_sale(
            db_session,
            inventory_item_id=item.id,
            customer_name=customer_name,
            sale_price_cents=net_cents,
            actor=actor,
        )

    return _make


@pytest.fixture(scope='function')
def make_invoice(db_session, make_sale):
    """Factory: invoice over one sale per amount given."""
    def _make(*net_amounts, actor=None):
        amounts = net_amounts or (50000,)
        sales = [make_sale(net_cents=amount) for amount in amounts]
        return invoice_service.create_invoice_for_sales(
            db_session, [s.id for s in sales], actor=actor
        )

    return _make


@pytest.fixture(scope='function')
def make_legacy_invoice(db_session, make_sale):
    """Factory: invoice in the older 1:1 model (sale linked via legacy_invoice_id)."""
    def _make(net_cents=50000):
        sale = make_sale(net_cents=net_cents)
        invoice = invoice_service.create_invoice_for_sales(db_session, [sale.id])
        sale.invoice = None
        sale.legacy_invoice = invoice
        db_session.commit()
        return invoice

    return _make


@pytest.fixture(scope='function')
def margin_rule(db_session):
    """10% minimum margin rule."""
    rule = ApprovalRule(rule_type="MARGIN", threshold_value=10, position=0, is_active=True)
    db_session.add(rule)
    db_session.commit()
    return rule


def get_auth_token(client, username: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


@pytest.fixture
def signer():
    """Signs a webhook body with the test secret."""
    return sign


def _captured_event(invoice_id, payment_id="pay_Test123", amount=50000) -> bytes:
    notes = {"invoiceId": str(invoice_id)} if invoice_id is not None else {}
    return json.dumps({
        "event": "payment.captured",
        "payload": {"payment": {"entity": {
            "id": payment_id,
            "amount": amount,
            "currency": "INR",
            "notes": notes,
        }}},
    }).encode()


@pytest.fixture
def captured_event():
    """Builds a payment.captured body for an invoice id (None for no notes)."""
    return _captured_event
