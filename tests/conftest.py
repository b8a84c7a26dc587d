import json
from datetime import date, timedelta
from decimal import Decimal

import pytest
from flask import g

from rentwise import create_app
from rentwise.errors import GatewayUnavailableError
from rentwise.extensions import db
from rentwise.gateways import EXTENSION_KEY
from rentwise.gateways.base import GatewayNotification, PaymentGateway, TransactionStatus
from rentwise.models import Booking, Property, User
from rentwise.services import AuthService


class FakeGateway(PaymentGateway):
    """In-memory gateway: orders are numbered, transactions are registered by the test."""

    name = "fake"

    def __init__(self):
        super().__init__(currency="EGP", timeout=1)
        self.orders = {}
        self.transactions = {}
        self.unavailable = False

    def authenticate(self):
        if self.unavailable:
            raise GatewayUnavailableError("Payment gateway is unavailable.")
        return "fake-token"

    def create_order(self, auth_token, amount_cents, currency, return_url, merchant_reference):
        if self.unavailable:
            raise GatewayUnavailableError("Payment gateway is unavailable.")
        order_id = f"ord-{len(self.orders) + 1}"
        self.orders[order_id] = {"amount_cents": amount_cents, "merchant_reference": merchant_reference}
        return order_id

    def create_payment_handle(self, auth_token, order_id, amount_cents, payer_email, payer_name):
        return f"https://pay.example.test/{order_id}"

    def settle(self, order_id, transaction_id, success=True, amount_cents=None):
        order = self.orders[order_id]
        status = TransactionStatus(
            transaction_id=transaction_id,
            success=success,
            order_id=order_id,
            merchant_reference=order["merchant_reference"],
            amount_cents=order["amount_cents"] if amount_cents is None else amount_cents,
        )
        self.transactions[transaction_id] = status
        return status

    def query_transaction(self, transaction_id):
        if self.unavailable:
            raise GatewayUnavailableError("Payment gateway is unavailable.")
        return self.transactions.get(transaction_id, TransactionStatus(transaction_id=transaction_id, success=False))

    def parse_notification(self, query, body, headers):
        try:
            payload = json.loads(body or b"{}")
        except ValueError:
            return None
        if not isinstance(payload, dict) or not payload.get("id"):
            return None
        return GatewayNotification(
            transaction_id=str(payload["id"]),
            success=bool(payload.get("success")),
            order_id=payload.get("order"),
            merchant_reference=payload.get("merchant_reference"),
            amount_cents=payload.get("amount_cents"),
        )


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def app(gateway):
    app = create_app("testing")
    app.extensions[EXTENSION_KEY] = gateway

    # Client requests reuse the test's app context, so drop the identity Flask-Login cached in g.
    @app.before_request
    def _forget_cached_user():
        g.pop("_login_user", None)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make(role="owner", full_name=None):
        counter["n"] += 1
        return AuthService.register_user(
            full_name=full_name or f"{role.title()} {counter['n']}",
            email=f"{role}{counter['n']}@example.com",
            password="secret-pass",
            role=role,
        )

    return _make


@pytest.fixture
def owner(make_user):
    return make_user("owner")


@pytest.fixture
def renter(make_user):
    return make_user("renter")


@pytest.fixture
def make_property(app):
    def _make(owner, price="100.00", published=True, title="Nile view flat"):
        property_ = Property(
            owner_id=owner.id,
            title=title,
            price=Decimal(price),
            rooms_count=2,
            city="Cairo",
            status=Property.STATUS_AVAILABLE if published else Property.STATUS_PENDING,
            is_paid=published,
        )
        db.session.add(property_)
        db.session.commit()
        return property_

    return _make


@pytest.fixture
def make_booking(app):
    def _make(property_, renter, nights=3, status=Booking.STATUS_PENDING, start=None):
        start = start or date.today() + timedelta(days=7)
        booking = Booking(
            property_id=property_.id,
            renter_id=renter.id,
            start_date=start,
            end_date=start + timedelta(days=nights),
            status=status,
        )
        db.session.add(booking)
        db.session.commit()
        return booking

    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        return {"Authorization": f"Bearer {AuthService.issue_token(user)}"}

    return _headers
