import hashlib
import hmac
import json
from unittest import mock

import pytest
import requests
import stripe

from rentwise.errors import GatewayUnavailableError
from rentwise.gateways import PaymobGateway, StripeGateway, build_gateway, from_minor_units, to_minor_units
from rentwise.gateways.paymob import HMAC_FIELDS


def _response(payload):
    response = mock.Mock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


@pytest.fixture
def paymob_session():
    return mock.Mock(spec=requests.Session)


@pytest.fixture
def paymob(paymob_session):
    return PaymobGateway(
        api_key="key",
        integration_id="123",
        iframe_id="456",
        hmac_secret="hmac-secret",
        base_url="https://accept.example.test/api",
        timeout=3,
        session=paymob_session,
    )


def _sign(fields, secret="hmac-secret"):
    message = "".join(str(fields.get(key, "")) for key in HMAC_FIELDS)
    return hmac.new(secret.encode(), message.encode(), hashlib.sha512).hexdigest()


def test_minor_units_round_half_up():
    assert to_minor_units("300.00") == 30000
    assert to_minor_units("0.005") == 1
    assert to_minor_units("10.004") == 1000
    assert str(from_minor_units(1505)) == "15.05"


def test_paymob_order_flow_passes_timeout_and_reference(paymob, paymob_session):
    paymob_session.request.side_effect = [
        _response({"token": "auth-token"}),
        _response({"id": 987}),
        _response({"token": "pay-key"}),
    ]

    token = paymob.authenticate()
    order_id = paymob.create_order(token, 30000, "EGP", "https://app.example.test/return", "RW-REF1")
    url = paymob.create_payment_handle(token, order_id, 30000, "renter@example.com", "Sara Adel")

    assert order_id == "987"
    assert url == "https://accept.example.test/api/acceptance/iframes/456?payment_token=pay-key"
    order_call = paymob_session.request.call_args_list[1]
    assert order_call.args == ("POST", "https://accept.example.test/api/ecommerce/orders")
    assert order_call.kwargs["timeout"] == 3
    assert order_call.kwargs["json"]["merchant_order_id"] == "RW-REF1"
    assert order_call.kwargs["json"]["amount_cents"] == 30000


def test_paymob_network_failure_is_unavailable(paymob, paymob_session):
    paymob_session.request.side_effect = requests.exceptions.Timeout("slow")

    with pytest.raises(GatewayUnavailableError):
        paymob.authenticate()


def test_paymob_http_error_is_unavailable(paymob, paymob_session):
    response = _response({})
    response.raise_for_status.side_effect = requests.exceptions.HTTPError("502")
    paymob_session.request.return_value = response

    with pytest.raises(GatewayUnavailableError):
        paymob.create_order("t", 100, "EGP", "https://app.example.test", "RW-REF2")


def test_paymob_query_transaction(paymob, paymob_session):
    paymob_session.request.side_effect = [
        _response({"token": "auth-token"}),
        _response(
            {
                "id": 555,
                "success": True,
                "pending": False,
                "amount_cents": 30000,
                "order": {"id": 987, "merchant_order_id": "RW-REF1"},
            }
        ),
    ]

    status = paymob.query_transaction("555")

    assert status.success is True
    assert status.transaction_id == "555"
    assert status.order_id == "987"
    assert status.merchant_reference == "RW-REF1"
    assert status.amount_cents == 30000
    lookup = paymob_session.request.call_args_list[1]
    assert lookup.kwargs["headers"] == {"Authorization": "Bearer auth-token"}


def test_paymob_pending_transaction_is_not_success(paymob, paymob_session):
    paymob_session.request.side_effect = [
        _response({"token": "auth-token"}),
        _response({"id": 556, "success": True, "pending": True, "order": {"id": 1}}),
    ]

    assert paymob.query_transaction_status("556") is False


def test_paymob_redirect_query_with_valid_hmac(paymob):
    query = {
        "id": "555",
        "success": "true",
        "pending": "false",
        "order": "987",
        "amount_cents": "30000",
        "merchant_order_id": "RW-REF1",
    }
    query["hmac"] = _sign(query)

    notification = paymob.parse_notification(query, b"", {})

    assert notification.transaction_id == "555"
    assert notification.success is True
    assert notification.order_id == "987"
    assert notification.merchant_reference == "RW-REF1"
    assert notification.amount_cents == 30000


def test_paymob_rejects_bad_hmac(paymob):
    query = {"id": "555", "success": "true", "order": "987", "hmac": "0" * 128}

    assert paymob.parse_notification(query, b"", {}) is None


def test_paymob_processed_callback_body(paymob_session):
    gateway = PaymobGateway(api_key="key", integration_id="1", iframe_id="2", session=paymob_session)
    body = json.dumps(
        {
            "type": "TRANSACTION",
            "obj": {
                "id": 777,
                "success": True,
                "pending": False,
                "amount_cents": 12000,
                "order": {"id": 31, "merchant_order_id": "RW-REF3"},
            },
        }
    ).encode()

    notification = gateway.parse_notification({}, body, {})

    assert notification.transaction_id == "777"
    assert notification.order_id == "31"
    assert notification.merchant_reference == "RW-REF3"
    assert notification.amount_cents == 12000


def test_paymob_malformed_callbacks(paymob_session):
    gateway = PaymobGateway(api_key="key", integration_id="1", iframe_id="2", session=paymob_session)

    assert gateway.parse_notification({}, b"{not json", {}) is None
    assert gateway.parse_notification({}, b'{"obj": "x"}', {}) is None
    assert gateway.parse_notification({}, b"", {}) is None


def test_stripe_create_order_uses_checkout_session():
    client = mock.Mock()
    client.checkout.sessions.create.return_value = mock.Mock(id="cs_123")
    client.checkout.sessions.retrieve.return_value = mock.Mock(url="https://checkout.stripe.test/cs_123")
    gateway = StripeGateway(secret_key="sk_test", currency="usd", client=client)

    order_id = gateway.create_order(gateway.authenticate(), 4500, "USD", "https://app.example.test/return", "RW-S1")
    url = gateway.create_payment_handle("stripe", order_id, 4500, "a@example.com", "A B")

    assert order_id == "cs_123"
    assert url == "https://checkout.stripe.test/cs_123"
    params = client.checkout.sessions.create.call_args.kwargs["params"]
    assert params["client_reference_id"] == "RW-S1"
    assert params["line_items"][0]["price_data"]["unit_amount"] == 4500
    assert params["payment_intent_data"]["metadata"] == {"merchant_reference": "RW-S1"}


def test_stripe_api_failure_is_unavailable():
    client = mock.Mock()
    client.checkout.sessions.create.side_effect = stripe.APIConnectionError("down")
    gateway = StripeGateway(secret_key="sk_test", client=client)

    with pytest.raises(GatewayUnavailableError):
        gateway.create_order("stripe", 100, "usd", "https://app.example.test", "RW-S2")


def test_stripe_unknown_intent_is_not_success():
    client = mock.Mock()
    client.payment_intents.retrieve.side_effect = stripe.InvalidRequestError("No such payment_intent", "id")
    gateway = StripeGateway(secret_key="sk_test", client=client)

    status = gateway.query_transaction("pi_missing")

    assert status.success is False


def test_stripe_checkout_completed_event():
    gateway = StripeGateway(secret_key="sk_test", client=mock.Mock())
    body = json.dumps(
        {
            "type": "checkout.session.completed",
            "data": {
                "object": {
                    "id": "cs_123",
                    "payment_intent": "pi_123",
                    "payment_status": "paid",
                    "amount_total": 4500,
                    "metadata": {"merchant_reference": "RW-S1"},
                }
            },
        }
    ).encode()

    notification = gateway.parse_notification({}, body, {})

    assert notification.transaction_id == "pi_123"
    assert notification.success is True
    assert notification.order_id == "cs_123"
    assert notification.merchant_reference == "RW-S1"
    assert notification.amount_cents == 4500


def test_stripe_ignores_unhandled_events_and_bad_signatures():
    gateway = StripeGateway(secret_key="sk_test", client=mock.Mock())
    signed = StripeGateway(secret_key="sk_test", webhook_secret="whsec_test", client=mock.Mock())
    body = json.dumps({"type": "customer.created", "data": {"object": {}}}).encode()

    assert gateway.parse_notification({}, body, {}) is None
    assert signed.parse_notification({}, body, {"Stripe-Signature": "t=1,v1=bad"}) is None


def test_build_gateway_from_config():
    paymob = build_gateway({"PAYMENT_GATEWAY": "paymob", "PAYMOB_API_KEY": "k", "PAYMOB_HMAC_SECRET": "h"})
    stripe_gateway = build_gateway(
        {"PAYMENT_GATEWAY": "Stripe", "STRIPE_SECRET_KEY": "sk_test", "STRIPE_WEBHOOK_SECRET": "whsec_test"}
    )

    assert isinstance(paymob, PaymobGateway)
    assert isinstance(stripe_gateway, StripeGateway)
    with pytest.raises(ValueError):
        build_gateway({"PAYMENT_GATEWAY": "cash"})


def test_build_gateway_requires_callback_secret():
    with pytest.raises(ValueError, match="PAYMOB_HMAC_SECRET"):
        build_gateway({"PAYMENT_GATEWAY": "paymob", "PAYMOB_API_KEY": "k"})
    with pytest.raises(ValueError, match="STRIPE_WEBHOOK_SECRET"):
        build_gateway({"PAYMENT_GATEWAY": "stripe", "STRIPE_SECRET_KEY": "sk_test"})

    unsigned = build_gateway({"PAYMENT_GATEWAY": "paymob", "REQUIRE_SIGNED_CALLBACKS": False})
    assert isinstance(unsigned, PaymobGateway)


def test_production_config_requires_signed_callbacks():
    from rentwise.config import config_by_env

    assert config_by_env["production"].REQUIRE_SIGNED_CALLBACKS is True
    assert config_by_env["testing"].REQUIRE_SIGNED_CALLBACKS is False


def test_paymob_unknown_transaction_is_not_success(paymob, paymob_session):
    missing = _response({"detail": "Not found."})
    missing.status_code = 404
    missing.raise_for_status.side_effect = requests.exceptions.HTTPError("404 Client Error: Not Found", response=missing)
    paymob_session.request.side_effect = [_response({"token": "auth-token"}), missing]

    status = paymob.query_transaction("999")

    assert status.success is False
    assert status.transaction_id == "999"
    assert status.order_id is None


def test_paymob_transaction_lookup_server_error_is_unavailable(paymob, paymob_session):
    broken = _response({})
    broken.status_code = 500
    broken.raise_for_status.side_effect = requests.exceptions.HTTPError("500 Server Error", response=broken)
    paymob_session.request.side_effect = [_response({"token": "auth-token"}), broken]

    with pytest.raises(GatewayUnavailableError):
        paymob.query_transaction("999")


def test_paymob_callback_with_non_object_nested_fields(paymob_session):
    gateway = PaymobGateway(api_key="key", integration_id="1", iframe_id="2", session=paymob_session)
    bad_source = {"obj": {"id": 5, "success": True, "source_data": "oops", "order": {"id": 9}}}
    bad_order = {"obj": {"id": 5, "success": True, "order": 9}}

    assert gateway.parse_notification({}, json.dumps(bad_source).encode(), {}) is None
    assert gateway.parse_notification({}, json.dumps(bad_order).encode(), {}) is None


@pytest.mark.parametrize(
    "event",
    [
        {"type": "payment_intent.succeeded", "data": "oops"},
        {"type": "payment_intent.succeeded", "data": {"object": ["pi_1"]}},
        {"type": "payment_intent.succeeded", "data": {"object": {"id": "pi_1", "metadata": "RW-1"}}},
        {"type": ["payment_intent.succeeded"], "data": {"object": {"id": "pi_1"}}},
        ["payment_intent.succeeded"],
    ],
)
def test_stripe_malformed_event_is_ignored(event):
    gateway = StripeGateway(secret_key="sk_test", client=mock.Mock())

    assert gateway.parse_notification({}, json.dumps(event).encode(), {}) is None


def test_stripe_event_ignores_non_scalar_fields():
    gateway = StripeGateway(secret_key="sk_test", client=mock.Mock())
    body = json.dumps(
        {
            "type": "payment_intent.succeeded",
            "data": {
                "object": {
                    "id": "pi_9",
                    "status": "succeeded",
                    "amount_received": True,
                    "metadata": {"merchant_reference": {"nested": 1}},
                }
            },
        }
    ).encode()

    notification = gateway.parse_notification({}, body, {})

    assert notification.transaction_id == "pi_9"
    assert notification.amount_cents is None
    assert notification.merchant_reference is None
