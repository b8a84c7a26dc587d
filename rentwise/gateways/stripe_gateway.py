"""
Stripe integration.

A Checkout Session plays the role of the gateway order and its hosted URL is
the payment handle. The PaymentIntent id is the transaction id; our merchant
reference travels in the intent and session metadata.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

import stripe

from rentwise.errors import GatewayUnavailableError
from rentwise.gateways.base import GatewayNotification, PaymentGateway, TransactionStatus

logger = logging.getLogger(__name__)

HANDLED_EVENTS = {"checkout.session.completed", "payment_intent.succeeded", "payment_intent.payment_failed"}


def _text_or_none(value) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _int_or_none(value) -> Optional[int]:
    # bool is an int subclass; a JSON true is not an amount.
    return value if isinstance(value, int) and not isinstance(value, bool) else None


class StripeGateway(PaymentGateway):
    name = "stripe"

    def __init__(
        self,
        secret_key: str,
        webhook_secret: str = "",
        currency: str = "usd",
        timeout: float = 10.0,
        client: Optional[stripe.StripeClient] = None,
    ):
        super().__init__(currency=currency, timeout=timeout)
        self.webhook_secret = webhook_secret
        self.client = client or stripe.StripeClient(
            secret_key,
            http_client=stripe.RequestsClient(timeout=timeout),
        )

    def authenticate(self) -> str:
        # Stripe authenticates every request with the secret key held by the client.
        return "stripe"

    def create_order(self, auth_token, amount_cents, currency, return_url, merchant_reference):
        metadata = {"merchant_reference": merchant_reference}
        try:
            session = self.client.checkout.sessions.create(
                params={
                    "mode": "payment",
                    "client_reference_id": merchant_reference,
                    "success_url": f"{return_url}?session_id={{CHECKOUT_SESSION_ID}}",
                    "cancel_url": return_url,
                    "line_items": [
                        {
                            "quantity": 1,
                            "price_data": {
                                "currency": currency.lower(),
                                "unit_amount": int(amount_cents),
                                "product_data": {"name": f"Payment {merchant_reference}"},
                            },
                        }
                    ],
                    "metadata": metadata,
                    "payment_intent_data": {"metadata": metadata},
                }
            )
        except stripe.StripeError as exc:
            logger.error("Stripe checkout session creation failed for %s: %s", merchant_reference, exc)
            raise GatewayUnavailableError("Payment gateway could not create an order.") from exc
        logger.info("Stripe checkout session %s created for %s", session.id, merchant_reference)
        return session.id

    def create_payment_handle(self, auth_token, order_id, amount_cents, payer_email, payer_name):
        try:
            session = self.client.checkout.sessions.retrieve(order_id)
        except stripe.StripeError as exc:
            logger.error("Stripe checkout session %s lookup failed: %s", order_id, exc)
            raise GatewayUnavailableError("Payment gateway is unavailable.") from exc
        return session.url

    def query_transaction(self, transaction_id):
        try:
            intent = self.client.payment_intents.retrieve(transaction_id)
        except stripe.InvalidRequestError:
            logger.warning("Stripe has no payment intent %s", transaction_id)
            return TransactionStatus(transaction_id=transaction_id, success=False)
        except stripe.StripeError as exc:
            logger.error("Stripe payment intent %s lookup failed: %s", transaction_id, exc)
            raise GatewayUnavailableError("Payment gateway is unavailable.") from exc

        metadata = intent.metadata or {}
        return TransactionStatus(
            transaction_id=intent.id,
            success=intent.status == "succeeded",
            merchant_reference=metadata.get("merchant_reference"),
            amount_cents=intent.amount_received or intent.amount,
        )

    def parse_notification(self, query, body, headers):
        if self.webhook_secret:
            try:
                stripe.Webhook.construct_event(body, headers.get("Stripe-Signature", ""), self.webhook_secret)
            except (ValueError, stripe.SignatureVerificationError) as exc:
                logger.warning("Stripe webhook signature rejected: %s", exc)
                return None
        try:
            event = json.loads(body or b"{}")
        except (TypeError, ValueError):
            logger.warning("Stripe webhook body is not valid JSON")
            return None

        event_type = event.get("type") if isinstance(event, dict) else None
        if not isinstance(event_type, str) or event_type not in HANDLED_EVENTS:
            logger.info("Stripe webhook event %s ignored", event_type)
            return None
        data = event.get("data") or {}
        obj = data.get("object") if isinstance(data, dict) else None
        metadata = (obj.get("metadata") or {}) if isinstance(obj, dict) else None
        if not isinstance(obj, dict) or not isinstance(metadata, dict):
            logger.warning("Stripe webhook event %s has a malformed payload", event_type)
            return None

        if event_type == "checkout.session.completed":
            transaction_id = _text_or_none(obj.get("payment_intent"))
            if not transaction_id:
                return None
            return GatewayNotification(
                transaction_id=transaction_id,
                success=obj.get("payment_status") == "paid",
                order_id=_text_or_none(obj.get("id")),
                merchant_reference=_text_or_none(metadata.get("merchant_reference") or obj.get("client_reference_id")),
                amount_cents=_int_or_none(obj.get("amount_total")),
            )

        transaction_id = _text_or_none(obj.get("id"))
        if not transaction_id:
            return None
        return GatewayNotification(
            transaction_id=transaction_id,
            success=event_type == "payment_intent.succeeded",
            merchant_reference=_text_or_none(metadata.get("merchant_reference")),
            amount_cents=_int_or_none(obj.get("amount_received") or obj.get("amount")),
        )
