from flask import current_app

from rentwise.gateways.base import (
    GatewayNotification,
    PaymentGateway,
    TransactionStatus,
    from_minor_units,
    to_minor_units,
)
from rentwise.gateways.paymob import PaymobGateway
from rentwise.gateways.stripe_gateway import StripeGateway

EXTENSION_KEY = "payment_gateway"


def build_gateway(config):
    name = (config.get("PAYMENT_GATEWAY") or "paymob").strip().lower()
    timeout = float(config.get("GATEWAY_TIMEOUT_SECONDS", 10))
    currency = config.get("PAYMENT_CURRENCY", "EGP")
    require_signed = bool(config.get("REQUIRE_SIGNED_CALLBACKS", True))
    if name == "paymob":
        if require_signed and not config.get("PAYMOB_HMAC_SECRET"):
            raise ValueError("PAYMOB_HMAC_SECRET is required to verify gateway callbacks.")
        return PaymobGateway(
            api_key=config.get("PAYMOB_API_KEY", ""),
            integration_id=config.get("PAYMOB_INTEGRATION_ID", ""),
            iframe_id=config.get("PAYMOB_IFRAME_ID", ""),
            hmac_secret=config.get("PAYMOB_HMAC_SECRET", ""),
            base_url=config.get("PAYMOB_API_BASE_URL", "https://accept.paymob.com/api"),
            currency=currency,
            timeout=timeout,
        )
    if name == "stripe":
        if require_signed and not config.get("STRIPE_WEBHOOK_SECRET"):
            raise ValueError("STRIPE_WEBHOOK_SECRET is required to verify gateway callbacks.")
        return StripeGateway(
            secret_key=config.get("STRIPE_SECRET_KEY", ""),
            webhook_secret=config.get("STRIPE_WEBHOOK_SECRET", ""),
            currency=currency,
            timeout=timeout,
        )
    raise ValueError(f"Unknown payment gateway: {name}")


def init_gateway(app):
    app.extensions[EXTENSION_KEY] = build_gateway(app.config)


def get_gateway() -> PaymentGateway:
    return current_app.extensions[EXTENSION_KEY]


__all__ = [
    "GatewayNotification",
    "PaymentGateway",
    "PaymobGateway",
    "StripeGateway",
    "TransactionStatus",
    "build_gateway",
    "from_minor_units",
    "get_gateway",
    "init_gateway",
    "to_minor_units",
]
