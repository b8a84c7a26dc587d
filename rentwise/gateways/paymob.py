"""
Paymob Accept integration.

Flow: auth token -> order (carrying our merchant_order_id) -> payment key ->
iframe URL. Paymob reports the outcome through a redirect query string and a
processed-callback JSON body; both carry the transaction id and the order id.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import re
from typing import Mapping, Optional

import requests

from rentwise.errors import GatewayUnavailableError
from rentwise.gateways.base import GatewayNotification, PaymentGateway, TransactionStatus

logger = logging.getLogger(__name__)

# Field order Paymob uses when computing the callback HMAC.
HMAC_FIELDS = (
    "amount_cents",
    "created_at",
    "currency",
    "error_occured",
    "has_parent_transaction",
    "id",
    "integration_id",
    "is_3d_secure",
    "is_auth",
    "is_capture",
    "is_refunded",
    "is_standalone_payment",
    "is_voided",
    "order",
    "owner",
    "pending",
    "source_data.pan",
    "source_data.sub_type",
    "source_data.type",
    "success",
)


def _as_text(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def _parse_bool(value) -> bool:
    return _as_text(value).strip().lower() == "true"


def _parse_int(value) -> Optional[int]:
    try:
        return int(str(value))
    except (TypeError, ValueError):
        return None


def _http_status(exc, response) -> Optional[int]:
    for candidate in (getattr(exc, "response", None), response):
        status = getattr(candidate, "status_code", None)
        if isinstance(status, int):
            return status
    # raise_for_status messages start with the status code.
    match = re.match(r"\s*(\d{3})\b", str(exc))
    return int(match.group(1)) if match else None


def _flatten_transaction(obj: dict) -> Optional[dict]:
    """
    Flatten a processed-callback transaction object into the redirect query shape.

    Returns None when the nested order or source_data objects are not objects.
    """
    order = obj.get("order")
    source = obj.get("source_data") or {}
    if not isinstance(order, dict) or not isinstance(source, dict):
        return None
    flat = {key: obj.get(key) for key in HMAC_FIELDS if "." not in key}
    flat["order"] = order.get("id")
    flat["merchant_order_id"] = order.get("merchant_order_id")
    for key in ("pan", "sub_type", "type"):
        flat[f"source_data.{key}"] = source.get(key)
    return flat


class PaymobGateway(PaymentGateway):
    name = "paymob"

    def __init__(
        self,
        api_key: str,
        integration_id: str,
        iframe_id: str,
        hmac_secret: str = "",
        base_url: str = "https://accept.paymob.com/api",
        currency: str = "EGP",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(currency=currency, timeout=timeout)
        self.api_key = api_key
        self.integration_id = integration_id
        self.iframe_id = iframe_id
        self.hmac_secret = hmac_secret
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, client_error_ok: bool = False, **kwargs) -> Optional[dict]:
        """
        Call the Paymob API. With client_error_ok a 4xx answer returns None
        instead of raising, for lookups where "not found" is a real answer.
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        response = None
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.HTTPError as exc:
            status = _http_status(exc, response)
            if client_error_ok and status is not None and 400 <= status < 500:
                logger.warning("Paymob %s %s answered %s", method, path, status)
                return None
            logger.error("Paymob request %s %s failed: %s", method, path, exc)
            raise GatewayUnavailableError("Payment gateway is unavailable.") from exc
        except requests.exceptions.RequestException as exc:
            logger.error("Paymob request %s %s failed: %s", method, path, exc)
            raise GatewayUnavailableError("Payment gateway is unavailable.") from exc
        except ValueError as exc:
            logger.error("Paymob returned a non-JSON body for %s %s", method, path)
            raise GatewayUnavailableError("Payment gateway returned an invalid response.") from exc

    def authenticate(self) -> str:
        result = self._request("POST", "/auth/tokens", json={"api_key": self.api_key})
        token = result.get("token")
        if not token:
            logger.error("Paymob authentication returned no token")
            raise GatewayUnavailableError("Payment gateway authentication failed.")
        return token

    def create_order(self, auth_token, amount_cents, currency, return_url, merchant_reference):
        result = self._request(
            "POST",
            "/ecommerce/orders",
            json={
                "auth_token": auth_token,
                "delivery_needed": False,
                "amount_cents": int(amount_cents),
                "currency": currency,
                "merchant_order_id": merchant_reference,
                "items": [],
            },
        )
        order_id = result.get("id")
        if order_id is None:
            logger.error("Paymob order creation returned no id for %s", merchant_reference)
            raise GatewayUnavailableError("Payment gateway could not create an order.")
        logger.info("Paymob order %s created for %s", order_id, merchant_reference)
        return str(order_id)

    def create_payment_handle(self, auth_token, order_id, amount_cents, payer_email, payer_name):
        first_name, _, last_name = (payer_name or "Client").partition(" ")
        result = self._request(
            "POST",
            "/acceptance/payment_keys",
            json={
                "auth_token": auth_token,
                "amount_cents": int(amount_cents),
                "expiration": 3600,
                "order_id": int(order_id),
                "currency": self.currency,
                "integration_id": int(self.integration_id),
                "billing_data": {
                    "email": payer_email,
                    "first_name": first_name or "Client",
                    "last_name": last_name or "NA",
                    "phone_number": "NA",
                    "apartment": "NA",
                    "floor": "NA",
                    "street": "NA",
                    "building": "NA",
                    "city": "NA",
                    "country": "NA",
                    "state": "NA",
                },
            },
        )
        payment_key = result.get("token")
        if not payment_key:
            raise GatewayUnavailableError("Payment gateway could not issue a payment key.")
        return f"{self.base_url}/acceptance/iframes/{self.iframe_id}?payment_token={payment_key}"

    def query_transaction(self, transaction_id):
        auth_token = self.authenticate()
        result = self._request(
            "GET",
            f"/acceptance/transactions/{transaction_id}",
            headers={"Authorization": f"Bearer {auth_token}"},
            client_error_ok=True,
        )
        if not isinstance(result, dict):
            return TransactionStatus(transaction_id=str(transaction_id), success=False)
        order = result.get("order") or {}
        success = _parse_bool(result.get("success")) and not _parse_bool(result.get("pending"))
        return TransactionStatus(
            transaction_id=str(result.get("id") or transaction_id),
            success=success,
            order_id=str(order["id"]) if isinstance(order, dict) and order.get("id") is not None else None,
            merchant_reference=order.get("merchant_order_id") if isinstance(order, dict) else None,
            amount_cents=_parse_int(result.get("amount_cents")),
        )

    def verify_hmac(self, fields: Mapping, received: str) -> bool:
        if not self.hmac_secret:
            return True
        if not received:
            return False
        message = "".join(_as_text(fields.get(key)) for key in HMAC_FIELDS)
        expected = hmac.new(self.hmac_secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha512).hexdigest()
        return hmac.compare_digest(expected, received.lower())

    def parse_notification(self, query, body, headers):
        fields = dict(query)
        if body:
            try:
                payload = json.loads(body)
            except (TypeError, ValueError):
                logger.warning("Paymob callback body is not valid JSON")
                return None
            obj = payload.get("obj") if isinstance(payload, dict) else None
            if not isinstance(obj, dict):
                logger.warning("Paymob callback body has no transaction object")
                return None
            fields = _flatten_transaction(obj)
            if fields is None:
                logger.warning("Paymob callback transaction object is malformed")
                return None

        if not self.verify_hmac(fields, query.get("hmac", "")):
            logger.warning("Paymob callback HMAC mismatch for transaction %s", fields.get("id"))
            return None

        transaction_id = _as_text(fields.get("id")).strip()
        if not transaction_id:
            logger.warning("Paymob callback without transaction id")
            return None

        order_id = _as_text(fields.get("order")).strip() or None
        return GatewayNotification(
            transaction_id=transaction_id,
            success=_parse_bool(fields.get("success")) and not _parse_bool(fields.get("pending")),
            order_id=order_id,
            merchant_reference=_as_text(fields.get("merchant_order_id")).strip() or None,
            amount_cents=_parse_int(fields.get("amount_cents")),
        )
