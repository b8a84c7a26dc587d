"""
Payment gateway contract used by the payment ledger and reconciliation.

Amounts crossing this boundary are integer minor units (cents, piastres).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping, Optional


def to_minor_units(amount) -> int:
    """Convert a major-unit Decimal amount to integer minor units, rounding half up."""
    cents = (Decimal(str(amount)) * Decimal("100")).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(cents)


def from_minor_units(amount_cents: int) -> Decimal:
    return (Decimal(int(amount_cents)) / Decimal("100")).quantize(Decimal("0.01"))


@dataclass(frozen=True)
class TransactionStatus:
    transaction_id: str
    success: bool
    order_id: Optional[str] = None
    merchant_reference: Optional[str] = None
    amount_cents: Optional[int] = None


@dataclass(frozen=True)
class GatewayNotification:
    transaction_id: str
    success: bool
    order_id: Optional[str] = None
    merchant_reference: Optional[str] = None
    amount_cents: Optional[int] = None


class PaymentGateway:
    """Base class for gateway adapters. Subclasses talk to one provider."""

    name = "base"

    def __init__(self, currency: str = "EGP", timeout: float = 10.0):
        self.currency = currency
        self.timeout = timeout

    def authenticate(self) -> str:
        raise NotImplementedError

    def create_order(
        self,
        auth_token: str,
        amount_cents: int,
        currency: str,
        return_url: str,
        merchant_reference: str,
    ) -> str:
        raise NotImplementedError

    def create_payment_handle(
        self,
        auth_token: str,
        order_id: str,
        amount_cents: int,
        payer_email: str,
        payer_name: str,
    ) -> str:
        raise NotImplementedError

    def query_transaction(self, transaction_id: str) -> TransactionStatus:
        raise NotImplementedError

    def query_transaction_status(self, transaction_id: str) -> bool:
        return self.query_transaction(transaction_id).success

    def parse_notification(
        self,
        query: Mapping[str, str],
        body: bytes,
        headers: Mapping[str, str],
    ) -> Optional[GatewayNotification]:
        """Return the parsed notification, or None when the payload is malformed or unverified."""
        raise NotImplementedError
