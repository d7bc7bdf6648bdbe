# salesdesk/services/gateway.py
"""Card gateway client (Toss Payments confirm API)."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

import requests

from salesdesk.services.errors import GatewayError

log = logging.getLogger(__name__)

CONFIRM_PATH = "/v1/payments/confirm"

UNKNOWN_ERROR = "UNKNOWN_ERROR"
ERROR_DESCRIPTIONS = {
    "PAY_PROCESS_CANCELED": "The buyer cancelled the payment.",
    "PAY_PROCESS_ABORTED": "The payment was aborted by an error during processing.",
    "REJECT_CARD_COMPANY": "The card company declined the payment.",
    "INVALID_CARD_NUMBER": "The card number is invalid.",
    "NOT_ENOUGH_BALANCE": "Insufficient balance.",
    "EXCEED_MAX_AMOUNT": "The payment exceeds the card limit.",
    UNKNOWN_ERROR: "An unknown error occurred.",
}


def describe_error(code: str | None) -> str:
    return ERROR_DESCRIPTIONS.get(code or UNKNOWN_ERROR, ERROR_DESCRIPTIONS[UNKNOWN_ERROR])


@dataclass
class Confirmation:
    payment_key: str
    order_reference: str
    method: str | None
    total_amount: int | None = None
    approved_at: str | None = None
    raw: dict = field(default_factory=dict, repr=False)


class PaymentGateway(Protocol):
    def confirm(self, payment_key: str, order_reference: str, amount: int,
                idempotency_key: str | None = None) -> Confirmation:
        """Confirm a charge. Raises GatewayError on any non-success answer."""
        ...


class TossPaymentsGateway:
    def __init__(self, secret_key: str, api_base: str = "https://api.tosspayments.com",
                 timeout: float = 30):
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> "TossPaymentsGateway":
        return cls(
            secret_key=config.get("TOSS_SECRET_KEY") or "",
            api_base=config.get("TOSS_API_BASE") or "https://api.tosspayments.com",
            timeout=config.get("GATEWAY_TIMEOUT") or 30,
        )

    def confirm(self, payment_key, order_reference, amount, idempotency_key=None) -> Confirmation:
        if not self.secret_key:
            raise GatewayError(UNKNOWN_ERROR, "Card gateway is not configured.")

        headers = {"Content-Type": "application/json"}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        try:
            # Basic auth: secret key as user, empty password
            response = requests.post(
                f"{self.api_base}{CONFIRM_PATH}",
                auth=(self.secret_key, ""),
                headers=headers,
                json={"paymentKey": payment_key, "orderId": order_reference, "amount": amount},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            log.error("Gateway connection error for %s: %s", order_reference, e)
            raise GatewayError(UNKNOWN_ERROR, "Could not connect to the payment gateway.")

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.ok:
            code = data.get("code") or UNKNOWN_ERROR
            message = data.get("message") or "Payment confirmation failed."
            log.warning("Gateway rejected %s: %s %s", order_reference, code, message)
            raise GatewayError(code, message)

        return Confirmation(
            payment_key=data.get("paymentKey") or payment_key,
            order_reference=data.get("orderId") or order_reference,
            method=data.get("method"),
            total_amount=data.get("totalAmount"),
            approved_at=data.get("approvedAt"),
            raw=data,
        )
