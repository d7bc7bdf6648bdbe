# salesdesk/services/errors.py
"""Checkout and reconciliation failures, mapped to HTTP status by the routes."""


class CheckoutError(Exception):
    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class ValidationError(CheckoutError):
    status_code = 400


class MissingParameters(ValidationError):
    def __init__(self, missing=()):
        self.missing = tuple(missing)
        super().__init__(f"Missing required parameters: {', '.join(self.missing)}")


class NotFoundError(CheckoutError):
    status_code = 404


class OrderNotFound(NotFoundError):
    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found.")


class GatewayError(CheckoutError):
    """Non-success answer from the card gateway. The message is the gateway's own."""

    status_code = 400

    def __init__(self, code: str, message: str):
        self.code = code or "UNKNOWN_ERROR"
        super().__init__(message or self.code)


class ConflictError(CheckoutError):
    status_code = 409


class PersistenceError(CheckoutError):
    status_code = 500


class PaymentRecordingError(PersistenceError):
    """The gateway confirmed the charge but the order row was not updated."""

    def __init__(self, order_id, order_reference: str, payment_key: str):
        self.order_id = order_id
        self.order_reference = order_reference
        self.payment_key = payment_key
        super().__init__(
            f"Payment {payment_key} was confirmed by the gateway but order "
            f"{order_reference} could not be recorded. Contact support."
        )


def error_response_body(exc: CheckoutError) -> dict:
    body = {"ok": False, "error": exc.message}
    code = getattr(exc, "code", None)
    if code:
        body["code"] = code
    return body
