import pytest
import requests

from salesdesk.services import gateway as gateway_mod
from salesdesk.services.errors import GatewayError
from salesdesk.services.gateway import TossPaymentsGateway, describe_error


class FakeResponse:
    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


@pytest.fixture
def captured(monkeypatch):
    calls = []

    def install(response=None, exc=None):
        def fake_post(url, **kwargs):
            calls.append({"url": url, **kwargs})
            if exc is not None:
                raise exc
            return response
        monkeypatch.setattr(gateway_mod.requests, "post", fake_post)
        return calls

    return install


def test_confirm_request_shape(captured):
    calls = captured(FakeResponse(200, {
        "paymentKey": "pk_1", "orderId": "ORDER-5-1", "method": "카드",
        "totalAmount": 15_000, "approvedAt": "2025-03-01T10:00:00+09:00", "status": "DONE",
    }))
    gw = TossPaymentsGateway("test_sk_secret", api_base="https://pay.example.com/", timeout=5)

    confirmation = gw.confirm("pk_1", "ORDER-5-1", 15_000, idempotency_key="ORDER-5-1")

    call = calls[0]
    assert call["url"] == "https://pay.example.com/v1/payments/confirm"
    assert call["auth"] == ("test_sk_secret", "")
    assert call["headers"]["Idempotency-Key"] == "ORDER-5-1"
    assert call["json"] == {"paymentKey": "pk_1", "orderId": "ORDER-5-1", "amount": 15_000}
    assert call["timeout"] == 5
    assert confirmation.method == "카드"
    assert confirmation.total_amount == 15_000
    assert confirmation.raw["status"] == "DONE"


def test_rejection_carries_gateway_code_and_message(captured):
    captured(FakeResponse(400, {"code": "NOT_ENOUGH_BALANCE", "message": "잔액이 부족합니다."}))
    with pytest.raises(GatewayError) as exc:
        TossPaymentsGateway("sk").confirm("pk", "ORDER-1-1", 100)
    assert exc.value.code == "NOT_ENOUGH_BALANCE"
    assert exc.value.message == "잔액이 부족합니다."


def test_rejection_without_body_is_unknown_error(captured):
    captured(FakeResponse(502, None))
    with pytest.raises(GatewayError) as exc:
        TossPaymentsGateway("sk").confirm("pk", "ORDER-1-1", 100)
    assert exc.value.code == "UNKNOWN_ERROR"


def test_network_error(captured):
    captured(exc=requests.exceptions.ConnectTimeout("timed out"))
    with pytest.raises(GatewayError) as exc:
        TossPaymentsGateway("sk").confirm("pk", "ORDER-1-1", 100)
    assert exc.value.code == "UNKNOWN_ERROR"


def test_missing_secret_never_calls_out(captured):
    calls = captured(FakeResponse(200, {}))
    with pytest.raises(GatewayError):
        TossPaymentsGateway("").confirm("pk", "ORDER-1-1", 100)
    assert calls == []


def test_describe_error():
    assert describe_error("PAY_PROCESS_CANCELED") == "The buyer cancelled the payment."
    assert describe_error("SOMETHING_NEW") == "An unknown error occurred."
    assert describe_error(None) == "An unknown error occurred."
