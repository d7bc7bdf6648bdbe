import pytest
from sqlalchemy import text

from salesdesk.extensions import mail
from salesdesk.models import Order
from salesdesk.services import payment_confirm
from salesdesk.services.errors import (
    ConflictError,
    GatewayError,
    MissingParameters,
    OrderNotFound,
    PaymentRecordingError,
    ValidationError,
)
from salesdesk.services.gateway import Confirmation
from salesdesk.services.payment_confirm import confirm_payment, parse_order_reference


@pytest.fixture
def card_order(make_employee, make_product, make_order):
    return make_order(make_product(price=45_000), make_employee(), quantity=2)


def test_parse_order_reference():
    assert parse_order_reference("ORDER-482-1733999999000") == "482"
    assert parse_order_reference("482") == "482"
    # only a leading prefix is stripped
    assert parse_order_reference("7-ORDER-1") == "7"
    assert parse_order_reference("XORDER-9-1") == "XORDER"


def test_successful_confirmation_completes_the_order(db, gateway, card_order):
    ref = card_order.order_reference
    result = confirm_payment("pk_live_1", ref, 90_000)

    assert result["status"] == "success"
    assert result["orderId"] == ref
    assert gateway.calls == [{
        "paymentKey": "pk_live_1", "orderId": ref, "amount": 90_000, "idempotencyKey": ref,
    }]

    order = db.session.get(Order, card_order.id)
    assert order.status == "completed"
    assert order.payment_key == "pk_live_1"
    assert order.payment_method == "card"
    assert order.payment_date is not None


def test_gateway_status_field_does_not_override_success(gateway, card_order):
    # gateway answers with status DONE; the caller always sees success
    result = confirm_payment("pk_live_2", card_order.order_reference, 90_000)
    assert result["status"] == "success"


def test_full_reference_is_sent_to_the_gateway(db, gateway, make_product, make_order):
    order = make_order(make_product())
    amount = order.total_amount
    db.session.execute(text('UPDATE "order" SET id = 482 WHERE id = :id'), {"id": order.id})
    db.session.commit()

    confirm_payment("pk_482", "ORDER-482-1733999999000", amount)
    assert gateway.calls[0]["orderId"] == "ORDER-482-1733999999000"
    assert db.session.get(Order, 482).status == "completed"


def test_repeat_confirmation_calls_gateway_once(gateway, card_order):
    ref = card_order.order_reference
    first = confirm_payment("pk_rep", ref, 90_000)
    second = confirm_payment("pk_rep", ref, 90_000)

    assert first["status"] == "success"
    assert second == {"status": "already_completed", "message": payment_confirm.ALREADY_COMPLETED_MESSAGE}
    assert len(gateway.calls) == 1


def test_gateway_failure_leaves_order_pending(db, failing_gateway, card_order):
    with pytest.raises(GatewayError) as exc:
        confirm_payment("pk_bad", card_order.order_reference, 90_000)
    assert exc.value.code == "REJECT_CARD_COMPANY"
    assert exc.value.message == "Card declined"

    order = db.session.get(Order, card_order.id)
    db.session.refresh(order)
    assert order.status == "pending_payment"
    assert order.payment_key is None


def test_already_processed_answer_after_a_race(db, card_order):
    class RacingGateway:
        """Another request completes the order while this one talks to the gateway."""
        calls = 0

        def confirm(self, payment_key, order_reference, amount, idempotency_key=None):
            RacingGateway.calls += 1
            db.session.execute(
                text('UPDATE "order" SET status = \'completed\', payment_key = :pk WHERE id = :id'),
                {"pk": payment_key, "id": card_order.id},
            )
            db.session.commit()
            raise GatewayError(payment_confirm.ALREADY_PROCESSED_CODE, "Already processed")

    result = confirm_payment("pk_race", card_order.order_reference, 90_000, gateway=RacingGateway())
    assert result["status"] == "already_completed"
    assert RacingGateway.calls == 1


def test_order_completed_elsewhere_after_gateway_success(db, card_order):
    class LateWriterGateway:
        def confirm(self, payment_key, order_reference, amount, idempotency_key=None):
            db.session.execute(
                text('UPDATE "order" SET status = \'completed\', payment_key = \'pk_other\' WHERE id = :id'),
                {"id": card_order.id},
            )
            db.session.commit()
            return _confirmation(payment_key, order_reference, amount)

    result = confirm_payment("pk_late", card_order.order_reference, 90_000, gateway=LateWriterGateway())
    assert result["status"] == "already_completed"
    assert db.session.get(Order, card_order.id).payment_key == "pk_other"


def test_paid_but_cancelled_meanwhile_is_reported(db, card_order, caplog):
    class CancelDuringCall:
        def confirm(self, payment_key, order_reference, amount, idempotency_key=None):
            db.session.execute(
                text('UPDATE "order" SET status = \'cancelled\' WHERE id = :id'), {"id": card_order.id}
            )
            db.session.commit()
            return _confirmation(payment_key, order_reference, amount)

    with pytest.raises(PaymentRecordingError) as exc:
        confirm_payment("pk_lost", card_order.order_reference, 90_000, gateway=CancelDuringCall())
    assert exc.value.payment_key == "pk_lost"
    assert "PAID BUT NOT RECORDED" in caplog.text


def test_missing_parameters(gateway):
    with pytest.raises(MissingParameters) as exc:
        confirm_payment(None, "ORDER-1-1", "")
    assert exc.value.missing == ("paymentKey", "amount")
    assert gateway.calls == []


def test_unknown_order(gateway):
    with pytest.raises(OrderNotFound):
        confirm_payment("pk", "ORDER-999-1", 1_000)
    with pytest.raises(OrderNotFound):
        confirm_payment("pk", "ORDER-abc-1", 1_000)
    assert gateway.calls == []


def test_cancelled_order_is_never_sent_to_gateway(gateway, make_product, make_order):
    order = make_order(make_product(), status="cancelled")
    with pytest.raises(ConflictError):
        confirm_payment("pk", order.order_reference, order.total_amount)
    assert gateway.calls == []


def test_amount_mismatch_is_logged_and_left_to_the_gateway(gateway, card_order, caplog):
    confirm_payment("pk_mm", card_order.order_reference, 1)
    assert "amount mismatch" in caplog.text
    assert gateway.calls[0]["amount"] == 1


def test_fractional_amount_is_refused_not_truncated(gateway, card_order):
    for amount in (90_000.9, "90000.5", True, "abc", "inf"):
        with pytest.raises(ValidationError):
            confirm_payment("pk_frac", card_order.order_reference, amount)
    assert gateway.calls == []


def test_whole_amount_strings_and_floats_are_accepted(gateway, card_order):
    confirm_payment("pk_str", card_order.order_reference, "90000.0")
    assert gateway.calls[0]["amount"] == 90_000
    assert type(gateway.calls[0]["amount"]) is int


def test_completion_sends_receipt(gateway, card_order):
    with mail.record_messages() as outbox:
        confirm_payment("pk_mail", card_order.order_reference, 90_000)
    assert len(outbox) == 1
    assert outbox[0].recipients == ["buyer@example.com"]
    assert outbox[0].attachments[0].filename.startswith("Receipt-ORDER-")


# ---- HTTP -------------------------------------------------------------------

def test_payment_confirm_route(client, gateway, card_order):
    resp = client.post("/payment-confirm", json={
        "paymentKey": "pk_http", "orderId": card_order.order_reference, "amount": 90_000,
    })
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "success"

    again = client.post("/payment-confirm", json={
        "paymentKey": "pk_http", "orderId": card_order.order_reference, "amount": 90_000,
    })
    assert again.status_code == 200
    assert again.get_json()["status"] == "already_completed"
    assert len(gateway.calls) == 1


def test_payment_confirm_route_errors(client, failing_gateway, card_order):
    resp = client.post("/payment-confirm", json={"paymentKey": "pk"})
    assert resp.status_code == 400
    assert "orderId" in resp.get_json()["error"]

    resp = client.post("/payment-confirm", json={
        "paymentKey": "pk", "orderId": card_order.order_reference, "amount": 90_000,
    })
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Card declined", "code": "REJECT_CARD_COMPANY"}


def test_payment_success_page(client, gateway, card_order):
    resp = client.get("/payment/success", query_string={
        "paymentKey": "pk_page", "orderId": card_order.order_reference, "amount": 90_000,
    })
    body = resp.get_json()
    assert resp.status_code == 200
    assert body["result"] == "success"
    assert body["order"]["status"] == "completed"

    with client.session_transaction() as sess:
        assert sess.get("confirm_sid")


def test_payment_success_page_gateway_failure(client, failing_gateway, card_order):
    resp = client.get("/payment/success", query_string={
        "paymentKey": "pk_page", "orderId": card_order.order_reference, "amount": 90_000,
    })
    body = resp.get_json()
    assert resp.status_code == 400
    assert body["code"] == "REJECT_CARD_COMPANY"
    assert body["description"] == "The card company declined the payment."
    assert body["redirect"].startswith("/payment/fail?code=REJECT_CARD_COMPANY")


def test_second_request_while_the_first_is_at_the_gateway(app, client, card_order):
    ref = card_order.order_reference
    query = {"paymentKey": "pk_dup", "orderId": ref, "amount": 90_000}
    with client.session_transaction() as sess:
        sess["confirm_sid"] = "browser-1"
    seen = {}

    class SlowGateway:
        def __init__(self):
            self.calls = []

        def confirm(self, payment_key, order_reference, amount, idempotency_key=None):
            self.calls.append(payment_key)
            # the same browser reloads the return page before this call finishes
            resp = client.get("/payment/success", query_string=query)
            seen["status"] = resp.status_code
            seen["body"] = resp.get_json()
            return _confirmation(payment_key, order_reference, amount)

    slow = SlowGateway()
    app.extensions["payment_gateway"] = slow

    first = client.get("/payment/success", query_string=query)
    assert first.status_code == 200
    assert first.get_json()["result"] == "success"
    assert first.get_json()["order"]["status"] == "completed"

    assert seen["status"] == 200
    assert seen["body"]["result"] == "in_progress"
    assert seen["body"]["order"]["status"] == "pending_payment"
    assert slow.calls == ["pk_dup"]


def test_reload_right_after_success_only_reads_back(client, gateway, card_order):
    query = {"paymentKey": "pk_reload", "orderId": card_order.order_reference, "amount": 90_000}
    assert client.get("/payment/success", query_string=query).get_json()["result"] == "success"

    again = client.get("/payment/success", query_string=query)
    assert again.status_code == 200
    assert again.get_json()["result"] == "in_progress"
    assert again.get_json()["order"]["status"] == "completed"
    assert len(gateway.calls) == 1


def test_failed_attempt_can_be_retried_at_once(client, failing_gateway, card_order):
    query = {"paymentKey": "pk_retry", "orderId": card_order.order_reference, "amount": 90_000}
    assert client.get("/payment/success", query_string=query).status_code == 400

    failing_gateway.error = None
    retry = client.get("/payment/success", query_string=query)
    assert retry.status_code == 200
    assert retry.get_json()["result"] == "success"
    assert len(failing_gateway.calls) == 2


def test_client_config_exposes_only_the_client_key(client):
    body = client.get("/api/payments/client-config").get_json()
    assert body == {"ok": True, "clientKey": "test_ck_dummy"}


def _confirmation(payment_key, order_reference, amount):
    return Confirmation(payment_key=payment_key, order_reference=order_reference, method="card",
                        total_amount=amount, raw={"orderId": order_reference})
