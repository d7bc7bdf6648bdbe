from datetime import timedelta

import pytest
from sqlalchemy import text

from salesdesk.models import Order
from salesdesk.services import reconciliation
from salesdesk.services.errors import ConflictError, ValidationError
from salesdesk.timeutil import utcnow


@pytest.fixture
def transfer_order(make_product, make_order):
    return make_order(make_product(), payment_type="bank_transfer")


def test_expiry_flag_at_24_hours(make_product, make_order):
    now = utcnow()
    product = make_product()
    old = make_order(product, payment_type="bank_transfer", created_at=now - timedelta(hours=25))
    fresh = make_order(product, payment_type="bank_transfer", created_at=now - timedelta(hours=23))
    card = make_order(product, payment_type="card", created_at=now - timedelta(hours=48))

    assert reconciliation.is_expired(old, now) is True
    assert reconciliation.is_expired(fresh, now) is False
    assert reconciliation.is_expired(card, now) is False
    assert reconciliation.is_expired(old, now, expiry_hours=26) is False

    view = reconciliation.order_view(old, now)
    assert view["isExpired"] is True
    assert view["hoursElapsed"] == pytest.approx(25.0)


def test_flag_does_not_change_the_order(db, make_product, make_order):
    old = make_order(make_product(), payment_type="bank_transfer", created_at=utcnow() - timedelta(days=3))
    reconciliation.order_view(old)
    db.session.refresh(old)
    assert old.status == "pending_payment"


def test_confirm_requires_acknowledgement(transfer_order):
    with pytest.raises(ValidationError):
        reconciliation.confirm_bank_transfer(transfer_order.id, acknowledge=False)
    with pytest.raises(ValidationError):
        reconciliation.confirm_bank_transfer(transfer_order.id, acknowledge="true")


def test_confirm_bank_transfer(transfer_order):
    order = reconciliation.confirm_bank_transfer(transfer_order.id, acknowledge=True)
    assert order.status == "completed"
    assert order.payment_id.startswith("PAY_")
    assert order.payment_date is not None

    with pytest.raises(ConflictError):
        reconciliation.confirm_bank_transfer(transfer_order.id, acknowledge=True)


def test_card_orders_cannot_be_confirmed_by_hand(make_product, make_order):
    order = make_order(make_product(), payment_type="card")
    with pytest.raises(ValidationError):
        reconciliation.confirm_bank_transfer(order.id, acknowledge=True)


def test_cancel_then_confirm_conflicts(transfer_order):
    order = reconciliation.cancel_order(transfer_order.id, acknowledge=True)
    assert order.status == "cancelled"
    with pytest.raises(ConflictError):
        reconciliation.confirm_bank_transfer(transfer_order.id, acknowledge=True)
    with pytest.raises(ConflictError):
        reconciliation.cancel_order(transfer_order.id, acknowledge=True)


def test_expire_overdue(db, make_product, make_order):
    now = utcnow()
    product = make_product()
    old = make_order(product, payment_type="bank_transfer", created_at=now - timedelta(hours=30))
    fresh = make_order(product, payment_type="bank_transfer", created_at=now - timedelta(hours=2))
    old_id, fresh_id = old.id, fresh.id

    assert reconciliation.expire_overdue(now, dry_run=True) == [old_id]
    assert db.session.get(Order, old_id).status == "pending_payment"

    assert reconciliation.expire_overdue(now) == [old_id]
    db.session.expire_all()
    assert db.session.get(Order, old_id).status == "cancelled"
    assert db.session.get(Order, fresh_id).status == "pending_payment"


# ---- HTTP -------------------------------------------------------------------

def test_admin_order_routes(admin_client, make_product, make_order):
    now = utcnow()
    product = make_product()
    overdue = make_order(product, payment_type="bank_transfer", created_at=now - timedelta(hours=26))
    make_order(product, payment_type="card")

    body = admin_client.get("/admin/orders?paymentType=bank_transfer").get_json()
    assert body["stats"]["total"] == 1
    assert body["orders"][0]["isExpired"] is True

    resp = admin_client.post(f"/admin/orders/{overdue.id}/confirm-transfer", json={})
    assert resp.status_code == 400

    resp = admin_client.post(f"/admin/orders/{overdue.id}/confirm-transfer", json={"acknowledge": True})
    assert resp.status_code == 200
    assert resp.get_json()["order"]["status"] == "completed"
    assert resp.get_json()["hook"]["ok"] is True

    resp = admin_client.post(f"/admin/orders/{overdue.id}/cancel", json={"acknowledge": True})
    assert resp.status_code == 409

    resp = admin_client.post("/admin/orders/999/cancel", json={"acknowledge": True})
    assert resp.status_code == 404


def test_admin_order_list_filters_and_counts_in_the_query(admin_client, db, make_product, make_order):
    now = utcnow()
    product = make_product()
    for hours in (1, 2, 3):
        make_order(product, payment_type="bank_transfer", created_at=now - timedelta(hours=hours))
    legacy = make_order(product, payment_type="bank_transfer", created_at=now - timedelta(hours=4))
    db.session.execute(text('UPDATE "order" SET status = \'pending\' WHERE id = :id'), {"id": legacy.id})
    make_order(product, status="completed", created_at=now, payment_key="pk_done", payment_method="card",
               payment_date=now)
    make_order(product, status="cancelled", created_at=now)
    db.session.commit()

    body = admin_client.get("/admin/orders?status=pending_payment&limit=2").get_json()
    assert body["stats"] == {"total": 6, "pending_payment": 4, "completed": 1, "cancelled": 1}
    assert len(body["orders"]) == 2
    assert all(o["status"] == "pending_payment" for o in body["orders"])

    body = admin_client.get("/admin/orders?status=completed").get_json()
    assert [o["paymentKey"] for o in body["orders"]] == ["pk_done"]

    body = admin_client.get("/admin/orders?status=pending_payment").get_json()
    assert legacy.id in [o["id"] for o in body["orders"]]


def test_expire_overdue_route_needs_acknowledgement(admin_client, make_product, make_order):
    make_order(make_product(), payment_type="bank_transfer", created_at=utcnow() - timedelta(hours=40))
    assert admin_client.post("/admin/orders/expire-overdue", json={}).status_code == 400

    dry = admin_client.post("/admin/orders/expire-overdue", json={"dryRun": True}).get_json()
    assert dry["count"] == 1 and dry["dryRun"] is True

    done = admin_client.post("/admin/orders/expire-overdue", json={"acknowledge": True}).get_json()
    assert done["count"] == 1


def test_expire_command(app, make_product, make_order):
    make_order(make_product(), payment_type="bank_transfer", created_at=utcnow() - timedelta(hours=40))
    result = app.test_cli_runner().invoke(args=["expire-bank-transfers", "--dry-run"])
    assert result.exit_code == 0
    assert "Would cancel 1 order(s)" in result.output
