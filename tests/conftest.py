from datetime import date

import pytest
from flask import g

from salesdesk.app import create_app
from salesdesk.config import TestConfig
from salesdesk.extensions import db as _db
from salesdesk.models import Employee, Order, Product, Sale, User
from salesdesk.services.errors import GatewayError
from salesdesk.services.gateway import Confirmation
from salesdesk.timeutil import utcnow


class FakeGateway:
    """Stands in for the card gateway and records every confirm call."""

    def __init__(self, method="card", error=None):
        self.method = method
        self.error = error
        self.calls = []

    def confirm(self, payment_key, order_reference, amount, idempotency_key=None):
        self.calls.append({
            "paymentKey": payment_key,
            "orderId": order_reference,
            "amount": amount,
            "idempotencyKey": idempotency_key,
        })
        if self.error is not None:
            raise self.error
        return Confirmation(
            payment_key=payment_key,
            order_reference=order_reference,
            method=self.method,
            total_amount=amount,
            approved_at="2025-03-10T10:00:00+09:00",
            raw={
                "paymentKey": payment_key,
                "orderId": order_reference,
                "method": self.method,
                "totalAmount": amount,
                "status": "DONE",
            },
        )


@pytest.fixture
def app():
    app = create_app(TestConfig)

    # requests reuse the test app context, so drop the cached login between requests
    @app.before_request
    def _reset_login_cache():
        g.pop("_login_user", None)

    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def gateway(app):
    fake = FakeGateway()
    app.extensions["payment_gateway"] = fake
    return fake


@pytest.fixture
def failing_gateway(app):
    fake = FakeGateway(error=GatewayError("REJECT_CARD_COMPANY", "Card declined"))
    app.extensions["payment_gateway"] = fake
    return fake


@pytest.fixture
def make_employee(db):
    counter = {"n": 0}

    def _make(name=None, status="active", **kw):
        counter["n"] += 1
        n = counter["n"]
        emp = Employee(
            code=kw.pop("code", f"EMP{n:03d}"),
            referral_code=kw.pop("referral_code", f"REF_abcdefgh{n:02d}"),
            name=name or f"Seller {n}",
            email=kw.pop("email", f"seller{n}@example.com"),
            status=status,
            **kw,
        )
        db.session.add(emp)
        db.session.commit()
        return emp

    return _make


@pytest.fixture
def make_product(db):
    counter = {"n": 0}

    def _make(price=100_000, cost=40_000, status="active", **kw):
        counter["n"] += 1
        n = counter["n"]
        product = Product(
            name=kw.pop("name", f"Product {n}"),
            slug=kw.pop("slug", f"p_testslug{n:04d}"),
            price=price,
            cost=cost,
            status=status,
            **kw,
        )
        db.session.add(product)
        db.session.commit()
        return product

    return _make


@pytest.fixture
def make_order(db):
    def _make(product, employee=None, quantity=1, payment_type="card", status="pending_payment",
              created_at=None, **kw):
        order = Order(
            product_id=product.id,
            employee_id=employee.id if employee else None,
            quantity=quantity,
            total_amount=kw.pop("total_amount", product.price * quantity),
            payment_type=payment_type,
            status=status,
            customer_name=kw.pop("customer_name", "Kim Buyer"),
            customer_email=kw.pop("customer_email", "buyer@example.com"),
            customer_phone=kw.pop("customer_phone", "010-1234-5678"),
            created_at=created_at or utcnow(),
            **kw,
        )
        db.session.add(order)
        db.session.commit()
        return order

    return _make


@pytest.fixture
def make_sale(db):
    def _make(employee, product, quantity=1, sale_date=None, **kw):
        sale = Sale(
            employee_id=employee.id,
            product_id=product.id,
            quantity=quantity,
            sale_date=sale_date or date.today(),
            sale_price=kw.pop("sale_price", product.price),
            sale_cost=kw.pop("sale_cost", product.cost),
            **kw,
        )
        db.session.add(sale)
        db.session.commit()
        return sale

    return _make


def _login(client, username, password):
    resp = client.post("/admin/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.get_json()
    return client


@pytest.fixture
def admin_client(app, db):
    user = User(username="admin", email="admin@example.com", role="admin")
    user.set_password("admin-pass")
    db.session.add(user)
    db.session.commit()
    return _login(app.test_client(), "admin", "admin-pass")


@pytest.fixture
def employee_client(app, db, make_employee):
    emp = make_employee(name="Park Seller")
    user = User(username=emp.email, email=emp.email, role="employee", employee_id=emp.id)
    user.set_password("seller-pass")
    db.session.add(user)
    db.session.commit()
    client = _login(app.test_client(), emp.email, "seller-pass")
    client.employee = emp
    return client
