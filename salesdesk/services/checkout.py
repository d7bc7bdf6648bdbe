# salesdesk/services/checkout.py
from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy import or_

from salesdesk.api.utils.email import send_email
from salesdesk.extensions import db
from salesdesk.models import Employee, Order, Product
from salesdesk.models.order import PAYMENT_BANK_TRANSFER, PAYMENT_TYPES, STATUS_PENDING_PAYMENT
from salesdesk.services import order_state
from salesdesk.services.errors import NotFoundError, ValidationError

log = logging.getLogger(__name__)


def vat_breakdown(amount: int, rate: float) -> dict:
    """Display-only VAT line: VAT is rounded to whole units, never stored."""
    vat = round(amount * rate)
    return {"subtotal": amount, "vat": vat, "vatRate": rate, "totalWithVat": amount + vat}


def bank_instructions(config) -> dict | None:
    if not config.get("BANK_ACCOUNT_NUMBER"):
        return None
    return {
        "bank": config.get("BANK_ACCOUNT_BANK"),
        "accountNumber": config.get("BANK_ACCOUNT_NUMBER"),
        "accountHolder": config.get("BANK_ACCOUNT_HOLDER"),
        "expiresInHours": config.get("BANK_TRANSFER_EXPIRY_HOURS"),
    }


def resolve_referral(ref: str | None) -> Employee | None:
    """Active salesperson for an employee code or REF_ code, else None."""
    ref = (ref or "").strip()
    if not ref:
        return None
    emp = db.session.scalar(
        db.select(Employee).where(or_(Employee.code == ref, Employee.referral_code == ref))
    )
    if emp is None or not emp.is_active:
        log.info("Referral %r did not resolve to an active salesperson", ref)
        return None
    return emp


def find_product(key) -> Product | None:
    key = str(key or "").strip()
    if key.isdigit():
        return db.session.get(Product, int(key))
    return db.session.scalar(db.select(Product).where(Product.slug == key))


def create_order(data: dict) -> Order:
    name = str(data.get("name") or data.get("customerName") or "").strip()
    email = str(data.get("email") or data.get("customerEmail") or "").strip()
    phone = str(data.get("phone") or data.get("customerPhone") or "").strip()
    address = str(data.get("address") or data.get("customerAddress") or "").strip() or None
    payment_type = str(data.get("paymentType") or "").strip()

    if not (name and email and phone):
        raise ValidationError("Missing required fields (name, email, phone).")
    if payment_type not in PAYMENT_TYPES:
        raise ValidationError(f"paymentType must be one of {', '.join(PAYMENT_TYPES)}.")

    try:
        quantity = int(data.get("quantity", 1))
    except (TypeError, ValueError):
        raise ValidationError("quantity must be a positive integer.")
    if quantity <= 0:
        raise ValidationError("quantity must be a positive integer.")

    product = find_product(data.get("productId") or data.get("product"))
    if product is None:
        raise NotFoundError("Product not found.")
    if not product.is_active:
        raise ValidationError("This product is no longer on sale.")

    image_refs = data.get("imageRefs") or None
    if image_refs is not None and not isinstance(image_refs, list):
        raise ValidationError("imageRefs must be a list.")

    employee = resolve_referral(data.get("ref"))

    order = Order(
        product_id=product.id,
        employee_id=employee.id if employee else None,
        quantity=quantity,
        total_amount=product.price * quantity,
        payment_type=payment_type,
        status=STATUS_PENDING_PAYMENT,
        customer_name=name,
        customer_email=email,
        customer_phone=phone,
        customer_address=address,
        image_refs=image_refs,
    )
    order_state.validate_record(order)
    db.session.add(order)
    db.session.commit()
    log.info("Order %s created (%s, %s)", order.id, payment_type, order.total_amount)
    return order


def send_order_emails(order: Order) -> None:
    """Buyer confirmation and owner notice. Failures are logged only."""
    cfg = current_app.config
    amount = f"{order.total_amount:,} KRW"
    try:
        lines = [
            f"Hello {order.customer_name},",
            "",
            "thank you for your order.",
            f"Order: {order.order_reference}",
            f"Product: {order.product.name if order.product else '-'} x {order.quantity}",
            f"Total: {amount}",
        ]
        if order.payment_type == PAYMENT_BANK_TRANSFER:
            bank = bank_instructions(cfg)
            lines += ["", "Please transfer the total to:"]
            if bank:
                lines += [
                    f"Bank: {bank['bank'] or '-'}",
                    f"Account: {bank['accountNumber']}",
                    f"Holder: {bank['accountHolder'] or '-'}",
                ]
            lines.append(
                f"Unpaid orders expire after {cfg.get('BANK_TRANSFER_EXPIRY_HOURS')} hours."
            )
        lines += ["", cfg.get("COMPANY_NAME") or "Salesdesk"]
        send_email(
            subject=f"Order confirmation {order.order_reference}",
            recipients=[order.customer_email],
            body="\n".join(lines),
        )
    except Exception:
        current_app.logger.exception("Order confirmation e-mail failed")

    owner = cfg.get("ORDER_NOTIFY_EMAIL")
    if not owner:
        return
    try:
        send_email(
            subject=f"New order #{order.id} ({order.payment_type})",
            recipients=[owner],
            body=(
                f"Order #{order.id} {order.order_reference}\n"
                f"Customer: {order.customer_name} <{order.customer_email}> {order.customer_phone}\n"
                f"Salesperson: {order.employee.name if order.employee else '-'}\n"
                f"Total: {amount}"
            ),
        )
    except Exception:
        current_app.logger.exception("Owner e-mail failed")
