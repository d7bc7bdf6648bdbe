# salesdesk/services/order_completed_hook.py
from __future__ import annotations

from flask import current_app

from salesdesk.api.utils.email import send_email
from salesdesk.api.utils.telegram import send_telegram_message
from salesdesk.extensions import db
from salesdesk.invoicing import build_receipt_pdf_bytes
from salesdesk.models import Order
from salesdesk.models.order import STATUS_COMPLETED


def _send_receipt_email(order: Order, pdf_bytes: bytes, filename: str) -> None:
    if not order.customer_email:
        return
    body = (
        f"Hello {order.customer_name},\n\n"
        f"your payment for order {order.order_reference} has been received.\n"
        "The receipt is attached as a PDF.\n\n"
        f"{current_app.config.get('COMPANY_NAME') or 'Salesdesk'}"
    )
    send_email(
        subject=f"Payment received - {order.order_reference}",
        recipients=[order.customer_email],
        body=body,
        attachments=[{"filename": filename, "content": pdf_bytes, "mimetype": "application/pdf"}],
    )


def _notify_telegram(order: Order) -> bool:
    try:
        return send_telegram_message(
            f"<b>Order #{order.id} completed</b>\n"
            f"{order.payment_type} / {order.payment_method or order.payment_id or '-'}\n"
            f"{order.total_amount:,} KRW, {order.customer_name}\n"
            f"Salesperson: {order.employee.name if order.employee else '-'}"
        )
    except Exception:
        current_app.logger.exception("Telegram notice failed")
        return False


def on_order_completed(order_id: int) -> dict:
    """
    Call ONLY after an order has moved to 'completed'.
    1) builds the PDF receipt
    2) e-mails it to the buyer
    3) posts a Telegram notice
    Nothing here touches the order row; failures are logged and reported.
    """
    order: Order | None = db.session.get(Order, order_id)
    if not order:
        return {"ok": False, "error": "Order not found"}
    if order.status != STATUS_COMPLETED:
        return {"ok": False, "error": f"Order is {order.status}"}

    emailed = False
    try:
        pdf_bytes = build_receipt_pdf_bytes(order)
        _send_receipt_email(order, pdf_bytes, f"Receipt-{order.order_reference}.pdf")
        emailed = True
    except Exception:
        current_app.logger.exception("Receipt e-mail for order %s failed", order_id)

    notified = _notify_telegram(order)
    return {"ok": True, "emailed": emailed, "notified": notified}
