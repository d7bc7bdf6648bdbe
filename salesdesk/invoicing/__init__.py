# salesdesk/invoicing/__init__.py
import io
import os
from datetime import datetime

from flask import current_app
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont
from reportlab.pdfgen import canvas

from salesdesk.services.checkout import vat_breakdown


# (regular name, bold name, regular file, bold file) under static/fonts; the first one present wins
FONT_CANDIDATES = (
    ("NotoSansKR", "NotoSansKR-Bold", "NotoSansKR-Regular.ttf", "NotoSansKR-Bold.ttf"),
    ("DejaVuSans", "DejaVuSans-Bold", "DejaVuSans.ttf", "DejaVuSans-Bold.ttf"),
)
BUILTIN_FONTS = ("Helvetica", "Helvetica-Bold")


def _register_fonts() -> tuple[str, str]:
    """Regular and bold font names for the receipt; Hangul needs a bundled TTF."""
    font_dir = os.path.join(current_app.root_path, "static", "fonts")
    for regular, bold, regular_file, bold_file in FONT_CANDIDATES:
        regular_path = os.path.join(font_dir, regular_file)
        if not os.path.isfile(regular_path):
            continue
        bold_path = os.path.join(font_dir, bold_file)
        try:
            pdfmetrics.registerFont(TTFont(regular, regular_path))
            if not os.path.isfile(bold_path):
                return regular, regular
            pdfmetrics.registerFont(TTFont(bold, bold_path))
            return regular, bold
        except TTFError:
            current_app.logger.warning("Font %s could not be registered", regular_path)
    return BUILTIN_FONTS


def _fmt_dt(dt):
    return dt.strftime("%Y-%m-%d %H:%M") if isinstance(dt, datetime) else "-"


def _won(amount) -> str:
    return f"{int(round(amount or 0)):,} KRW"


def build_receipt_pdf_bytes(order) -> bytes:
    """
    One-page payment receipt for a completed order. The VAT line is informational
    and not part of the charged total.
    """
    reg_font, bold_font = _register_fonts()
    cfg = current_app.config

    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    w, h = A4

    c.setFont(bold_font, 16)
    c.drawString(20 * mm, h - 18 * mm, "RECEIPT")

    c.setFont(reg_font, 10)
    c.drawString(20 * mm, h - 26 * mm, cfg.get("COMPANY_NAME") or "Salesdesk")
    company_email = cfg.get("MAIL_DEFAULT_SENDER") or ""
    if company_email:
        c.drawString(20 * mm, h - 31 * mm, company_email)

    c.drawRightString(w - 20 * mm, h - 26 * mm, f"Order: {order.order_reference}")
    c.drawRightString(w - 20 * mm, h - 31 * mm, f"Ordered: {_fmt_dt(order.created_at)}")
    c.drawRightString(w - 20 * mm, h - 36 * mm, f"Paid: {_fmt_dt(order.payment_date)}")

    y = h - 52 * mm
    c.setFont(bold_font, 11)
    c.drawString(20 * mm, y, "Customer")
    y -= 6 * mm
    c.setFont(reg_font, 10)
    for line in (order.customer_name, order.customer_email, order.customer_phone, order.customer_address):
        if line:
            c.drawString(20 * mm, y, str(line)[:95])
            y -= 5 * mm
    y -= 5 * mm

    c.setFont(bold_font, 10)
    c.drawString(20 * mm, y, "Item")
    c.drawRightString(120 * mm, y, "Qty")
    c.drawRightString(155 * mm, y, "Unit price")
    c.drawRightString(190 * mm, y, "Amount")
    y -= 5 * mm
    c.line(20 * mm, y, 190 * mm, y)
    y -= 6 * mm
    c.setFont(reg_font, 10)

    name = order.product.name if order.product else "Item"
    unit = order.total_amount / order.quantity if order.quantity else order.total_amount
    c.drawString(20 * mm, y, str(name)[:60])
    c.drawRightString(120 * mm, y, str(order.quantity))
    c.drawRightString(155 * mm, y, _won(unit))
    c.drawRightString(190 * mm, y, _won(order.total_amount))
    y -= 10 * mm

    vat = vat_breakdown(order.total_amount, float(cfg.get("VAT_RATE") or 0))
    c.drawRightString(155 * mm, y, f"VAT {vat['vatRate']:.0%} (info):")
    c.drawRightString(190 * mm, y, _won(vat["vat"]))
    y -= 7 * mm

    c.setFont(bold_font, 11)
    c.drawRightString(155 * mm, y, "TOTAL PAID:")
    c.drawRightString(190 * mm, y, _won(order.total_amount))
    y -= 12 * mm

    c.setFont(bold_font, 10)
    c.drawString(20 * mm, y, "Payment")
    y -= 6 * mm
    c.setFont(reg_font, 10)
    if order.payment_type == "bank_transfer":
        c.drawString(20 * mm, y, f"Bank transfer, reference {order.payment_id or '-'}")
    else:
        c.drawString(20 * mm, y, f"Card ({order.payment_method or 'card'})")

    c.showPage()
    c.save()
    buf.seek(0)
    return buf.getvalue()
