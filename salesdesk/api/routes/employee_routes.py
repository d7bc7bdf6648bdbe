from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user

from salesdesk.auth.decorators import employee_required
from salesdesk.extensions import db
from salesdesk.models import Product
from salesdesk.services import aggregation
from salesdesk.services.commission import commission_for, round_half_up
from salesdesk.timeutil import utcnow

me_bp = Blueprint("me_bp", __name__, url_prefix="/api/me")


@me_bp.get("/dashboard")
@employee_required
def dashboard():
    """Current month for the logged-in salesperson, online and offline combined."""
    employee = current_user.employee
    month = request.args.get("month") or utcnow().strftime("%Y-%m")
    try:
        start, end = aggregation.month_bounds(month)
    except ValueError as e:
        return jsonify({"ok": False, "error": str(e)}), 400

    orders = aggregation.orders_between(start, end, employee.id)
    sales = aggregation.sales_between(start, end, employee.id)
    completed = aggregation.build_lines(orders, [])
    offline = [aggregation.sale_line(s) for s in sales]

    online_sales = sum(line.amount for line in completed)
    offline_sales = sum(line.amount for line in offline)
    total_sales = online_sales + offline_sales
    _, _, total_commission, has_bonus = commission_for(total_sales)

    # every order of the month is listed, whatever its status
    history = [aggregation.order_line(o) for o in orders] + offline
    history.sort(key=lambda line: line.date, reverse=True)

    base = (current_app.config.get("PUBLIC_BASE_URL") or "").rstrip("/")
    ref = employee.referral_code or employee.code
    products = db.session.execute(
        db.select(Product).where(Product.status == "active").order_by(Product.id)
    ).scalars()
    links = [
        {
            "productId": p.id,
            "productName": p.name,
            "url": f"{base}/product/{p.slug or p.id}?ref={ref}",
        }
        for p in products
    ]

    return jsonify({
        "ok": True,
        "employee": employee.to_dict(),
        "month": month,
        "stats": {
            "monthlySales": total_sales,
            "onlineSales": online_sales,
            "offlineSales": offline_sales,
            "monthlyCommission": round_half_up(total_commission),
            "hasBonus": has_bonus,
            "totalOrders": len(completed) + len(offline),
        },
        "orders": [line.to_dict() for line in history],
        "referralLinks": links,
    })
