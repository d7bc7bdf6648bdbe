# salesdesk/models/__init__.py
from .user import User
from .employee import Employee
from .product import Product
from .order import Order
from .sale import Sale
from .commission import Commission
from .confirmation_marker import ConfirmationMarker

__all__ = [
    "User",
    "Employee",
    "Product",
    "Order",
    "Sale",
    "Commission",
    "ConfirmationMarker",
]
