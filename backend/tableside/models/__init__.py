"""
SQLAlchemy ORM Models Package.

- base: Base class and AuditMixin
- tenant: Restaurant, RestaurantTable
- table: TableSession, SessionCustomer
- order: Order, OrderItem
"""

# Base classes
from .base import Base, AuditMixin, as_utc, utcnow

# Tenant models
from .tenant import Restaurant, RestaurantTable

# Sessions and customers
from .table import TableSession, SessionCustomer

# Orders
from .order import Order, OrderItem

__all__ = [
    "Base",
    "AuditMixin",
    "as_utc",
    "utcnow",
    "Restaurant",
    "RestaurantTable",
    "TableSession",
    "SessionCustomer",
    "Order",
    "OrderItem",
]
