# backend/trois_quarts/db/all_models.py
"""
Importa todos los modelos ORM para que queden registrados en Base.metadata
y las relaciones entre ellos ("Order" <-> "Coupon") se puedan resolver.
"""

from trois_quarts.db.database import Base
from trois_quarts.db.models.coupon_model import Coupon
from trois_quarts.db.models.menu_item_model import MenuItem
from trois_quarts.db.models.order_model import Order, OrderItem

__all__ = ["Base", "Coupon", "MenuItem", "Order", "OrderItem"]
