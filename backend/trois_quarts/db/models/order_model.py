# backend/trois_quarts/db/models/order_model.py
"""
Este archivo contiene el modelo de pedido para la aplicación.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, Time
)
from sqlalchemy.orm import relationship

from trois_quarts.db.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    no = Column(String(50), unique=True, nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending")

    delivery_mode = Column(String(20), nullable=False)
    delivery_address = Column(String(255), nullable=True)
    delivery_zip = Column(String(10), nullable=True)
    delivery_instructions = Column(Text, nullable=True)
    delivery_date = Column(Date, nullable=True)
    delivery_time = Column(Time, nullable=True)
    delivery_fee = Column(Numeric(10, 2), nullable=False, default=0)

    payment_mode = Column(String(20), nullable=False)

    client_first_name = Column(String(100), nullable=False)
    client_last_name = Column(String(100), nullable=False)
    client_phone = Column(String(20), nullable=False)
    client_email = Column(String(255), nullable=False)

    subtotal = Column(Numeric(10, 2), nullable=False)
    tax_amount = Column(Numeric(10, 2), nullable=False)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False)

    coupon_id = Column(Integer, ForeignKey("coupons.id"), nullable=True)
    idempotency_key = Column(String(64), unique=True, nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", lazy="selectin")
    coupon = relationship("Coupon", back_populates="orders")

    def __repr__(self):
        return f"<Order(id={self.id}, no='{self.no}', status='{self.status}')>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    product_id = Column(String(50), nullable=False)
    product_name = Column(String(255), nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    total = Column(Numeric(10, 2), nullable=False)

    order = relationship("Order", back_populates="items")

    def __repr__(self):
        return f"<OrderItem(id={self.id}, order_id={self.order_id}, product='{self.product_name}')>"
