# backend/trois_quarts/db/models/coupon_model.py
"""
Este archivo contiene el modelo de código promocional.

Un cupón puede ser porcentual o de importe fijo, con importe mínimo de pedido,
descuento máximo, límite de usos y ventana de validez.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from trois_quarts.core.money import to_decimal, to_money
from trois_quarts.db.database import Base

TYPE_PERCENTAGE = "percentage"
TYPE_FIXED = "fixed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite devuelve fechas sin zona horaria
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    discount_type = Column(String(20), nullable=False)
    discount_value = Column(Numeric(10, 2), nullable=False)
    min_order_amount = Column(Numeric(10, 2), nullable=True)
    max_discount = Column(Numeric(10, 2), nullable=True)
    usage_limit = Column(Integer, nullable=True)
    usage_count = Column(Integer, nullable=False, default=0)
    valid_from = Column(DateTime(timezone=True), nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    orders = relationship("Order", back_populates="coupon")

    def __repr__(self):
        return f"<Coupon(code='{self.code}', type='{self.discount_type}', used={self.usage_count})>"

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        """Activo y dentro de la ventana de validez."""
        if not self.is_active:
            return False
        now = now or _utcnow()
        valid_from = _aware(self.valid_from)
        valid_until = _aware(self.valid_until)
        if valid_from and now < valid_from:
            return False
        if valid_until and now > valid_until:
            return False
        return True

    def can_be_used(self, now: Optional[datetime] = None) -> bool:
        if not self.is_valid(now):
            return False
        if self.usage_limit is not None and (self.usage_count or 0) >= self.usage_limit:
            return False
        return True

    def can_be_applied_to_amount(self, amount: Decimal, now: Optional[datetime] = None) -> bool:
        if not self.can_be_used(now):
            return False
        if self.min_order_amount is not None and to_decimal(amount) < to_decimal(self.min_order_amount):
            return False
        return True

    def calculate_discount(self, order_amount: Decimal, now: Optional[datetime] = None) -> Decimal:
        """Descuento para un importe dado. Nunca supera el importe del pedido."""
        amount = to_decimal(order_amount)
        if not self.can_be_applied_to_amount(amount, now):
            return to_money(0)

        if self.discount_type == TYPE_PERCENTAGE:
            discount = amount * to_decimal(self.discount_value) / Decimal("100")
        elif self.discount_type == TYPE_FIXED:
            discount = to_decimal(self.discount_value)
        else:
            discount = Decimal("0")

        if self.max_discount is not None:
            discount = min(discount, to_decimal(self.max_discount))

        return to_money(min(discount, amount))

    def increment_usage(self) -> "Coupon":
        self.usage_count = (self.usage_count or 0) + 1
        return self
