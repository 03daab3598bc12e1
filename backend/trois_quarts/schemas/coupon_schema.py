# backend/trois_quarts/schemas/coupon_schema.py
"""
Esquemas Pydantic para los códigos promocionales.
"""

import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import Field, field_validator

from trois_quarts.core.money import format_money
from trois_quarts.schemas.base_schema import CamelModel


class CouponValidateRequest(CamelModel):
    """Petición de validación: código y importe TTC del pedido."""
    code: str = Field(..., min_length=1, max_length=50)
    order_amount: Decimal = Field(..., ge=0)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v):
        # Los usuarios pegan códigos con espacios: " SAVE10 " -> "SAVE10"
        code = v.strip().upper()
        if not code:
            raise ValueError("Le code est requis")
        return code


class CouponValidation(CamelModel):
    """Detalle del descuento calculado para un importe concreto."""
    coupon_id: int
    code: str
    discount_type: str
    discount_value: str
    discount_amount: str
    new_total: str

    @field_validator("discount_value", "discount_amount", "new_total", mode="before")
    @classmethod
    def money(cls, v):
        return format_money(v)


class CouponValidateResponse(CamelModel):
    success: bool
    message: Optional[str] = None
    reason: Optional[str] = None
    data: Optional[CouponValidation] = None


class CouponResponse(CamelModel):
    """Cupón tal y como se lista en la API de administración."""
    id: int
    code: str
    description: Optional[str] = None
    discount_type: str
    discount_value: str
    min_order_amount: Optional[str] = None
    max_discount: Optional[str] = None
    usage_limit: Optional[int] = None
    usage_count: int
    valid_from: Optional[dt.datetime] = None
    valid_until: Optional[dt.datetime] = None
    is_active: bool

    @field_validator("discount_value", mode="before")
    @classmethod
    def money(cls, v):
        return format_money(v)

    @field_validator("min_order_amount", "max_discount", mode="before")
    @classmethod
    def optional_money(cls, v):
        return None if v is None else format_money(v)


class CouponApplyResponse(CamelModel):
    success: bool
    message: Optional[str] = None
    usage_count: Optional[int] = None
