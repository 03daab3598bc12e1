# backend/trois_quarts/services/coupon_service.py
"""
Servicio de Cupones.

Encapsula la validación de cupones (cálculo del descuento para un importe),
su aplicación (incremento del contador de usos, solo tras un pedido confirmado)
y el listado de cupones activos.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from trois_quarts.core.money import to_money
from trois_quarts.crud import coupon_crud
from trois_quarts.db.models.coupon_model import Coupon
from trois_quarts.schemas.coupon_schema import CouponValidateRequest, CouponValidation

logger = logging.getLogger(__name__)


class CouponError(ValueError):
    """Cupón no aplicable. `reason` identifica el motivo para el cliente."""

    def __init__(self, message: str, reason: str):
        super().__init__(message)
        self.message = message
        self.reason = reason


class CouponNotFoundError(CouponError):
    def __init__(self, message: str = "Code promo invalide"):
        super().__init__(message, reason="not_found")


def check_coupon_for_amount(coupon: Optional[Coupon], order_amount, now: Optional[datetime] = None) -> Coupon:
    """Lanza CouponError si el cupón no se puede aplicar a ese importe."""
    if coupon is None:
        raise CouponNotFoundError()
    if not coupon.is_active:
        raise CouponError("Ce code promo n'est plus actif", reason="inactive")
    if not coupon.is_valid(now):
        raise CouponError("Ce code promo a expiré", reason="expired")
    if not coupon.can_be_used(now):
        raise CouponError("Ce code promo n'est plus disponible", reason="already_used")
    if not coupon.can_be_applied_to_amount(order_amount, now):
        raise CouponError(
            f"Montant minimum de commande non atteint (minimum: {to_money(coupon.min_order_amount):.2f}€)",
            reason="minimum_not_met",
        )
    return coupon


async def validate_coupon(db: AsyncSession, request: CouponValidateRequest,
                          now: Optional[datetime] = None) -> CouponValidation:
    """
    Valida un cupón y calcula el descuento para el importe del pedido.
    No modifica el cupón: se puede llamar tantas veces como haga falta.
    """
    coupon = await coupon_crud.get_coupon_by_code(db, request.code)
    check_coupon_for_amount(coupon, request.order_amount, now)

    discount = coupon.calculate_discount(request.order_amount, now)
    return CouponValidation(
        coupon_id=coupon.id,
        code=coupon.code,
        discount_type=coupon.discount_type,
        discount_value=coupon.discount_value,
        discount_amount=discount,
        new_total=to_money(request.order_amount) - discount,
    )


async def apply_coupon(db: AsyncSession, coupon_id: int, now: Optional[datetime] = None) -> Coupon:
    """Incrementa el contador de usos. Solo se llama tras crear el pedido."""
    coupon = await coupon_crud.get_coupon(db, coupon_id)
    if coupon is None:
        raise CouponNotFoundError("Code promo non trouvé")
    if not coupon.can_be_used(now):
        raise CouponError("Ce code promo n'est plus disponible", reason="already_used")

    coupon.increment_usage()
    await db.commit()
    await db.refresh(coupon)
    logger.info(f"Cupón '{coupon.code}' aplicado ({coupon.usage_count} usos)")
    return coupon


async def list_active_coupons(db: AsyncSession) -> List[Coupon]:
    return await coupon_crud.get_active_coupons(db)
