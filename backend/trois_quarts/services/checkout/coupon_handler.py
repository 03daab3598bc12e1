# backend/trois_quarts/services/checkout/coupon_handler.py
"""
Manejador de cupones del checkout.

La validación solo consulta: calcula el descuento sin tocar el estado del
checkout ni el contador del cupón. La aplicación (consumo de un uso) se hace
una única vez, después de que el pedido haya sido confirmado.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from trois_quarts.core.money import ZERO, format_money, to_decimal, to_money
from trois_quarts.services.checkout.api_clients import CouponAPIClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CouponValidationResult:
    valid: bool
    code: Optional[str] = None
    coupon_id: Optional[int] = None
    discount_amount: Decimal = ZERO
    new_total: Optional[Decimal] = None
    reason: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def rejected(cls, code: Optional[str], reason: str, message: str) -> "CouponValidationResult":
        return cls(valid=False, code=code, reason=reason, message=message)


@dataclass(frozen=True)
class AppliedCoupon:
    """Cupón aceptado en el checkout y el importe del carrito con el que se validó."""
    code: str
    coupon_id: int
    discount_amount: Decimal
    order_amount: Decimal

    @classmethod
    def from_result(cls, result: CouponValidationResult, order_amount: Decimal) -> "AppliedCoupon":
        return cls(
            code=result.code,
            coupon_id=result.coupon_id,
            discount_amount=result.discount_amount,
            order_amount=to_money(order_amount),
        )


class CouponHandler:

    def __init__(self, coupon_api: CouponAPIClient):
        self.coupon_api = coupon_api

    async def validate(self, code: str, order_amount) -> CouponValidationResult:
        """
        Valida un código para un importe. Lanza ExternalServiceError si el
        servicio no responde; cualquier rechazo de negocio se devuelve como
        resultado no válido.
        """
        code = (code or "").strip().upper()
        if not code:
            return CouponValidationResult.rejected(None, "required", "Veuillez saisir un code promo")

        order_amount = to_money(order_amount)
        response = await self.coupon_api.validate_coupon(code, order_amount)
        if not response.success or response.data is None:
            return CouponValidationResult.rejected(
                code, "rejected", response.message or "Code promo invalide"
            )

        discount = to_decimal(response.data.discount_amount)
        if discount > order_amount:
            # Un descuento mayor que el pedido daría un total negativo
            return CouponValidationResult.rejected(
                code, "exceeds_total", "La réduction dépasse le montant de la commande"
            )

        logger.info(f"Cupón {code} válido: -{format_money(discount)} sobre {format_money(order_amount)}")
        return CouponValidationResult(
            valid=True,
            code=response.data.code,
            coupon_id=response.data.coupon_id,
            discount_amount=discount,
            new_total=order_amount - discount,
            message=response.message,
        )

    async def apply(self, coupon_id: int) -> bool:
        """Consume un uso del cupón. Solo debe llamarse tras un pedido confirmado."""
        response = await self.coupon_api.apply_coupon(coupon_id)
        if not response.success:
            logger.warning(f"No se pudo aplicar el cupón {coupon_id}: {response.message}")
        return response.success
