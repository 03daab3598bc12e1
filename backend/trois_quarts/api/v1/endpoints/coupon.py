# backend/trois_quarts/api/v1/endpoints/coupon.py

"""
Endpoints de códigos promocionales: validación (sin efectos), aplicación tras
un pedido confirmado y listado de los cupones activos.
"""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import logging

from trois_quarts.api import deps
from trois_quarts.schemas import coupon_schema
from trois_quarts.services import coupon_service
from trois_quarts.services.coupon_service import CouponError, CouponNotFoundError

logger = logging.getLogger(__name__)
router = APIRouter()


def _rejection(error: CouponError) -> JSONResponse:
    status_code = status.HTTP_404_NOT_FOUND if isinstance(error, CouponNotFoundError) else status.HTTP_400_BAD_REQUEST
    body = coupon_schema.CouponValidateResponse(success=False, message=error.message, reason=error.reason)
    return JSONResponse(status_code=status_code, content=body.to_wire())


@router.post("/validate", response_model=coupon_schema.CouponValidateResponse)
async def validate_coupon(
    request: coupon_schema.CouponValidateRequest,
    db: AsyncSession = Depends(deps.get_db),
):
    """Calcula el descuento de un código para el importe del pedido."""
    try:
        validation = await coupon_service.validate_coupon(db, request)
    except CouponError as e:
        logger.info(f"🎟️ CUPÓN: '{request.code}' rechazado ({e.reason})")
        return _rejection(e)

    logger.info(f"🎟️ CUPÓN: '{validation.code}' válido, descuento {validation.discount_amount}")
    return coupon_schema.CouponValidateResponse(success=True, message="Code promo appliqué", data=validation)


@router.post("/apply/{coupon_id}", response_model=coupon_schema.CouponApplyResponse)
async def apply_coupon(
    coupon_id: int,
    db: AsyncSession = Depends(deps.get_db),
):
    """Consume un uso del cupón. Se llama una sola vez, tras crear el pedido."""
    try:
        coupon = await coupon_service.apply_coupon(db, coupon_id)
    except CouponError as e:
        status_code = status.HTTP_404_NOT_FOUND if isinstance(e, CouponNotFoundError) else status.HTTP_400_BAD_REQUEST
        body = coupon_schema.CouponApplyResponse(success=False, message=e.message)
        return JSONResponse(status_code=status_code, content=body.to_wire())
    return coupon_schema.CouponApplyResponse(success=True, message="Code promo utilisé", usage_count=coupon.usage_count)


@router.get("/list", response_model=List[coupon_schema.CouponResponse])
async def list_coupons(db: AsyncSession = Depends(deps.get_db)):
    """Lista los cupones activos."""
    return await coupon_service.list_active_coupons(db)
