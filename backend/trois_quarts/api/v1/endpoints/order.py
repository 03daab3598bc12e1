# backend/trois_quarts/api/v1/endpoints/order.py

"""
Endpoints de pedidos.

La creación es idempotente: una petición repetida con la misma cabecera
Idempotency-Key devuelve el pedido ya creado (200) en lugar de crear otro (201).
"""

from fastapi import APIRouter, Depends, Header, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from trois_quarts.api import deps
from trois_quarts.core.exceptions import CheckoutValidationError
from trois_quarts.schemas import order_schema
from trois_quarts.services.coupon_service import CouponError
from trois_quarts.services.order_service import (
    IdempotencyConflictError,
    OrderNotFoundError,
    OrderService,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=order_schema.OrderCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    *,
    db: AsyncSession = Depends(deps.get_db),
    order_service: OrderService = Depends(deps.get_order_service),
    order_in: order_schema.OrderCreate,
    response: Response,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key", max_length=100),
) -> order_schema.OrderCreateResponse:
    """Crea un pedido a partir del checkout."""
    logger.info(f"🧾 PEDIDO: Nueva petición ({len(order_in.items)} platos, clave {idempotency_key})")
    try:
        order, created = await order_service.create_order(db, order_in, idempotency_key)
    except IdempotencyConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except (CheckoutValidationError, CouponError) as e:
        logger.warning(f"⚠️ PEDIDO: Rechazado: {e.message}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except ValueError as e:
        logger.warning(f"⚠️ PEDIDO: Rechazado: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        await db.rollback()
        logger.error(f"❌ ERROR: Error inesperado creando el pedido: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Erreur lors de la création de la commande",
        )

    if not created:
        response.status_code = status.HTTP_200_OK
        return order_schema.OrderCreateResponse(
            message="Commande déjà enregistrée", order=order_schema.OrderResponse.model_validate(order)
        )

    logger.info(f"✅ PEDIDO: Creado {order.no}")
    return order_schema.OrderCreateResponse(
        message="Commande créée avec succès", order=order_schema.OrderResponse.model_validate(order)
    )


@router.get("/{order_id}", response_model=order_schema.OrderResponse)
async def read_order(
    order_id: int,
    db: AsyncSession = Depends(deps.get_db),
    order_service: OrderService = Depends(deps.get_order_service),
) -> order_schema.OrderResponse:
    """Obtiene un pedido por su ID."""
    try:
        return await order_service.get_order(db, order_id)
    except OrderNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.patch("/{order_id}/status", response_model=order_schema.OrderResponse)
async def update_order_status(
    order_id: int,
    status_in: order_schema.OrderStatusUpdate,
    db: AsyncSession = Depends(deps.get_db),
    order_service: OrderService = Depends(deps.get_order_service),
) -> order_schema.OrderResponse:
    """Actualiza el estado de un pedido (uso interno del restaurante)."""
    try:
        order = await order_service.update_order_status(db, order_id, status_in.status)
    except OrderNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    logger.info(f"🔄 PEDIDO: {order.no} -> {order.status}")
    return order
