# backend/trois_quarts/crud/order_crud.py
"""
Operaciones CRUD para el modelo Order.

Este módulo proporciona funciones para crear y consultar pedidos, incluyendo la
generación de números de pedido, la búsqueda por clave de idempotencia y la
actualización de estados.
"""

import random
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from trois_quarts.db.models.order_model import Order, OrderItem
from trois_quarts.schemas.order_schema import OrderStatus


async def generate_order_number(db: AsyncSession, today: Optional[datetime] = None) -> str:
    """
    Genera un número de pedido único con el formato ORD-YYYYMMDD-NNNN.
    """
    date_part = (today or datetime.now()).strftime("%Y%m%d")
    while True:
        candidate = f"ORD-{date_part}-{random.randint(1, 9999):04d}"
        result = await db.execute(select(Order.id).filter(Order.no == candidate))
        if result.scalar() is None:
            return candidate


async def create_order(db: AsyncSession, order_fields: Dict, items: List[Dict]) -> Order:
    """
    Crea un nuevo pedido con sus items de forma asíncrona y lo devuelve con los
    items ya cargados.
    """
    db_order = Order(no=await generate_order_number(db), **order_fields)
    for item_data in items:
        db_order.items.append(OrderItem(**item_data))
    db.add(db_order)

    await db.commit()
    return await get_order(db, db_order.id)


async def get_order(db: AsyncSession, order_id: int) -> Optional[Order]:
    """
    Obtiene un pedido por su ID de forma asíncrona.
    """
    result = await db.execute(
        select(Order).options(selectinload(Order.items)).filter(Order.id == order_id)
    )
    return result.scalars().first()


async def get_order_by_idempotency_key(db: AsyncSession, idempotency_key: str) -> Optional[Order]:
    result = await db.execute(
        select(Order).options(selectinload(Order.items)).filter(Order.idempotency_key == idempotency_key)
    )
    return result.scalars().first()


async def update_order_status(db: AsyncSession, order_id: int, status: OrderStatus) -> Optional[Order]:
    """
    Actualiza el estado de un pedido de forma asíncrona.
    """
    db_order = await get_order(db, order_id)
    if db_order:
        db_order.status = status.value
        await db.commit()
        db_order = await get_order(db, order_id)
    return db_order
