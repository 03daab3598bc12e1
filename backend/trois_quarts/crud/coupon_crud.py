# backend/trois_quarts/crud/coupon_crud.py
"""
Operaciones CRUD para el modelo Coupon.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trois_quarts.db.models.coupon_model import Coupon


async def get_coupon(db: AsyncSession, coupon_id: int) -> Optional[Coupon]:
    result = await db.execute(select(Coupon).filter(Coupon.id == coupon_id))
    return result.scalars().first()


async def get_coupon_by_code(db: AsyncSession, code: str) -> Optional[Coupon]:
    """Busca un cupón por su código (los códigos se guardan en mayúsculas)."""
    result = await db.execute(select(Coupon).filter(Coupon.code == code.strip().upper()))
    return result.scalars().first()


async def get_active_coupons(db: AsyncSession) -> List[Coupon]:
    query = select(Coupon).filter(Coupon.is_active.is_(True)).order_by(Coupon.created_at.desc())
    result = await db.execute(query)
    return list(result.scalars().all())


async def create_coupon(db: AsyncSession, **fields) -> Coupon:
    fields["code"] = fields["code"].strip().upper()
    db_coupon = Coupon(**fields)
    db.add(db_coupon)
    await db.commit()
    await db.refresh(db_coupon)
    return db_coupon
