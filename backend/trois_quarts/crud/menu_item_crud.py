# backend/trois_quarts/crud/menu_item_crud.py
"""
Operaciones CRUD para el modelo MenuItem (catálogo de platos).
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trois_quarts.core.money import to_money
from trois_quarts.db.models.menu_item_model import MenuItem
from trois_quarts.schemas.menu_schema import MenuItemCreate


async def get_menu_item(db: AsyncSession, item_id: int) -> Optional[MenuItem]:
    """Obtiene un plato por su ID de forma asíncrona."""
    result = await db.execute(select(MenuItem).filter(MenuItem.id == item_id))
    return result.scalars().first()


async def get_menu_items_by_ids(db: AsyncSession, item_ids: List[int]) -> List[MenuItem]:
    if not item_ids:
        return []
    result = await db.execute(select(MenuItem).filter(MenuItem.id.in_(item_ids)))
    return list(result.scalars().all())


async def get_menu_items(
    db: AsyncSession,
    skip: int = 0,
    limit: int = 100,
    category: Optional[str] = None,
    only_available: bool = True,
) -> List[MenuItem]:
    """Lista paginada de platos, opcionalmente filtrada por categoría."""
    query = select(MenuItem)
    if category:
        query = query.filter(MenuItem.category == category)
    if only_available:
        query = query.filter(MenuItem.is_available.is_(True))
    query = query.order_by(MenuItem.id).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def create_menu_item(db: AsyncSession, item_in: MenuItemCreate) -> MenuItem:
    db_item = MenuItem(
        name=item_in.name,
        description=item_in.description,
        price=to_money(item_in.price),
        category=item_in.category,
        is_available=item_in.is_available,
    )
    db.add(db_item)
    await db.commit()
    await db.refresh(db_item)
    return db_item
