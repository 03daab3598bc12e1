# backend/trois_quarts/api/v1/endpoints/menu.py

"""
Endpoints de la carta del restaurante. El carrito consulta aquí el nombre y el
precio de cada plato.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import logging

from trois_quarts.api import deps
from trois_quarts.crud import menu_item_crud
from trois_quarts.schemas import menu_schema

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=List[menu_schema.MenuItemResponse])
async def read_menu_items(
    db: AsyncSession = Depends(deps.get_db),
    skip: int = 0,
    limit: int = Query(default=100, ge=1, le=200),
    category: Optional[str] = None,
    only_available: bool = True,
) -> List[menu_schema.MenuItemResponse]:
    """Lista los platos de la carta."""
    items = await menu_item_crud.get_menu_items(
        db, skip=skip, limit=limit, category=category, only_available=only_available
    )
    logger.debug(f"📋 CARTA: {len(items)} platos")
    return items


@router.get("/{item_id}", response_model=menu_schema.MenuItemResponse)
async def read_menu_item(
    *,
    db: AsyncSession = Depends(deps.get_db),
    item_id: int,
) -> menu_schema.MenuItemResponse:
    """Obtiene un plato por su ID."""
    item = await menu_item_crud.get_menu_item(db, item_id)
    if item is None or not item.is_available:
        logger.warning(f"⚠️ CARTA: Plato no encontrado {item_id}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Article introuvable")
    return item


@router.post("/", response_model=menu_schema.MenuItemResponse, status_code=status.HTTP_201_CREATED)
async def create_menu_item(
    *,
    db: AsyncSession = Depends(deps.get_db),
    item_in: menu_schema.MenuItemCreate,
) -> menu_schema.MenuItemResponse:
    """Añade un plato a la carta."""
    item = await menu_item_crud.create_menu_item(db, item_in)
    logger.info(f"🆕 CARTA: Plato '{item.name}' creado ({item.id})")
    return item
