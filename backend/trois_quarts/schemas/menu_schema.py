# backend/trois_quarts/schemas/menu_schema.py
"""
Esquemas Pydantic para el catálogo (carta) y la configuración pública del restaurante.
"""

from typing import Optional

from pydantic import Field, field_validator

from trois_quarts.core.money import format_money
from trois_quarts.schemas.base_schema import CamelModel


class MenuItemCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    price: str
    category: Optional[str] = None
    is_available: bool = True

    @field_validator("price", mode="before")
    @classmethod
    def money(cls, v):
        return format_money(v)


class MenuItemResponse(CamelModel):
    """Plato del catálogo. El precio es TTC."""
    id: int
    name: str
    description: Optional[str] = None
    price: str
    category: Optional[str] = None
    is_available: bool = True

    @field_validator("price", mode="before")
    @classmethod
    def money(cls, v):
        return format_money(v)


class RestaurantSettingsResponse(CamelModel):
    delivery_fee: str
    free_delivery_threshold: Optional[str] = None
    delivery_radius_km: int
    vat_rate: str
    min_time_delay_hours: int
