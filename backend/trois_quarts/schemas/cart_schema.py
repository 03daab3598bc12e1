# backend/trois_quarts/schemas/cart_schema.py
"""
Esquemas Pydantic para la gestión del carrito de la compra.

Los precios del carrito son TTC (todos los impuestos incluidos).
"""

from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import Field, field_validator

from trois_quarts.core.money import to_money
from trois_quarts.schemas.base_schema import CamelModel


class CartLine(CamelModel):
    """Una línea del carrito: un plato y su cantidad."""
    item_id: str = Field(..., description="ID del plato en el catálogo")
    name: str = Field(..., description="Nombre del plato")
    unit_price: Decimal = Field(..., description="Precio unitario TTC", ge=0)
    quantity: int = Field(..., description="Cantidad", ge=1)

    @field_validator("item_id", mode="before")
    @classmethod
    def coerce_item_id(cls, v):
        return str(v)

    @field_validator("unit_price")
    @classmethod
    def round_unit_price(cls, v):
        return to_money(v)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class Cart(CamelModel):
    """Estado completo del carrito. Como mucho una línea por item_id, en orden de inserción."""
    items: List[CartLine] = Field(default_factory=list)

    def get_line(self, item_id: str) -> Optional[CartLine]:
        for line in self.items:
            if line.item_id == str(item_id):
                return line
        return None

    def as_dict(self) -> Dict[str, CartLine]:
        return {line.item_id: line for line in self.items}

    @property
    def total(self) -> Decimal:
        return to_money(sum((line.line_total for line in self.items), Decimal("0")))

    @property
    def count(self) -> int:
        return sum(line.quantity for line in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items


class CatalogItem(CamelModel):
    """Datos de un plato devueltos por el catálogo."""
    id: str
    name: str
    price: Decimal

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v)
