# backend/trois_quarts/schemas/address_schema.py
"""
Esquemas Pydantic para la validación de direcciones de entrega.
"""

from typing import Optional

from pydantic import Field

from trois_quarts.schemas.base_schema import CamelModel


class AddressValidationRequest(CamelModel):
    address: str = Field(..., min_length=1, max_length=255)
    zip_code: Optional[str] = Field(None, max_length=10)


class ZipValidationRequest(CamelModel):
    zip_code: str = Field(..., min_length=1, max_length=10)


class AddressValidationResponse(CamelModel):
    """Resultado de la validación: si se entrega en esa zona y a qué distancia (km)."""
    valid: bool
    error: Optional[str] = None
    distance: Optional[float] = None
