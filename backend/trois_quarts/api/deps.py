# backend/trois_quarts/api/deps.py
"""
Módulo de dependencias para FastAPI.

Centraliza las dependencias inyectables en los endpoints: sesión de base de
datos, configuración y servicios. Los tests sustituyen cualquiera de ellas con
`app.dependency_overrides`.
"""

from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from trois_quarts.core.config import Settings, settings
from trois_quarts.db.database import AsyncSessionLocal
from trois_quarts.services.address_validation_service import AddressValidationService
from trois_quarts.services.order_service import OrderService


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependencia de FastAPI para obtener una sesión de base de datos asíncrona.
    Se asegura de que la sesión se cierre siempre después de la petición.
    """
    async with AsyncSessionLocal() as session:
        yield session


def get_settings() -> Settings:
    """
    Dependencia de FastAPI para obtener el objeto de configuración.
    """
    return settings


def get_address_service(app_settings: Settings = Depends(get_settings)) -> AddressValidationService:
    return AddressValidationService(app_settings)


def get_order_service(
    app_settings: Settings = Depends(get_settings),
    address_service: AddressValidationService = Depends(get_address_service),
) -> OrderService:
    return OrderService(app_settings, address_service)
