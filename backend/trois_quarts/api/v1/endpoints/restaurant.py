# backend/trois_quarts/api/v1/endpoints/restaurant.py

"""
Configuración pública del restaurante que necesita el checkout (tarifa de
entrega, umbral de entrega gratuita, IVA y antelación mínima).
"""

from fastapi import APIRouter, Depends

from trois_quarts.api import deps
from trois_quarts.core.config import Settings
from trois_quarts.core.money import format_money
from trois_quarts.schemas.menu_schema import RestaurantSettingsResponse

router = APIRouter()


@router.get("/settings", response_model=RestaurantSettingsResponse)
async def read_restaurant_settings(app_settings: Settings = Depends(deps.get_settings)):
    threshold = app_settings.FREE_DELIVERY_THRESHOLD
    return RestaurantSettingsResponse(
        delivery_fee=format_money(app_settings.DELIVERY_FEE),
        free_delivery_threshold=format_money(threshold) if threshold is not None else None,
        delivery_radius_km=app_settings.DELIVERY_RADIUS_KM,
        vat_rate=str(app_settings.VAT_RATE),
        min_time_delay_hours=app_settings.MIN_TIME_DELAY_HOURS,
    )
