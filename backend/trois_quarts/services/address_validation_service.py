# backend/trois_quarts/services/address_validation_service.py
"""
Servicio de Validación de Direcciones de entrega.

Comprueba que un código postal o una dirección está dentro del radio de reparto
del restaurante:
- Formato de código postal francés (5 cifras).
- Geocodificación con Nominatim (OpenStreetMap). Si la API falla se usa una
  tabla local de códigos postales de Marsella.
- Distancia en línea recta (haversine) hasta el restaurante.
"""
import logging
import math
import re
from typing import Dict, Optional

import httpx

from trois_quarts.core.config import Settings
from trois_quarts.core.field_validation import clean_zip_code, is_valid_french_zip_code
from trois_quarts.schemas.address_schema import AddressValidationResponse

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0

# Coordenadas de respaldo cuando Nominatim no responde
FALLBACK_ZIP_COORDINATES: Dict[str, Dict] = {
    f"130{n:02d}": {"lat": 43.2965, "lng": 5.3698, "display_name": f"Marseille {n}{'er' if n == 1 else 'ème'}"}
    for n in range(1, 17)
}


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Distancia en km entre dos puntos geográficos."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


class AddressValidationService:
    """
    Servicio para validar si una dirección está dentro de la zona de reparto.
    """

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._http_client = http_client

    async def validate_zip_code(self, zip_code: str) -> AddressValidationResponse:
        """Valida un código postal para la entrega."""
        clean_zip = clean_zip_code(zip_code)
        if not is_valid_french_zip_code(clean_zip):
            return AddressValidationResponse(valid=False, error="Format de code postal invalide")

        coordinates = await self._geocode({"postalcode": clean_zip, "country": "France"})
        if coordinates is None:
            coordinates = FALLBACK_ZIP_COORDINATES.get(clean_zip)
        if coordinates is None:
            return AddressValidationResponse(valid=False, error="Code postal introuvable")

        return self._within_radius(coordinates)

    async def validate_address(self, address: str, zip_code: Optional[str] = None) -> AddressValidationResponse:
        """
        Valida una dirección completa. El código postal, si viene, tiene prioridad;
        si no, se intenta extraer de la dirección y, en último caso, se geocodifica
        la dirección completa.
        """
        if zip_code:
            return await self.validate_zip_code(zip_code)

        extracted_zip = self.extract_zip_code(address)
        if extracted_zip:
            return await self.validate_zip_code(extracted_zip)

        clean_address = (address or "").strip()
        if not clean_address:
            return AddressValidationResponse(valid=False, error="Adresse introuvable")

        coordinates = await self._geocode({"q": f"{clean_address}, France", "addressdetails": 1})
        if coordinates is None:
            return AddressValidationResponse(valid=False, error="Adresse introuvable")

        return self._within_radius(coordinates)

    @staticmethod
    def extract_zip_code(address: str) -> Optional[str]:
        match = re.search(r"\b(\d{5})\b", address or "")
        if match and is_valid_french_zip_code(match.group(1)):
            return match.group(1)
        return None

    def _within_radius(self, coordinates: Dict) -> AddressValidationResponse:
        distance = haversine_distance(
            self.settings.RESTAURANT_LAT,
            self.settings.RESTAURANT_LNG,
            coordinates["lat"],
            coordinates["lng"],
        )
        radius = self.settings.DELIVERY_RADIUS_KM
        is_within_radius = distance <= radius
        return AddressValidationResponse(
            valid=is_within_radius,
            error=None if is_within_radius else f"Livraison non disponible au-delà de {radius}km",
            distance=round(distance, 1),
        )

    async def _fetch(self, params: Dict) -> httpx.Response:
        headers = {"User-Agent": self.settings.NOMINATIM_USER_AGENT}
        if self._http_client is not None:
            return await self._http_client.get(self.settings.NOMINATIM_URL, params=params, headers=headers)
        async with httpx.AsyncClient(timeout=self.settings.HTTP_TIMEOUT_SECONDS) as client:
            return await client.get(self.settings.NOMINATIM_URL, params=params, headers=headers)

    async def _geocode(self, query: Dict) -> Optional[Dict]:
        """Consulta Nominatim. Devuelve None si no hay resultado o si la API falla."""
        params = {"format": "json", "limit": 1, **query}
        try:
            response = await self._fetch(params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Geocodificación no disponible ({query}): {e}")
            return None

        if not data:
            return None
        result = data[0]
        return {
            "lat": float(result["lat"]),
            "lng": float(result["lon"]),
            "display_name": result.get("display_name"),
        }
