# backend/trois_quarts/services/checkout/api_clients.py
"""
Clientes HTTP del checkout contra la API del restaurante.

Todas las llamadas pasan por `_request`, que traduce los fallos de red, los
timeouts, las respuestas no 2xx y las respuestas que no son JSON en
ExternalServiceError. Ninguna llamada se queda colgada: el cliente tiene un
timeout configurado.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

import httpx
from pydantic import ValidationError

from trois_quarts.core.config import settings
from trois_quarts.core.exceptions import ExternalServiceError
from trois_quarts.core.money import format_money
from trois_quarts.schemas.address_schema import AddressValidationResponse
from trois_quarts.schemas.cart_schema import CatalogItem
from trois_quarts.schemas.coupon_schema import CouponApplyResponse, CouponValidateResponse
from trois_quarts.schemas.menu_schema import RestaurantSettingsResponse
from trois_quarts.schemas.order_schema import OrderCreateResponse, OrderPayload

logger = logging.getLogger(__name__)

SERVICE_UNAVAILABLE = "Le service est momentanément indisponible, veuillez réessayer"
INVALID_RESPONSE = "Réponse invalide du serveur"


class BaseAPIClient:
    """Cliente base. Se le puede inyectar un httpx.AsyncClient (p. ej. en los tests)."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, base_url: Optional[str] = None,
                 timeout: Optional[float] = None):
        self._client = client or self._get_api_client(base_url, timeout)

    @staticmethod
    def _get_api_client(base_url: Optional[str], timeout: Optional[float]) -> httpx.AsyncClient:
        """Crea un cliente HTTP para comunicarse con la API del backend."""
        return httpx.AsyncClient(
            base_url=f"{base_url or settings.API_BASE_URL}{settings.API_V1_STR}",
            timeout=timeout or settings.HTTP_TIMEOUT_SECONDS,
        )

    async def aclose(self):
        await self._client.aclose()

    async def _request(self, method: str, url: str, accept_status: Iterable[int] = (), **kwargs) -> Dict[str, Any]:
        accept_status = tuple(accept_status)
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"Timeout en {method} {url}: {e}")
            raise ExternalServiceError(SERVICE_UNAVAILABLE, retryable=True) from e
        except httpx.HTTPError as e:
            logger.error(f"Error de red en {method} {url}: {e}")
            raise ExternalServiceError(SERVICE_UNAVAILABLE, retryable=True) from e

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Respuesta no JSON en {method} {url} ({response.status_code}): {response.text[:200]}")
            raise ExternalServiceError(
                INVALID_RESPONSE, status_code=response.status_code,
                retryable=response.status_code >= 500,
            ) from e

        if response.is_success or response.status_code in accept_status:
            return data

        message = INVALID_RESPONSE
        if isinstance(data, dict):
            detail = data.get("detail") or data.get("message")
            if isinstance(detail, str):
                message = detail
            elif isinstance(detail, list) and detail:
                # Errores de validación de FastAPI: se muestra el primero
                message = str(detail[0].get("msg", message)) if isinstance(detail[0], dict) else str(detail[0])
        logger.warning(f"HTTP {response.status_code} en {method} {url}: {message}")
        raise ExternalServiceError(message, status_code=response.status_code, retryable=response.status_code >= 500)

    @staticmethod
    def _parse(model, data):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error(f"Respuesta con formato inesperado para {model.__name__}: {e}")
            raise ExternalServiceError(INVALID_RESPONSE, retryable=False) from e


class CatalogAPIClient(BaseAPIClient):

    async def find_item(self, item_id: str) -> Optional[CatalogItem]:
        """Devuelve el plato o None si no existe en la carta."""
        data = await self._request("GET", f"/menu/{item_id}", accept_status=(404,))
        if not data or "id" not in data:
            return None
        return self._parse(CatalogItem, data)


class AddressAPIClient(BaseAPIClient):

    async def validate_address(self, address: str, zip_code: Optional[str] = None) -> AddressValidationResponse:
        data = await self._request("POST", "/address/validate", json={"address": address, "zipCode": zip_code})
        return self._parse(AddressValidationResponse, data)

    async def validate_zip(self, zip_code: str) -> AddressValidationResponse:
        data = await self._request("POST", "/address/validate-zip", json={"zipCode": zip_code})
        return self._parse(AddressValidationResponse, data)


class CouponAPIClient(BaseAPIClient):

    async def validate_coupon(self, code: str, order_amount: Decimal) -> CouponValidateResponse:
        """
        Un cupón rechazado (400) no es un fallo del servicio: se devuelve la
        respuesta con success=False y el motivo.
        """
        data = await self._request(
            "POST", "/coupon/validate", accept_status=(400, 404),
            json={"code": code, "orderAmount": format_money(order_amount)},
        )
        return self._parse(CouponValidateResponse, data)

    async def apply_coupon(self, coupon_id: int) -> CouponApplyResponse:
        data = await self._request("POST", f"/coupon/apply/{coupon_id}", accept_status=(400, 404))
        return self._parse(CouponApplyResponse, data)


class OrderAPIClient(BaseAPIClient):

    async def create_order(self, payload: OrderPayload, idempotency_key: str) -> OrderCreateResponse:
        """Envía el pedido con la cabecera Idempotency-Key."""
        data = await self._request(
            "POST", "/order",
            json=payload.to_wire(),
            headers={"Idempotency-Key": idempotency_key},
        )
        return self._parse(OrderCreateResponse, data)


class RestaurantAPIClient(BaseAPIClient):

    async def get_settings(self) -> RestaurantSettingsResponse:
        data = await self._request("GET", "/restaurant/settings")
        return self._parse(RestaurantSettingsResponse, data)
