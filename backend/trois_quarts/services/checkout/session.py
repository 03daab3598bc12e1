# backend/trois_quarts/services/checkout/session.py
"""
Composición del checkout de una sesión de navegación: un único bus de eventos,
un único carrito y los manejadores que lo comparten.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from trois_quarts.core.config import settings
from trois_quarts.core.exceptions import ExternalServiceError
from trois_quarts.core.money import to_decimal
from trois_quarts.services.checkout.api_clients import (
    AddressAPIClient,
    CatalogAPIClient,
    CouponAPIClient,
    OrderAPIClient,
    RestaurantAPIClient,
)
from trois_quarts.services.checkout.cart_store import CartStorage, CartStore, RedisCartStorage
from trois_quarts.services.checkout.checkout_handler import CheckoutHandler
from trois_quarts.services.checkout.coupon_handler import CouponHandler
from trois_quarts.services.checkout.debounce import DebouncedValidator
from trois_quarts.services.checkout.events import EventBus
from trois_quarts.services.checkout.submission_handler import OrderSubmissionHandler
from trois_quarts.strategies.delivery import build_delivery_strategy_factory
from trois_quarts.strategies.pricing import DefaultPricingStrategy, PricingStrategyFactory

logger = logging.getLogger(__name__)


@dataclass
class CheckoutSession:
    events: EventBus
    cart: CartStore
    checkout: CheckoutHandler
    submission: OrderSubmissionHandler
    validate_address: DebouncedValidator
    validate_zip: DebouncedValidator
    http_client: httpx.AsyncClient

    async def aclose(self):
        await self.http_client.aclose()


async def create_checkout_session(
    session_id: str,
    storage: Optional[CartStorage] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> CheckoutSession:
    """
    Crea el checkout de una sesión. La tarifa de entrega, el umbral de entrega
    gratuita y el IVA se leen de la configuración pública del restaurante; si no
    está disponible se usan los valores por defecto locales.
    """
    http_client = http_client or httpx.AsyncClient(
        base_url=f"{settings.API_BASE_URL}{settings.API_V1_STR}",
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )
    catalog_api = CatalogAPIClient(http_client)
    address_api = AddressAPIClient(http_client)
    coupon_api = CouponAPIClient(http_client)
    order_api = OrderAPIClient(http_client)

    delivery_fee = settings.DELIVERY_FEE
    free_delivery_threshold = settings.FREE_DELIVERY_THRESHOLD
    vat_rate = settings.VAT_RATE
    try:
        restaurant = await RestaurantAPIClient(http_client).get_settings()
        delivery_fee = to_decimal(restaurant.delivery_fee)
        free_delivery_threshold = (
            to_decimal(restaurant.free_delivery_threshold)
            if restaurant.free_delivery_threshold is not None else None
        )
        vat_rate = to_decimal(restaurant.vat_rate)
    except ExternalServiceError as e:
        logger.warning(f"Configuración del restaurante no disponible, se usan los valores locales: {e.message}")

    events = EventBus()
    cart = CartStore(storage or RedisCartStorage(session_id), catalog_api, events)
    coupon_handler = CouponHandler(coupon_api)
    checkout = CheckoutHandler(
        cart,
        build_delivery_strategy_factory(address_api, delivery_fee, free_delivery_threshold),
        PricingStrategyFactory(DefaultPricingStrategy(vat_rate)).default(),
        coupon_handler,
        events,
    )
    submission = OrderSubmissionHandler(checkout, order_api, coupon_handler, cart, events)

    return CheckoutSession(
        events=events,
        cart=cart,
        checkout=checkout,
        submission=submission,
        validate_address=DebouncedValidator(address_api.validate_address, settings.ADDRESS_DEBOUNCE_SECONDS),
        validate_zip=DebouncedValidator(address_api.validate_zip, settings.ZIP_DEBOUNCE_SECONDS),
        http_client=http_client,
    )
