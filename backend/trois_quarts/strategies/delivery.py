# backend/trois_quarts/strategies/delivery.py
"""
Estrategias de entrega.

Cada modo de entrega (recogida en el local / entrega a domicilio) tiene su propia
estrategia que valida los campos específicos del modo y rellena la información de
entrega (dirección, código postal, instrucciones, tarifa). Las estrategias solo
modifican el DeliveryInfo recibido: nunca persisten nada.

La fábrica elige la única estrategia que soporta el modo. Si no hay ninguna es un
error de configuración, distinto de un error de validación del usuario.
"""
import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Iterable, List, Optional, Protocol

from trois_quarts.core.exceptions import CheckoutValidationError, ConfigurationError
from trois_quarts.core.money import format_money, to_decimal
from trois_quarts.schemas.address_schema import AddressValidationResponse
from trois_quarts.schemas.order_schema import DeliveryInfo, DeliveryMode

logger = logging.getLogger(__name__)

ADDRESS_NOT_SERVICEABLE = "Livraison non disponible pour cette adresse"


class AddressValidator(Protocol):
    """Colaborador de validación de direcciones (servicio local o cliente HTTP)."""

    async def validate_address(self, address: str, zip_code: Optional[str] = None) -> AddressValidationResponse:
        ...


class DeliveryStrategy(ABC):

    @abstractmethod
    def supports(self, mode: DeliveryMode) -> bool:
        ...

    @abstractmethod
    async def validate_and_populate(
        self,
        delivery: DeliveryInfo,
        *,
        address: Optional[str] = None,
        zip_code: Optional[str] = None,
        instructions: Optional[str] = None,
        fee_override: Optional[Decimal] = None,
        cart_total: Optional[Decimal] = None,
    ) -> DeliveryInfo:
        """
        Valida los datos de entrega y rellena los campos de entrega de `delivery`.
        No modifica campos ajenos a la entrega (fecha y hora se quedan como estén).
        Lanza CheckoutValidationError si los datos no son válidos.
        """

    @abstractmethod
    def resolve_fee(self, fee_override: Optional[Decimal] = None, cart_total: Optional[Decimal] = None) -> Decimal:
        """Tarifa de entrega para el total del carrito, sin volver a validar la dirección."""


class PickupDeliveryStrategy(DeliveryStrategy):
    """Recogida en el local: sin dirección y siempre gratis."""

    def supports(self, mode: DeliveryMode) -> bool:
        return mode == DeliveryMode.PICKUP

    async def validate_and_populate(self, delivery, *, address=None, zip_code=None, instructions=None,
                                    fee_override=None, cart_total=None):
        delivery.mode = DeliveryMode.PICKUP
        delivery.fee = "0.00"
        delivery.address = None
        delivery.zip = None
        delivery.instructions = (instructions or "").strip() or None
        return delivery

    def resolve_fee(self, fee_override=None, cart_total=None) -> Decimal:
        return Decimal("0")


class HomeDeliveryStrategy(DeliveryStrategy):
    """Entrega a domicilio: dirección obligatoria y validada contra la zona de reparto."""

    def __init__(
        self,
        address_validator: AddressValidator,
        default_fee: Decimal,
        free_delivery_threshold: Optional[Decimal] = None,
    ):
        self.address_validator = address_validator
        self.default_fee = to_decimal(default_fee)
        self.free_delivery_threshold = (
            to_decimal(free_delivery_threshold) if free_delivery_threshold is not None else None
        )

    def supports(self, mode: DeliveryMode) -> bool:
        return mode == DeliveryMode.DELIVERY

    async def validate_and_populate(self, delivery, *, address=None, zip_code=None, instructions=None,
                                    fee_override=None, cart_total=None):
        address = (address or "").strip()
        zip_code = (zip_code or "").strip() or None
        if not address:
            raise CheckoutValidationError("L'adresse de livraison est requise", field="address")

        validation = await self.address_validator.validate_address(address, zip_code)
        if not validation.valid:
            logger.warning(f"Dirección rechazada para entrega: '{address}' ({zip_code}): {validation.error}")
            raise CheckoutValidationError(validation.error or ADDRESS_NOT_SERVICEABLE, field="address")

        delivery.mode = DeliveryMode.DELIVERY
        delivery.address = address
        delivery.zip = zip_code
        delivery.instructions = (instructions or "").strip() or None
        delivery.fee = format_money(self.resolve_fee(fee_override, cart_total))
        return delivery

    def resolve_fee(self, fee_override: Optional[Decimal] = None, cart_total: Optional[Decimal] = None) -> Decimal:
        if fee_override is not None:
            fee = to_decimal(fee_override)
            if fee < 0:
                raise CheckoutValidationError("Les frais de livraison ne peuvent pas être négatifs", field="fee")
            return fee
        if (
            self.free_delivery_threshold is not None
            and cart_total is not None
            and to_decimal(cart_total) >= self.free_delivery_threshold
        ):
            return Decimal("0")
        return self.default_fee


class DeliveryStrategyFactory:

    def __init__(self, strategies: Iterable[DeliveryStrategy]):
        self.strategies: List[DeliveryStrategy] = list(strategies)

    def for_mode(self, mode: Optional[DeliveryMode]) -> DeliveryStrategy:
        matches = [strategy for strategy in self.strategies if mode is not None and strategy.supports(mode)]
        if len(matches) != 1:
            mode_value = mode.value if isinstance(mode, DeliveryMode) else mode
            if not matches:
                raise ConfigurationError(f"No delivery strategy registered for mode: {mode_value}")
            raise ConfigurationError(f"Several delivery strategies registered for mode: {mode_value}")
        return matches[0]


def build_delivery_strategy_factory(
    address_validator: AddressValidator,
    default_fee: Decimal,
    free_delivery_threshold: Optional[Decimal] = None,
) -> DeliveryStrategyFactory:
    """Registro con las dos estrategias del restaurante."""
    return DeliveryStrategyFactory([
        PickupDeliveryStrategy(),
        HomeDeliveryStrategy(address_validator, default_fee, free_delivery_threshold),
    ])
