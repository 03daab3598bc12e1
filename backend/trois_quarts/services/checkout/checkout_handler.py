# backend/trois_quarts/services/checkout/checkout_handler.py
"""
Controlador de pasos del checkout.

Máquina de estados de cuatro pasos: CART(1) -> DELIVERY(2) -> PAYMENT(3) ->
CONFIRMATION(4). Solo se avanza al paso siguiente y únicamente si el paso
actual es válido; volver atrás siempre está permitido. Cada transición
recalcula los totales a partir del carrito persistido.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import IntEnum
from typing import Any, Callable, Dict, Optional

from trois_quarts.core import field_validation
from trois_quarts.core.config import settings as default_settings
from trois_quarts.core.exceptions import CheckoutValidationError, ExternalServiceError, ValidationResult
from trois_quarts.core.money import ZERO, format_money, to_decimal
from trois_quarts.schemas.cart_schema import Cart
from trois_quarts.schemas.order_schema import (
    ClientInfo,
    DeliveryInfo,
    DeliveryMode,
    OrderTotals,
    PaymentInfo,
    PaymentMode,
)
from trois_quarts.services.checkout import events as ev
from trois_quarts.services.checkout.cart_store import CartStore
from trois_quarts.services.checkout.coupon_handler import AppliedCoupon, CouponHandler, CouponValidationResult
from trois_quarts.strategies.delivery import DeliveryStrategyFactory
from trois_quarts.strategies.pricing import PricingStrategy

logger = logging.getLogger(__name__)

DELIVERY_MODE_LABELS = {
    DeliveryMode.PICKUP: "À emporter",
    DeliveryMode.DELIVERY: "Livraison",
}

PAYMENT_MODE_LABELS = {
    PaymentMode.CARD: "Carte bancaire",
    PaymentMode.CASH: "Espèces",
    PaymentMode.TICKETS: "Tickets restaurant",
}


class CheckoutStep(IntEnum):
    CART = 1
    DELIVERY = 2
    PAYMENT = 3
    CONFIRMATION = 4


@dataclass
class CheckoutState:
    """Estado del checkout. Los totales son siempre derivados, nunca se editan."""
    current_step: CheckoutStep = CheckoutStep.CART
    cart: Cart = field(default_factory=Cart)
    delivery: DeliveryInfo = field(default_factory=DeliveryInfo)
    payment: PaymentInfo = field(default_factory=PaymentInfo)
    client_info: ClientInfo = field(default_factory=ClientInfo)
    coupon: Optional[AppliedCoupon] = None
    totals: OrderTotals = field(default_factory=OrderTotals)
    fee_override: Optional[Decimal] = None
    summary: Optional[Dict[str, Any]] = None


class CheckoutHandler:
    """
    Orquesta el checkout: validación por paso, navegación, totales y cupón.
    No envía el pedido: eso es cosa de OrderSubmissionHandler.
    """

    def __init__(
        self,
        cart_store: CartStore,
        delivery_strategies: DeliveryStrategyFactory,
        pricing: PricingStrategy,
        coupon_handler: CouponHandler,
        events: Optional[ev.EventBus] = None,
        settings=None,
        clock: Callable[[], datetime] = datetime.now,
        state: Optional[CheckoutState] = None,
    ):
        self.cart_store = cart_store
        self.delivery_strategies = delivery_strategies
        self.pricing = pricing
        self.coupon_handler = coupon_handler
        self.events = events or cart_store.events
        self.settings = settings or default_settings
        self.clock = clock
        self.state = state or CheckoutState()

    # ========================================
    # DATOS DEL FORMULARIO
    # ========================================

    def update_delivery(self, **fields) -> DeliveryInfo:
        """Guarda lo que el usuario ha rellenado en el paso 2 (modo, fecha, hora, dirección...)."""
        for name, value in fields.items():
            setattr(self.state.delivery, name, value)
        return self.state.delivery

    def update_client_info(self, **fields) -> ClientInfo:
        for name, value in fields.items():
            setattr(self.state.client_info, name, value)
        return self.state.client_info

    def select_payment_mode(self, mode: PaymentMode):
        self.state.payment.mode = PaymentMode(mode)

    def set_fee_override(self, fee):
        fee = None if fee is None else to_decimal(fee)
        if fee is not None and fee < 0:
            raise CheckoutValidationError("Les frais de livraison ne peuvent pas être négatifs", field="fee")
        self.state.fee_override = fee

    # ========================================
    # VALIDACIÓN POR PASO
    # ========================================

    async def validate_step(self, step: Optional[int] = None) -> ValidationResult:
        step = CheckoutStep(step if step is not None else self.state.current_step)
        if step == CheckoutStep.CART:
            return await self._validate_cart()
        if step == CheckoutStep.DELIVERY:
            return await self._validate_delivery()
        if step == CheckoutStep.PAYMENT:
            return self._validate_payment()
        return ValidationResult.ok()

    async def _validate_cart(self) -> ValidationResult:
        self.state.cart = await self.cart_store.get_cart()
        if self.state.cart.is_empty:
            return ValidationResult.fail("Votre panier est vide", field="cart")
        return ValidationResult.ok()

    def _validate_slot(self, delivery: DeliveryInfo) -> ValidationResult:
        if delivery.date is None:
            return ValidationResult.fail("Veuillez choisir une date", field="date")
        if delivery.time is None:
            return ValidationResult.fail("Veuillez choisir un créneau horaire", field="time")

        now = self.clock()
        if delivery.date < now.date():
            return ValidationResult.fail("La date ne peut pas être dans le passé", field="date")
        slot = datetime.combine(delivery.date, delivery.time)
        min_delay = self.settings.MIN_TIME_DELAY_HOURS
        if slot < now + timedelta(hours=min_delay):
            return ValidationResult.fail(
                f"Le créneau doit être au minimum {min_delay}h après l'heure actuelle", field="time"
            )
        return ValidationResult.ok()

    def _validate_client_info(self) -> ValidationResult:
        client = self.state.client_info
        for result in (
            field_validation.validate_name(client.first_name, "firstName", "prénom"),
            field_validation.validate_name(client.last_name, "lastName", "nom"),
            field_validation.validate_phone(client.phone),
            field_validation.validate_email(client.email),
        ):
            if not result:
                return result
        return ValidationResult.ok()

    async def _validate_delivery(self) -> ValidationResult:
        delivery = self.state.delivery
        if delivery.mode is None:
            return ValidationResult.fail("Veuillez choisir un mode de récupération", field="mode")

        result = self._validate_slot(delivery)
        if not result:
            return result

        if delivery.mode == DeliveryMode.DELIVERY:
            if not (delivery.address or "").strip() or not (delivery.zip or "").strip():
                return ValidationResult.fail("Veuillez renseigner votre adresse de livraison", field="address")
            if not field_validation.is_valid_french_zip_code(delivery.zip):
                return ValidationResult.fail("Format de code postal invalide", field="zip")
            result = field_validation.validate_free_text(
                delivery.address, "address", field_validation.ADDRESS_MAX_LENGTH
            )
            if not result:
                return result
        result = field_validation.validate_free_text(
            delivery.instructions, "instructions", field_validation.INSTRUCTIONS_MAX_LENGTH
        )
        if not result:
            return result

        result = self._validate_client_info()
        if not result:
            return result

        # ConfigurationError se propaga: es un error de programación, no del usuario
        strategy = self.delivery_strategies.for_mode(delivery.mode)
        cart_total = await self.cart_store.get_total()
        try:
            await strategy.validate_and_populate(
                delivery,
                address=delivery.address,
                zip_code=delivery.zip,
                instructions=delivery.instructions,
                fee_override=self.state.fee_override,
                cart_total=cart_total,
            )
        except CheckoutValidationError as e:
            return ValidationResult.from_error(e)
        except ExternalServiceError as e:
            await self.notify(e.message)
            return ValidationResult.fail(e.message, field="address")
        return ValidationResult.ok()

    def _validate_payment(self) -> ValidationResult:
        if self.state.payment.mode is None:
            return ValidationResult.fail("Veuillez choisir un mode de paiement", field="payment")
        return ValidationResult.ok()

    # ========================================
    # NAVEGACIÓN
    # ========================================

    async def go_to_step(self, target: int) -> ValidationResult:
        """
        Cambia de paso. Avanzar solo es posible al paso inmediatamente siguiente
        y con el paso actual válido. Retroceder siempre es posible.
        """
        try:
            target = CheckoutStep(int(target))
        except ValueError:
            return ValidationResult.fail(f"Étape inconnue: {target}", field="step")

        current = self.state.current_step
        if target == current:
            return ValidationResult.ok()
        if target > current + 1:
            return ValidationResult.fail("Veuillez compléter les étapes précédentes", field="step")

        if target > current:
            result = await self.validate_step(current)
            if not result:
                logger.info(f"Paso {int(current)} no válido: {result.message}")
                return result

        self.state.current_step = target
        await self.refresh_totals()
        self.state.summary = self.build_summary() if target == CheckoutStep.CONFIRMATION else None
        await self.events.publish(ev.STEP_CHANGED, {"step": int(target), "previous": int(current)})
        return ValidationResult.ok()

    async def next_step(self) -> ValidationResult:
        if self.state.current_step == CheckoutStep.CONFIRMATION:
            return ValidationResult.fail("Dernière étape atteinte", field="step")
        return await self.go_to_step(self.state.current_step + 1)

    async def prev_step(self) -> ValidationResult:
        if self.state.current_step == CheckoutStep.CART:
            return ValidationResult.ok()
        return await self.go_to_step(self.state.current_step - 1)

    # ========================================
    # TOTALES Y CUPÓN
    # ========================================

    def _current_delivery_fee(self, cart_total: Decimal) -> Decimal:
        """
        Tarifa de entrega para el carrito actual. Una vez validado el paso 2 se
        recalcula con el total vivo del carrito (la entrega gratuita depende de él).
        """
        delivery = self.state.delivery
        if delivery.mode != DeliveryMode.DELIVERY:
            return ZERO
        if self.state.current_step > CheckoutStep.DELIVERY:
            strategy = self.delivery_strategies.for_mode(delivery.mode)
            delivery.fee = format_money(strategy.resolve_fee(self.state.fee_override, cart_total))
        return to_decimal(delivery.fee)

    async def refresh_totals(self) -> OrderTotals:
        """
        Recalcula los totales desde el carrito persistido. Si el total del
        carrito ha cambiado, el cupón aplicado se vuelve a validar y se retira
        si ya no es aplicable.
        """
        cart = await self.cart_store.get_cart()
        self.state.cart = cart
        cart_total = cart.total

        coupon = self.state.coupon
        if coupon is not None and coupon.order_amount != cart_total:
            await self._revalidate_coupon(coupon, cart_total)

        discount = self.state.coupon.discount_amount if self.state.coupon else ZERO
        self.state.totals = self.pricing.compute_totals(cart_total, self._current_delivery_fee(cart_total), discount)
        if self.state.current_step == CheckoutStep.CONFIRMATION:
            self.state.summary = self.build_summary()
        return self.state.totals

    async def _revalidate_coupon(self, coupon: AppliedCoupon, cart_total: Decimal):
        try:
            result = await self.coupon_handler.validate(coupon.code, cart_total)
        except ExternalServiceError as e:
            logger.warning(f"No se pudo revalidar el cupón {coupon.code}: {e.message}")
            if coupon.discount_amount > cart_total:
                await self._drop_coupon(coupon, "La réduction dépasse le montant de la commande")
            return

        if result.valid:
            self.state.coupon = AppliedCoupon.from_result(result, cart_total)
        else:
            await self._drop_coupon(coupon, result.message)

    async def _drop_coupon(self, coupon: AppliedCoupon, message: Optional[str]):
        self.state.coupon = None
        logger.info(f"Cupón {coupon.code} retirado: {message}")
        await self.events.publish(ev.COUPON_REMOVED, {"code": coupon.code, "message": message})
        await self.notify(f"Le code promo {coupon.code} a été retiré : {message}", level="warning")

    async def apply_coupon_code(self, code: str) -> CouponValidationResult:
        """Valida el código contra el total actual del carrito y, si es válido, lo aplica."""
        cart_total = await self.cart_store.get_total()
        try:
            result = await self.coupon_handler.validate(code, cart_total)
        except ExternalServiceError as e:
            await self.notify(e.message)
            return CouponValidationResult.rejected(code, "service_unavailable", e.message)

        if result.valid:
            self.state.coupon = AppliedCoupon.from_result(result, cart_total)
            await self.refresh_totals()
        return result

    async def remove_coupon(self) -> OrderTotals:
        self.state.coupon = None
        return await self.refresh_totals()

    # ========================================
    # RESUMEN
    # ========================================

    def build_summary(self) -> Dict[str, Any]:
        """Resumen de solo lectura mostrado en el paso de confirmación."""
        state = self.state
        delivery = state.delivery
        return {
            "items": [
                {
                    "itemId": line.item_id,
                    "name": line.name,
                    "quantity": line.quantity,
                    "unitPrice": format_money(line.unit_price),
                    "lineTotal": format_money(line.line_total),
                }
                for line in state.cart.items
            ],
            "delivery": {
                "mode": delivery.mode.value if delivery.mode else None,
                "label": DELIVERY_MODE_LABELS.get(delivery.mode),
                "date": delivery.date.isoformat() if delivery.date else None,
                "time": delivery.time.strftime("%H:%M") if delivery.time else None,
                "address": delivery.address,
                "zip": delivery.zip,
                "instructions": delivery.instructions,
            },
            "payment": {
                "mode": state.payment.mode.value if state.payment.mode else None,
                "label": PAYMENT_MODE_LABELS.get(state.payment.mode),
            },
            "client": state.client_info.to_wire(),
            "coupon": state.coupon.code if state.coupon else None,
            "totals": state.totals.to_wire(),
        }

    async def notify(self, message: str, level: str = "error"):
        await self.events.publish(ev.NOTIFICATION, {"level": level, "message": message})
