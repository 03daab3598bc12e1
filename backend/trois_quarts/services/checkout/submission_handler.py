# backend/trois_quarts/services/checkout/submission_handler.py
"""
Envío del pedido.

Cada intento iniciado por el usuario genera una clave de idempotencia nueva.
Los reintentos automáticos por fallo de red y el reintento manual (`retry`)
reutilizan la misma clave y la misma carga útil, de modo que el servidor
devuelve siempre el mismo pedido y nunca crea un duplicado.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Optional, Set

from trois_quarts.core.config import settings
from trois_quarts.core.exceptions import ExternalServiceError
from trois_quarts.core.money import format_money
from trois_quarts.schemas.order_schema import DeliveryMode, OrderCreateResponse, OrderPayload, OrderTotals
from trois_quarts.services.checkout import events as ev
from trois_quarts.services.checkout.api_clients import OrderAPIClient
from trois_quarts.services.checkout.cart_store import CartStore
from trois_quarts.services.checkout.checkout_handler import CheckoutHandler, CheckoutState, CheckoutStep
from trois_quarts.services.checkout.coupon_handler import CouponHandler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionAttempt:
    idempotency_key: str
    payload: OrderPayload


@dataclass(frozen=True)
class SubmissionResult:
    success: bool
    order_id: Optional[int] = None
    order_no: Optional[str] = None
    totals: Optional[OrderTotals] = None
    message: Optional[str] = None
    idempotency_key: Optional[str] = None


def build_order_payload(state: CheckoutState, idempotency_key: str) -> OrderPayload:
    """Congela el estado actual del checkout en la carga útil del pedido."""
    coupon = state.coupon
    fee_override = state.fee_override if state.delivery.mode == DeliveryMode.DELIVERY else None
    return OrderPayload(
        items=state.cart.items,
        delivery=state.delivery,
        payment=state.payment,
        totals=state.totals,
        client_info=state.client_info,
        idempotency_key=idempotency_key,
        coupon_id=coupon.coupon_id if coupon else None,
        discount_amount=format_money(coupon.discount_amount) if coupon else None,
        delivery_fee=format_money(fee_override) if fee_override is not None else None,
    )


class OrderSubmissionHandler:

    def __init__(
        self,
        checkout: CheckoutHandler,
        order_api: OrderAPIClient,
        coupon_handler: CouponHandler,
        cart_store: CartStore,
        events: Optional[ev.EventBus] = None,
        max_attempts: Optional[int] = None,
        key_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.checkout = checkout
        self.order_api = order_api
        self.coupon_handler = coupon_handler
        self.cart_store = cart_store
        self.events = events or checkout.events
        self.max_attempts = max(1, max_attempts or settings.MAX_SUBMIT_RETRIES)
        self.key_factory = key_factory
        self.last_attempt: Optional[SubmissionAttempt] = None
        self._in_flight = False
        self._confirmed_keys: Set[str] = set()

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def submit(self, terms_accepted: bool) -> SubmissionResult:
        """Envía el pedido desde el paso de confirmación."""
        if self._in_flight:
            logger.info("Envío ignorado: ya hay un pedido en curso")
            return SubmissionResult(False, message="Votre commande est déjà en cours d'envoi")

        self._in_flight = True
        try:
            state = self.checkout.state
            if state.current_step != CheckoutStep.CONFIRMATION:
                return await self._fail("Veuillez compléter toutes les étapes avant de commander")
            if not terms_accepted:
                return await self._fail("Veuillez accepter les conditions générales de vente")

            # El carrito puede haber cambiado en otra pestaña mientras tanto
            await self.checkout.refresh_totals()
            if state.cart.is_empty:
                return await self._fail("Votre panier est vide")

            key = self.key_factory()
            attempt = SubmissionAttempt(idempotency_key=key, payload=build_order_payload(state, key))
            self.last_attempt = attempt
            return await self._send(attempt)
        finally:
            self._in_flight = False

    async def retry(self) -> SubmissionResult:
        """Reenvía el último intento con la misma clave y la misma carga útil."""
        if self.last_attempt is None:
            return SubmissionResult(False, message="Aucune commande à renvoyer")
        if self._in_flight:
            return SubmissionResult(False, message="Votre commande est déjà en cours d'envoi")

        self._in_flight = True
        try:
            return await self._send(self.last_attempt)
        finally:
            self._in_flight = False

    async def _send(self, attempt: SubmissionAttempt) -> SubmissionResult:
        try:
            response = await self._create_with_retries(attempt)
        except ExternalServiceError as e:
            return await self._fail(e.message, attempt.idempotency_key)

        order = response.order
        totals = OrderTotals(
            subtotal=order.subtotal,
            tax_amount=order.tax_amount,
            delivery_fee=order.delivery_fee,
            discount=order.discount_amount,
            total=order.total,
        )

        # Cupón, vaciado del carrito y confirmación: una sola vez por clave
        if attempt.idempotency_key in self._confirmed_keys:
            logger.info(f"Pedido {order.no} ya confirmado con la clave {attempt.idempotency_key}")
        else:
            self._confirmed_keys.add(attempt.idempotency_key)
            coupon_id = attempt.payload.coupon_id
            if coupon_id is not None:
                # El pedido ya existe: un fallo al aplicar el cupón no lo invalida
                try:
                    await self.coupon_handler.apply(coupon_id)
                except ExternalServiceError as e:
                    logger.error(f"Error aplicando el cupón {coupon_id} al pedido {order.no}: {e.message}")

            await self.cart_store.clear()

            logger.info(f"Pedido confirmado {order.no} (id {order.id}), total {order.total}")
            await self.events.publish(ev.ORDER_CONFIRMED, {
                "orderId": order.id,
                "orderNo": order.no,
                "totals": totals.to_wire(),
            })
        return SubmissionResult(
            True,
            order_id=order.id,
            order_no=order.no,
            totals=totals,
            message=response.message,
            idempotency_key=attempt.idempotency_key,
        )

    async def _create_with_retries(self, attempt: SubmissionAttempt) -> OrderCreateResponse:
        last_error: Optional[ExternalServiceError] = None
        for attempt_number in range(1, self.max_attempts + 1):
            try:
                return await self.order_api.create_order(attempt.payload, attempt.idempotency_key)
            except ExternalServiceError as e:
                last_error = e
                if not e.retryable:
                    raise
                logger.warning(
                    f"Intento {attempt_number}/{self.max_attempts} del pedido {attempt.idempotency_key} fallido: {e.message}"
                )
        raise last_error

    async def _fail(self, message: str, idempotency_key: Optional[str] = None) -> SubmissionResult:
        await self.checkout.notify(message)
        return SubmissionResult(False, message=message, idempotency_key=idempotency_key)
