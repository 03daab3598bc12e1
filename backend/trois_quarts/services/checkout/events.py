# backend/trois_quarts/services/checkout/events.py
"""
Bus de eventos del checkout.

Todos los consumidores (indicador del carrito en la navegación, panel lateral,
resumen del checkout) se suscriben a los eventos en lugar de leer copias propias
del carrito: cada cambio se vuelve a pintar desde la única fuente de verdad.
"""
import inspect
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

# Eventos del carrito
CART_ITEM_ADDED = "cart.item_added"
CART_ITEM_REMOVED = "cart.item_removed"
CART_QUANTITY_SET = "cart.quantity_set"
CART_CLEARED = "cart.cleared"
CART_EVENTS = (CART_ITEM_ADDED, CART_ITEM_REMOVED, CART_QUANTITY_SET, CART_CLEARED)

# Eventos del checkout
STEP_CHANGED = "checkout.step_changed"
NOTIFICATION = "checkout.notification"
COUPON_REMOVED = "checkout.coupon_removed"
ORDER_CONFIRMED = "order.confirmed"

Listener = Callable[[Dict[str, Any]], Any]


class EventBus:
    """Publicación/suscripción en proceso. Los listeners pueden ser funciones o corrutinas."""

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    def subscribe(self, event: str, listener: Listener) -> Callable[[], None]:
        """Registra un listener y devuelve la función para darlo de baja."""
        self._listeners[event].append(listener)

        def unsubscribe():
            if listener in self._listeners[event]:
                self._listeners[event].remove(listener)

        return unsubscribe

    def subscribe_many(self, events, listener: Listener) -> Callable[[], None]:
        unsubscribers = [self.subscribe(event, listener) for event in events]

        def unsubscribe():
            for unsubscribe_one in unsubscribers:
                unsubscribe_one()

        return unsubscribe

    async def publish(self, event: str, payload: Optional[Dict[str, Any]] = None):
        payload = {"event": event, **(payload or {})}
        for listener in list(self._listeners.get(event, [])):
            try:
                result = listener(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                # Un listener roto (p. ej. el panel lateral) no debe deshacer la mutación ya guardada
                logger.error(f"Error en listener de '{event}': {e}", exc_info=True)
