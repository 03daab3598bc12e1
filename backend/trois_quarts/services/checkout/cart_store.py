# backend/trois_quarts/services/checkout/cart_store.py
"""
Servicio de Carrito de Compras del checkout.

El carrito se guarda serializado en JSON en un almacén clave-valor de la sesión
(memoria o Redis). Es la única fuente de verdad: cada mutación vuelve a leer el
carrito persistido justo antes de escribirlo (lectura-modificación-escritura) y
nunca trabaja sobre una copia en memoria guardada entre dos pasos del bucle de
eventos. Las mutaciones se serializan en el orden en que se despachan y cada
una notifica a los suscriptores.
"""
import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Awaitable, Callable, Dict, Optional, Protocol, Union

from pydantic import ValidationError
from redis.asyncio import Redis

from trois_quarts.core.config import settings
from trois_quarts.core.exceptions import CheckoutValidationError
from trois_quarts.schemas.cart_schema import Cart, CartLine, CatalogItem
from trois_quarts.services.checkout import events as ev

logger = logging.getLogger(__name__)


class CatalogLookup(Protocol):
    async def find_item(self, item_id: str) -> Optional[CatalogItem]:
        ...


# ===============================================
# Almacenamiento del carrito
# ===============================================

class CartStorage(ABC):

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, key: str, value: str):
        ...

    @abstractmethod
    async def delete(self, key: str):
        ...


class InMemoryCartStorage(CartStorage):
    """Almacén en memoria, equivalente al almacenamiento local del navegador."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    async def get(self, key):
        return self._data.get(key)

    async def set(self, key, value):
        self._data[key] = value

    async def delete(self, key):
        self._data.pop(key, None)


class RedisCartStorage(CartStorage):
    """
    Almacén en Redis con una clave por sesión de navegación. La clave caduca
    tras `ttl_seconds` sin actividad.
    """

    def __init__(self, session_id: str, redis: Optional[Redis] = None, ttl_seconds: Optional[int] = None):
        self.session_id = session_id
        self._redis = redis
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.CART_TTL_SECONDS

    def _get_redis_client(self) -> Redis:
        """Inicializa (lazy) y devuelve el cliente de Redis."""
        if self._redis is None:
            self._redis = Redis.from_url(
                f"redis://{settings.REDIS_HOST}:{settings.REDIS_PORT}",
                decode_responses=True,
            )
        return self._redis

    def _session_key(self, key: str) -> str:
        return f"session:{self.session_id}:{key}"

    async def get(self, key):
        return await self._get_redis_client().get(self._session_key(key))

    async def set(self, key, value):
        await self._get_redis_client().set(self._session_key(key), value, ex=self.ttl_seconds or None)

    async def delete(self, key):
        await self._get_redis_client().delete(self._session_key(key))


# ===============================================
# Carrito
# ===============================================

ConfirmCallback = Callable[[], Union[bool, Awaitable[bool]]]


class CartStore:
    """
    Carrito de la sesión: añadir, quitar, fijar cantidad y vaciar.
    """

    def __init__(
        self,
        storage: CartStorage,
        catalog: CatalogLookup,
        events: Optional[ev.EventBus] = None,
        storage_key: Optional[str] = None,
    ):
        self.storage = storage
        self.catalog = catalog
        self.events = events or ev.EventBus()
        self.storage_key = storage_key or settings.CART_STORAGE_KEY
        self._lock = asyncio.Lock()

    async def _read(self) -> Cart:
        raw = await self.storage.get(self.storage_key)
        if not raw:
            return Cart()
        try:
            return Cart.model_validate_json(raw)
        except ValidationError:
            logger.error(f"Carrito corrupto en '{self.storage_key}', se reinicia", exc_info=True)
            return Cart()

    async def _write(self, cart: Cart):
        await self.storage.set(self.storage_key, cart.model_dump_json(by_alias=True))

    async def _lookup(self, item_id: str) -> CatalogItem:
        item = await self.catalog.find_item(str(item_id))
        if item is None:
            raise CheckoutValidationError(f"Article introuvable: {item_id}", field="item_id")
        return item

    async def get_cart(self) -> Cart:
        """Obtiene el carrito tal y como está persistido ahora mismo."""
        return await self._read()

    async def add_item(self, item_id: str, quantity: int = 1) -> Cart:
        """
        Añade un plato. Si ya está en el carrito incrementa la cantidad.
        """
        item_id = str(item_id)
        if quantity < 1:
            raise CheckoutValidationError("La quantité doit être un nombre positif", field="quantity")

        # La consulta al catálogo suspende la tarea: el carrito se lee después
        item = await self._lookup(item_id)

        async with self._lock:
            cart = await self._read()
            line = cart.get_line(item_id)
            if line is not None:
                line.quantity += quantity
            else:
                line = CartLine(item_id=item.id, name=item.name, unit_price=item.price, quantity=quantity)
                cart.items.append(line)
            await self._write(cart)

        logger.info(f"Carrito: +{quantity} x {item_id} (cantidad {line.quantity})")
        await self._notify(ev.CART_ITEM_ADDED, cart, item_id=item_id, quantity=line.quantity)
        return cart

    async def remove_item(self, item_id: str) -> Cart:
        """
        Quita una unidad del plato. Si la cantidad llega a 0 se elimina la línea.
        Si el plato no está en el carrito no hace nada.
        """
        item_id = str(item_id)
        async with self._lock:
            cart = await self._read()
            line = cart.get_line(item_id)
            if line is None:
                return cart
            if line.quantity - 1 <= 0:
                cart.items.remove(line)
                remaining = 0
            else:
                line.quantity -= 1
                remaining = line.quantity
            await self._write(cart)

        await self._notify(ev.CART_ITEM_REMOVED, cart, item_id=item_id, quantity=remaining)
        return cart

    async def set_quantity(self, item_id: str, quantity: int) -> Cart:
        """Fija la cantidad directamente. Una cantidad <= 0 equivale a eliminar la línea."""
        item_id = str(item_id)
        item = None
        if quantity > 0:
            async with self._lock:
                present = (await self._read()).get_line(item_id) is not None
            if not present:
                item = await self._lookup(item_id)

        async with self._lock:
            cart = await self._read()
            line = cart.get_line(item_id)
            if quantity <= 0:
                if line is None:
                    return cart
                cart.items.remove(line)
            elif line is not None:
                line.quantity = quantity
            else:
                if item is None:
                    # La línea desapareció mientras consultábamos: se vuelve a resolver
                    item = await self._lookup(item_id)
                cart.items.append(CartLine(item_id=item.id, name=item.name, unit_price=item.price, quantity=quantity))
            await self._write(cart)

        await self._notify(ev.CART_QUANTITY_SET, cart, item_id=item_id, quantity=max(quantity, 0))
        return cart

    async def clear(self) -> Cart:
        """Vacía el carrito. Llamarlo dos veces deja el mismo carrito vacío."""
        async with self._lock:
            cart = Cart()
            await self._write(cart)
        await self._notify(ev.CART_CLEARED, cart)
        return cart

    async def empty_cart(self, confirm: ConfirmCallback) -> bool:
        """
        Acción del usuario "vaciar carrito". Requiere confirmación explícita:
        sin ella el carrito no se toca. Devuelve True si se ha vaciado.
        """
        confirmed = confirm()
        if inspect.isawaitable(confirmed):
            confirmed = await confirmed
        if not confirmed:
            return False
        await self.clear()
        return True

    async def get_total(self) -> Decimal:
        """Total TTC del carrito (suma de precio unitario x cantidad)."""
        return (await self._read()).total

    async def get_count(self) -> int:
        """Número total de unidades, para el indicador de la navegación."""
        return (await self._read()).count

    async def _notify(self, event: str, cart: Cart, **extra):
        await self.events.publish(event, {"count": cart.count, "total": f"{cart.total:.2f}", **extra})
