"""
Tests del carrito: invariantes de cantidad, mutaciones concurrentes, eventos y
almacenamiento en Redis.
"""

import asyncio
import json
from decimal import Decimal

import pytest

from trois_quarts.core.exceptions import CheckoutValidationError
from trois_quarts.services.checkout import events as ev
from trois_quarts.services.checkout.cart_store import CartStore, RedisCartStorage


class FakeRedis:
    def __init__(self):
        self.data = {}
        self.expirations = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        self.expirations[key] = ex

    async def delete(self, key):
        self.data.pop(key, None)


async def test_add_item_inserts_then_increments(cart_store):
    await cart_store.add_item("5")
    cart = await cart_store.add_item("5", quantity=2)

    assert len(cart.items) == 1
    line = cart.get_line("5")
    assert line.name == "Bouillabaisse"
    assert line.unit_price == Decimal("24.00")
    assert line.quantity == 3


async def test_count_is_sum_of_quantities(cart_store):
    await cart_store.add_item("5", quantity=2)
    await cart_store.add_item("7")
    await cart_store.add_item("9", quantity=3)

    cart = await cart_store.get_cart()
    assert await cart_store.get_count() == sum(line.quantity for line in cart.items) == 6
    assert await cart_store.get_total() == Decimal("68.50")


async def test_remove_item_decrements_and_deletes_line(cart_store):
    await cart_store.add_item("5", quantity=2)

    cart = await cart_store.remove_item("5")
    assert cart.get_line("5").quantity == 1

    cart = await cart_store.remove_item("5")
    assert cart.get_line("5") is None
    assert cart.is_empty


async def test_remove_absent_item_is_noop(cart_store, published):
    await cart_store.add_item("7")
    published.clear()

    before = await cart_store.get_cart()
    after = await cart_store.remove_item("5")

    assert after == before
    assert published == []


async def test_set_quantity(cart_store):
    await cart_store.add_item("5")

    cart = await cart_store.set_quantity("5", 4)
    assert cart.get_line("5").quantity == 4

    # Un plato ausente con cantidad positiva se busca y se inserta
    cart = await cart_store.set_quantity("7", 2)
    assert cart.get_line("7").quantity == 2

    # Cantidad <= 0 equivale a eliminar
    cart = await cart_store.set_quantity("5", 0)
    assert cart.get_line("5") is None
    cart = await cart_store.set_quantity("7", -3)
    assert cart.is_empty


async def test_unknown_item_is_rejected(cart_store):
    with pytest.raises(CheckoutValidationError) as exc_info:
        await cart_store.add_item("999")
    assert exc_info.value.field == "item_id"
    assert (await cart_store.get_cart()).is_empty


async def test_add_item_rejects_non_positive_quantity(cart_store):
    with pytest.raises(CheckoutValidationError):
        await cart_store.add_item("5", quantity=0)


async def test_clear_is_idempotent(cart_store):
    await cart_store.add_item("5")

    first = await cart_store.clear()
    second = await cart_store.clear()

    assert first == second
    assert second.is_empty
    assert await cart_store.get_count() == 0


async def test_empty_cart_requires_confirmation(cart_store):
    await cart_store.add_item("5")

    assert await cart_store.empty_cart(lambda: False) is False
    assert await cart_store.get_count() == 1

    async def confirm():
        return True

    assert await cart_store.empty_cart(confirm) is True
    assert await cart_store.get_count() == 0


async def test_concurrent_mutations_are_not_lost(cart_store):
    # Cada add suspende en la consulta al catálogo antes de escribir
    await asyncio.gather(
        cart_store.add_item("5"),
        cart_store.add_item("5"),
        cart_store.add_item("7"),
        cart_store.add_item("5"),
    )

    cart = await cart_store.get_cart()
    assert cart.get_line("5").quantity == 3
    assert cart.get_line("7").quantity == 1
    assert await cart_store.get_count() == 4


async def test_mutations_publish_events(cart_store, published):
    await cart_store.add_item("5")
    await cart_store.set_quantity("5", 3)
    await cart_store.remove_item("5")
    await cart_store.clear()

    assert [event["event"] for event in published] == [
        ev.CART_ITEM_ADDED,
        ev.CART_QUANTITY_SET,
        ev.CART_ITEM_REMOVED,
        ev.CART_CLEARED,
    ]
    assert published[0]["count"] == 1
    assert published[0]["total"] == "24.00"
    assert published[2]["quantity"] == 2
    assert published[3]["count"] == 0


async def test_broken_listener_does_not_undo_mutation(cart_store, events):
    def broken(payload):
        raise RuntimeError("sidebar rota")

    events.subscribe(ev.CART_ITEM_ADDED, broken)
    await cart_store.add_item("5")

    assert await cart_store.get_count() == 1


async def test_unsubscribe_stops_notifications(cart_store, events):
    received = []
    unsubscribe = events.subscribe(ev.CART_ITEM_ADDED, received.append)

    await cart_store.add_item("5")
    unsubscribe()
    await cart_store.add_item("5")

    assert len(received) == 1


async def test_corrupt_storage_resets_cart(cart_store):
    await cart_store.storage.set(cart_store.storage_key, "{not json")
    assert (await cart_store.get_cart()).is_empty


async def test_redis_storage_scopes_cart_to_session(catalog, events):
    redis = FakeRedis()
    store = CartStore(RedisCartStorage("abc", redis=redis, ttl_seconds=3600), catalog, events)

    await store.add_item("5", quantity=2)

    assert "session:abc:cart" in redis.data
    assert redis.expirations["session:abc:cart"] == 3600
    stored = json.loads(redis.data["session:abc:cart"])
    assert stored["items"][0]["itemId"] == "5"
    assert stored["items"][0]["quantity"] == 2

    other = CartStore(RedisCartStorage("xyz", redis=redis), catalog, events)
    assert await other.get_count() == 0
