"""
Fixtures compartidas.

- Base de datos SQLite en memoria (aiosqlite) compartida entre sesiones.
- Cliente httpx contra la app FastAPI con las dependencias sustituidas.
- Colaboradores falsos del checkout (catálogo, direcciones, cupones, pedidos).
"""

import asyncio
from datetime import date, datetime, time
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from trois_quarts.api import deps
from trois_quarts.core.exceptions import ExternalServiceError
from trois_quarts.db.all_models import Base, MenuItem
from trois_quarts.main import app
from trois_quarts.schemas.address_schema import AddressValidationResponse
from trois_quarts.schemas.cart_schema import CatalogItem
from trois_quarts.schemas.coupon_schema import CouponApplyResponse, CouponValidateResponse, CouponValidation
from trois_quarts.schemas.order_schema import OrderCreateResponse, OrderResponse
from trois_quarts.services.checkout import events as ev
from trois_quarts.services.checkout.cart_store import CartStore, InMemoryCartStorage
from trois_quarts.services.checkout.checkout_handler import CheckoutHandler, CheckoutStep
from trois_quarts.services.checkout.coupon_handler import CouponHandler
from trois_quarts.services.checkout.submission_handler import OrderSubmissionHandler
from trois_quarts.strategies.delivery import build_delivery_strategy_factory
from trois_quarts.strategies.pricing import DefaultPricingStrategy

# Reloj fijo del checkout: 19/10/2026 a las 10:00
NOW = datetime(2026, 10, 19, 10, 0)
TOMORROW = date(2026, 10, 20)


# ---------------------------------------------------------------------------
# Colaboradores falsos
# ---------------------------------------------------------------------------

class FakeCatalog:
    def __init__(self, items):
        self.items = {item.id: item for item in items}
        self.lookups = 0

    async def find_item(self, item_id):
        self.lookups += 1
        await asyncio.sleep(0)
        return self.items.get(str(item_id))


class FakeAddressValidator:
    def __init__(self, valid=True, error=None):
        self.valid = valid
        self.error = error
        self.calls = []

    async def validate_address(self, address, zip_code=None):
        self.calls.append((address, zip_code))
        return AddressValidationResponse(
            valid=self.valid, error=self.error, distance=2.5 if self.valid else 25.0
        )

    async def validate_zip_code(self, zip_code):
        return await self.validate_address("", zip_code)


class FakeCouponAPI:
    """Cupones de importe fijo: {código: (id, descuento)}."""

    def __init__(self, coupons):
        self.coupons = coupons
        self.validations = []
        self.applied = []
        self.unavailable = False

    async def validate_coupon(self, code, order_amount):
        self.validations.append((code, order_amount))
        if self.unavailable:
            raise ExternalServiceError("Le service est momentanément indisponible")
        if code not in self.coupons:
            return CouponValidateResponse(success=False, message="Code promo invalide", reason="not_found")
        coupon_id, discount = self.coupons[code]
        return CouponValidateResponse(
            success=True,
            data=CouponValidation(
                coupon_id=coupon_id,
                code=code,
                discount_type="fixed",
                discount_value=discount,
                discount_amount=discount,
                new_total=order_amount - discount,
            ),
        )

    async def apply_coupon(self, coupon_id):
        self.applied.append(coupon_id)
        return CouponApplyResponse(success=True, usage_count=len(self.applied))


class FakeOrderAPI:
    """Servidor de pedidos idempotente: una clave, un pedido."""

    def __init__(self, failures=0, retryable=True):
        self.failures = failures
        self.retryable = retryable
        self.calls = []
        self.payloads = []
        self.orders_by_key = {}

    async def create_order(self, payload, idempotency_key):
        self.calls.append(idempotency_key)
        self.payloads.append(payload)
        await asyncio.sleep(0)
        if self.failures > 0:
            self.failures -= 1
            raise ExternalServiceError("Le service est momentanément indisponible", retryable=self.retryable)

        if idempotency_key not in self.orders_by_key:
            order_id = len(self.orders_by_key) + 1
            client = payload.client_info
            self.orders_by_key[idempotency_key] = OrderCreateResponse(
                message="Commande créée avec succès",
                order=OrderResponse(
                    id=order_id,
                    no=f"ORD-20261019-{order_id:04d}",
                    status="pending",
                    delivery_mode=payload.delivery.mode,
                    payment_mode=payload.payment.mode,
                    client_first_name=client.first_name,
                    client_last_name=client.last_name,
                    client_phone=client.phone,
                    client_email=client.email,
                    subtotal=payload.totals.subtotal,
                    tax_amount=payload.totals.tax_amount,
                    delivery_fee=payload.totals.delivery_fee,
                    discount_amount=payload.totals.discount,
                    total=payload.totals.total,
                    coupon_id=payload.coupon_id,
                ),
            )
        return self.orders_by_key[idempotency_key]


# ---------------------------------------------------------------------------
# Checkout (cliente)
# ---------------------------------------------------------------------------

@pytest.fixture
def events():
    return ev.EventBus()


@pytest.fixture
def published(events):
    """Lista de todos los eventos publicados en el bus."""
    received = []
    all_events = ev.CART_EVENTS + (ev.STEP_CHANGED, ev.NOTIFICATION, ev.COUPON_REMOVED, ev.ORDER_CONFIRMED)
    events.subscribe_many(all_events, received.append)
    return received


@pytest.fixture
def catalog():
    return FakeCatalog([
        CatalogItem(id="5", name="Bouillabaisse", price=Decimal("24.00")),
        CatalogItem(id="7", name="Tarte Tatin", price=Decimal("8.50")),
        CatalogItem(id="9", name="Pastis", price=Decimal("4.00")),
    ])


@pytest.fixture
def cart_store(catalog, events):
    return CartStore(InMemoryCartStorage(), catalog, events)


@pytest.fixture
def address_validator():
    return FakeAddressValidator()


@pytest.fixture
def coupon_api():
    return FakeCouponAPI({"SAVE5": (1, Decimal("5.00")), "BIG30": (2, Decimal("30.00"))})


@pytest.fixture
def coupon_handler(coupon_api):
    return CouponHandler(coupon_api)


@pytest.fixture
def checkout(cart_store, address_validator, coupon_handler, events):
    return CheckoutHandler(
        cart_store,
        build_delivery_strategy_factory(address_validator, Decimal("5.00")),
        DefaultPricingStrategy(Decimal("0.10")),
        coupon_handler,
        events,
        clock=lambda: NOW,
    )


@pytest.fixture
def order_api():
    return FakeOrderAPI()


@pytest.fixture
def submission(checkout, order_api, coupon_handler, cart_store, events):
    keys = iter(f"key-{n}" for n in range(1, 100))
    return OrderSubmissionHandler(
        checkout, order_api, coupon_handler, cart_store, events,
        max_attempts=3, key_factory=lambda: next(keys),
    )


@pytest.fixture
def fill_checkout(checkout):
    """Rellena el formulario del checkout con datos válidos."""

    def fill(mode="pickup", address=None, zip_code=None):
        checkout.update_delivery(
            mode=mode, date=TOMORROW, time=time(12, 30), address=address, zip=zip_code
        )
        checkout.update_client_info(
            first_name="Marie", last_name="Dupont", phone="0612345678", email="marie@example.fr"
        )
        checkout.select_payment_mode("card")

    return fill


@pytest.fixture
def advance_to_confirmation(checkout, cart_store, fill_checkout):
    """Añade la bouillabaisse, rellena el formulario y avanza hasta el paso 4."""

    async def advance(mode="pickup", **delivery):
        await cart_store.add_item("5")
        fill_checkout(mode, **delivery)
        for _ in range(3):
            result = await checkout.next_step()
            assert result.valid, result.message
        assert checkout.state.current_step == CheckoutStep.CONFIRMATION

    return advance


# ---------------------------------------------------------------------------
# Base de datos y API
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def engine():
    """Motor SQLite en memoria; StaticPool para compartirlo entre sesiones."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False, poolclass=StaticPool)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def menu_items(db):
    items = [
        MenuItem(id=5, name="Bouillabaisse", price=Decimal("24.00"), category="plats"),
        MenuItem(id=7, name="Tarte Tatin", price=Decimal("8.50"), category="desserts"),
        MenuItem(id=8, name="Soupe du jour", price=Decimal("9.00"), is_available=False),
    ]
    db.add_all(items)
    await db.commit()
    return items


@pytest_asyncio.fixture
async def client(session_factory, address_validator):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_address_service] = lambda: address_validator
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def api_client(client):
    """Cliente httpx con la base /api/v1, como el que usan los clientes HTTP del checkout."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test/api/v1") as ac:
        yield ac
