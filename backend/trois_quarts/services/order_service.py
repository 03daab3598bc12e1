# backend/trois_quarts/services/order_service.py
"""
Servicio de Pedidos.

Crea los pedidos a partir de la carga útil enviada por el checkout:
1. Si la clave de idempotencia ya se ha visto dentro de la ventana configurada,
   devuelve el mismo pedido sin crear otro.
2. Vuelve a resolver los precios desde el catálogo (no se confía en el cliente).
3. Aplica la estrategia de entrega del modo elegido y la estrategia de precios.
4. Calcula el descuento del cupón (sin consumir un uso: eso lo hace la
   aplicación del cupón tras la confirmación).
5. Persiste el pedido y sus items en una única transacción.
"""
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from trois_quarts.core.config import Settings
from trois_quarts.core.money import to_money
from trois_quarts.crud import coupon_crud, menu_item_crud, order_crud
from trois_quarts.db.models.order_model import Order
from trois_quarts.schemas.order_schema import OrderCreate, OrderStatus
from trois_quarts.services.coupon_service import check_coupon_for_amount
from trois_quarts.strategies.delivery import AddressValidator, build_delivery_strategy_factory
from trois_quarts.strategies.pricing import DefaultPricingStrategy, PricingStrategyFactory

logger = logging.getLogger(__name__)


class OrderError(ValueError):
    """Error de negocio al crear o modificar un pedido."""


class OrderNotFoundError(OrderError):
    pass


class IdempotencyConflictError(OrderError):
    pass


class OrderService:
    """
    Servicio para crear pedidos de forma idempotente.
    """

    def __init__(self, settings: Settings, address_validator: AddressValidator):
        self.settings = settings
        self.delivery_strategies = build_delivery_strategy_factory(
            address_validator,
            default_fee=settings.DELIVERY_FEE,
            free_delivery_threshold=settings.FREE_DELIVERY_THRESHOLD,
        )
        self.pricing_strategies = PricingStrategyFactory(DefaultPricingStrategy(settings.VAT_RATE))

    async def create_order(self, db: AsyncSession, order_in: OrderCreate,
                           idempotency_key: Optional[str] = None) -> Tuple[Order, bool]:
        """
        Crea un pedido. Devuelve (pedido, creado); `creado` es False cuando la
        clave de idempotencia ya correspondía a un pedido existente.
        """
        if idempotency_key:
            existing = await self._find_by_idempotency_key(db, idempotency_key)
            if existing is not None:
                logger.info(f"Clave de idempotencia repetida {idempotency_key}: se devuelve el pedido {existing.no}")
                return existing, False

        order_fields, items = await self._build_order(db, order_in)
        order_fields["idempotency_key"] = idempotency_key

        try:
            order = await order_crud.create_order(db, order_fields, items)
        except IntegrityError:
            # Otra petición con la misma clave se ha adelantado
            await db.rollback()
            if idempotency_key:
                existing = await order_crud.get_order_by_idempotency_key(db, idempotency_key)
                if existing is not None:
                    return existing, False
            raise

        logger.info(f"Pedido {order.no} creado: total {order.total} ({order.delivery_mode}/{order.payment_mode})")
        return order, True

    async def get_order(self, db: AsyncSession, order_id: int) -> Order:
        order = await order_crud.get_order(db, order_id)
        if order is None:
            raise OrderNotFoundError(f"Commande introuvable: {order_id}")
        return order

    async def update_order_status(self, db: AsyncSession, order_id: int, status: OrderStatus) -> Order:
        order = await order_crud.update_order_status(db, order_id, status)
        if order is None:
            raise OrderNotFoundError(f"Commande introuvable: {order_id}")
        return order

    async def _find_by_idempotency_key(self, db: AsyncSession, idempotency_key: str) -> Optional[Order]:
        existing = await order_crud.get_order_by_idempotency_key(db, idempotency_key)
        if existing is None:
            return None

        created_at = existing.created_at
        if created_at is not None and created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        window = timedelta(seconds=self.settings.IDEMPOTENCY_TTL_SECONDS)
        if created_at is not None and datetime.now(timezone.utc) - created_at > window:
            raise IdempotencyConflictError("Clé d'idempotence expirée, veuillez relancer la commande")
        return existing

    async def _build_order(self, db: AsyncSession, order_in: OrderCreate):
        # 1. Items con precios del catálogo
        try:
            item_ids = [int(item.item_id) for item in order_in.items]
        except ValueError:
            raise OrderError("Article introuvable dans la carte")
        menu_items = {item.id: item for item in await menu_item_crud.get_menu_items_by_ids(db, item_ids)}

        items = []
        cart_total = Decimal("0")
        for item_in in order_in.items:
            menu_item = menu_items.get(int(item_in.item_id))
            if menu_item is None or not menu_item.is_available:
                raise OrderError(f"Article introuvable dans la carte: {item_in.item_id}")
            unit_price = to_money(menu_item.price)
            line_total = unit_price * item_in.quantity
            cart_total += line_total
            items.append({
                "product_id": str(menu_item.id),
                "product_name": menu_item.name,
                "unit_price": unit_price,
                "quantity": item_in.quantity,
                "total": to_money(line_total),
            })

        # 2. Entrega: la tarifa fijada por el cliente tiene prioridad sobre la configuración
        delivery = order_in.delivery.model_copy()
        strategy = self.delivery_strategies.for_mode(delivery.mode)
        await strategy.validate_and_populate(
            delivery,
            address=order_in.delivery.address,
            zip_code=order_in.delivery.zip,
            instructions=order_in.delivery.instructions,
            fee_override=order_in.delivery_fee,
            cart_total=cart_total,
        )

        # 3. Cupón (descuento sin consumir uso)
        discount = Decimal("0")
        if order_in.coupon_id is not None:
            coupon = check_coupon_for_amount(await coupon_crud.get_coupon(db, order_in.coupon_id), cart_total)
            discount = coupon.calculate_discount(cart_total)

        # 4. Totales
        totals = self.pricing_strategies.default().compute_totals(cart_total, delivery.fee, discount)
        if order_in.totals is not None and order_in.totals.total != totals.total:
            logger.warning(f"Total del cliente ({order_in.totals.total}) distinto del calculado ({totals.total})")

        client = order_in.client_info
        order_fields = {
            "status": OrderStatus.PENDING.value,
            "delivery_mode": delivery.mode.value,
            "delivery_address": delivery.address,
            "delivery_zip": delivery.zip,
            "delivery_instructions": delivery.instructions,
            "delivery_date": delivery.date,
            "delivery_time": delivery.time,
            "delivery_fee": Decimal(totals.delivery_fee),
            "payment_mode": order_in.payment.mode.value,
            "client_first_name": client.first_name.strip(),
            "client_last_name": client.last_name.strip(),
            "client_phone": client.phone.strip(),
            "client_email": client.email.strip(),
            "subtotal": Decimal(totals.subtotal),
            "tax_amount": Decimal(totals.tax_amount),
            "discount_amount": Decimal(totals.discount),
            "total": Decimal(totals.total),
            "coupon_id": order_in.coupon_id,
        }
        return order_fields, items
