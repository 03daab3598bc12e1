# backend/trois_quarts/schemas/order_schema.py
"""
Se encarga de definir los esquemas Pydantic para los pedidos: la información de
entrega y pago que se recoge en el checkout, los totales derivados, la carga
útil que se envía al servidor y las respuestas de la API.
"""

import datetime as dt
from decimal import Decimal
from typing import List, Optional, Tuple
import enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from trois_quarts.core import field_validation
from trois_quarts.core.money import format_money
from trois_quarts.schemas.base_schema import CamelModel
from trois_quarts.schemas.cart_schema import CartLine


class DeliveryMode(str, enum.Enum):
    """Modo de recogida del pedido."""
    PICKUP = "pickup"
    DELIVERY = "delivery"


class PaymentMode(str, enum.Enum):
    CARD = "card"
    CASH = "cash"
    TICKETS = "tickets"


class OrderStatus(str, enum.Enum):
    """Define los posibles estados de un pedido."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# ========================================
# ESTADO DEL CHECKOUT
# ========================================

class DeliveryInfo(CamelModel):
    """
    Información de entrega. En modo recogida la dirección y el código postal
    son None y la tarifa es siempre "0.00".
    """
    mode: Optional[DeliveryMode] = None
    date: Optional[dt.date] = None
    time: Optional[dt.time] = None
    address: Optional[str] = None
    zip: Optional[str] = None
    instructions: Optional[str] = None
    fee: str = "0.00"

    model_config = ConfigDict(validate_assignment=True)

    @field_validator("fee", mode="before")
    @classmethod
    def normalize_fee(cls, v):
        return format_money(v)


class PaymentInfo(CamelModel):
    mode: Optional[PaymentMode] = None


class ClientInfo(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class OrderTotals(CamelModel):
    """Totales derivados del carrito, la entrega y el cupón. Nunca se editan a mano."""
    subtotal: str = "0.00"
    tax_amount: str = "0.00"
    delivery_fee: str = "0.00"
    discount: str = "0.00"
    total: str = "0.00"


# Copias inmutables del estado del checkout que viajan dentro del pedido

class FrozenCartLine(CartLine):
    model_config = ConfigDict(frozen=True)


class FrozenDeliveryInfo(DeliveryInfo):
    model_config = ConfigDict(frozen=True)


class FrozenPaymentInfo(PaymentInfo):
    model_config = ConfigDict(frozen=True)


class FrozenClientInfo(ClientInfo):
    model_config = ConfigDict(frozen=True)


class FrozenOrderTotals(OrderTotals):
    model_config = ConfigDict(frozen=True)


def _snapshot(value):
    return value.model_dump() if isinstance(value, BaseModel) else value


class OrderPayload(CamelModel):
    """
    Carga útil final del pedido. Inmutable una vez construida: los modelos
    editables del checkout se copian en sus variantes congeladas.
    `delivery_fee` solo se envía cuando el cliente ha fijado la tarifa a mano.
    """
    items: Tuple[FrozenCartLine, ...]
    delivery: FrozenDeliveryInfo
    payment: FrozenPaymentInfo
    totals: FrozenOrderTotals
    client_info: FrozenClientInfo
    idempotency_key: str
    coupon_id: Optional[int] = None
    discount_amount: Optional[str] = None
    delivery_fee: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("items", mode="before")
    @classmethod
    def snapshot_items(cls, v):
        return tuple(_snapshot(line) for line in v)

    @field_validator("delivery", "payment", "totals", "client_info", mode="before")
    @classmethod
    def snapshot_model(cls, v):
        return _snapshot(v)


# ========================================
# ESQUEMAS DE LA API DE PEDIDOS (SERVIDOR)
# ========================================

class OrderItemCreate(CamelModel):
    """Item recibido del cliente. El precio se vuelve a resolver desde el catálogo."""
    item_id: str
    quantity: int = Field(..., gt=0)
    name: Optional[str] = None
    unit_price: Optional[Decimal] = None

    @field_validator("item_id", mode="before")
    @classmethod
    def coerce_item_id(cls, v):
        return str(v)


class OrderCreate(CamelModel):
    """Esquema para crear un pedido, con las mismas validaciones que el checkout."""
    items: List[OrderItemCreate] = Field(..., min_length=1)
    delivery: DeliveryInfo
    payment: PaymentInfo
    client_info: ClientInfo
    coupon_id: Optional[int] = Field(None, gt=0)
    totals: Optional[OrderTotals] = None
    delivery_fee: Optional[Decimal] = Field(None, ge=0, description="Tarifa de entrega fijada por el cliente")

    @field_validator("delivery")
    @classmethod
    def validate_delivery(cls, v: DeliveryInfo):
        if v.mode is None:
            raise ValueError('Le mode de livraison doit être "delivery" ou "pickup"')
        for value, field, limit in (
            (v.address, "address", field_validation.ADDRESS_MAX_LENGTH),
            (v.instructions, "instructions", field_validation.INSTRUCTIONS_MAX_LENGTH),
        ):
            result = field_validation.validate_free_text(value, field, limit)
            if not result.valid:
                raise ValueError(result.message)
        return v

    @field_validator("payment")
    @classmethod
    def validate_payment(cls, v: PaymentInfo):
        if v.mode is None:
            raise ValueError('Le mode de paiement doit être "card", "cash" ou "tickets"')
        return v

    @field_validator("client_info")
    @classmethod
    def validate_client_info(cls, v: ClientInfo):
        for result in (
            field_validation.validate_name(v.first_name, "firstName", "prénom"),
            field_validation.validate_name(v.last_name, "lastName", "nom"),
            field_validation.validate_phone(v.phone),
            field_validation.validate_email(v.email),
        ):
            if not result.valid:
                raise ValueError(result.message)
        return v


class OrderItemResponse(CamelModel):
    """Esquema de respuesta para un item de pedido."""
    id: int
    product_id: str
    product_name: str
    unit_price: str
    quantity: int
    total: str

    @field_validator("unit_price", "total", mode="before")
    @classmethod
    def money(cls, v):
        return format_money(v)


class OrderResponse(CamelModel):
    """Esquema completo de respuesta para un pedido."""
    id: int
    no: str
    status: OrderStatus
    delivery_mode: DeliveryMode
    delivery_address: Optional[str] = None
    delivery_zip: Optional[str] = None
    delivery_instructions: Optional[str] = None
    delivery_date: Optional[dt.date] = None
    delivery_time: Optional[dt.time] = None
    payment_mode: PaymentMode
    client_first_name: str
    client_last_name: str
    client_phone: str
    client_email: str
    subtotal: str
    tax_amount: str
    delivery_fee: str
    discount_amount: str
    total: str
    coupon_id: Optional[int] = None
    created_at: Optional[dt.datetime] = None
    items: List[OrderItemResponse] = []

    @field_validator("subtotal", "tax_amount", "delivery_fee", "discount_amount", "total", mode="before")
    @classmethod
    def money(cls, v):
        return format_money(v)


class OrderCreateResponse(CamelModel):
    success: bool = True
    message: Optional[str] = None
    order: OrderResponse


class OrderStatusUpdate(CamelModel):
    """Esquema para actualizar únicamente el estado de un pedido."""
    status: OrderStatus = Field(..., description="Nuevo estado del pedido")
