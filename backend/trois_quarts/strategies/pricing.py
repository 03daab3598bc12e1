# backend/trois_quarts/strategies/pricing.py
"""
Estrategias de precio.

Los precios del carrito ya incluyen el IVA (TTC). A partir del total TTC del
carrito se deducen el subtotal sin impuestos y el importe del IVA; la tarifa de
entrega se suma y el descuento del cupón se resta una sola vez, del total.
"""
from abc import ABC, abstractmethod
from decimal import Decimal

from trois_quarts.core.exceptions import CheckoutValidationError
from trois_quarts.core.money import MoneyLike, format_money, to_decimal, to_money
from trois_quarts.schemas.order_schema import OrderTotals


class PricingStrategy(ABC):

    @abstractmethod
    def compute_totals(self, cart_total: MoneyLike, delivery_fee: MoneyLike = 0, discount: MoneyLike = 0) -> OrderTotals:
        """Calcula subtotal, IVA y total. No modifica nada más."""


class DefaultPricingStrategy(PricingStrategy):

    def __init__(self, vat_rate: MoneyLike):
        self.vat_rate = to_decimal(vat_rate)

    def compute_totals(self, cart_total, delivery_fee=0, discount=0):
        cart_total = to_decimal(cart_total)
        delivery_fee = to_money(delivery_fee)
        discount = to_money(discount)
        if discount < 0:
            raise CheckoutValidationError("La réduction ne peut pas être négative", field="coupon")

        subtotal = to_money(cart_total / (Decimal("1") + self.vat_rate))
        tax_amount = cart_total - subtotal
        total = cart_total + delivery_fee - discount
        if total < 0:
            raise CheckoutValidationError("La réduction dépasse le montant de la commande", field="coupon")

        return OrderTotals(
            subtotal=format_money(subtotal),
            tax_amount=format_money(tax_amount),
            delivery_fee=format_money(delivery_fee),
            discount=format_money(discount),
            total=format_money(total),
        )


class PricingStrategyFactory:

    def __init__(self, default_pricing: PricingStrategy):
        self._default = default_pricing

    def default(self) -> PricingStrategy:
        return self._default
