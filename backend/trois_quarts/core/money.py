# backend/trois_quarts/core/money.py
"""
Utilidades monetarias.

Todos los importes se calculan con Decimal y se redondean a 2 decimales
(ROUND_HALF_UP) en el momento de guardarlos o mostrarlos. Se almacenan como
cadenas "12.34" para evitar derivas de coma flotante entre cliente y servidor.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

MoneyLike = Union[Decimal, int, float, str, None]


def to_decimal(value: MoneyLike) -> Decimal:
    """Convierte un valor a Decimal sin redondear (None -> 0)."""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    # str() evita arrastrar la representación binaria de un float
    return Decimal(str(value))


def to_money(value: MoneyLike) -> Decimal:
    """Redondea a céntimos con redondeo half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: MoneyLike) -> str:
    """Importe como cadena de 2 decimales, p. ej. '24.00'."""
    return f"{to_money(value):.2f}"
