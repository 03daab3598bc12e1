# backend/trois_quarts/services/checkout/debounce.py
"""
Validaciones con debounce (dirección y código postal mientras el usuario escribe).

Cada llamada recibe un identificador creciente. Una respuesta solo se entrega
si sigue correspondiendo a la última petición emitida: las respuestas que
llegan tarde se descartan y nunca pisan un resultado más reciente.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class LatestRequestGuard:

    def __init__(self):
        self._latest = 0

    def next_id(self) -> int:
        self._latest += 1
        return self._latest

    def is_latest(self, request_id: int) -> bool:
        return request_id == self._latest

    def invalidate(self):
        """Descarta cualquier respuesta pendiente (p. ej. al cambiar de modo de entrega)."""
        self._latest += 1


class DebouncedValidator:
    """
    Envuelve una validación asíncrona. Devuelve su resultado, o None si durante
    la espera llegó una petición más reciente.
    """

    def __init__(self, func: Callable[..., Awaitable[Any]], delay_seconds: float):
        self.func = func
        self.delay_seconds = delay_seconds
        self.guard = LatestRequestGuard()

    async def __call__(self, *args, **kwargs) -> Optional[Any]:
        request_id = self.guard.next_id()
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)
        if not self.guard.is_latest(request_id):
            return None

        result = await self.func(*args, **kwargs)
        if not self.guard.is_latest(request_id):
            logger.debug(f"Respuesta obsoleta descartada (petición {request_id})")
            return None
        return result

    def cancel(self):
        self.guard.invalidate()
