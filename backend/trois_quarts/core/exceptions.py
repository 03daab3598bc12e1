# backend/trois_quarts/core/exceptions.py
"""
Jerarquía de errores del checkout.

- CheckoutValidationError: error corregible por el usuario (campo vacío, formato,
  fecha pasada, dirección fuera de zona, carrito vacío...).
- ExternalServiceError: fallo transitorio de un colaborador (red, respuesta no 2xx o no JSON).
- ConfigurationError: error de programación, p. ej. ninguna estrategia de entrega
  registrada para el modo elegido. No se recupera: debe fallar de forma visible.
"""
from dataclasses import dataclass
from typing import Optional


class CheckoutValidationError(ValueError):
    """Error de validación corregible por el usuario."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class ExternalServiceError(Exception):
    """Fallo de red o respuesta inválida de un servicio externo."""

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = True):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.retryable = retryable


class ConfigurationError(RuntimeError):
    pass


@dataclass(frozen=True)
class ValidationResult:
    """Resultado estructurado de una validación: nunca se lanza, se devuelve."""
    valid: bool
    message: Optional[str] = None
    field: Optional[str] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def fail(cls, message: str, field: Optional[str] = None) -> "ValidationResult":
        return cls(valid=False, message=message, field=field)

    @classmethod
    def from_error(cls, error: CheckoutValidationError) -> "ValidationResult":
        return cls(valid=False, message=error.message, field=error.field)

    def __bool__(self) -> bool:
        return self.valid
