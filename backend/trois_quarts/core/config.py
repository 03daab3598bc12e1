# backend/trois_quarts/core/config.py
"""
Este archivo contiene la configuración de la aplicación.
"""

from decimal import Decimal
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from pathlib import Path
import os

# Apunta al directorio 'backend/'
BASE_DIR = Path(__file__).resolve().parent.parent.parent

class Settings(BaseSettings):
    """
    Configuración de la aplicación usando Pydantic BaseSettings.
    Variables sensibles desde .env, defaults seguros para el resto.
    """
    # Configuración general del proyecto
    BASE_DIR: Path = BASE_DIR
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Le Trois Quarts API"
    PROJECT_VERSION: str = "0.1.0"

    # Configuración de la base de datos
    POSTGRES_SERVER: str = os.getenv("POSTGRES_SERVER", "postgres")
    POSTGRES_USER: str = os.getenv("POSTGRES_USER", "user")
    POSTGRES_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "password")
    POSTGRES_DB: str = os.getenv("POSTGRES_DB", "trois_quarts_db")
    POSTGRES_PORT: str = os.getenv("POSTGRES_PORT", "5432")

    @property
    def DATABASE_URL(self) -> str:
        """URL de conexión a la base de datos asíncrona."""
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # Configuración de Redis (almacenamiento del carrito)
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", 6379))
    CART_STORAGE_KEY: str = "cart"
    CART_TTL_SECONDS: int = 60 * 60 * 24

    # Restaurante - Entrega y tasas
    DELIVERY_FEE: Decimal = Decimal("5.00")
    FREE_DELIVERY_THRESHOLD: Optional[Decimal] = Decimal("50.00")
    DELIVERY_RADIUS_KM: int = 10
    VAT_RATE: Decimal = Decimal("0.10")
    RESTAURANT_LAT: float = 43.2965
    RESTAURANT_LNG: float = 5.3698
    MIN_TIME_DELAY_HOURS: int = 1

    # Geocodificación de direcciones (Nominatim / OpenStreetMap)
    NOMINATIM_URL: str = "https://nominatim.openstreetmap.org/search"
    NOMINATIM_USER_AGENT: str = "LeTroisQuarts/1.0"

    # Cliente HTTP del checkout
    API_BASE_URL: str = "http://localhost:8000"
    HTTP_TIMEOUT_SECONDS: float = 10.0
    MAX_SUBMIT_RETRIES: int = 3
    ADDRESS_DEBOUNCE_SECONDS: float = 0.8
    ZIP_DEBOUNCE_SECONDS: float = 0.5

    # Idempotencia de pedidos (ventana en la que una clave repetida devuelve el mismo pedido)
    IDEMPOTENCY_TTL_SECONDS: int = 600

    # Logging - Defaults seguros
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # App Info - Del .env con defaults
    APP_NAME: str = "Le Trois Quarts"
    APP_ENVIRONMENT: str = "development"

    # Server - Del .env con defaults
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

# Instancia global de la configuración
settings = Settings()
