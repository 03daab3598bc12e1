# backend/trois_quarts/main.py
"""
Punto de entrada principal de la aplicación FastAPI.

Configura el logging, registra los routers de la API v1 y crea las tablas al
arrancar si todavía no existen.
"""

import logging

from fastapi import FastAPI

from trois_quarts.core.config import settings
from trois_quarts.api.v1.api_router import api_router_v1

# ========================================
# LOGGING
# ========================================

logging.basicConfig(level=settings.LOG_LEVEL.upper(), format=settings.LOG_FORMAT)
logger = logging.getLogger(__name__)

# ========================================
# CONFIGURACIÓN DE LA APLICACIÓN FASTAPI
# ========================================

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    version=settings.PROJECT_VERSION,
    description="API de commande en ligne du restaurant Le Trois Quarts",
)

app.include_router(api_router_v1, prefix=settings.API_V1_STR)


@app.get("/", tags=["Root"])
async def read_root():
    """Health check básico con nombre y versión de la API."""
    return {"message": f"Bienvenue sur {settings.PROJECT_NAME} v{settings.PROJECT_VERSION}"}


# ========================================
# EVENTOS DEL CICLO DE VIDA DE LA APLICACIÓN
# ========================================

@app.on_event("startup")
async def startup_event():
    """Crea las tablas que falten (carta, cupones, pedidos)."""
    from trois_quarts.db.all_models import Base
    from trois_quarts.db.database import engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"✅ {settings.APP_NAME} iniciado ({settings.APP_ENVIRONMENT})")
