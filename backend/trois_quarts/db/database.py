# backend/trois_quarts/db/database.py

"""
Configuración principal de la base de datos para la aplicación.

Este módulo establece la conexión con PostgreSQL usando SQLAlchemy y define
los componentes básicos que serán utilizados por toda la aplicación:
- Motor de base de datos (engine)
- Fábrica de sesiones (AsyncSessionLocal)
- Clase base para modelos (Base)

La dependencia get_db() vive en trois_quarts/api/deps.py.
"""

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base
from trois_quarts.core.config import settings

# Crear el motor de base de datos asíncrono
engine = create_async_engine(settings.DATABASE_URL, pool_pre_ping=True)

# expire_on_commit=False para que los objetos sigan siendo utilizables
# después de que la transacción se haya confirmado.
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

# Clase base declarativa para todos los modelos ORM
Base = declarative_base()
