# backend/trois_quarts/api/v1/api_router.py
"""
Router principal de la API versión 1.

Registra los routers de cada dominio: carta, direcciones, cupones, pedidos y
configuración del restaurante.
"""

from fastapi import APIRouter

from trois_quarts.api.v1.endpoints import (
    address,
    coupon,
    menu,
    order,
    restaurant,
)

# ========================================
# CONFIGURACIÓN DEL ROUTER PRINCIPAL V1
# ========================================

api_router_v1 = APIRouter()

# ========================================
# REGISTRO DE ROUTERS POR DOMINIO
# ========================================

# Carta: el carrito resuelve aquí nombre y precio de cada plato
api_router_v1.include_router(menu.router, prefix="/menu", tags=["Menu"])

# Validación de la dirección de entrega (paso 2 del checkout)
api_router_v1.include_router(address.router, prefix="/address", tags=["Address"])

api_router_v1.include_router(coupon.router, prefix="/coupon", tags=["Coupons"])

# Pedidos con cabecera Idempotency-Key
api_router_v1.include_router(order.router, prefix="/order", tags=["Orders"])

api_router_v1.include_router(restaurant.router, prefix="/restaurant", tags=["Restaurant"])
