"""
API v1 routers.
"""

from src.api.v1.basket import router as basket_router
from src.api.v1.orders import router as orders_router

__all__ = ["basket_router", "orders_router"]
