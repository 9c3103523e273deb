# Routers package
from . import auth_router
from . import health_router

__all__ = [
    "auth_router",
    "health_router",
]
