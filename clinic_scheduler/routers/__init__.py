# Routers package
from . import appointments_router
from . import scheduling_router

__all__ = [
    "appointments_router",
    "scheduling_router",
]
