"""
Routers package for Reports module

Exports all report router instances for easy importing.
"""

from .builder import router as builder_router
from .saved import router as saved_router
from .inventory import router as inventory_router

__all__ = [
    "builder_router",
    "saved_router",
    "inventory_router"
]
