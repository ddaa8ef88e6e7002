"""
API Routes Module
"""
from .health import router as health_router
from .indicators import router as indicators_router

__all__ = [
    "health_router",
    "indicators_router",
]
