"""Agreement Engine - API Routers"""
from .validation import router as validation_router
from .discount_check import router as discount_check_router
from .downloads import router as downloads_router

__all__ = [
    "validation_router",
    "discount_check_router",
    "downloads_router",
]
