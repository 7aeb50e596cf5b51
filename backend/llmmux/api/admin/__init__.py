"""
Admin API Module Initialization
"""

from llmmux.api.admin.api_keys import router as api_keys_router
from llmmux.api.admin.metrics import router as metrics_router

__all__ = [
    "api_keys_router",
    "metrics_router",
]
