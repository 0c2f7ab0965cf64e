"""
API routers.
"""
from .board_import import router as board_import_router

__all__ = ["board_import_router"]
