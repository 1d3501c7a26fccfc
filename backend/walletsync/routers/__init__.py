"""API routers."""

from walletsync.routers.sync import router as sync_router

__all__ = [
    "sync_router",
]
