from __future__ import annotations

from app.api.routes.cache import router as cache_router
from app.api.routes.health import router as health_router
from app.api.routes.root import router as root_router
from app.api.routes.users import router as users_router

__all__ = ["cache_router", "health_router", "root_router", "users_router"]
