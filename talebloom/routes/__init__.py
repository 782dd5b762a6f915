# Routes Package
from talebloom.routes.health import router as health_router
from talebloom.routes.stories import router as stories_router
from talebloom.routes.users import router as users_router

__all__ = [
    "health_router",
    "stories_router",
    "users_router",
]
