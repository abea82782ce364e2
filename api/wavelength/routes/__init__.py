from fastapi import APIRouter, FastAPI

from .chat import router as chat_router, scaffold_router as chat_scaffold_router
from .matches import router as matches_router, scaffold_router as matches_scaffold_router
from .notifications import router as notifications_router, scaffold_router as notifications_scaffold_router
from .quiz import router as quiz_router, scaffold_router as quiz_scaffold_router
from .users import router as users_router, scaffold_router as users_scaffold_router
from .visibility import router as visibility_router, scaffold_router as visibility_scaffold_router


def include_modular_routers(app: FastAPI) -> None:
    app.include_router(users_router, tags=["users"])
    app.include_router(quiz_router, tags=["quiz"])
    app.include_router(matches_router, tags=["matches"])
    app.include_router(visibility_router, tags=["visibility"])
    app.include_router(chat_router, tags=["chat"])
    app.include_router(notifications_router, tags=["notifications"])

    app.include_router(users_scaffold_router, prefix="/_scaffold/users", tags=["scaffold-users"])
    app.include_router(quiz_scaffold_router, prefix="/_scaffold/quiz", tags=["scaffold-quiz"])
    app.include_router(matches_scaffold_router, prefix="/_scaffold/matches", tags=["scaffold-matches"])
    app.include_router(visibility_scaffold_router, prefix="/_scaffold/visibility", tags=["scaffold-visibility"])
    app.include_router(chat_scaffold_router, prefix="/_scaffold/chat", tags=["scaffold-chat"])
    app.include_router(notifications_scaffold_router, prefix="/_scaffold/notifications", tags=["scaffold-notifications"])


__all__ = ["include_modular_routers", "APIRouter"]
