from fastapi import FastAPI

from .health import router as health_router
from .notifications import router as notifications_router
from .preferences import router as preferences_router
from .subscriptions import router as subscriptions_router


def register_routes(app: FastAPI) -> None:
    """Registra todos los routers de la API en la aplicación FastAPI."""

    app.include_router(health_router)
    app.include_router(notifications_router)
    app.include_router(subscriptions_router)
    app.include_router(preferences_router)
