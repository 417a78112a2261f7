import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from notifier.bootstrap import build_container
from notifier.config import Settings, get_settings
from notifier.interfaces.api.routes import register_routes


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Crea y configura la aplicación principal de FastAPI."""

    app_settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Conecta la base de datos y la cola push al arrancar y las libera al cerrar."""

        configure_logging(app_settings.log_level)
        container = build_container(app_settings)
        await container.start()
        app.state.container = container
        try:
            yield
        finally:
            app.state.container = None
            await container.stop()

    app = FastAPI(title="Notifier", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)
    return app
