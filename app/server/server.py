"""FastAPI application for the notification relay."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.dependencies.rate_limits import setup_rate_limiter
from api.router import api_router
from infrastructure.configuration import Settings
from infrastructure.services import get_settings
from server.lifespan import lifespan

LOCAL_ORIGINS = ["http://localhost:8000", "http://127.0.0.1:8000"]


def _allowed_origins(settings: Settings) -> list[str]:
    # The web client opens the websocket and calls the read/token endpoints
    origins = [settings.server.CLIENT_BASE_URL]
    if not settings.is_production:
        origins.extend(LOCAL_ORIGINS)
    return origins


def create_app(settings: Settings) -> FastAPI:
    app = FastAPI(title="Notification Relay", version=settings.GIT_SHA, lifespan=lifespan)
    setup_rate_limiter(app)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_allowed_origins(settings),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(api_router)
    return app


handler = create_app(get_settings())
