from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import APP_NAME, APP_VERSION, Settings
from .errors import install_error_handlers
from .logsink import LogSink
from .middleware import install_request_logger
from .responses import send_success
from .routers import auth, health, sleep
from .services import SleepService, UserService
from .storage import DocumentStore, StorageError
from .timeutils import now_utc
from .tokens import TokenService

logger = logging.getLogger(__name__)

ENDPOINTS = {
    "healthcheck": "/v1/healthcheck",
    "auth": {
        "register": "POST /v1/auth/register",
        "login": "POST /v1/auth/login",
        "logout": "POST /v1/auth/logout",
        "profile": "GET /v1/auth/me",
    },
    "sleep": {
        "list": "GET /v1/sleep",
        "create": "POST /v1/sleep",
        "get": "GET /v1/sleep/:id",
        "update": "PUT /v1/sleep/:id",
        "delete": "DELETE /v1/sleep/:id",
    },
}


def create_app(settings: Optional[Settings] = None, store: Optional[DocumentStore] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    store = store or DocumentStore(settings.database_url)
    log_sink = LogSink(store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if store.state != "connected":
            try:
                store.connect()
            except StorageError:
                logger.exception("Starting without storage; requests that need it will fail")
        yield
        log_sink.close()

    app = FastAPI(title=APP_NAME, version=APP_VERSION, lifespan=lifespan)

    app.state.settings = settings
    app.state.store = store
    app.state.log_sink = log_sink
    app.state.tokens = TokenService(
        settings.jwt_secret,
        settings.jwt_expire,
        cookie_expire_days=settings.cookie_expire_days,
        secure_cookies=settings.is_production,
    )
    app.state.users = UserService(store)
    app.state.sleep = SleepService(store)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_request_logger(app, log_sink)
    install_error_handlers(app)

    v1 = APIRouter(prefix="/v1")
    v1.include_router(health.router)
    v1.include_router(auth.router)
    v1.include_router(sleep.router)
    app.include_router(v1)

    @app.get("/")
    def root() -> JSONResponse:
        data = {
            "message": f"{APP_NAME} v1",
            "version": APP_VERSION,
            "status": "active",
            "timestamp": now_utc().isoformat(),
            "endpoints": ENDPOINTS,
        }
        return send_success("API is running", data)

    return app


app = create_app()
