import logging
from contextlib import asynccontextmanager
from typing import Optional

import redis
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .container import AppContainer
from .errors import ChatError, PersistenceError, ValidationError
from .logging_config import configure_logging
from .storage import StoragePort
from .api.routes_health import router as health_router
from .api.routes_chat import router as chat_router
from .api.routes_admin import router as admin_router
from .api.routes_chat_ws import router as chat_ws_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    container: AppContainer = app.state.container
    logger.info("🚀 Starting anonymous chat API...")
    logger.info(f"🌐 Environment: {container.settings.ENV}, storage: {container.settings.STORAGE_BACKEND}")
    # Auto-create tables and the default admin if they don't exist
    try:
        container.startup()
    except PersistenceError as e:
        raise RuntimeError("❌ Database connection failed. Check DATABASE_URL and credentials.") from e

    yield

    logger.info(f"Shutting down, dropping {len(container.registry)} live connections")
    container.shutdown()


def create_app(settings: Optional[Settings] = None,
               storage: Optional[StoragePort] = None,
               redis_client: Optional[redis.Redis] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="Anonymous Chat API",
        version="1.0.0",
        description="Anonymous visitor to admin messaging with real-time fan-out over WebSockets.",
        lifespan=lifespan,
    )
    app.state.container = AppContainer(settings, storage=storage, redis_client=redis_client)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routers
    app.include_router(health_router)
    app.include_router(chat_router)
    app.include_router(admin_router)
    app.include_router(chat_ws_router)

    @app.exception_handler(ChatError)
    async def chat_error_handler(request: Request, exc: ChatError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        # malformed bodies report the same kind as blank messages
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        error = ValidationError(problems or "Invalid request")
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "kind": "internal_error"},
        )

    # Base route
    @app.get("/")
    def root():
        return {
            "name": "Anonymous Chat API",
            "env": settings.ENV,
            "status": "running",
            "docs_url": "/docs",
        }

    return app
