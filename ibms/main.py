from typing import Optional
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ibms.core.config import settings
from ibms.core.exceptions import BaseCustomException, create_error_response
from ibms.api.v1.api import api_router
from ibms.infrastructure.database import AsyncSessionLocal, SessionFactory, init_db, close_db
from ibms.infrastructure.notifications import Notifier, LoggingNotifier, RedisNotifier
from ibms.infrastructure.redis import RedisManager, PubSubService

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


async def _connect_notifier(redis_manager: RedisManager) -> Notifier:
    """Redis-backed notifier, or a logging one when Redis is absent or unreachable"""
    if not settings.REDIS_URL:
        return LoggingNotifier()
    try:
        await redis_manager.connect(settings.REDIS_URL)
    except Exception as e:
        logger.warning(f"Redis unavailable, bed notifications will only be logged: {e}")
        return LoggingNotifier()
    return RedisNotifier(PubSubService(redis_manager.client), settings.NOTIFICATION_CHANNEL_PREFIX)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    redis_manager = RedisManager()
    app.state.redis_manager = redis_manager
    owns_database = app.state.session_factory is None

    if app.state.notifier is None:
        app.state.notifier = await _connect_notifier(redis_manager)

    if owns_database:
        if settings.AUTO_CREATE_TABLES:
            await init_db()
        app.state.session_factory = AsyncSessionLocal

    logger.info(f"{settings.PROJECT_NAME} started")
    yield

    await app.state.notifier.flush()
    await redis_manager.disconnect()
    app.state.redis_manager = None
    if owns_database:
        await close_db()


def create_app(
    session_factory: Optional[SessionFactory] = None,
    notifier: Optional[Notifier] = None,
) -> FastAPI:
    """Application factory; tests inject their own session factory and notifier"""
    app = FastAPI(
        title=settings.PROJECT_NAME,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.session_factory = session_factory
    app.state.notifier = notifier
    app.state.redis_manager = None

    # Set all CORS enabled origins
    if settings.BACKEND_CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.exception_handler(BaseCustomException)
    async def custom_exception_handler(request: Request, exc: BaseCustomException):
        return JSONResponse(
            status_code=exc.status_code,
            content=create_error_response(exc, request.headers.get("X-Request-ID")),
        )

    app.include_router(api_router, prefix=settings.API_V1_STR)

    @app.get("/health")
    async def health_check():
        redis_manager = app.state.redis_manager
        if redis_manager is None or not settings.REDIS_URL:
            redis_status = "disabled"
        elif await redis_manager.is_healthy():
            redis_status = "ok"
        else:
            redis_status = "unavailable"
        return {"status": "ok", "redis": redis_status}

    return app


app = create_app()
