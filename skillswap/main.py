import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

import redis.asyncio as aioredis

from skillswap.api.auth import router as auth_router
from skillswap.api.feedback import router as feedback_router
from skillswap.api.health import router as health_router
from skillswap.api.notifications import router as notifications_router
from skillswap.api.swaps import router as swaps_router
from skillswap.api.users import router as users_router
from skillswap.api.ws import router as ws_router
from skillswap.config import settings
from skillswap.database import async_session, engine
from skillswap.errors import SkillSwapError
from skillswap.models import Base
from skillswap.repository.sql import SqlRepository
from skillswap.schemas.common import fail
from skillswap.services.notifications import DatabaseNotificationSink
from skillswap.services.ws_updates import updates_manager
from skillswap.tasks.notification_relay import RedisUpdatesPublisher, run_relay_loop

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

HTTP_ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: "validation_error",
    status.HTTP_401_UNAUTHORIZED: "unauthorized",
    status.HTTP_403_FORBIDDEN: "forbidden",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
    status.HTTP_409_CONFLICT: "conflict",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        if settings.RESET_DB:
            logger.warning("RESET_DB is set, dropping all tables")
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    repository = SqlRepository(async_session)
    redis_client = None
    relay_task = None
    if settings.REDIS_URL:
        redis_client = aioredis.from_url(settings.REDIS_URL)
        publisher = RedisUpdatesPublisher(redis_client, settings.NOTIFICATIONS_CHANNEL)
        relay_task = asyncio.create_task(
            run_relay_loop(redis_client, settings.NOTIFICATIONS_CHANNEL, updates_manager)
        )
    else:
        publisher = updates_manager
    notifier = DatabaseNotificationSink(repository, publisher)
    app.state.repository = repository
    app.state.notifier = notifier
    try:
        yield
    finally:
        await notifier.drain()
        if relay_task is not None:
            relay_task.cancel()
            try:
                await relay_task
            except asyncio.CancelledError:
                pass
        if redis_client is not None:
            await redis_client.aclose()
        await engine.dispose()


app = FastAPI(title="SkillSwap", version="0.1.0", lifespan=lifespan)


@app.exception_handler(SkillSwapError)
async def skillswap_error_handler(request: Request, exc: SkillSwapError):
    body = fail(exc.code, exc.message, exc.details)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    body = fail("validation_error", "Validation failed", jsonable_encoder(exc.errors()))
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump(exclude_none=True))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    code = HTTP_ERROR_CODES.get(exc.status_code, "error")
    body = fail(code, str(exc.detail))
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(exclude_none=True),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Unhandled storage error on %s %s", request.method, request.url.path)
    body = fail("internal_error", "Internal server error")
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body.model_dump(exclude_none=True))


app.include_router(health_router, prefix="/api")
app.include_router(auth_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(swaps_router, prefix="/api")
app.include_router(feedback_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")
app.include_router(ws_router)


@app.get("/api")
def api_root():
    return {"message": "SkillSwap API"}
