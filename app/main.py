"""
app/main.py

Purpose: Process entry point for webhook mode

- Builds the FastAPI app, error envelope and request timing
- On startup: config check, MongoDB, indexes, Telegram client, dispatcher,
  then registers the webhook with Telegram if WEBHOOK_URL is set
- Exposes health/readiness/liveness probes

Polling mode (scripts/run_polling.py) wires the same dispatcher without the HTTP layer.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.config import settings, validate_settings, BotConfig
from app.core.errors import add_exception_handlers
from app.core.logging import setup_logging, get_logger
from app.db.mongo import connect_to_mongo, close_mongo_connection, check_database_health
from app.db.indexes import create_indexes
from app.flow.context import HandlerContext
from app.flow.dispatcher import Dispatcher
from app.services.telegram_service import get_telegram_service, close_telegram_service
from app.api import webhook

setup_logging()
logger = get_logger(__name__)

APP_NAME = "Relay Bot"
APP_VERSION = "1.0.0"
WEBHOOK_ROUTE = f"{settings.API_PREFIX}/telegram/webhook"
SLOW_REQUEST_SECONDS = 5.0


def build_dispatcher() -> Dispatcher:
    telegram = get_telegram_service()
    ctx = HandlerContext.build(BotConfig.from_settings(settings), telegram)
    return Dispatcher(ctx)


async def register_webhook(dispatcher: Dispatcher):
    """Points Telegram at this deployment; no-op without WEBHOOK_URL."""
    if not settings.WEBHOOK_URL:
        logger.info("WEBHOOK_URL not set, updates must be pulled with scripts/run_polling.py")
        return

    url = settings.WEBHOOK_URL.rstrip("/") + WEBHOOK_ROUTE
    await dispatcher.ctx.telegram.set_webhook(url, secret_token=settings.WEBHOOK_SECRET)
    logger.info(f"✅ Webhook registered: {url}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"🚀 Starting {APP_NAME} ({settings.ENVIRONMENT})")

    try:
        validate_settings()
        await connect_to_mongo()
        await create_indexes()

        app.state.dispatcher = build_dispatcher()
        await register_webhook(app.state.dispatcher)
    except Exception as e:
        logger.critical(f"Startup aborted: {e}", exc_info=True)
        raise

    logger.info(f"🎉 Relaying between private chats and admin group {settings.ADMIN_GROUP_ID}")

    yield

    logger.info("🛑 Shutting down...")
    try:
        await close_telegram_service()
        await close_mongo_connection()
    except Exception as e:
        logger.error(f"Error during shutdown: {e}", exc_info=True)
    finally:
        app.state.dispatcher = None


app = FastAPI(
    title=APP_NAME,
    description="Telegram admin relay and application intake bot",
    version=APP_VERSION,
    lifespan=lifespan,
    debug=settings.DEBUG,
    docs_url="/docs" if settings.is_development else None,
    redoc_url=None,
)

add_exception_handlers(app)


@app.middleware("http")
async def time_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - started
    response.headers["X-Process-Time"] = f"{elapsed:.4f}"

    # Telegram retries webhook deliveries that take too long
    if elapsed > SLOW_REQUEST_SECONDS:
        logger.warning(f"Slow request: {request.method} {request.url.path} took {elapsed:.2f}s")

    return response


app.include_router(webhook.router, prefix=settings.API_PREFIX, tags=["Webhook"])


@app.get("/", tags=["Health"])
async def root():
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "delivery": "webhook" if settings.WEBHOOK_URL else "polling",
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Reports database reachability and whether updates can be dispatched.
    503 when either is missing.
    """
    database_ok = await check_database_health()
    dispatcher_ok = getattr(app.state, "dispatcher", None) is not None

    body = {
        "status": "healthy" if database_ok and dispatcher_ok else "degraded",
        "timestamp": time.time(),
        "version": APP_VERSION,
        "checks": {
            "database": "healthy" if database_ok else "unhealthy",
            "dispatcher": "ready" if dispatcher_ok else "missing",
        },
    }
    return JSONResponse(content=body, status_code=200 if body["status"] == "healthy" else 503)


@app.get("/ready", tags=["Health"])
async def readiness_check():
    if getattr(app.state, "dispatcher", None) is None:
        return JSONResponse(status_code=503, content={"status": "not_ready", "reason": "dispatcher_not_initialized"})
    if not await check_database_health():
        return JSONResponse(status_code=503, content={"status": "not_ready", "reason": "database_unavailable"})
    return {"status": "ready"}


@app.get("/live", tags=["Health"])
async def liveness_check():
    return {"status": "alive"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower(),
    )
