"""Main web application - FastAPI server for frame analysis, alerts and the alert feed."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError

from ..shared.db.database import close_db, init_db
from ..shared.errors import SafePoolError
from ..shared.logging_config import configure_logging
from ..shared.redis.client import close_redis, get_redis
from ..worker.analysis import get_analysis_client
from .api import router as api_router
from .config import config

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    configure_logging(config.LOG_LEVEL, json_logs=config.is_production())
    logger.info("web_starting", port=config.PORT, production=config.is_production())

    for warning in config.validate():
        logger.warning("config_warning", detail=warning)

    await init_db()

    try:
        redis = await get_redis()
        await redis.ping()
        logger.info("redis_connected")
    except (RedisError, OSError) as exc:
        logger.warning("redis_unavailable", error=str(exc))

    yield

    await get_analysis_client().close()
    await close_db()
    await close_redis()
    logger.info("web_stopped")


app = FastAPI(
    title="SafePool API",
    description="Pool drowning-detection alerts",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if not config.is_production() else None,
    redoc_url="/redoc" if not config.is_production() else None,
)

if config.CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(SafePoolError)
async def safepool_error_handler(request: Request, exc: SafePoolError) -> JSONResponse:
    """Render expected failures as {"error": message}."""
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


app.include_router(api_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "web",
        "version": "1.0.0",
    }


def main():
    """Main entry point."""
    import uvicorn

    uvicorn.run(
        "safepool.web.main:app",
        host=config.HOST,
        port=config.PORT,
        reload=not config.is_production(),
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
