"""
Main FastAPI application for the Odds Edge API.
"""
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from oddsedge.api.routes import analysis, cron, featured, games
from oddsedge.core import metrics
from oddsedge.core.config import settings
from oddsedge.core.database import get_db, init_db
from oddsedge.core.logging import configure_logging, get_logger
from oddsedge.core.middleware import CorrelationIdMiddleware
from oddsedge.services.core.circuit_breaker import get_breaker_state, odds_api_breaker

env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = get_logger(__name__)


def get_rate_limit_key(request: Request) -> str:
    """Client IP, honouring X-Forwarded-For behind a proxy."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_rate_limit_key,
    default_limits=["60/minute"],
    storage_uri=settings.REDIS_URL if settings.RATE_LIMIT_STORAGE == "redis" else "memory://",
    enabled=settings.RATE_LIMIT_ENABLED,
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan events."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    init_db()

    if settings.SCHEDULER_ENABLED:
        from oddsedge.core.scheduler import start_scheduler
        await start_scheduler()
        logger.info("Collection scheduler started")
    metrics.update_scheduler_metrics()

    yield

    if settings.SCHEDULER_ENABLED:
        from oddsedge.core.scheduler import stop_scheduler
        await stop_scheduler()
        logger.info("Collection scheduler stopped")
    logger.info("Shutting down application")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Sportsbook odds collection with no-vig edge analysis and daily featured picks",
    lifespan=lifespan,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(CorrelationIdMiddleware)

# Instrument before routes are registered
instrumentator = Instrumentator()
instrumentator.instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(cron.router, prefix="/api/v1")
app.include_router(games.router, prefix="/api/v1")
app.include_router(analysis.router, prefix="/api/v1")
app.include_router(featured.router, prefix="/api/v1")


@app.get("/")
@limiter.limit("60/minute")
async def root(request: Request):
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "endpoints": {
            "api_version": "v1",
            "cron_run": "/api/v1/cron/run",
            "cron_status": "/api/v1/cron/status",
            "collect": "/api/v1/collect",
            "games": "/api/v1/games",
            "prop_market": "/api/v1/analysis/prop-market",
            "featured_picks": "/api/v1/featured-picks",
            "docs": "/docs",
            "health": "/health",
        },
    }


@app.get("/health")
@limiter.limit("120/minute")
async def health_check(request: Request, db: Session = Depends(get_db)):
    """Health check with database and odds feed breaker state."""
    health_status = {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "checks": {"odds_api_breaker": get_breaker_state(odds_api_breaker)},
    }
    status_code = 200
    try:
        db.execute(text("SELECT 1"))
        health_status["checks"]["database"] = "ok"
    except SQLAlchemyError as e:
        logger.error(f"Health check database error: {e}")
        health_status["checks"]["database"] = "error"
        health_status["status"] = "unhealthy"
        status_code = 503
    return JSONResponse(status_code=status_code, content=health_status)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": str(exc)},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("oddsedge.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
