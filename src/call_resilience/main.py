"""
FastAPI application entry point for the call-resilience service.
"""

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from call_resilience.api.dependencies import get_circuit_breaker, get_llm_client
from call_resilience.api.error_handlers import EXCEPTION_HANDLERS
from call_resilience.api.middleware import RequestTracingMiddleware
from call_resilience.api.routes import router
from call_resilience.auth.gate import AuthValidationGate
from call_resilience.breaker.sweeper import CircuitSweeper
from call_resilience.config import settings
from call_resilience.logging_config import configure_logging
from call_resilience.persistence.redis_client import RedisClient

# Configure structured logging before any other imports
configure_logging(settings.LOG_LEVEL, settings.ENVIRONMENT)
logger = structlog.get_logger(__name__)

REQUIRED_KEYS = ("OPENAI_API_KEY", "SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY")

app = FastAPI(
    title=settings.APP_NAME,
    description="Retry, circuit breaking and response normalization for outbound calls",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Request tracing middleware (must be first for request_id in all logs)
app.add_middleware(RequestTracingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

for exc_class, handler in EXCEPTION_HANDLERS.items():
    app.add_exception_handler(exc_class, handler)

app.include_router(router)

sweeper: CircuitSweeper | None = None


@app.on_event("startup")
async def startup():
    """Application startup - check configuration and start the circuit sweeper."""
    global sweeper

    logger.info(
        "Application startup",
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        circuit_store=settings.CIRCUIT_STORE_BACKEND,
        model=settings.OPENAI_MODEL,
    )

    keys = AuthValidationGate.validate_required_api_keys(
        REQUIRED_KEYS,
        {key: str(getattr(settings, key)) for key in REQUIRED_KEYS},
    )
    if not keys.is_valid:
        logger.warning("Missing required configuration", missing_keys=keys.missing_keys)

    sweeper = CircuitSweeper(get_circuit_breaker(), settings.CIRCUIT_SWEEP_INTERVAL_SECONDS)
    sweeper.start()

    logger.info("Application startup complete")


@app.on_event("shutdown")
async def shutdown():
    """Application shutdown - stop background work and release connections."""
    logger.info("Application shutdown")

    if sweeper is not None:
        await sweeper.stop()

    await get_llm_client().close()
    await RedisClient.close_async_pool()

    logger.info("Application shutdown complete")


if settings.PROMETHEUS_ENABLED:
    Instrumentator().instrument(app).expose(app)


@app.get("/")
async def root():
    """Root endpoint with API documentation links."""
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics" if settings.PROMETHEUS_ENABLED else None,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "call_resilience.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
