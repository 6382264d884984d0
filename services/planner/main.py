"""
Trip planner FastAPI service — trips CRUD plus cached destination weather.

Entrypoint: uvicorn services.planner.main:app --host 0.0.0.0 --port 8000
"""

import logging
import uuid
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from services.planner.config import settings
from services.planner.errors import PlannerError, RateLimitedError, WeatherUnavailableError
from services.planner.middleware.cors import setup_cors
from services.planner.middleware.sentry import setup_sentry
from services.planner.routers import health, trips, weather
from services.planner.storage.persistence import build_persistence
from services.planner.trips.service import TripService
from services.planner.trips.store import TripStore
from services.planner.weather.cache import WeatherCache
from services.planner.weather.service import WeatherService
from services.planner.weather.source import build_weather_source

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def _connect_redis():
    try:
        client = aioredis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
        )
        await client.ping()
        return client
    except Exception:
        logger.warning("Redis unavailable at startup; falling back to file persistence", exc_info=True)
        return None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    configure_logging(settings.log_level)
    setup_sentry()

    redis_client = None
    persistence_settings = settings
    if settings.persistence_backend == "redis":
        redis_client = await _connect_redis()
        if redis_client is None:
            persistence_settings = settings.model_copy(update={"persistence_backend": "file"})

    persistence = build_persistence(persistence_settings, redis=redis_client)

    # The in-memory store is the source of truth; an unreadable mirror
    # means starting empty, not refusing to boot.
    try:
        store = await persistence.load()
    except PlannerError:
        logger.exception("Failed to load persisted store; starting with an empty store")
        store = TripStore()

    weather_service = WeatherService(
        source=build_weather_source(settings),
        cache=WeatherCache(
            ttl_seconds=settings.weather_cache_ttl_s,
            sweep_threshold=settings.weather_cache_sweep_threshold,
        ),
        store=store,
        max_stale_seconds=settings.weather_max_stale_s,
    )
    weather_service.seed_from_store(store)

    app.state.settings = settings
    app.state.redis = redis_client
    app.state.persistence = persistence
    app.state.trip_service = TripService(store=store, persistence=persistence)
    app.state.weather_service = weather_service

    logger.info("Loaded %d trips, %d cached weather locations", len(store.trips), len(store.weather))

    yield

    if redis_client:
        await redis_client.aclose()


app = FastAPI(
    title="Trip Planner API",
    version=settings.app_version,
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url=None,
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(trips.router)
app.include_router(weather.router)

# CORS (needs to be outermost to handle preflight)
setup_cors(app)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next) -> Response:
    request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", str(uuid.uuid4()))


# -- Exception Handlers --

@app.exception_handler(PlannerError)
async def planner_error_handler(request: Request, exc: PlannerError) -> JSONResponse:
    status = exc.status_code
    error = {
        "code": exc.code.value,
        "message": exc.message if status < 500 else exc.user_message,
    }
    details = exc.details()
    if details:
        error["details"] = details

    headers = {}
    rate_limited = exc.cause if isinstance(exc, WeatherUnavailableError) else exc
    if isinstance(rate_limited, RateLimitedError):
        headers["Retry-After"] = str(rate_limited.retry_after_seconds)

    if status >= 500:
        logger.error("%s on %s %s: %s", exc.code.value, request.method, request.url.path, exc.message)

    return JSONResponse(
        status_code=status,
        content={"success": False, "error": error, "requestId": _request_id(request)},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request body or parameters are malformed.",
                "details": details,
            },
            "requestId": _request_id(request),
        },
    )


@app.exception_handler(404)
async def not_found_handler(request: Request, exc) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={
            "success": False,
            "error": {"code": "NOT_FOUND", "message": "Resource not found."},
            "requestId": _request_id(request),
        },
    )


@app.exception_handler(500)
async def internal_error_handler(request: Request, exc) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred."},
            "requestId": _request_id(request),
        },
    )
