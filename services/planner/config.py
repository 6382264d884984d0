"""
Application configuration via pydantic-settings.
All config read from environment variables with sensible defaults for local dev.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    app_name: str = "trip-planner-api"
    app_version: str = "0.1.0"
    environment: str = Field(default="development", pattern=r"^(development|staging|production)$")
    debug: bool = False
    log_level: str = Field(default="INFO", pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    # CORS
    cors_origins: list[str] = Field(default=["http://localhost:3000"])

    # Sentry
    sentry_dsn: str = ""
    sentry_traces_sample_rate: float = Field(default=0.1, ge=0.0, le=1.0)

    # Persistence
    persistence_backend: str = Field(default="file", pattern=r"^(file|redis)$")
    data_dir: str = "data"
    max_backups: int = Field(default=10, ge=1)

    # Redis (only used when persistence_backend == "redis")
    redis_url: str = "redis://localhost:6379/0"
    redis_store_key: str = "trip-planner:store"

    # Weather source (WeatherAPI.com forecast.json). Mock data by default.
    weather_use_mock: bool = True
    weather_api_key: str = ""
    weather_api_base_url: str = "https://api.weatherapi.com/v1"
    weather_api_timeout_s: float = 10.0
    weather_forecast_days: int = Field(default=5, ge=1, le=14)

    # Source-side fixed window rate limit
    weather_rate_limit_requests: int = Field(default=10, ge=1)
    weather_rate_limit_window_s: float = Field(default=60.0, gt=0.0)

    # Weather cache
    weather_cache_ttl_s: float = Field(default=30 * 60, gt=0.0)
    weather_cache_sweep_threshold: int = Field(default=10, ge=0)
    # None = stale entries are served as a fallback no matter how old
    weather_max_stale_s: float | None = None

    # Mock source behaviour
    weather_mock_failure_rate: float = Field(default=0.1, ge=0.0, le=1.0)
    weather_mock_min_latency_s: float = Field(default=0.5, ge=0.0)
    weather_mock_max_latency_s: float = Field(default=1.5, ge=0.0)

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore"}


settings = Settings()
