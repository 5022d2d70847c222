from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "CatchTrain API"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    # CORS: "*" for dev; in production set to comma-separated origins
    cors_origins: str = "*"
    rate_limit: str = "100/minute"

    # Upstream keys
    tfl_app_key: str = ""  # TfL Unified API key (api-portal.tfl.gov.uk)
    google_maps_api_key: str = ""  # Directions API key; /route returns 503 without it
    openweather_api_key: str = ""  # Optional; weather speed factor defaults to 1.0 without it

    # Upstream HTTP behaviour
    http_timeout_seconds: float = 10.0
    http_retry_attempts: int = 3

    # Journey engine
    progress_tick_seconds: float = 1.0
    arrivals_refresh_seconds: float = 3.0
    catch_window_size: int = 5
    station_to_platform_seconds: float = 120.0
    min_valid_speed_mps: float = 0.5


def get_settings() -> Settings:
    return Settings()
