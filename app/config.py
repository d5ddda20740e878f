"""
Application configuration using Pydantic settings.
"""
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application Settings
    app_name: str = Field(
        default="Field NDVI Service",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    debug: bool = Field(
        default=False,
        description="Debug mode"
    )
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=3000, description="Bind port")

    # Document Store
    mongodb_uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection string"
    )
    mongodb_database: str = Field(
        default="agri_fields",
        description="MongoDB database name"
    )
    mongodb_server_selection_timeout_ms: int = Field(
        default=10000,
        description="Server selection timeout for the MongoDB client"
    )
    hard_delete: bool = Field(
        default=False,
        description="Treat every DELETE as a hard delete"
    )

    # Upstream Services
    stac_api_url: str = Field(
        default="https://earth-search.aws.element84.com/v1",
        description="STAC API root used for scene search"
    )
    stac_collection: str = Field(
        default="sentinel-2-l2a",
        description="STAC collection searched for scenes"
    )
    titiler_url: str = Field(
        default="http://localhost:8000",
        description="TiTiler base URL for tiles, previews and statistics"
    )
    http_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for upstream HTTP calls"
    )

    # Retry Configuration (transport errors only, HTTP statuses are never retried)
    max_retry_attempts: int = Field(
        default=1,
        description="Maximum number of attempts for an upstream call"
    )
    retry_backoff_multiplier: int = Field(
        default=1,
        description="Multiplier for exponential backoff"
    )
    retry_min_wait: int = Field(
        default=1,
        description="Minimum wait time in seconds between retries"
    )
    retry_max_wait: int = Field(
        default=10,
        description="Maximum wait time in seconds between retries"
    )

    # NDVI Parameters
    ndvi_default_days: int = Field(
        default=10,
        description="Default recency window in days for scene search"
    )
    ndvi_max_days: int = Field(
        default=120,
        description="Upper bound for the requested recency window"
    )
    ndvi_default_cloud: int = Field(
        default=70,
        description="Default maximum cloud cover percentage"
    )
    preview_default_size: int = Field(default=768, description="Preview edge in pixels")
    preview_min_size: int = Field(default=256, description="Smallest preview edge")
    preview_max_size: int = Field(default=2048, description="Largest preview edge")
    preview_bbox_padding: float = Field(
        default=0.001,
        description="Margin in degrees added around the field bbox for previews"
    )
    ndvi_colormap: str = Field(default="rdylgn", description="TiTiler colormap name")
    ndvi_resampling: str = Field(default="nearest", description="TiTiler resampling method")

    # Admin / Ingest
    admin_token: str = Field(
        default="",
        description="Shared token for admin routes (empty disables them)"
    )
    ingest_delay_seconds: float = Field(
        default=0.5,
        description="Pause between fields during an ingest sweep"
    )

    # Browser client bootstrap
    google_maps_api_key: str = Field(default="", description="Maps key handed to the UI")
    external_api_base: str = Field(
        default="",
        description="API base URL handed to the UI (defaults to this server)"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # CORS Configuration
    cors_origins: list[str] = Field(
        default=[
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:8080",
            "http://127.0.0.1:8080",
        ],
        description="Allowed CORS origins"
    )

    # Rate Limiting
    rate_limit_enabled: bool = Field(
        default=True,
        description="Enable per-client rate limiting on the NDVI proxy routes"
    )
    rate_limit_requests: int = Field(
        default=100,
        description="Maximum requests per minute per client"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
