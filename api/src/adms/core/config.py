"""Application settings, read from the environment (and .env) via pydantic-settings."""
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration.

    Every field maps to the upper-cased environment variable of the same
    name, e.g. DATABASE_URL or MAX_PAGE_SIZE.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = "development"

    # Storage. SQLite is the default; any SQLAlchemy async URL works.
    database_url: str = "sqlite+aiosqlite:///./adms.db"
    database_pool_size: int = 20
    database_max_overflow: int = 10

    # HTTP
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: str = "http://localhost:3000"

    # Listing defaults for audit endpoints
    default_page_size: int = Field(10, ge=1)
    max_page_size: int = Field(50, ge=1)

    log_level: str = "INFO"
    log_format: str = "json"

    otel_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    otel_service_name: str = "adms-api"

    @model_validator(mode="after")
    def _page_sizes_consistent(self) -> "Settings":
        if self.default_page_size > self.max_page_size:
            raise ValueError(
                f"DEFAULT_PAGE_SIZE ({self.default_page_size}) exceeds "
                f"MAX_PAGE_SIZE ({self.max_page_size})"
            )
        return self

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def is_sqlite(self) -> bool:
        """SQLite engines take no queue pool sizing arguments."""
        return self.database_url.startswith("sqlite")


settings = Settings()
