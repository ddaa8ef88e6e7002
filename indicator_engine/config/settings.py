"""
Indicator Engine
Centralized Configuration Management

Pydantic settings with environment variable support, validation, and type safety.
The business heuristics used by the indicator calculators live in
``EngineSettings`` so they can be overridden per deployment without code changes.
"""

from functools import lru_cache
from typing import Optional, List
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """PostgreSQL Database Configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="indicators", alias="database", description="Database name")
    user: str = Field(default="indicators", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    pool_size: int = Field(default=20, description="Connection pool size")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(default=None, alias="DATABASE_URL", description="Full async URL (overrides host/port)")

    @property
    def async_url(self) -> str:
        """Async database URL - uses DATABASE_URL if set, otherwise asyncpg from host/port"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class SecuritySettings(BaseSettings):
    """HTTP Surface Security Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", description="Log format: json or text")


class EngineSettings(BaseSettings):
    """
    Indicator Engine Heuristics

    The ratios below are business approximations, not derived values.
    Change them only with explicit product input.
    """

    model_config = SettingsConfigDict(env_prefix="INDICATOR_")

    # Cross-source attribution
    organic_attribution_rate: float = Field(
        default=0.35,
        description="Share of orders attributed to organic search clicks"
    )
    traffic_conversion_rate: float = Field(
        default=0.02,
        description="Estimated conversion rate used for traffic-based revenue at risk"
    )

    # Margin
    default_cost_ratio: float = Field(
        default=0.6,
        description="Cost assumed as a share of revenue when no unit cost is on file"
    )
    estimated_margin_percent: float = Field(
        default=40.0,
        description="Margin surfaced when no line item has a known cost"
    )

    # Search
    brand_keywords: List[str] = Field(
        default=["billackering", "billäckering", "billack", "bilspray"],
        description="Substrings marking a search query as brand traffic"
    )
    high_traffic_clicks: int = Field(default=50, description="Clicks for a page to count as high traffic")

    # Inventory
    default_min_stock: int = Field(default=5, description="Minimum stock when a product has none on file")
    min_organic_clicks: int = Field(default=5, description="Organic clicks needed to assess stock-out risk")

    # Classification
    confidence_high_floor: int = Field(default=30, description="Sample size for high confidence")
    confidence_medium_floor: int = Field(default=10, description="Sample size for medium confidence")
    stability_threshold: float = Field(default=0.5, description="Stable band for percent changes")
    margin_stability_threshold: float = Field(default=1.0, description="Stable band for percentage-point changes")

    currency: str = Field(default="SEK", description="Currency used when orders carry none")

    @field_validator("organic_attribution_rate", "traffic_conversion_rate", "default_cost_ratio")
    @classmethod
    def validate_ratio(cls, v: float) -> float:
        """Ratios must be a fraction in (0, 1]"""
        if not 0 < v <= 1:
            raise ValueError("Ratio must be within (0, 1]")
        return v

    @field_validator("brand_keywords")
    @classmethod
    def normalize_keywords(cls, v: List[str]) -> List[str]:
        """Lowercase and drop blank keywords"""
        return [keyword.strip().lower() for keyword in v if keyword.strip()]


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="indicator-engine", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
