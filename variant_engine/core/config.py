"""
Core configuration and settings for the Variant Engine
Following FastAPI best practices for configuration management
"""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    """Application configuration with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Allow extra fields to be ignored
    )

    # Service information
    service_name: str = Field(default="variant-engine")
    service_version: str = Field(default="1.0.0")
    environment: str = Field(default="development")

    # Server configuration
    port: int = Field(default=8005)
    host: str = Field(default="0.0.0.0")

    # Database configuration
    mongodb_host: str = Field(default="localhost")
    mongodb_port: int = Field(default=27017)
    mongodb_username: Optional[str] = Field(default=None)
    mongodb_password: Optional[str] = Field(default=None)
    mongodb_database: str = Field(default="catalogdb")
    mongodb_auth_source: str = Field(default="admin")

    @property
    def mongodb_url(self) -> str:
        """Construct MongoDB connection URL"""
        if self.mongodb_username and self.mongodb_password:
            return (
                f"mongodb://{self.mongodb_username}:{self.mongodb_password}"
                f"@{self.mongodb_host}:{self.mongodb_port}/{self.mongodb_database}"
                f"?authSource={self.mongodb_auth_source}"
            )
        return f"mongodb://{self.mongodb_host}:{self.mongodb_port}/{self.mongodb_database}"

    # Logging configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")
    log_to_file: bool = Field(default=False)
    log_to_console: bool = Field(default=True)
    log_file_path: str = Field(default="logs/variant-engine.log")

    correlation_id_header: str = Field(default="X-Correlation-ID")

    # Dapr configuration
    dapr_http_port: int = Field(default=3500)
    dapr_pubsub_name: str = Field(default="catalog-pubsub")
    events_enabled: bool = Field(default=True)

    enable_tracing: bool = Field(default=True)

    # Variant generation guardrails
    max_variant_axes: int = Field(default=7, ge=1)
    max_values_per_axis: int = Field(default=50, ge=1)
    max_combinations: int = Field(default=5000, ge=1)
    sku_max_attempts: int = Field(default=5, ge=1)
    sku_suffix_length: int = Field(default=4, ge=2, le=16)

    # Inventory
    default_low_stock_threshold: int = Field(default=10, ge=0)
    history_default_limit: int = Field(default=50, ge=1)
    history_max_limit: int = Field(default=500, ge=1)

    # Reservation expiry
    reservation_ttl_seconds: int = Field(default=1800, ge=0)
    reservation_sweep_enabled: bool = Field(default=True)
    reservation_sweep_interval_seconds: int = Field(default=300, ge=1)
    reservation_sweep_batch_size: int = Field(default=500, ge=1)

    # Generation above this duration is logged as slow
    generation_slow_ms: int = Field(default=2000, ge=1)


# Global config instance
config = Config()
