"""Configuration management."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings pulled from ``TERRAGEN_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TERRAGEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    max_stored_planets: int = Field(default=16, description="Generated planets kept in memory")
    max_jobs: int = Field(default=256, gt=0, description="Job records kept in memory")

    # Generation
    default_seed: str = Field(default="terragen", description="Seed used when a request has none")
    default_level: int = Field(default=4, ge=0, description="Default subdivision level")
    max_subdivision_level: int = Field(default=7, ge=0, description="Highest subdivision level accepted")
    plate_count: int = Field(default=27, gt=0, description="Plates seeded per planet")
    min_plate_fraction: int = Field(default=30, gt=0, description="Plates below num_tiles / this are merged")
    seed_attempts: int = Field(default=10000, gt=0, description="Consecutive rejected plate seeds before seeding stops")
    noise_scale: float = Field(default=200.0, description="Multiplier of the ridged elevation field")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Logging format (plain or json)")


settings = Settings()
