from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings pulled from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SCREE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="plain", description="Logging format (plain or json)")

    # Generation Configuration
    max_workers: int = Field(
        default=0,
        ge=0,
        description="Number of worker threads, 0 uses all hardware contexts",
    )
    random_seed: int = Field(default=0, description="Seed for stone placement")
    isolate_dither_grids: bool = Field(
        default=False,
        description="Give every polygon private copies of the dither grids",
    )


# Instantiate singleton settings object
settings = Settings()
