from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

from pydantic import Field, validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central application configuration parsed from environment variables."""

    api_host: str = Field("0.0.0.0", description="Host interface for the API server.")
    api_port: int = Field(8080, description="Port for the API server.")
    api_token: str = Field("changeme", description="Bearer token required for API access.")

    database_url: str = Field(
        "sqlite:///./data/product_imager.db", description="SQL database URL for the local settings store."
    )
    export_root: Path = Field(Path("./exports"), description="Directory where the batch runner writes exports.")

    gemini_api_key: Optional[str] = Field(None, description="API key for the Gemini image model.")
    image_model: str = Field("gemini-2.5-flash-image", description="Image generation model name.")
    require_api_key: bool = Field(
        True,
        description="Require a configured image API key before processing. Disable to always treat "
        "the image backend as authorized.",
    )

    pickup_delay_seconds: Annotated[float, Field(ge=0)] = Field(
        10.0, description="Delay after each automatically processed item before the next pickup."
    )
    upload_timeout_seconds: Optional[float] = Field(
        60.0,
        description="Maximum number of seconds a blob upload may take. Set to 0 to disable.",
    )
    log_level: str = Field("INFO", description="Root log level for the API server and batch runner.")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "PIG_"

    @validator("export_root", pre=True)
    def expand_export_root(cls, value: Path) -> Path:
        """Expand user and environment variables for export paths."""
        return Path(value).expanduser().resolve()

    @validator("upload_timeout_seconds", pre=True)
    def normalize_upload_timeout(cls, value: Optional[float]) -> Optional[float]:
        """Interpret falsy values as disabling timeouts."""
        if value in (None, "", "None", 0, "0"):
            return None
        return float(value)

    @validator("gemini_api_key", pre=True)
    def normalize_api_key(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = str(value).strip()
        return value or None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance to avoid reparsing the environment."""
    return Settings()


settings = get_settings()
