"""Configuration management for FluidFlow."""

import sys
from typing import Optional

from loguru import logger
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FluidFlowSettings(BaseSettings):
    """FluidFlow application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Prediction backend
    backend_url: str = Field(
        "http://localhost:8000",
        validation_alias=AliasChoices("backend_url", "next_public_backend_url"),
        description="Base URL of the PINN prediction backend"
    )
    request_timeout: float = Field(60.0, description="Timeout for backend requests in seconds")

    # OpenAI Configuration
    openai_api_key: Optional[str] = Field(None, description="OpenAI API key")
    explanation_provider: str = Field("langchain", description="Explanation provider: langchain or openai")
    explanation_model: str = Field("gpt-4o-mini", description="Chat model used for loss explanations")
    image_model: str = Field("dall-e-3", description="Image model used for initial conditions")
    image_size: str = Field("1024x1024", description="Size of generated initial condition images")

    # Grid Configuration
    grid_width: int = Field(32, gt=0, description="Boundary condition grid width in cells")
    grid_height: int = Field(24, gt=0, description="Boundary condition grid height in cells")

    # Server Configuration
    api_host: str = Field("0.0.0.0", description="Control panel bind address")
    api_port: int = Field(9002, description="Control panel port")

    # Application Configuration
    log_level: str = Field("INFO", description="Logging level")
    debug: bool = Field(False, description="Enable debug mode")

    def get_predict_url(self) -> str:
        """Get the full prediction endpoint URL."""
        return f"{self.backend_url.rstrip('/')}/predict"

    def is_configured(self) -> bool:
        """Check if the AI services can be used."""
        return bool(self.openai_api_key)

    def get_configuration_status(self) -> dict:
        """Get detailed configuration status."""
        return {
            "backend_url": self.backend_url,
            "openai_api_key": bool(self.openai_api_key),
            "explanation_provider": self.explanation_provider,
            "grid": f"{self.grid_width}x{self.grid_height}",
            "debug_mode": self.debug,
        }


# Global settings instance
_settings: Optional[FluidFlowSettings] = None


def get_settings() -> FluidFlowSettings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = FluidFlowSettings()
    return _settings


def reset_settings() -> None:
    """Reset the global settings instance (mainly for testing)."""
    global _settings
    _settings = None


def configure_logging(settings: Optional[FluidFlowSettings] = None) -> None:
    """Route loguru output to stderr at the configured level."""
    settings = settings or get_settings()
    level = "DEBUG" if settings.debug else settings.log_level.upper()
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} - {name} - {level} - {message}"
    )
