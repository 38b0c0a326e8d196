"""Generative-AI services behind provider-neutral interfaces."""

from typing import Optional

from ..config import FluidFlowSettings, get_settings
from ..errors import ServiceConfigurationError
from .explanation import (
    ExplanationParameters,
    ExplanationRequest,
    ExplanationService,
    LangChainExplanationService,
    OpenAIExplanationService,
)
from .image_generation import ImageGenerationService, OpenAIImageGenerationService

EXPLANATION_PROVIDERS = {
    "langchain": LangChainExplanationService,
    "openai": OpenAIExplanationService,
}


def _require_api_key(settings: FluidFlowSettings) -> str:
    if not settings.openai_api_key:
        raise ServiceConfigurationError("OPENAI_API_KEY environment variable is required")
    return settings.openai_api_key


def create_explanation_service(settings: Optional[FluidFlowSettings] = None) -> ExplanationService:
    """Build the explanation provider named in the settings."""
    settings = settings or get_settings()
    provider = settings.explanation_provider.lower()
    if provider not in EXPLANATION_PROVIDERS:
        raise ServiceConfigurationError(
            f"Unknown explanation provider '{settings.explanation_provider}'. "
            f"Choose one of: {', '.join(EXPLANATION_PROVIDERS)}"
        )
    return EXPLANATION_PROVIDERS[provider].from_settings(
        api_key=_require_api_key(settings),
        model=settings.explanation_model
    )


def create_image_service(settings: Optional[FluidFlowSettings] = None) -> ImageGenerationService:
    settings = settings or get_settings()
    return OpenAIImageGenerationService.from_settings(
        api_key=_require_api_key(settings),
        model=settings.image_model,
        size=settings.image_size
    )


__all__ = [
    "ExplanationParameters",
    "ExplanationRequest",
    "ExplanationService",
    "LangChainExplanationService",
    "OpenAIExplanationService",
    "ImageGenerationService",
    "OpenAIImageGenerationService",
    "create_explanation_service",
    "create_image_service",
]
