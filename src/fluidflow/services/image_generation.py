"""Image Generation Service - Renders initial flow conditions from a text prompt."""

from abc import ABC, abstractmethod
from typing import Optional

from loguru import logger

from ..errors import ImageGenerationError
from ..prediction_client import to_data_uri

INITIAL_CONDITIONS_TEMPLATE = (
    "You are an expert in computational fluid dynamics. Generate an image that visually represents "
    "the initial conditions for a fluid flow simulation based on the following description: {prompt}. "
    "The image should clearly show the velocity and pressure fields."
)


def build_image_prompt(description: str) -> str:
    return INITIAL_CONDITIONS_TEMPLATE.format(prompt=description.strip())


class ImageGenerationService(ABC):
    """Image generation from a free-text description."""

    name = "base"

    def generate(self, description: str) -> str:
        """
        Generate an image of the described initial fluid state.

        Returns:
            A data URI, or the URL the provider hosts the image at.

        Raises:
            ImageGenerationError: If the provider fails or returns no image.
        """
        logger.info(f"Image Service ({self.name}): generating initial conditions image")
        try:
            image_ref = self._generate(build_image_prompt(description))
        except ImageGenerationError:
            raise
        except Exception as e:
            logger.error(f"Image Service ({self.name}) error: {str(e)}")
            raise ImageGenerationError(f"Image provider failed: {str(e)}") from e

        if not image_ref:
            raise ImageGenerationError("Failed to generate initial condition image.")
        return image_ref

    @abstractmethod
    def _generate(self, prompt: str) -> Optional[str]:
        """Run one provider round trip and return an image reference."""


class OpenAIImageGenerationService(ImageGenerationService):
    """Image generation through the OpenAI images API."""

    name = "openai"

    def __init__(self, client, model: str = "dall-e-3", size: str = "1024x1024"):
        self.client = client
        self.model = model
        self.size = size

    @classmethod
    def from_settings(cls, api_key: str, model: str, size: str) -> "OpenAIImageGenerationService":
        import openai

        return cls(openai.OpenAI(api_key=api_key), model=model, size=size)

    def _generate(self, prompt: str) -> Optional[str]:
        response = self.client.images.generate(
            model=self.model,
            prompt=prompt,
            size=self.size,
            n=1,
            response_format="b64_json"
        )
        if not response.data:
            return None
        image = response.data[0]
        if getattr(image, "b64_json", None):
            return to_data_uri(image.b64_json)
        return getattr(image, "url", None)
