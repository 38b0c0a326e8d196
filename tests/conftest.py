from typing import List, Optional

import pytest

from fluidflow.config import FluidFlowSettings, reset_settings
from fluidflow.errors import PredictionError
from fluidflow.services import ExplanationRequest, ExplanationService, ImageGenerationService
from fluidflow.session import SessionStore, SimulationSession
from fluidflow.state import SimulationImages, SimulationParameters

STREAMLINE_URI = "data:image/png;base64,AA=="
PRESSURE_URI = "data:image/png;base64,BB=="


class FakePredictionClient:
    """Stands in for PredictionClient without any network."""

    def __init__(self, error: Optional[str] = None):
        self.error = error
        self.calls: List[SimulationParameters] = []
        self.on_predict = None

    def predict(self, parameters: SimulationParameters) -> SimulationImages:
        self.calls.append(parameters)
        if self.on_predict:
            self.on_predict()
        if self.error:
            raise PredictionError(self.error)
        return SimulationImages(streamline=STREAMLINE_URI, pressure=PRESSURE_URI)


class FakeExplanationService(ExplanationService):
    name = "fake"

    def __init__(self, text: Optional[str] = "Adversarial loss dominates reconstruction loss."):
        self.text = text
        self.requests: List[ExplanationRequest] = []

    def _complete(self, request):
        self.requests.append(request)
        return self.text


class FakeImageService(ImageGenerationService):
    name = "fake"

    def __init__(self, image_ref: Optional[str] = "data:image/png;base64,CC=="):
        self.image_ref = image_ref
        self.prompts: List[str] = []

    def _generate(self, prompt):
        self.prompts.append(prompt)
        return self.image_ref


@pytest.fixture(autouse=True)
def fresh_settings():
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings():
    return FluidFlowSettings(
        _env_file=None,
        backend_url="http://backend.test:8000",
        openai_api_key=None,
        grid_width=32,
        grid_height=24
    )


@pytest.fixture
def prediction_client():
    return FakePredictionClient()


@pytest.fixture
def explanation_service():
    return FakeExplanationService()


@pytest.fixture
def image_service():
    return FakeImageService()


@pytest.fixture
def session(settings, prediction_client, explanation_service, image_service):
    return SimulationSession(
        settings=settings,
        prediction_client=prediction_client,
        explanation_service=explanation_service,
        image_service=image_service
    )


@pytest.fixture
def store(settings, prediction_client, explanation_service, image_service):
    return SessionStore(
        settings=settings,
        prediction_client=prediction_client,
        explanation_service=explanation_service,
        image_service=image_service
    )
