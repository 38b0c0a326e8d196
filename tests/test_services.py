"""Tests for the explanation and image-generation providers and their actions."""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from fluidflow.actions import (
    ANALYSIS_FAILED_MESSAGE,
    EMPTY_PROMPT_MESSAGE,
    IMAGE_FAILED_MESSAGE,
    build_explanation_request,
    handle_explain_discrepancies,
    handle_generate_initial_conditions,
)
from fluidflow.errors import ExplanationError, ImageGenerationError, ServiceConfigurationError
from fluidflow.geometry import rasterize_shape
from fluidflow.services import (
    LangChainExplanationService,
    OpenAIExplanationService,
    OpenAIImageGenerationService,
    create_explanation_service,
    create_image_service,
)
from fluidflow.services.explanation import build_prompt_variables
from fluidflow.state import MOCK_LOSS_DATA, GeometryType, SimulationParameters

from conftest import FakeExplanationService, FakeImageService


@pytest.fixture
def request_record():
    geometry = rasterize_shape(GeometryType.CYLINDER, 32, 24)
    return build_explanation_request(SimulationParameters(), geometry, GeometryType.CYLINDER)


def chat_response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def test_explanation_request_carries_digest_and_descriptions(request_record):
    geometry = rasterize_shape(GeometryType.CYLINDER, 32, 24)

    assert request_record.loss_data == MOCK_LOSS_DATA
    assert request_record.historical_flow_states == geometry.digest()
    params = request_record.simulation_parameters
    assert params.reynolds_number == 200.0
    assert params.geometry == "Cylinder obstacle on a 32x24 grid"
    assert params.boundary_conditions.startswith("Defined by geometry map")


def test_prompt_variables_list_every_loss_term(request_record):
    variables = build_prompt_variables(request_record)

    for name, value in MOCK_LOSS_DATA.items():
        assert f" - {name}: {value}" in variables["loss_lines"]
    assert variables["historical_flow_states"] == request_record.historical_flow_states


def test_langchain_provider_parses_structured_output(request_record):
    llm = FakeListChatModel(responses=[json.dumps({"explanation": "Continuity loss is well satisfied."})])

    explanation = LangChainExplanationService(llm).explain(request_record)

    assert explanation == "Continuity loss is well satisfied."


@pytest.mark.parametrize("reply", [
    json.dumps({"explanation": "   "}),
    "this is not json",
])
def test_langchain_provider_failures(request_record, reply):
    llm = FakeListChatModel(responses=[reply])

    with pytest.raises(ExplanationError):
        LangChainExplanationService(llm).explain(request_record)


def test_openai_provider_sends_template(request_record):
    client = MagicMock()
    client.chat.completions.create.return_value = chat_response("Momentum terms are balanced.")

    explanation = OpenAIExplanationService(client, model="gpt-4o-mini").explain(request_record)

    assert explanation == "Momentum terms are balanced."
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    user_message = kwargs["messages"][1]["content"]
    assert "Reynolds Number: 200.0" in user_message
    assert request_record.historical_flow_states in user_message


def test_openai_provider_unwraps_json_reply(request_record):
    client = MagicMock()
    client.chat.completions.create.return_value = chat_response('{"explanation": "Reduce the adversarial weight."}')

    assert OpenAIExplanationService(client).explain(request_record) == "Reduce the adversarial weight."


@pytest.mark.parametrize("response", [chat_response(""), chat_response(None), SimpleNamespace(choices=[])])
def test_openai_provider_empty_completion(request_record, response):
    client = MagicMock()
    client.chat.completions.create.return_value = response

    with pytest.raises(ExplanationError):
        OpenAIExplanationService(client).explain(request_record)


def test_openai_provider_error_is_wrapped(request_record):
    client = MagicMock()
    client.chat.completions.create.side_effect = RuntimeError("rate limited")

    with pytest.raises(ExplanationError, match="rate limited"):
        OpenAIExplanationService(client).explain(request_record)


def test_explain_action_success():
    service = FakeExplanationService("Looks physical.")
    geometry = rasterize_shape(GeometryType.CUSTOM, 32, 24)

    result = handle_explain_discrepancies(SimulationParameters(), geometry, service=service)

    assert result.ok
    assert result.data == "Looks physical."
    assert service.requests[0].simulation_parameters.geometry == "Custom user-defined grid"


@pytest.mark.parametrize("text", ["", None])
def test_explain_action_empty_completion_is_generic_failure(text):
    geometry = rasterize_shape(GeometryType.CUSTOM, 32, 24)

    result = handle_explain_discrepancies(SimulationParameters(), geometry, service=FakeExplanationService(text))

    assert result.error == ANALYSIS_FAILED_MESSAGE


def test_explain_action_provider_crash_is_generic_failure():
    service = MagicMock()
    service.explain.side_effect = KeyError("boom")
    geometry = rasterize_shape(GeometryType.CUSTOM, 32, 24)

    result = handle_explain_discrepancies(SimulationParameters(), geometry, service=service)

    assert result.error == ANALYSIS_FAILED_MESSAGE


def test_explain_action_without_configuration():
    geometry = rasterize_shape(GeometryType.CUSTOM, 32, 24)
    with patch("fluidflow.actions.create_explanation_service",
               side_effect=ServiceConfigurationError("OPENAI_API_KEY environment variable is required")):
        result = handle_explain_discrepancies(SimulationParameters(), geometry)

    assert result.error == ANALYSIS_FAILED_MESSAGE


def test_explain_action_rejects_malformed_geometry():
    result = handle_explain_discrepancies(
        SimulationParameters(), {"cells": [["fluid"], ["lava"]]}, service=FakeExplanationService()
    )

    assert result.error == "Invalid simulation state provided."


def test_openai_image_provider_returns_data_uri():
    client = MagicMock()
    client.images.generate.return_value = SimpleNamespace(data=[SimpleNamespace(b64_json="CC==", url=None)])

    image = OpenAIImageGenerationService(client, model="dall-e-3").generate("A vortex in the centre")

    assert image == "data:image/png;base64,CC=="
    kwargs = client.images.generate.call_args.kwargs
    assert "A vortex in the centre" in kwargs["prompt"]
    assert "velocity and pressure fields" in kwargs["prompt"]


def test_openai_image_provider_falls_back_to_url():
    client = MagicMock()
    client.images.generate.return_value = SimpleNamespace(
        data=[SimpleNamespace(b64_json=None, url="https://images.test/1.png")]
    )

    assert OpenAIImageGenerationService(client).generate("Laminar flow") == "https://images.test/1.png"


def test_openai_image_provider_without_media():
    client = MagicMock()
    client.images.generate.return_value = SimpleNamespace(data=[])

    with pytest.raises(ImageGenerationError):
        OpenAIImageGenerationService(client).generate("Laminar flow")


def test_initial_conditions_action():
    service = FakeImageService()

    assert handle_generate_initial_conditions("Laminar flow from left to right", service).data == service.image_ref
    assert handle_generate_initial_conditions("   ", service).error == EMPTY_PROMPT_MESSAGE
    assert handle_generate_initial_conditions("Vortex", FakeImageService(None)).error == IMAGE_FAILED_MESSAGE
    assert len(service.prompts) == 1


def test_factories_require_an_api_key(settings):
    with pytest.raises(ServiceConfigurationError):
        create_explanation_service(settings)
    with pytest.raises(ServiceConfigurationError):
        create_image_service(settings)


def test_factory_rejects_unknown_provider(settings):
    settings = settings.model_copy(update={"openai_api_key": "sk-test", "explanation_provider": "oracle"})

    with pytest.raises(ServiceConfigurationError, match="oracle"):
        create_explanation_service(settings)


@pytest.mark.parametrize("provider,expected", [
    ("langchain", LangChainExplanationService),
    ("openai", OpenAIExplanationService),
])
def test_factory_builds_configured_provider(settings, provider, expected):
    settings = settings.model_copy(update={"openai_api_key": "sk-test", "explanation_provider": provider})

    assert isinstance(create_explanation_service(settings), expected)
