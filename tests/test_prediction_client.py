"""Tests for the prediction backend client and the generate-flow action."""

from unittest.mock import MagicMock

import pytest
import requests

from fluidflow.actions import INVALID_PARAMETERS_MESSAGE, handle_generate_flow
from fluidflow.errors import PredictionError
from fluidflow.prediction_client import (
    BACKEND_UNAVAILABLE_MESSAGE,
    MISSING_IMAGES_MESSAGE,
    UNKNOWN_ERROR_MESSAGE,
    PredictionClient,
)
from fluidflow.state import SimulationParameters


def make_response(status_code=200, payload=None, json_error=False):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    if json_error:
        response.json.side_effect = ValueError("not json")
    else:
        response.json.return_value = payload
    return response


@pytest.fixture
def http_session():
    session = MagicMock()
    session.headers = {}
    return session


@pytest.fixture
def client(settings, http_session):
    return PredictionClient(settings, session=http_session)


def test_successful_prediction_yields_data_uris(client, http_session):
    http_session.post.return_value = make_response(
        payload={"streamline_image": "AA==", "pressure_image": "BB=="}
    )

    images = client.predict(SimulationParameters())

    assert images.streamline == "data:image/png;base64,AA=="
    assert images.pressure == "data:image/png;base64,BB=="


def test_request_body_and_url(client, http_session, settings):
    http_session.post.return_value = make_response(
        payload={"streamline_image": "AA==", "pressure_image": "BB=="}
    )

    client.predict(SimulationParameters(reynolds_number=100, kinematic_viscosity=1e-4, fluid_density=998))

    http_session.post.assert_called_once()
    args, kwargs = http_session.post.call_args
    assert args[0] == "http://backend.test:8000/predict"
    assert kwargs["json"] == {"reynolds": 100.0, "kinematicViscosity": 1e-4, "fluidDensity": 998.0}
    assert kwargs["timeout"] == settings.request_timeout


def test_trailing_slash_in_backend_url_is_ignored(settings, http_session):
    settings = settings.model_copy(update={"backend_url": "http://backend.test:8000/"})

    assert PredictionClient(settings, session=http_session).predict_url == "http://backend.test:8000/predict"


def test_server_error_detail_becomes_the_message(client, http_session):
    http_session.post.return_value = make_response(500, {"detail": "boom"})

    with pytest.raises(PredictionError, match="^boom$"):
        client.predict(SimulationParameters())


def test_non_json_error_body(client, http_session):
    http_session.post.return_value = make_response(503, json_error=True)

    with pytest.raises(PredictionError) as excinfo:
        client.predict(SimulationParameters())
    assert str(excinfo.value) == UNKNOWN_ERROR_MESSAGE


def test_error_without_detail_reports_status(client, http_session):
    http_session.post.return_value = make_response(502, {"error": "bad gateway"})

    with pytest.raises(PredictionError) as excinfo:
        client.predict(SimulationParameters())
    assert str(excinfo.value) == "Request failed with status 502"


@pytest.mark.parametrize("payload", [
    {"streamline_image": "AA=="},
    {"pressure_image": "BB=="},
    {"streamline_image": "", "pressure_image": "BB=="},
    {},
    ["AA==", "BB=="],
])
def test_missing_images_are_a_failure(client, http_session, payload):
    http_session.post.return_value = make_response(payload=payload)

    with pytest.raises(PredictionError) as excinfo:
        client.predict(SimulationParameters())
    assert str(excinfo.value) == MISSING_IMAGES_MESSAGE


def test_connection_failure(client, http_session):
    http_session.post.side_effect = requests.ConnectionError("refused")

    with pytest.raises(PredictionError) as excinfo:
        client.predict(SimulationParameters())
    assert str(excinfo.value) == BACKEND_UNAVAILABLE_MESSAGE


def test_no_retry_on_failure(client, http_session):
    http_session.post.return_value = make_response(500, {"detail": "boom"})

    with pytest.raises(PredictionError):
        client.predict(SimulationParameters())
    assert http_session.post.call_count == 1


def test_generate_flow_action_success(client, http_session):
    http_session.post.return_value = make_response(
        payload={"streamline_image": "AA==", "pressure_image": "BB=="}
    )

    result = handle_generate_flow(SimulationParameters(), client)

    assert result.ok
    assert result.data.model_dump() == {
        "streamline": "data:image/png;base64,AA==",
        "pressure": "data:image/png;base64,BB==",
    }


def test_generate_flow_action_failure_message(client, http_session):
    http_session.post.return_value = make_response(500, {"detail": "boom"})

    result = handle_generate_flow(SimulationParameters(), client)

    assert not result.ok
    assert result.error == "boom"


@pytest.mark.parametrize("raw", [
    {"reynolds_number": "fast", "kinematic_viscosity": 0.01, "fluid_density": 1.2},
    {"reynolds_number": float("nan"), "kinematic_viscosity": 0.01, "fluid_density": 1.2},
    {"reynolds_number": 200, "kinematic_viscosity": None, "fluid_density": 1.2},
])
def test_invalid_parameters_never_reach_the_backend(client, http_session, raw):
    result = handle_generate_flow(raw, client)

    assert result.error == INVALID_PARAMETERS_MESSAGE
    http_session.post.assert_not_called()
