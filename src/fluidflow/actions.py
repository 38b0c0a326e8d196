"""
Server-side actions for the FluidFlow control panel.

Each action validates its input, makes a single round trip to an external
collaborator and folds every failure into a short user-facing message. Actions
never raise: callers inspect ``ActionResult.error``.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from loguru import logger
from pydantic import ValidationError

from .errors import FluidFlowError, PredictionError
from .geometry import Geometry, describe_boundary_conditions, describe_geometry
from .prediction_client import BACKEND_UNAVAILABLE_MESSAGE, PredictionClient
from .services import (
    ExplanationParameters,
    ExplanationRequest,
    ExplanationService,
    ImageGenerationService,
    create_explanation_service,
    create_image_service,
)
from .state import MOCK_LOSS_DATA, GeometryType, SimulationImages, SimulationParameters

INVALID_PARAMETERS_MESSAGE = "Invalid simulation parameters."
INVALID_STATE_MESSAGE = "Invalid simulation state provided."
ANALYSIS_FAILED_MESSAGE = "Failed to analyze discrepancies. Please try again."
EMPTY_PROMPT_MESSAGE = "Please describe the initial conditions."
IMAGE_FAILED_MESSAGE = "Failed to generate initial condition image."


@dataclass
class ActionResult:
    """Outcome of an action: either ``data`` or an ``error`` message."""
    data: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _coerce_parameters(parameters: Union[SimulationParameters, Mapping[str, Any]]) -> SimulationParameters:
    if isinstance(parameters, SimulationParameters):
        return parameters
    return SimulationParameters.model_validate(dict(parameters))


def handle_generate_flow(parameters: Union[SimulationParameters, Mapping[str, Any]],
                         client: Optional[PredictionClient] = None) -> ActionResult:
    """Ask the prediction backend for streamline and pressure images."""
    try:
        validated = _coerce_parameters(parameters)
    except (ValidationError, TypeError, ValueError):
        return ActionResult(error=INVALID_PARAMETERS_MESSAGE)

    client = client if client is not None else PredictionClient()
    try:
        images: SimulationImages = client.predict(validated)
    except PredictionError as e:
        return ActionResult(error=str(e) or BACKEND_UNAVAILABLE_MESSAGE)
    except Exception as e:
        logger.error(f"Flow generation failed unexpectedly: {str(e)}")
        return ActionResult(error=BACKEND_UNAVAILABLE_MESSAGE)

    logger.info("Flow generated from prediction backend")
    return ActionResult(data=images)


def build_explanation_request(parameters: SimulationParameters, geometry: Geometry,
                              geometry_type: GeometryType = GeometryType.CUSTOM,
                              loss_data: Optional[Dict[str, float]] = None) -> ExplanationRequest:
    # The geometry digest stands in for the historical flow tensor
    return ExplanationRequest(
        loss_data=dict(loss_data if loss_data is not None else MOCK_LOSS_DATA),
        simulation_parameters=ExplanationParameters(
            reynolds_number=parameters.reynolds_number,
            kinematic_viscosity=parameters.kinematic_viscosity,
            fluid_density=parameters.fluid_density,
            geometry=describe_geometry(geometry, geometry_type),
            boundary_conditions=describe_boundary_conditions(geometry),
        ),
        historical_flow_states=geometry.digest(),
    )


def handle_explain_discrepancies(parameters: Union[SimulationParameters, Mapping[str, Any]],
                                 geometry: Union[Geometry, Mapping[str, Any]],
                                 service: Optional[ExplanationService] = None,
                                 geometry_type: GeometryType = GeometryType.CUSTOM,
                                 loss_data: Optional[Dict[str, float]] = None) -> ActionResult:
    """Ask the explanation provider to interpret the current loss terms."""
    try:
        validated = _coerce_parameters(parameters)
        if not isinstance(geometry, Geometry):
            geometry = Geometry.model_validate(geometry)
        request = build_explanation_request(validated, geometry, geometry_type, loss_data)
    except (ValidationError, TypeError, ValueError):
        return ActionResult(error=INVALID_STATE_MESSAGE)

    try:
        service = service if service is not None else create_explanation_service()
        explanation = service.explain(request)
    except FluidFlowError as e:
        logger.error(f"Discrepancy analysis failed: {str(e)}")
        return ActionResult(error=ANALYSIS_FAILED_MESSAGE)
    except Exception as e:
        logger.error(f"Discrepancy analysis failed unexpectedly: {str(e)}")
        return ActionResult(error=ANALYSIS_FAILED_MESSAGE)

    return ActionResult(data=explanation)


def handle_generate_initial_conditions(prompt: str,
                                       service: Optional[ImageGenerationService] = None) -> ActionResult:
    """Render the described initial fluid state as an image."""
    if not isinstance(prompt, str) or not prompt.strip():
        return ActionResult(error=EMPTY_PROMPT_MESSAGE)

    try:
        service = service if service is not None else create_image_service()
        image_ref = service.generate(prompt)
    except FluidFlowError as e:
        logger.error(f"Initial condition generation failed: {str(e)}")
        return ActionResult(error=IMAGE_FAILED_MESSAGE)
    except Exception as e:
        logger.error(f"Initial condition generation failed unexpectedly: {str(e)}")
        return ActionResult(error=IMAGE_FAILED_MESSAGE)

    return ActionResult(data=image_ref)
