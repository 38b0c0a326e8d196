"""
Prediction API Client for the FluidFlow control panel
Handles REST communication with the external PINN prediction backend
"""
from typing import Any, Dict, Optional

import requests
from loguru import logger

from .config import FluidFlowSettings, get_settings
from .errors import PredictionError
from .state import SimulationImages, SimulationParameters

BACKEND_UNAVAILABLE_MESSAGE = "Failed to generate flow. Is the backend server running?"
MISSING_IMAGES_MESSAGE = "Failed to get streamline and pressure images from API."
UNKNOWN_ERROR_MESSAGE = "Unknown error occurred"


def to_data_uri(encoded_image: str, mime_type: str = "image/png") -> str:
    """Wrap a base64 payload in a data URI."""
    return f"data:{mime_type};base64,{encoded_image}"


class PredictionClient:
    """Client for the prediction backend's /predict endpoint"""

    def __init__(self, settings: Optional[FluidFlowSettings] = None,
                 session: Optional[requests.Session] = None):
        settings = settings or get_settings()
        self.predict_url = settings.get_predict_url()
        self.timeout = settings.request_timeout
        self.session = session if session is not None else requests.Session()

        # Set default headers
        self.session.headers.update({
            'User-Agent': 'FluidFlow-Control-Panel/1.0',
            'Content-Type': 'application/json'
        })

    def predict(self, parameters: SimulationParameters) -> SimulationImages:
        """
        Request streamline and pressure images for a parameter set

        Args:
            parameters: Validated simulation parameters

        Returns:
            Both images as PNG data URIs

        Raises:
            PredictionError: If the backend is unreachable, answers with a
                non-success status, or omits either image
        """
        logger.info(f"Making POST request to {self.predict_url}")

        try:
            response = self.session.post(
                self.predict_url,
                json=parameters.to_backend_payload(),
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"Request failed: {str(e)}")
            raise PredictionError(BACKEND_UNAVAILABLE_MESSAGE) from e

        if not response.ok:
            message = self._error_detail(response)
            logger.error(f"Prediction backend returned {response.status_code}: {message}")
            raise PredictionError(message)

        try:
            result = response.json()
        except ValueError as e:
            raise PredictionError(MISSING_IMAGES_MESSAGE) from e

        if not isinstance(result, dict) or not result.get('streamline_image') or not result.get('pressure_image'):
            raise PredictionError(MISSING_IMAGES_MESSAGE)

        return SimulationImages(
            streamline=to_data_uri(result['streamline_image']),
            pressure=to_data_uri(result['pressure_image'])
        )

    def check_health(self) -> bool:
        """Return True if the backend answers at all."""
        base_url = self.predict_url.rsplit('/predict', 1)[0]
        try:
            self.session.get(base_url, timeout=min(self.timeout, 5))
            return True
        except requests.RequestException:
            return False

    @staticmethod
    def _error_detail(response: requests.Response) -> str:
        try:
            error_data: Dict[str, Any] = response.json()
        except ValueError:
            return UNKNOWN_ERROR_MESSAGE
        if isinstance(error_data, dict) and error_data.get('detail'):
            return str(error_data['detail'])
        return f"Request failed with status {response.status_code}"
