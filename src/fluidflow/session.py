"""
Simulation Session Management
Tracks parameters, geometry, returned images and action status for one control-panel session
"""
import threading
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from loguru import logger
from pydantic import ValidationError

from .actions import (
    ActionResult,
    handle_explain_discrepancies,
    handle_generate_flow,
    handle_generate_initial_conditions,
)
from .config import FluidFlowSettings, get_settings
from .errors import ActionInProgressError, ParameterValidationError, SessionNotFoundError
from .geometry import Geometry, rasterize_shape
from .prediction_client import PredictionClient
from .services import ExplanationService, ImageGenerationService
from .state import (
    DEFAULT_SIMULATION_PARAMETERS,
    MOCK_LOSS_DATA,
    PARAMETER_RANGES,
    ActionStatus,
    BoundaryCondition,
    GeometryType,
    SimulationImages,
    SimulationParameters,
    SimulationViewType,
    validate_parameter_ranges,
)

GENERATION = "generation"
ANALYSIS = "analysis"
INITIAL_CONDITIONS = "initial_conditions"


@dataclass
class Notification:
    """Toast shown to the user after an action completes"""
    title: str
    description: str
    variant: str = "default"  # default or destructive


class SimulationSession:
    """Main session state container"""

    def __init__(self, settings: Optional[FluidFlowSettings] = None,
                 prediction_client: Optional[PredictionClient] = None,
                 explanation_service: Optional[ExplanationService] = None,
                 image_service: Optional[ImageGenerationService] = None,
                 session_id: Optional[str] = None,
                 geometry_type: GeometryType = GeometryType.CYLINDER):
        self.settings = settings or get_settings()
        self.session_id = session_id or uuid.uuid4().hex
        self.created_at = datetime.now()

        # External collaborators
        if prediction_client is None:
            prediction_client = PredictionClient(self.settings)
        self.prediction_client = prediction_client
        self.explanation_service = explanation_service
        self.image_service = image_service

        self._lock = threading.Lock()
        self._initial_geometry_type = GeometryType(geometry_type)
        self.reset()

    def reset(self):
        """Reset all session state to its start-of-session defaults"""
        self.parameters = DEFAULT_SIMULATION_PARAMETERS.model_copy()
        self.geometry_type = self._initial_geometry_type
        self.geometry = rasterize_shape(
            self.geometry_type, self.settings.grid_width, self.settings.grid_height
        )
        self.brush = BoundaryCondition.SOLID
        self.loss_data = dict(MOCK_LOSS_DATA)
        self.images = SimulationImages()
        self.active_view = SimulationViewType.STREAMLINE
        self.analysis: Optional[str] = None
        self.initial_condition_image: Optional[str] = None
        self.status: Dict[str, ActionStatus] = {
            GENERATION: ActionStatus.IDLE,
            ANALYSIS: ActionStatus.IDLE,
            INITIAL_CONDITIONS: ActionStatus.IDLE,
        }
        self.notifications: List[Notification] = []

    @property
    def is_generating(self) -> bool:
        return self.status[GENERATION] == ActionStatus.PENDING

    @property
    def is_analyzing(self) -> bool:
        return self.status[ANALYSIS] == ActionStatus.PENDING

    @property
    def is_custom_editing(self) -> bool:
        return self.geometry_type == GeometryType.CUSTOM

    # Parameter store

    def update_parameters(self, **changes: Any) -> SimulationParameters:
        """
        Merge changes into the current parameters.

        Only the fields being changed are range-checked, so untouched defaults
        are carried along as they are.

        Raises:
            ParameterValidationError: If a value is not a finite number or is out of range.
        """
        unknown = set(changes) - set(PARAMETER_RANGES)
        if unknown:
            raise ParameterValidationError(f"Unknown parameters: {', '.join(sorted(unknown))}")

        try:
            updated = SimulationParameters.model_validate({**self.parameters.model_dump(), **changes})
        except ValidationError as e:
            raise ParameterValidationError(f"Invalid simulation parameters: {e.error_count()} error(s)") from e

        self.parameters = validate_parameter_ranges(updated, names=changes)
        return self.parameters

    # Geometry editor

    def select_geometry(self, geometry_type: GeometryType) -> Geometry:
        """Switch shape mode; the grid is always fully replaced"""
        self.geometry_type = GeometryType(geometry_type)
        self.geometry = rasterize_shape(
            self.geometry_type, self.settings.grid_width, self.settings.grid_height
        )
        logger.debug(f"Session {self.session_id}: geometry set to {self.geometry_type.value}")
        return self.geometry

    def set_brush(self, brush: BoundaryCondition) -> None:
        self.brush = BoundaryCondition(brush)

    def paint(self, row: int, col: int) -> bool:
        """Paint one cell with the current brush; ignored outside custom mode"""
        return self.paint_stroke([(row, col)]) == 1

    def paint_stroke(self, cells: Iterable[Tuple[int, int]]) -> int:
        """
        Paint a drag stroke with the current brush.

        Returns:
            Number of cells painted (0 when not in custom mode).

        Raises:
            IndexError: If any cell lies outside the grid. Nothing is painted then.
        """
        cells = list(cells)
        if not self.is_custom_editing:
            logger.debug(f"Session {self.session_id}: paint ignored in {self.geometry_type.value} mode")
            return 0

        geometry = self.geometry
        for row, col in cells:
            geometry.cell(row, col)
        for row, col in cells:
            geometry = geometry.paint(row, col, self.brush)
        self.geometry = geometry
        return len(cells)

    # Simulation view

    def set_active_view(self, view: SimulationViewType) -> None:
        self.active_view = SimulationViewType(view)

    @property
    def active_image(self) -> Optional[str]:
        return self.images.get(self.active_view)

    # Actions

    def _begin(self, kind: str, label: str, **cleared: Any) -> None:
        """Mark an action pending and clear the fields it will refill."""
        with self._lock:
            if self.status[kind] == ActionStatus.PENDING:
                raise ActionInProgressError(f"{label} is already in progress")
            self.status[kind] = ActionStatus.PENDING
            for name, value in cleared.items():
                setattr(self, name, value)

    def _finish(self, kind: str, result: ActionResult, failure_title: str,
                target: Optional[str] = None,
                success: Optional[Notification] = None) -> None:
        """Store the result and settle the action's status."""
        with self._lock:
            if result.ok:
                if target is not None:
                    setattr(self, target, result.data)
                if success is not None:
                    self.notifications.append(success)
                self.status[kind] = ActionStatus.SUCCESS
            else:
                self.status[kind] = ActionStatus.FAILED
                self.notifications.append(
                    Notification(title=failure_title, description=result.error, variant="destructive")
                )

    def generate_flow(self) -> ActionResult:
        """Request streamline and pressure images for the current parameters"""
        self._begin(GENERATION, "Flow generation", images=SimulationImages(), analysis=None)

        result = ActionResult(error="Flow generation was interrupted.")
        try:
            result = handle_generate_flow(self.parameters, self.prediction_client)
        finally:
            self._finish(
                GENERATION, result, "Generation Failed",
                target="images",
                success=Notification(title="Success!", description="Flow generated from your API.")
            )
        return result

    def analyze(self) -> ActionResult:
        """Ask the AI provider to explain the current loss terms"""
        self._begin(ANALYSIS, "Discrepancy analysis", analysis=None)

        result = ActionResult(error="Discrepancy analysis was interrupted.")
        try:
            result = handle_explain_discrepancies(
                self.parameters,
                self.geometry,
                service=self.explanation_service,
                geometry_type=self.geometry_type,
                loss_data=self.loss_data
            )
        finally:
            self._finish(ANALYSIS, result, "Analysis Failed", target="analysis")
        return result

    def generate_initial_conditions(self, prompt: str) -> ActionResult:
        """Render the described initial state with the image provider"""
        self._begin(INITIAL_CONDITIONS, "Initial condition generation", initial_condition_image=None)

        result = ActionResult(error="Initial condition generation was interrupted.")
        try:
            result = handle_generate_initial_conditions(prompt, service=self.image_service)
        finally:
            self._finish(INITIAL_CONDITIONS, result, "Image Generation Failed",
                         target="initial_condition_image")
        return result

    def drain_notifications(self) -> List[Notification]:
        with self._lock:
            pending, self.notifications = self.notifications, []
        return pending

    def to_dict(self) -> Dict[str, Any]:
        """Convert state to dictionary for API responses"""
        return {
            "session_id": self.session_id,
            "created_at": self.created_at,
            "parameters": self.parameters.model_dump(),
            "geometry_type": self.geometry_type.value,
            "geometry": [[c.value for c in row] for row in self.geometry.cells],
            "brush": self.brush.value,
            "is_custom_editing": self.is_custom_editing,
            "is_generating": self.is_generating,
            "is_analyzing": self.is_analyzing,
            "loss_data": dict(self.loss_data),
            "images": self.images.model_dump(),
            "active_view": self.active_view.value,
            "analysis": self.analysis,
            "initial_condition_image": self.initial_condition_image,
            "status": {kind: status.value for kind, status in self.status.items()},
            "notifications": [asdict(n) for n in self.notifications],
        }


class SessionStore:
    """In-memory registry of live sessions"""

    def __init__(self, settings: Optional[FluidFlowSettings] = None,
                 prediction_client: Optional[PredictionClient] = None,
                 explanation_service: Optional[ExplanationService] = None,
                 image_service: Optional[ImageGenerationService] = None):
        self.settings = settings or get_settings()
        # One backend connection pool shared by every session in the store
        if prediction_client is None:
            prediction_client = PredictionClient(self.settings)
        self.prediction_client = prediction_client
        self.explanation_service = explanation_service
        self.image_service = image_service
        self._sessions: Dict[str, SimulationSession] = {}
        self._lock = threading.Lock()

    def create(self) -> SimulationSession:
        session = SimulationSession(
            settings=self.settings,
            prediction_client=self.prediction_client,
            explanation_service=self.explanation_service,
            image_service=self.image_service
        )
        with self._lock:
            self._sessions[session.session_id] = session
        logger.info(f"Created session {session.session_id}")
        return session

    def get(self, session_id: str) -> SimulationSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session '{session_id}' not found")
        return session

    def delete(self, session_id: str) -> None:
        with self._lock:
            if self._sessions.pop(session_id, None) is None:
                raise SessionNotFoundError(f"Session '{session_id}' not found")
        logger.info(f"Deleted session {session_id}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
