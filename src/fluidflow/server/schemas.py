"""
Pydantic schemas for the FluidFlow control-panel API.

This module contains all request and response model definitions used by the FastAPI endpoints.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..state import BoundaryCondition, GeometryType, SimulationViewType

# =============================================================================
# SESSION SCHEMAS
# =============================================================================

class ParametersUpdateRequest(BaseModel):
    """Partial update of the simulation parameters; omitted fields keep their value"""
    model_config = ConfigDict(allow_inf_nan=False)

    reynolds_number: Optional[float] = Field(None, description="Reynolds number (0-1000)")
    kinematic_viscosity: Optional[float] = Field(None, description="Kinematic viscosity in m²/s (1e-5 - 1e-3)")
    fluid_density: Optional[float] = Field(None, description="Fluid density in kg/m³ (0.1 - 1200)")


class GeometrySelectRequest(BaseModel):
    geometry_type: GeometryType = Field(..., description="Shape preset to rasterize")


class BrushRequest(BaseModel):
    brush: BoundaryCondition = Field(..., description="Boundary condition painted by the brush")


class CellRef(BaseModel):
    row: int = Field(..., description="Grid row (y)")
    col: int = Field(..., description="Grid column (x)")


class PaintRequest(BaseModel):
    cells: List[CellRef] = Field(..., min_length=1, description="Cells of the paint stroke, in order")


class ViewRequest(BaseModel):
    active_view: SimulationViewType


class InitialConditionsRequest(BaseModel):
    prompt: str = Field(..., description="Description of the desired initial fluid state")


class NotificationResponse(BaseModel):
    title: str
    description: str
    variant: str


class SessionResponse(BaseModel):
    session_id: str
    created_at: datetime
    parameters: Dict[str, float]
    geometry_type: GeometryType
    geometry: List[List[BoundaryCondition]]
    brush: BoundaryCondition
    is_custom_editing: bool
    is_generating: bool
    is_analyzing: bool
    loss_data: Dict[str, float]
    images: Dict[str, Optional[str]]
    active_view: SimulationViewType
    analysis: Optional[str] = None
    initial_condition_image: Optional[str] = None
    status: Dict[str, str]
    notifications: List[NotificationResponse]


class ActionResponse(BaseModel):
    """Result of generate/analyze/initial-conditions; failures are not HTTP errors"""
    success: bool
    error: Optional[str] = None
    session: SessionResponse


class PaintResponse(BaseModel):
    painted: int
    session: SessionResponse


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    count: int

# =============================================================================
# GEOMETRY & CONTROL SCHEMAS
# =============================================================================

class GeometryPreviewResponse(BaseModel):
    geometry_type: GeometryType
    width: int
    height: int
    cells: List[List[BoundaryCondition]]
    digest: str
    solid_cells: int


class ParameterRangeInfo(BaseModel):
    label: str
    symbol: str
    minimum: float
    maximum: float
    step: float
    unit: str
    default: float
    help_title: str
    help_items: List[str]


class BoundaryConditionInfo(BaseModel):
    value: BoundaryCondition
    label: str
    color: str


class GeometryTypeInfo(BaseModel):
    value: GeometryType
    label: str


class ControlsResponse(BaseModel):
    parameters: Dict[str, ParameterRangeInfo]
    boundary_conditions: List[BoundaryConditionInfo]
    geometry_types: List[GeometryTypeInfo]
    grid_width: int
    grid_height: int

# =============================================================================
# SYSTEM SCHEMAS
# =============================================================================

class HealthCheckResponse(BaseModel):
    status: str
    timestamp: datetime
    active_sessions: int
