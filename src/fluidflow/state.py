"""Simulation state schema: enums, parameter records and display metadata."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import ParameterValidationError


class BoundaryCondition(str, Enum):
    """Role of a grid cell in the simulated domain."""
    FLUID = "fluid"
    SOLID = "solid"
    INFLOW = "inflow"
    OUTFLOW = "outflow"
    WALL = "wall"

    @property
    def initial(self) -> str:
        return self.value[0]


class GeometryType(str, Enum):
    """Shape presets offered by the geometry editor."""
    CYLINDER = "cylinder"
    RECTANGLE = "rectangle"
    AIRFOIL = "airfoil"
    CUSTOM = "custom"


class SimulationViewType(str, Enum):
    """Visualisations returned by the prediction backend."""
    STREAMLINE = "streamline"
    PRESSURE = "pressure"


class ActionStatus(str, Enum):
    """Lifecycle of a generation or analysis action."""
    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class SimulationParameters(BaseModel):
    """Physical parameters sent to the prediction backend."""
    model_config = ConfigDict(allow_inf_nan=False)

    reynolds_number: float = Field(200.0, description="Reynolds number of the flow")
    kinematic_viscosity: float = Field(0.01, description="Kinematic viscosity (m²/s)")
    fluid_density: float = Field(1.225, description="Fluid density (kg/m³)")

    def to_backend_payload(self) -> Dict[str, float]:
        """Body of the /predict request."""
        return {
            "reynolds": self.reynolds_number,
            "kinematicViscosity": self.kinematic_viscosity,
            "fluidDensity": self.fluid_density,
        }


class SimulationImages(BaseModel):
    """Image references per view kind, None until generated."""
    streamline: Optional[str] = None
    pressure: Optional[str] = None

    def get(self, view: SimulationViewType) -> Optional[str]:
        return getattr(self, view.value)



@dataclass(frozen=True)
class ParameterRange:
    """Editable range and help text for one simulation parameter."""
    label: str
    symbol: str
    minimum: float
    maximum: float
    step: float
    unit: str = ""
    help_title: str = ""
    help_items: List[str] = field(default_factory=list)

    def contains(self, value: float) -> bool:
        return self.minimum <= value <= self.maximum


@dataclass(frozen=True)
class BoundaryConditionStyle:
    label: str
    color: str


DEFAULT_SIMULATION_PARAMETERS = SimulationParameters()

GRID_WIDTH = 32
GRID_HEIGHT = 24

PARAMETER_RANGES: Dict[str, ParameterRange] = {
    "reynolds_number": ParameterRange(
        label="Reynolds Number", symbol="Re",
        minimum=0.0, maximum=1000.0, step=10.0,
        help_title="Flow Regimes by Reynolds Number (Re)",
        help_items=[
            "Re < 40: Laminar (smooth flow)",
            "Re 40-100: Flow separation",
            "Re 100-400: Vortex shedding (oscillating)",
            "Re > 400: Turbulent",
        ],
    ),
    "kinematic_viscosity": ParameterRange(
        label="Kinematic Viscosity", symbol="ν",
        minimum=1e-5, maximum=1e-3, step=1e-5, unit="m²/s",
        help_title="Common Kinematic Viscosities (m²/s)",
        help_items=[
            "Water: 1e-6 (0.000001)",
            "Air: 1.5e-5 (0.000015)",
            "Oil: 1e-4 (0.0001)",
        ],
    ),
    "fluid_density": ParameterRange(
        label="Fluid Density", symbol="ρ",
        minimum=0.1, maximum=1200.0, step=0.1, unit="kg/m³",
        help_title="Common Fluid Densities (kg/m³)",
        help_items=[
            "Water: ~1000",
            "Air: ~1.2",
            "Oil: ~900",
        ],
    ),
}

# Stand-in for live PINN training metrics
MOCK_LOSS_DATA: Dict[str, float] = {
    "Continuity Loss": 0.0123,
    "Momentum-X Loss": 0.0456,
    "Momentum-Y Loss": 0.0389,
    "Adversarial Loss": 0.6789,
    "Reconstruction Loss": 0.1234,
}

BOUNDARY_CONDITION_CONFIG: Dict[BoundaryCondition, BoundaryConditionStyle] = {
    BoundaryCondition.FLUID: BoundaryConditionStyle(label="Fluid", color="bg-background"),
    BoundaryCondition.SOLID: BoundaryConditionStyle(label="Solid/Obstacle", color="bg-slate-700"),
    BoundaryCondition.INFLOW: BoundaryConditionStyle(label="Inflow", color="bg-green-600"),
    BoundaryCondition.OUTFLOW: BoundaryConditionStyle(label="Outflow", color="bg-red-600"),
    BoundaryCondition.WALL: BoundaryConditionStyle(label="Wall", color="bg-slate-500"),
}

GEOMETRY_LABELS: Dict[GeometryType, str] = {
    GeometryType.CYLINDER: "Cylinder",
    GeometryType.RECTANGLE: "Rectangle",
    GeometryType.AIRFOIL: "Airfoil",
    GeometryType.CUSTOM: "Custom",
}


def validate_parameter_ranges(parameters: SimulationParameters,
                              names: Optional[Iterable[str]] = None) -> SimulationParameters:
    """
    Check parameters against their editable ranges.

    Args:
        parameters: Values to check
        names: Fields to check; all of them when omitted

    Raises:
        ParameterValidationError: If any checked value is non-finite or out of range.
    """
    problems = []
    for name in (names if names is not None else PARAMETER_RANGES):
        value_range = PARAMETER_RANGES[name]
        value = getattr(parameters, name)
        if not math.isfinite(value) or not value_range.contains(value):
            problems.append(
                f"{value_range.label} must be between {value_range.minimum:g} "
                f"and {value_range.maximum:g} (got {value:g})"
            )
    if problems:
        raise ParameterValidationError("; ".join(problems))
    return parameters
