"""
Boundary-condition grid model and procedural shape rasterizer.

The grid is stored row-major: ``cells[row][col]`` with ``row`` running along the
height (y) and ``col`` along the width (x). Shapes are computed as boolean
numpy masks of shape ``(height, width)`` and then tagged onto an all-fluid grid.
"""

import json
from typing import Callable, Dict, List

import numpy as np
from pydantic import BaseModel, ConfigDict, model_validator

from .state import GEOMETRY_LABELS, GRID_HEIGHT, GRID_WIDTH, BoundaryCondition, GeometryType

NACA_THICKNESS = 0.12


class Geometry(BaseModel):
    """Rectangular grid of boundary-condition cells. Dimensions never change."""
    model_config = ConfigDict(frozen=True)

    cells: List[List[BoundaryCondition]]

    @model_validator(mode="after")
    def _check_rectangular(self) -> "Geometry":
        if not self.cells or not self.cells[0]:
            raise ValueError("Geometry must have at least one row and one column")
        width = len(self.cells[0])
        if any(len(row) != width for row in self.cells):
            raise ValueError("All geometry rows must have the same length")
        return self

    @property
    def width(self) -> int:
        return len(self.cells[0])

    @property
    def height(self) -> int:
        return len(self.cells)

    def cell(self, row: int, col: int) -> BoundaryCondition:
        self._check_bounds(row, col)
        return self.cells[row][col]

    def paint(self, row: int, col: int, brush: BoundaryCondition) -> "Geometry":
        """
        Return a copy of this geometry with one cell set to ``brush``.

        Raises:
            IndexError: If ``(row, col)`` lies outside the grid.
        """
        self._check_bounds(row, col)
        cells = [list(r) for r in self.cells]
        cells[row][col] = BoundaryCondition(brush)
        return Geometry(cells=cells)

    def counts(self) -> Dict[BoundaryCondition, int]:
        """Number of cells carrying each boundary condition."""
        totals = {condition: 0 for condition in BoundaryCondition}
        for row in self.cells:
            for condition in row:
                totals[condition] += 1
        return totals

    def to_mask(self, condition: BoundaryCondition = BoundaryCondition.SOLID) -> np.ndarray:
        return np.array([[c == condition for c in row] for row in self.cells], dtype=bool)

    @classmethod
    def from_mask(cls, mask: np.ndarray,
                  condition: BoundaryCondition = BoundaryCondition.SOLID) -> "Geometry":
        """Tag every True cell of ``mask`` with ``condition``; the rest are fluid."""
        cells = [
            [condition if flag else BoundaryCondition.FLUID for flag in row]
            for row in np.asarray(mask, dtype=bool).tolist()
        ]
        return cls(cells=cells)

    def row_initials(self) -> List[str]:
        return ["".join(c.initial for c in row) for row in self.cells]

    def digest(self) -> str:
        """JSON list of rows, each collapsed to boundary-condition initials."""
        return json.dumps(self.row_initials())

    def _check_bounds(self, row: int, col: int) -> None:
        if not (0 <= row < self.height and 0 <= col < self.width):
            raise IndexError(
                f"Cell ({row}, {col}) is outside the {self.width}x{self.height} grid"
            )


def _check_dimensions(width: int, height: int) -> None:
    if width <= 0 or height <= 0:
        raise ValueError(f"Grid dimensions must be positive (got {width}x{height})")


def create_initial_geometry(width: int = GRID_WIDTH, height: int = GRID_HEIGHT) -> Geometry:
    """All-fluid grid of ``height`` rows by ``width`` columns."""
    _check_dimensions(width, height)
    return Geometry(cells=[[BoundaryCondition.FLUID] * width for _ in range(height)])


def cylinder_mask(width: int, height: int) -> np.ndarray:
    center_x = width // 3
    center_y = height // 2
    radius = min(width, height) / 6
    ys, xs = np.indices((height, width))
    distance = np.sqrt((xs - center_x) ** 2 + (ys - center_y) ** 2)
    return distance < radius


def rectangle_mask(width: int, height: int) -> np.ndarray:
    rect_width = width // 4
    rect_height = height // 2
    start_x = width // 3 - rect_width // 2
    start_y = height // 2 - rect_height // 2

    # Clamp to the grid rather than failing on blocks that overhang an edge
    x0, x1 = (min(max(v, 0), width) for v in (start_x, start_x + rect_width))
    y0, y1 = (min(max(v, 0), height) for v in (start_y, start_y + rect_height))

    mask = np.zeros((height, width), dtype=bool)
    mask[y0:y1, x0:x1] = True
    return mask


def naca_half_thickness(x, thickness: float = NACA_THICKNESS):
    """Half-thickness of a symmetric 4-digit NACA profile at chord fraction ``x``."""
    x = np.asarray(x, dtype=float)
    return 5 * thickness * (
        0.2969 * np.sqrt(x)
        - 0.1260 * x
        - 0.3516 * x ** 2
        + 0.2843 * x ** 3
        - 0.1015 * x ** 4
    )


def airfoil_mask(width: int, height: int) -> np.ndarray:
    chord = width / 2
    offset_x = width / 4
    offset_y = height / 2
    vertical_scale = height / 2.5

    ys, xs = np.indices((height, width))
    x = (xs - offset_x) / chord
    on_chord = (x >= 0) & (x <= 1)

    y_upper = naca_half_thickness(np.clip(x, 0.0, 1.0)) * (chord / height) * vertical_scale
    y_norm = (ys - offset_y) / vertical_scale
    return on_chord & (y_norm <= y_upper) & (y_norm >= -y_upper)


SHAPE_MASKS: Dict[GeometryType, Callable[[int, int], np.ndarray]] = {
    GeometryType.CYLINDER: cylinder_mask,
    GeometryType.RECTANGLE: rectangle_mask,
    GeometryType.AIRFOIL: airfoil_mask,
}


def rasterize_shape(geometry_type: GeometryType, width: int = GRID_WIDTH,
                    height: int = GRID_HEIGHT) -> Geometry:
    """
    Build a fresh grid for a shape preset.

    Cells inside the shape silhouette are solid and every other cell is fluid.
    ``custom`` yields an all-fluid grid for the user to paint on.

    Raises:
        ValueError: For an unknown shape name or non-positive dimensions.
    """
    geometry_type = GeometryType(geometry_type)
    _check_dimensions(width, height)

    if geometry_type == GeometryType.CUSTOM:
        return create_initial_geometry(width, height)
    return Geometry.from_mask(SHAPE_MASKS[geometry_type](width, height))


def describe_geometry(geometry: Geometry, geometry_type: GeometryType) -> str:
    if geometry_type == GeometryType.CUSTOM:
        return "Custom user-defined grid"
    return f"{GEOMETRY_LABELS[geometry_type]} obstacle on a {geometry.width}x{geometry.height} grid"


def describe_boundary_conditions(geometry: Geometry) -> str:
    counts = geometry.counts()
    parts = [f"{count} {condition.value}" for condition, count in counts.items() if count]
    return "Defined by geometry map: " + ", ".join(parts) + " cells"
