from dataclasses import asdict
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse
from loguru import logger

from .. import __version__
from ..config import FluidFlowSettings, get_settings
from ..errors import (
    ActionInProgressError,
    FluidFlowError,
    ParameterValidationError,
    SessionNotFoundError,
)
from ..geometry import rasterize_shape
from ..session import SessionStore, SimulationSession
from ..state import (
    BOUNDARY_CONDITION_CONFIG,
    DEFAULT_SIMULATION_PARAMETERS,
    GEOMETRY_LABELS,
    PARAMETER_RANGES,
    BoundaryCondition,
    GeometryType,
)
from .schemas import (
    ActionResponse,
    BoundaryConditionInfo,
    BrushRequest,
    ControlsResponse,
    GeometryPreviewResponse,
    GeometrySelectRequest,
    GeometryTypeInfo,
    HealthCheckResponse,
    InitialConditionsRequest,
    NotificationListResponse,
    PaintRequest,
    PaintResponse,
    ParameterRangeInfo,
    ParametersUpdateRequest,
    SessionResponse,
    ViewRequest,
)

MAX_GRID_SIZE = 256


def session_response(session: SimulationSession) -> SessionResponse:
    return SessionResponse(**session.to_dict())


def action_response(session: SimulationSession, result) -> ActionResponse:
    return ActionResponse(success=result.ok, error=result.error, session=session_response(session))


def create_app(settings: Optional[FluidFlowSettings] = None,
               store: Optional[SessionStore] = None) -> FastAPI:
    """Build the control-panel API around a session store."""
    settings = settings or get_settings()
    store = store if store is not None else SessionStore(settings)

    app = FastAPI(title="FluidFlow API", version=__version__)
    app.state.settings = settings
    app.state.store = store

    # Centralized exception handlers
    @app.exception_handler(FluidFlowError)
    async def fluidflow_error_handler(request, exc: FluidFlowError):
        """Handle all FluidFlow errors with appropriate HTTP status codes."""
        if isinstance(exc, SessionNotFoundError):
            return JSONResponse(status_code=404, content={"detail": str(exc)})
        elif isinstance(exc, ActionInProgressError):
            return JSONResponse(status_code=409, content={"detail": str(exc)})
        elif isinstance(exc, ParameterValidationError):
            return JSONResponse(status_code=422, content={"detail": str(exc)})
        else:
            logger.error(f"Unhandled FluidFlow error: {str(exc)}")
            return JSONResponse(status_code=500, content={"detail": str(exc)})

    @app.get("/")
    async def root():
        return {"message": "FluidFlow API is running"}

    @app.get("/api/health", response_model=HealthCheckResponse)
    async def health_check():
        """Check if the API is running and healthy."""
        return HealthCheckResponse(status="healthy", timestamp=datetime.now(), active_sessions=len(store))

    @app.get("/api/version")
    async def get_version():
        """Get API version information."""
        return {"version": __version__, "api_name": "FluidFlow API"}

    # --- Control metadata ---

    @app.get("/api/controls", response_model=ControlsResponse)
    async def get_controls():
        """Parameter ranges, boundary-condition legend and shape presets for the editor."""
        defaults = DEFAULT_SIMULATION_PARAMETERS.model_dump()
        return ControlsResponse(
            parameters={
                name: ParameterRangeInfo(
                    label=r.label, symbol=r.symbol, minimum=r.minimum, maximum=r.maximum,
                    step=r.step, unit=r.unit, default=defaults[name],
                    help_title=r.help_title, help_items=list(r.help_items)
                )
                for name, r in PARAMETER_RANGES.items()
            },
            boundary_conditions=[
                BoundaryConditionInfo(value=bc, label=style.label, color=style.color)
                for bc, style in BOUNDARY_CONDITION_CONFIG.items()
            ],
            geometry_types=[
                GeometryTypeInfo(value=gt, label=label) for gt, label in GEOMETRY_LABELS.items()
            ],
            grid_width=settings.grid_width,
            grid_height=settings.grid_height
        )

    @app.get("/api/geometry/{geometry_type}", response_model=GeometryPreviewResponse)
    async def preview_geometry(
        geometry_type: GeometryType,
        width: int = Query(settings.grid_width, gt=0, le=MAX_GRID_SIZE),
        height: int = Query(settings.grid_height, gt=0, le=MAX_GRID_SIZE)
    ):
        """Rasterize a shape preset without touching any session."""
        geometry = rasterize_shape(geometry_type, width, height)
        return GeometryPreviewResponse(
            geometry_type=geometry_type,
            width=geometry.width,
            height=geometry.height,
            cells=geometry.cells,
            digest=geometry.digest(),
            solid_cells=geometry.counts()[BoundaryCondition.SOLID]
        )

    # --- Session lifecycle ---

    @app.post("/api/sessions", response_model=SessionResponse, status_code=201)
    async def create_session():
        """Start a session with default parameters and the default shape."""
        return session_response(store.create())

    @app.get("/api/sessions/{session_id}", response_model=SessionResponse)
    async def get_session(session_id: str):
        return session_response(store.get(session_id))

    @app.delete("/api/sessions/{session_id}")
    async def delete_session(session_id: str):
        store.delete(session_id)
        return {"session_id": session_id, "message": f"Session '{session_id}' deleted"}

    # --- Parameter and geometry editing ---

    @app.put("/api/sessions/{session_id}/parameters", response_model=SessionResponse)
    async def update_parameters(session_id: str, request: ParametersUpdateRequest):
        session = store.get(session_id)
        session.update_parameters(**request.model_dump(exclude_none=True))
        return session_response(session)

    @app.put("/api/sessions/{session_id}/geometry", response_model=SessionResponse)
    async def select_geometry(session_id: str, request: GeometrySelectRequest):
        session = store.get(session_id)
        session.select_geometry(request.geometry_type)
        return session_response(session)

    @app.put("/api/sessions/{session_id}/brush", response_model=SessionResponse)
    async def set_brush(session_id: str, request: BrushRequest):
        session = store.get(session_id)
        session.set_brush(request.brush)
        return session_response(session)

    @app.post("/api/sessions/{session_id}/paint", response_model=PaintResponse)
    async def paint_cells(session_id: str, request: PaintRequest):
        """Paint a stroke with the session's brush. Ignored unless the shape mode is custom."""
        session = store.get(session_id)
        try:
            painted = session.paint_stroke((cell.row, cell.col) for cell in request.cells)
        except IndexError as e:
            raise HTTPException(status_code=422, detail=str(e))
        return PaintResponse(painted=painted, session=session_response(session))

    @app.put("/api/sessions/{session_id}/view", response_model=SessionResponse)
    async def set_view(session_id: str, request: ViewRequest):
        session = store.get(session_id)
        session.set_active_view(request.active_view)
        return session_response(session)

    # --- Actions (blocking round trips run in the threadpool) ---

    @app.post("/api/sessions/{session_id}/generate", response_model=ActionResponse)
    def generate_flow(session_id: str):
        session = store.get(session_id)
        return action_response(session, session.generate_flow())

    @app.post("/api/sessions/{session_id}/analyze", response_model=ActionResponse)
    def analyze(session_id: str):
        session = store.get(session_id)
        return action_response(session, session.analyze())

    @app.post("/api/sessions/{session_id}/initial-conditions", response_model=ActionResponse)
    def generate_initial_conditions(session_id: str, request: InitialConditionsRequest):
        session = store.get(session_id)
        return action_response(session, session.generate_initial_conditions(request.prompt))

    @app.get("/api/sessions/{session_id}/notifications", response_model=NotificationListResponse)
    async def drain_notifications(session_id: str):
        """Return pending notifications and clear them."""
        notifications = store.get(session_id).drain_notifications()
        return NotificationListResponse(
            notifications=[asdict(n) for n in notifications],
            count=len(notifications)
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=get_settings().api_host, port=get_settings().api_port)
