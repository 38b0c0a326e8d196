"""FastAPI control-panel server for FluidFlow."""

from .main import app, create_app

__all__ = ["app", "create_app"]
