"""
FluidFlow: control panel for PINN-based fluid-flow prediction.

FluidFlow lets you set physical parameters, build an obstacle geometry on a
boundary-condition grid, request flow images from a prediction backend and ask
an LLM to explain the physics-informed training losses.
"""

__version__ = "0.9.0"
__all__ = ["__version__"]
