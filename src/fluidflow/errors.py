"""Exception hierarchy shared by the FluidFlow clients, services and server."""


class FluidFlowError(Exception):
    """Base exception for FluidFlow errors."""
    pass


class ParameterValidationError(FluidFlowError):
    """Raised when simulation parameters are malformed or out of range."""
    pass


class PredictionError(FluidFlowError):
    """Raised when the prediction backend fails or returns an unusable response."""
    pass


class ExplanationError(FluidFlowError):
    """Raised when the explanation provider errors or returns nothing."""
    pass


class ImageGenerationError(FluidFlowError):
    """Raised when the image provider errors or returns nothing."""
    pass


class ServiceConfigurationError(FluidFlowError):
    """Raised for configuration issues, like a missing API key."""
    pass


class SessionNotFoundError(FluidFlowError):
    """Raised when a session id is not known to the store."""
    pass


class ActionInProgressError(FluidFlowError):
    """Raised when an action is started while the same action is still pending."""
    pass
