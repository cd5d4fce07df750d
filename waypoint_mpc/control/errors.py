class ControllerError(Exception):
    """Base class for controller errors."""


class ConfigurationError(ControllerError, ValueError):
    """Invalid controller configuration. Fatal at startup."""


class MalformedTelemetryError(ControllerError, ValueError):
    """Telemetry that cannot be turned into a control problem.

    Raised for mismatched waypoint counts, too few waypoints for the fit
    degree, missing fields or non-finite values. The controller rejects the
    cycle and waits for the next message.
    """
