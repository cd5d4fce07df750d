from waypoint_mpc.control.errors import ConfigurationError
from waypoint_mpc.vehicle.dynamics import step


def compensate(state, previous_actuation, latency, lf, curve=None, small_angle=False):
    """
    Predict the state the vehicle will be in when the next command takes effect.

    The command already in flight (previous_actuation) keeps acting during the
    delay, so the optimizer should plan from here rather than from the raw
    measurement.
    """
    if latency < 0.0:
        raise ConfigurationError(f"Latency must be >= 0, got {latency!r}.")
    if latency == 0.0:
        return state
    return step(state, previous_actuation, latency, lf, curve, small_angle)
