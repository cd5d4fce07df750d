"""
Rigid transforms between the world frame and the vehicle frame.

In the vehicle frame the car sits at the origin and looks along +x.
"""
import numpy as np

from waypoint_mpc.control.errors import MalformedTelemetryError


def _as_points(xs, ys):
    xs = np.asarray(xs, dtype=float).ravel()
    ys = np.asarray(ys, dtype=float).ravel()
    if xs.shape != ys.shape:
        raise MalformedTelemetryError(
            f"Waypoint coordinate counts differ: {xs.size} x values, {ys.size} y values."
        )
    return xs, ys


def to_vehicle_frame(x0, y0, psi0, xs, ys):
    """Re-express world-frame points relative to the pose (x0, y0, psi0)."""
    xs, ys = _as_points(xs, ys)
    dx = xs - x0
    dy = ys - y0
    c, s = np.cos(-psi0), np.sin(-psi0)
    return c * dx - s * dy, s * dx + c * dy


def to_world_frame(x0, y0, psi0, xs, ys):
    """Inverse of to_vehicle_frame."""
    xs, ys = _as_points(xs, ys)
    c, s = np.cos(psi0), np.sin(psi0)
    return x0 + c * xs - s * ys, y0 + s * xs + c * ys
