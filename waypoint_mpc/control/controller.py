"""
Per-cycle controller: telemetry in, actuator command out.

One ControllerSession serves one vehicle. Sessions share nothing but the
frozen ControllerConfig, so several can run side by side.
"""
import logging
import math
from dataclasses import dataclass, field

import numpy as np

from waypoint_mpc.control.errors import MalformedTelemetryError
from waypoint_mpc.control.latency import compensate
from waypoint_mpc.control.mpc import MPC, Trajectory
from waypoint_mpc.track.frame import to_vehicle_frame
from waypoint_mpc.track.polynomial import ReferenceCurve, polyfit
from waypoint_mpc.vehicle.state import Actuation, VehicleState

logger = logging.getLogger(__name__)

TELEMETRY_FIELDS = ("x", "y", "psi", "speed", "ptsx", "ptsy")


def _finite(name, value):
    try:
        value = float(value)
    except (TypeError, ValueError) as exc:
        raise MalformedTelemetryError(f"Field {name!r} is not a number: {value!r}") from exc
    if not math.isfinite(value):
        raise MalformedTelemetryError(f"Field {name!r} is not finite: {value!r}")
    return value


@dataclass(frozen=True)
class Telemetry:
    """World-frame pose and reference waypoints for one cycle."""

    x: float
    y: float
    psi: float
    speed: float
    ptsx: tuple
    ptsy: tuple

    @classmethod
    def from_message(cls, data) -> "Telemetry":
        """Build from the wire payload. Raises MalformedTelemetryError."""
        if not isinstance(data, dict):
            raise MalformedTelemetryError(f"Telemetry payload must be an object, got {type(data).__name__}")
        missing = [name for name in TELEMETRY_FIELDS if name not in data]
        if missing:
            raise MalformedTelemetryError(f"Telemetry is missing fields: {', '.join(missing)}")
        for name in ("ptsx", "ptsy"):
            if not isinstance(data[name], (list, tuple)):
                raise MalformedTelemetryError(f"Field {name!r} must be a list")
        return cls(
            x=_finite("x", data["x"]),
            y=_finite("y", data["y"]),
            psi=_finite("psi", data["psi"]),
            speed=_finite("speed", data["speed"]),
            ptsx=tuple(_finite("ptsx", v) for v in data["ptsx"]),
            ptsy=tuple(_finite("ptsy", v) for v in data["ptsy"]),
        )


@dataclass(frozen=True)
class Command:
    steering_angle: float
    throttle: float
    next_x: list = field(default_factory=list)
    next_y: list = field(default_factory=list)
    mpc_x: list = field(default_factory=list)
    mpc_y: list = field(default_factory=list)
    solved: bool = True

    def to_message(self) -> dict:
        return {
            "steering_angle": self.steering_angle,
            "throttle": self.throttle,
            "next_x": self.next_x,
            "next_y": self.next_y,
            "mpc_x": self.mpc_x,
            "mpc_y": self.mpc_y,
        }


def tracking_errors(curve: ReferenceCurve, small_angle=False):
    """Cross-track and heading error of a vehicle at the origin of the curve's frame."""
    cte = -curve.eval(0.0)
    if small_angle:
        epsi = -curve.coeffs[1]
    else:
        epsi = -math.atan(curve.slope(0.0))
    return cte, epsi


class ControllerSession:
    """
    Runs the control pipeline for one vehicle.

    Keeps the actuation that was last sent (the latency compensator needs it)
    and the last plan (warm start only). Everything else is rebuilt each cycle.
    """

    def __init__(self, config, mpc=None):
        self.config = config
        self.mpc = mpc or MPC(config)
        self.previous_actuation = Actuation()
        self._warm_start = None
        self.last_result = None

    def reset(self):
        self.previous_actuation = Actuation()
        self._warm_start = None
        self.last_result = None

    def handle_message(self, data):
        """Run one cycle from a decoded wire payload. Returns None when rejected."""
        try:
            telemetry = Telemetry.from_message(data)
        except MalformedTelemetryError as exc:
            logger.warning("Rejected telemetry: %s", exc)
            return None
        return self.handle_telemetry(telemetry)

    def fit_reference(self, telemetry: Telemetry) -> ReferenceCurve:
        if len(telemetry.ptsx) != len(telemetry.ptsy):
            raise MalformedTelemetryError(
                f"Waypoint coordinate counts differ: {len(telemetry.ptsx)} vs {len(telemetry.ptsy)}"
            )
        if len(telemetry.ptsx) < self.config.min_waypoints:
            raise MalformedTelemetryError(
                f"Need {self.config.min_waypoints} waypoints for a degree "
                f"{self.config.fit_degree} fit, got {len(telemetry.ptsx)}"
            )
        local_x, local_y = to_vehicle_frame(
            telemetry.x, telemetry.y, telemetry.psi, telemetry.ptsx, telemetry.ptsy
        )
        return polyfit(local_x, local_y, self.config.fit_degree)

    def handle_telemetry(self, telemetry: Telemetry):
        """
        Run one control cycle.

        Returns:
            Command, or None when the telemetry was rejected. A failed solve
            still yields a (fallback) Command.
        """
        config = self.config
        try:
            curve = self.fit_reference(telemetry)
        except MalformedTelemetryError as exc:
            logger.warning("Rejected telemetry: %s", exc)
            return None

        cte, epsi = tracking_errors(curve, config.small_angle_heading_error)
        state = VehicleState(0.0, 0.0, 0.0, telemetry.speed, cte, epsi)
        state = compensate(
            state, self.previous_actuation, config.latency, config.vehicle.lf, curve,
            small_angle=config.small_angle_heading_error,
        )

        result = self.mpc.solve(state, curve, warm_start=self._warm_start)
        self.last_result = result

        ref_x, ref_y = curve.sample(config.display_step * np.arange(config.display_points))
        next_x, next_y = ref_x.tolist(), ref_y.tolist()

        if isinstance(result, Trajectory):
            actuation = result.first_actuation
            self._warm_start = result.shifted_plan()
            logger.debug(
                "cte=%.3f epsi=%.3f delta=%.4f a=%.3f (%d iterations, %.1f ms)",
                cte, epsi, actuation.delta, actuation.a, result.iterations, result.solve_time * 1000.0,
            )
            command = Command(
                steering_angle=self._normalized_steering(actuation.delta),
                throttle=actuation.a,
                next_x=next_x,
                next_y=next_y,
                mpc_x=result.xs.tolist(),
                mpc_y=result.ys.tolist(),
                solved=True,
            )
        else:
            actuation = Actuation(0.0, config.fallback_throttle)
            self._warm_start = None
            logger.warning("MPC solve failed (%s, status=%s); sending fallback command", result.reason, result.status)
            command = Command(
                steering_angle=0.0,
                throttle=config.fallback_throttle,
                next_x=next_x,
                next_y=next_y,
                mpc_x=list(next_x),
                mpc_y=list(next_y),
                solved=False,
            )

        self.previous_actuation = actuation
        return command

    def _normalized_steering(self, delta):
        steer_max = self.config.limits.steer_max
        if steer_max == 0.0:
            return 0.0
        return float(np.clip(delta / steer_max, -1.0, 1.0))
