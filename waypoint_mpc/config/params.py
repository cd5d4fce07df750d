"""
Controller defaults and the immutable configuration built from them.

The module constants are the reference deployment values. Code never reads
them directly during a cycle: they are folded into a frozen ControllerConfig
at startup and passed to the controller explicitly.
"""
import math
from dataclasses import dataclass, field, fields, replace

from waypoint_mpc.control.errors import ConfigurationError

DT = 0.1
HORIZON = 10  # 1 second at 0.1s dt
LATENCY = 0.1  # actuation-to-effect delay [s]

# Distance between the center of mass and the front axle [m]
LF = 2.67

STEER_MAX = math.radians(25.0)
ACCEL_MIN = -1.0
ACCEL_MAX = 1.0

REFERENCE_SPEED = 40.0
FIT_DEGREE = 3

# Command sent when the optimizer fails
FALLBACK_THROTTLE = 0.1

# Reference curve samples sent back for display
DISPLAY_STEP = 5.0
DISPLAY_POINTS = 20

# MPC weights
WEIGHTS = dict(
    cte=2000.0,
    epsi=2000.0,
    speed=1.0,
    steer=5.0,
    accel=5.0,
    steer_rate=200.0,
    accel_rate=10.0,
)

SOLVER = dict(
    max_iterations=8,
    tolerance=1e-3,
    time_budget=0.08,  # seconds per solve, inside a 100 ms control period
    eps_abs=1e-5,
    eps_rel=1e-5,
    max_qp_iterations=20000,
)


@dataclass(frozen=True)
class HorizonConfig:
    N: int = HORIZON
    dt: float = DT

    def __post_init__(self):
        if not isinstance(self.N, int) or self.N < 2:
            raise ConfigurationError(f"Horizon length must be an integer >= 2, got {self.N!r}.")
        if not self.dt > 0.0:
            raise ConfigurationError(f"Step duration must be positive, got {self.dt!r}.")

    @property
    def duration(self) -> float:
        return (self.N - 1) * self.dt


@dataclass(frozen=True)
class VehicleParams:
    lf: float = LF

    def __post_init__(self):
        if not self.lf > 0.0:
            raise ConfigurationError(f"lf must be positive, got {self.lf!r}.")


@dataclass(frozen=True)
class ActuatorLimits:
    steer_max: float = STEER_MAX
    accel_min: float = ACCEL_MIN
    accel_max: float = ACCEL_MAX

    def __post_init__(self):
        # A zero-width steering range is allowed, an inverted one is not.
        if not self.steer_max >= 0.0:
            raise ConfigurationError(f"steer_max must be >= 0, got {self.steer_max!r}.")
        if not self.accel_min <= self.accel_max:
            raise ConfigurationError(
                f"Acceleration bounds are inverted: [{self.accel_min}, {self.accel_max}]."
            )

    @property
    def lower(self):
        return (-self.steer_max, self.accel_min)

    @property
    def upper(self):
        return (self.steer_max, self.accel_max)


@dataclass(frozen=True)
class CostWeights:
    cte: float = WEIGHTS["cte"]
    epsi: float = WEIGHTS["epsi"]
    speed: float = WEIGHTS["speed"]
    steer: float = WEIGHTS["steer"]
    accel: float = WEIGHTS["accel"]
    steer_rate: float = WEIGHTS["steer_rate"]
    accel_rate: float = WEIGHTS["accel_rate"]

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if not (math.isfinite(value) and value >= 0.0):
                raise ConfigurationError(f"Weight {f.name!r} must be finite and >= 0, got {value!r}.")


@dataclass(frozen=True)
class SolverSettings:
    max_iterations: int = SOLVER["max_iterations"]
    tolerance: float = SOLVER["tolerance"]
    time_budget: float = SOLVER["time_budget"]
    eps_abs: float = SOLVER["eps_abs"]
    eps_rel: float = SOLVER["eps_rel"]
    max_qp_iterations: int = SOLVER["max_qp_iterations"]

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ConfigurationError("max_iterations must be >= 1.")
        if not self.time_budget > 0.0:
            raise ConfigurationError("time_budget must be positive.")
        if not self.tolerance > 0.0:
            raise ConfigurationError("tolerance must be positive.")


@dataclass(frozen=True)
class ControllerConfig:
    """Process-wide controller configuration. Never mutated after startup."""

    horizon: HorizonConfig = field(default_factory=HorizonConfig)
    vehicle: VehicleParams = field(default_factory=VehicleParams)
    limits: ActuatorLimits = field(default_factory=ActuatorLimits)
    weights: CostWeights = field(default_factory=CostWeights)
    solver: SolverSettings = field(default_factory=SolverSettings)
    reference_speed: float = REFERENCE_SPEED
    latency: float = LATENCY
    fit_degree: int = FIT_DEGREE
    fallback_throttle: float = FALLBACK_THROTTLE
    cte_limit: float | None = None
    small_angle_heading_error: bool = False
    display_step: float = DISPLAY_STEP
    display_points: int = DISPLAY_POINTS

    def __post_init__(self):
        if not self.latency >= 0.0:
            raise ConfigurationError(f"Latency must be >= 0, got {self.latency!r}.")
        if not isinstance(self.fit_degree, int) or self.fit_degree < 1:
            raise ConfigurationError(f"Fit degree must be an integer >= 1, got {self.fit_degree!r}.")
        if not math.isfinite(self.reference_speed):
            raise ConfigurationError("Reference speed must be finite.")
        if not self.limits.accel_min <= self.fallback_throttle <= self.limits.accel_max:
            raise ConfigurationError(
                f"Fallback throttle {self.fallback_throttle} lies outside the acceleration bounds."
            )
        if self.cte_limit is not None and not self.cte_limit >= 0.0:
            raise ConfigurationError(f"cte_limit must be >= 0, got {self.cte_limit!r}.")
        if self.display_points < 1 or not self.display_step > 0.0:
            raise ConfigurationError("Display sampling needs at least one point and a positive step.")

    @property
    def min_waypoints(self) -> int:
        return self.fit_degree + 1

    @classmethod
    def from_overrides(cls, horizon=None, dt=None, latency=None, speed=None, **kwargs):
        """Build a config from the defaults, replacing only the values given.

        None means "keep the default", which lets argparse results pass straight in.
        """
        config = cls(**{k: v for k, v in kwargs.items() if v is not None})
        horizon_kw = {}
        if horizon is not None:
            horizon_kw["N"] = horizon
        if dt is not None:
            horizon_kw["dt"] = dt
        top = {}
        if horizon_kw:
            top["horizon"] = replace(config.horizon, **horizon_kw)
        if latency is not None:
            top["latency"] = latency
        if speed is not None:
            top["reference_speed"] = speed
        return replace(config, **top) if top else config
