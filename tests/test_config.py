"""
Tests for controller configuration validation.
"""

import dataclasses
import math

import pytest

from waypoint_mpc.config.params import (
    ActuatorLimits,
    ControllerConfig,
    CostWeights,
    HorizonConfig,
    SolverSettings,
    VehicleParams,
)
from waypoint_mpc.control.errors import ConfigurationError


def test_defaults_match_reference_deployment():
    config = ControllerConfig()
    assert config.horizon.N == 10
    assert config.horizon.dt == pytest.approx(0.1)
    assert config.latency == pytest.approx(0.1)
    assert config.limits.steer_max == pytest.approx(math.radians(25.0))
    assert config.limits.lower == (pytest.approx(-math.radians(25.0)), -1.0)
    assert config.fit_degree == 3
    assert config.min_waypoints == 4
    assert config.weights.steer_rate > config.weights.steer


@pytest.mark.parametrize("kwargs", [{"N": 0}, {"N": 1}, {"dt": 0.0}, {"dt": -0.1}])
def test_invalid_horizon(kwargs):
    with pytest.raises(ConfigurationError):
        HorizonConfig(**kwargs)


def test_invalid_limits():
    with pytest.raises(ConfigurationError):
        ActuatorLimits(accel_min=1.0, accel_max=-1.0)
    with pytest.raises(ConfigurationError):
        ActuatorLimits(steer_max=-0.1)


def test_zero_width_steering_is_allowed():
    assert ActuatorLimits(steer_max=0.0).upper[0] == 0.0


def test_invalid_weights_and_vehicle():
    with pytest.raises(ConfigurationError):
        CostWeights(cte=-1.0)
    with pytest.raises(ConfigurationError):
        CostWeights(epsi=float("nan"))
    with pytest.raises(ConfigurationError):
        VehicleParams(lf=0.0)
    with pytest.raises(ConfigurationError):
        SolverSettings(time_budget=0.0)


@pytest.mark.parametrize(
    "kwargs",
    [{"latency": -0.1}, {"fit_degree": 0}, {"fallback_throttle": 2.0}, {"cte_limit": -1.0}, {"display_points": 0}],
)
def test_invalid_controller_config(kwargs):
    with pytest.raises(ConfigurationError):
        ControllerConfig(**kwargs)


def test_configuration_error_is_value_error():
    with pytest.raises(ValueError):
        HorizonConfig(N=0)


def test_config_is_immutable():
    config = ControllerConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.latency = 0.5
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.horizon.N = 3


def test_from_overrides_keeps_defaults_for_none():
    config = ControllerConfig.from_overrides(horizon=15, dt=None, latency=0.0, speed=None)
    assert config.horizon.N == 15
    assert config.horizon.dt == pytest.approx(0.1)
    assert config.latency == 0.0
    assert config.reference_speed == ControllerConfig().reference_speed


def test_from_overrides_validates():
    with pytest.raises(ConfigurationError):
        ControllerConfig.from_overrides(horizon=0)
