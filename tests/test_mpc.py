"""
Tests for the receding-horizon optimizer.
"""

import dataclasses
import math

import numpy as np
import pytest

from waypoint_mpc.config.params import ActuatorLimits, SolverSettings
from waypoint_mpc.control.mpc import MPC, SolveFailure, Trajectory
from waypoint_mpc.track.polynomial import ReferenceCurve, polyfit
from waypoint_mpc.vehicle.dynamics import step
from waypoint_mpc.vehicle.state import VehicleState


def _initial_state(curve, v=10.0):
    return VehicleState(0.0, 0.0, 0.0, v, -curve.eval(0.0), -math.atan(curve.slope(0.0)))


@pytest.fixture
def curving_curve():
    return polyfit([0.0, 25.0, 50.0], [0.0, 2.0, 6.0], 2)


def test_straight_path_keeps_wheels_straight(config):
    curve = polyfit([0.0, 25.0, 50.0], [0.0, 0.0, 0.0], 2)
    result = MPC(config).solve(_initial_state(curve), curve)

    assert isinstance(result, Trajectory)
    assert result.first_actuation.delta == pytest.approx(0.0, abs=1e-4)
    assert np.all(np.abs(result.ys) < 1e-3)
    assert np.all(np.diff(result.xs) > 0.0)
    # Below the reference speed: accelerate
    assert result.first_actuation.a > 0.0


def test_curving_path_steers_toward_curve(config, curving_curve):
    result = MPC(config).solve(_initial_state(curving_curve), curving_curve)

    assert isinstance(result, Trajectory)
    assert result.first_actuation.delta > 0.0
    assert result.ys[-1] > 0.0
    assert np.all(result.ys >= -1e-6)


def test_trajectory_shape_and_dynamic_feasibility(config, curving_curve):
    x0 = _initial_state(curving_curve)
    result = MPC(config).solve(x0, curving_curve)
    N = config.horizon.N

    assert len(result.states) == N
    assert len(result.actuations) == N - 1
    assert result.states[0] == x0
    for k, u in enumerate(result.actuations):
        expected = step(result.states[k], u, config.horizon.dt, config.vehicle.lf, curving_curve)
        np.testing.assert_allclose(expected.as_array(), result.states[k + 1].as_array(), atol=1e-9)


@pytest.mark.parametrize("steer_max", [0.02, 0.1, math.radians(25.0)])
def test_actuations_respect_bounds(config, steer_max):
    limits = ActuatorLimits(steer_max=steer_max, accel_min=-0.5, accel_max=0.3)
    config = dataclasses.replace(config, limits=limits)
    # Tight turn that would like much more steering than allowed
    curve = ReferenceCurve((1.5, 0.6, 0.05))

    result = MPC(config).solve(_initial_state(curve, v=20.0), curve)

    assert isinstance(result, Trajectory)
    plan = result.plan()
    assert np.all(np.abs(plan[:, 0]) <= steer_max)
    assert np.all(plan[:, 1] >= -0.5)
    assert np.all(plan[:, 1] <= 0.3)


def test_zero_width_steering_with_corridor_is_infeasible(config, curving_curve):
    config = dataclasses.replace(config, limits=ActuatorLimits(steer_max=0.0), cte_limit=0.05)

    result = MPC(config).solve(_initial_state(curving_curve), curving_curve)

    assert isinstance(result, SolveFailure)
    assert result.iterations == 1


def test_corridor_is_respected_when_feasible(config, curving_curve):
    config = dataclasses.replace(config, cte_limit=0.5)
    result = MPC(config).solve(_initial_state(curving_curve), curving_curve)

    assert isinstance(result, Trajectory)
    # Rollout of the solved plan; allow for the linearization gap
    assert max(abs(s.cte) for s in result.states[1:]) < 0.5 + 0.05


def test_exhausted_time_budget_returns_failure(config, curving_curve):
    config = dataclasses.replace(config, solver=SolverSettings(time_budget=1e-9))

    result = MPC(config).solve(_initial_state(curving_curve), curving_curve)

    assert isinstance(result, SolveFailure)
    assert result.status == "deadline"


def test_warm_start_is_shifted_plan(config, curving_curve):
    mpc = MPC(config)
    first = mpc.solve(_initial_state(curving_curve), curving_curve)
    shifted = first.shifted_plan()

    assert shifted.shape == (config.horizon.N - 1, 2)
    np.testing.assert_allclose(shifted[:-1], first.plan()[1:])
    np.testing.assert_allclose(shifted[-1], first.plan()[-1])

    second = mpc.solve(_initial_state(curving_curve), curving_curve, warm_start=shifted)
    assert isinstance(second, Trajectory)
    assert second.first_actuation.delta > 0.0


def test_short_horizon_without_smoothing_terms(config, curving_curve):
    config = dataclasses.replace(config, horizon=dataclasses.replace(config.horizon, N=2))
    result = MPC(config).solve(_initial_state(curving_curve), curving_curve)

    assert isinstance(result, Trajectory)
    assert len(result.actuations) == 1


def test_solver_errors_are_returned_not_raised(config, curving_curve, recwarn):
    config = dataclasses.replace(config, limits=ActuatorLimits(steer_max=0.0), cte_limit=0.05)

    result = MPC(config).solve(_initial_state(curving_curve), curving_curve)

    assert isinstance(result, SolveFailure)
    assert not [w for w in recwarn if "raise_error" in str(w.message)]
