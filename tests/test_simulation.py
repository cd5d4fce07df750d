"""
Closed-loop tests: the controller drives the simulated car along a road.
"""

import dataclasses

import numpy as np
import pytest

from waypoint_mpc.config.params import ControllerConfig
from waypoint_mpc.sim.runner import run_simulation
from waypoint_mpc.sim.track import (
    circular_track,
    lateral_offset,
    nearest_index,
    sinusoidal_track,
    start_pose,
    waypoints_ahead,
)
from waypoint_mpc.sim.vehicle import SimulatedCar


def test_waypoints_ahead_on_open_road():
    center, _ = sinusoidal_track()

    xs, ys = waypoints_ahead(center, center[10], count=6)

    assert len(xs) == len(ys) == 6
    assert xs[0] < center[10, 0] < xs[-1]
    assert np.all(np.diff(xs) > 0)

    # Near the end the window stops at the last point
    xs, _ = waypoints_ahead(center, center[-1], count=6)
    assert len(xs) == 6
    assert xs[-1] == center[-1, 0]


def test_waypoints_ahead_wraps_on_closed_road():
    center, _ = circular_track(points=120)

    xs, ys = waypoints_ahead(center, center[119], count=6, closed=True)

    np.testing.assert_allclose(xs[2], center[0, 0])
    np.testing.assert_allclose(ys[2], center[0, 1])


def test_lateral_offset_sign():
    center = np.array([[0.0, 0.0], [10.0, 0.0], [20.0, 0.0]])
    assert lateral_offset(center, (5.0, 1.5)) == pytest.approx(1.5)
    assert lateral_offset(center, (15.0, -2.0)) == pytest.approx(-2.0)
    assert nearest_index(center, (11.0, 3.0)) == 1


def test_start_pose_follows_first_segment():
    center = np.array([[0.0, 0.0], [0.0, 5.0], [0.0, 10.0]])
    assert start_pose(center) == pytest.approx((0.0, 0.0, np.pi / 2))


def test_command_takes_effect_after_latency():
    config = ControllerConfig()
    car = SimulatedCar(0.0, 0.0, 0.0, 10.0, config.vehicle.lf, config.limits, latency=0.1)

    car.send(0.0, 1.0)
    car.advance(0.05)
    assert car.speed == pytest.approx(10.0)

    for _ in range(3):
        car.advance(0.05)
    assert car.speed > 10.0


@pytest.fixture
def sim_config(config):
    return dataclasses.replace(config, fit_degree=3, reference_speed=15.0)


def test_closed_loop_stays_on_road(sim_config):
    center, width = sinusoidal_track()

    result = run_simulation(sim_config, center, steps=40, initial_speed=10.0)

    assert result.steps == 40
    assert result.rejected == 0
    assert result.failures <= result.steps // 10
    assert all(-1.0 <= c.steering_angle <= 1.0 for c in result.commands)
    summary = result.summary()
    assert summary["max_lateral_error"] < width / 2
    assert summary["mean_speed"] > 10.0


def test_closed_loop_on_circle(sim_config):
    center, width = circular_track()

    result = run_simulation(sim_config, center, steps=30, closed=True)

    assert result.steps == 30
    assert result.summary()["max_lateral_error"] < width / 2
    # Counter-clockwise circle: the controller steers left
    assert np.mean([c.steering_angle for c in result.commands[5:]]) > 0.0


def test_simulate_cli_writes_plot(tmp_path, monkeypatch):
    from waypoint_mpc import simulate
    from waypoint_mpc.config.params import SolverSettings

    # Keep solves inside their deadline on slow machines
    build = ControllerConfig.from_overrides.__func__

    def generous(cls, **kwargs):
        config = build(cls, **kwargs)
        return dataclasses.replace(config, solver=SolverSettings(time_budget=5.0))

    monkeypatch.setattr(ControllerConfig, "from_overrides", classmethod(generous))
    output = tmp_path / "run.png"
    gif = tmp_path / "run.gif"

    result = simulate.main(["--steps", "5", "--speed", "15", "--output", str(output), "--gif", str(gif)])

    assert result.steps == 5
    assert output.exists()
    assert gif.exists()
