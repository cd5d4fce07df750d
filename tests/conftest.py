import pytest

from waypoint_mpc.config.params import ControllerConfig, SolverSettings


@pytest.fixture
def solver_settings():
    # Generous budget so slow machines do not turn solves into deadline failures
    return SolverSettings(time_budget=5.0)


@pytest.fixture
def config(solver_settings):
    """Default controller, quadratic fit so three waypoints are enough."""
    return ControllerConfig(solver=solver_settings, fit_degree=2)


@pytest.fixture
def straight_waypoints():
    return {"ptsx": [0.0, 25.0, 50.0], "ptsy": [0.0, 0.0, 0.0]}


@pytest.fixture
def curving_waypoints():
    return {"ptsx": [0.0, 25.0, 50.0], "ptsy": [0.0, 2.0, 6.0]}
