"""
Tests for the reference curve fitter.
"""

import numpy as np
import pytest

from waypoint_mpc.control.errors import MalformedTelemetryError
from waypoint_mpc.track.polynomial import ReferenceCurve, polyderiv, polyeval, polyfit


def test_exact_interpolation_when_degree_is_points_minus_one():
    xs = [-3.0, 4.0, 15.0, 31.0]
    ys = [1.5, -0.2, 3.3, 7.9]

    curve = polyfit(xs, ys, 3)

    np.testing.assert_allclose(curve.eval(np.array(xs)), ys, atol=1e-9)


def test_recovers_cubic_over_wide_station_range():
    xs = np.linspace(0.0, 100.0, 12)
    true = (0.5, -0.02, 3e-4, -2e-6)
    ys = polyeval(true, xs)

    curve = polyfit(xs, ys, 3)

    np.testing.assert_allclose(curve.coeffs, true, rtol=1e-6, atol=1e-9)


def test_least_squares_line_through_noisy_points():
    rng = np.random.default_rng(3)
    xs = np.linspace(0.0, 50.0, 40)
    ys = 2.0 + 0.3 * xs + rng.normal(0.0, 0.05, size=xs.size)

    curve = polyfit(xs, ys, 1)

    assert curve.coeffs[0] == pytest.approx(2.0, abs=0.1)
    assert curve.coeffs[1] == pytest.approx(0.3, abs=0.005)


def test_horner_matches_power_sum():
    coeffs = (1.0, -2.0, 0.5, 0.1)
    for x in (-2.0, 0.0, 1.5, 10.0):
        expected = sum(c * x**i for i, c in enumerate(coeffs))
        assert polyeval(coeffs, x) == pytest.approx(expected)


def test_polyeval_returns_float_for_scalars():
    assert isinstance(polyeval((1.0, 2.0), 3.0), float)


def test_derivative_coefficients():
    np.testing.assert_allclose(polyderiv((1.0, 2.0, 3.0, 4.0)), [2.0, 6.0, 12.0])
    np.testing.assert_allclose(polyderiv((5.0,)), [0.0])


def test_curve_slope():
    curve = ReferenceCurve((0.0, 0.04, 0.0016))
    assert curve.slope(0.0) == pytest.approx(0.04)
    assert curve.slope(10.0) == pytest.approx(0.04 + 2 * 0.0016 * 10.0)
    assert curve.degree == 2


@pytest.mark.parametrize("degree", [0, 3, 5])
def test_degree_outside_range_is_rejected(degree):
    with pytest.raises(MalformedTelemetryError):
        polyfit([0.0, 1.0, 2.0], [0.0, 1.0, 4.0], degree)


def test_mismatched_lengths_are_rejected():
    with pytest.raises(MalformedTelemetryError):
        polyfit([0.0, 1.0, 2.0, 3.0], [0.0, 1.0], 1)


def test_repeated_stations_are_rejected():
    with pytest.raises(MalformedTelemetryError):
        polyfit([1.0, 1.0, 1.0], [0.0, 1.0, 2.0], 2)
