"""
Reference curve fitting.

Waypoints in the vehicle frame are summarized by a low-order polynomial
y = c0 + c1 x + c2 x^2 + ... (coefficients lowest order first).
"""
from dataclasses import dataclass

import numpy as np
from scipy.linalg import solve_triangular

from waypoint_mpc.control.errors import MalformedTelemetryError


def polyeval(coeffs, x):
    """Evaluate a polynomial with Horner's scheme. x may be a scalar or an array."""
    x = np.asarray(x, dtype=float)
    result = np.zeros_like(x)
    for c in reversed(coeffs):
        result = result * x + c
    return float(result) if result.ndim == 0 else result


def polyderiv(coeffs):
    coeffs = np.asarray(coeffs, dtype=float)
    if len(coeffs) <= 1:
        return np.zeros(1)
    return coeffs[1:] * np.arange(1, len(coeffs))


def vandermonde(xs, degree):
    """Design matrix with columns 1, x, x^2, ..., x^degree."""
    xs = np.asarray(xs, dtype=float)
    A = np.ones((len(xs), degree + 1))
    for j in range(degree):
        A[:, j + 1] = A[:, j] * xs
    return A


def polyfit(xs, ys, degree):
    """
    Least-squares polynomial fit through (xs, ys).

    Solved with a Householder QR factorization of the Vandermonde matrix
    instead of the normal equations, which square its condition number.

    Raises:
        MalformedTelemetryError: mismatched lengths or degree outside
            [1, len(xs) - 1].
    """
    xs = np.asarray(xs, dtype=float).ravel()
    ys = np.asarray(ys, dtype=float).ravel()
    if xs.shape != ys.shape:
        raise MalformedTelemetryError(f"Cannot fit {xs.size} x values against {ys.size} y values.")
    if not 1 <= degree <= len(xs) - 1:
        raise MalformedTelemetryError(
            f"A degree {degree} fit needs at least {degree + 1} points, got {len(xs)}."
        )

    A = vandermonde(xs, degree)
    Q, R = np.linalg.qr(A, mode="reduced")
    if np.any(np.abs(np.diag(R)) < 1e-12 * max(1.0, np.abs(R).max())):
        raise MalformedTelemetryError("Waypoint stations are not distinct enough for the fit degree.")
    coeffs = solve_triangular(R, Q.T @ ys, lower=False)
    return ReferenceCurve(tuple(float(c) for c in coeffs))


@dataclass(frozen=True)
class ReferenceCurve:
    coeffs: tuple

    @property
    def degree(self) -> int:
        return len(self.coeffs) - 1

    def eval(self, x):
        return polyeval(self.coeffs, x)

    def slope(self, x):
        return polyeval(polyderiv(self.coeffs), x)

    def sample(self, xs):
        xs = np.asarray(xs, dtype=float)
        return xs, self.eval(xs)
