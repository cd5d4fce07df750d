import numpy as np

from waypoint_mpc.vehicle.dynamics import step_array


def linearize(x, u, dt, lf, curve=None, small_angle=False):
    """
    Finite-difference linearization of the kinematic model around (x, u).

    Returns A, B, c such that step(x', u') ~= A x' + B u' + c near (x, u).
    """
    eps = 1e-5
    x = np.asarray(x, dtype=float)
    u = np.asarray(u, dtype=float)
    nx, nu = len(x), len(u)
    f0 = step_array(x, u, dt, lf, curve, small_angle)

    A = np.zeros((nx, nx))
    B = np.zeros((nx, nu))

    for i in range(nx):
        dx = np.zeros(nx)
        dx[i] = eps
        A[:, i] = (step_array(x + dx, u, dt, lf, curve, small_angle) - f0) / eps

    for i in range(nu):
        du = np.zeros(nu)
        du[i] = eps
        B[:, i] = (step_array(x, u + du, dt, lf, curve, small_angle) - f0) / eps

    c = f0 - A @ x - B @ u
    return A, B, c
