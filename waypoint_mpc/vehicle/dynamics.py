import numpy as np

from waypoint_mpc.vehicle.state import CTE, EPSI, PSI, V, X, Y, VehicleState


def step_array(z, u, dt, lf, curve=None, small_angle=False):
    """
    Kinematic bicycle model on the 6-vector state.

    Args:
        z: state [x, y, psi, v, cte, epsi]
        u: actuation [delta, a], held constant over the step
        dt: step duration
        lf: distance from center of mass to front axle
        curve: ReferenceCurve the tracking errors are measured against.
            Without it the errors are integrated as plain increments.
        small_angle: measure the heading error against the slope itself
            instead of its arctangent

    Returns:
        z_next: next state
    """
    x, y, psi, v, cte, epsi = z
    delta, a = u

    if curve is None:
        cte_ref, epsi_ref = cte, epsi
    else:
        cte_ref = y - curve.eval(x)
        slope = curve.slope(x)
        epsi_ref = psi - (slope if small_angle else np.arctan(slope))

    yaw_step = v / lf * delta * dt

    z_next = np.empty(6)
    z_next[X] = x + v * np.cos(psi) * dt
    z_next[Y] = y + v * np.sin(psi) * dt
    z_next[PSI] = psi + yaw_step
    z_next[V] = v + a * dt
    z_next[CTE] = cte_ref + v * np.sin(epsi) * dt
    z_next[EPSI] = epsi_ref + yaw_step
    return z_next


def step(state: VehicleState, actuation, dt: float, lf: float, curve=None, small_angle=False) -> VehicleState:
    """Advance a VehicleState by one step of duration dt."""
    z = step_array(state.as_array(), actuation.as_array(), dt, lf, curve, small_angle)
    return VehicleState.from_array(z)


def rollout(z0, actuations, dt, lf, curve=None, small_angle=False):
    """Integrate a sequence of actuations from z0. Returns len(actuations) + 1 states."""
    states = [np.asarray(z0, dtype=float)]
    for u in actuations:
        states.append(step_array(states[-1], u, dt, lf, curve, small_angle))
    return np.array(states)
