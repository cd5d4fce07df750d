from collections import deque

import numpy as np

from waypoint_mpc.vehicle.dynamics import step_array


class ActuatorModel:
    """Steering rate limit and saturation between the command and the wheels."""

    def __init__(self, steer_rate, steer_max, accel_min, accel_max):
        self.steer_rate = steer_rate
        self.steer_max = steer_max
        self.accel_min = accel_min
        self.accel_max = accel_max
        self.u = np.zeros(2)

    def apply(self, u_cmd, dt):
        du = np.clip(
            u_cmd - self.u,
            [-self.steer_rate*dt, -np.inf],
            [ self.steer_rate*dt,  np.inf]
        )
        self.u += du
        self.u[0] = np.clip(self.u[0], -self.steer_max, self.steer_max)
        self.u[1] = np.clip(self.u[1], self.accel_min, self.accel_max)
        return self.u.copy()


class SimulatedCar:
    """
    World-frame car driven by the kinematic model.

    Commands reach the actuators only after `latency` seconds, like the
    delayed actuation the controller compensates for.
    """

    def __init__(self, x, y, psi, v, lf, limits, latency=0.0, steer_rate=np.radians(120.0)):
        self.z = np.array([x, y, psi, v, 0.0, 0.0], dtype=float)
        self.lf = lf
        self.limits = limits
        self.latency = latency
        self.time = 0.0
        self.actuator = ActuatorModel(steer_rate, limits.steer_max, limits.accel_min, limits.accel_max)
        self._target = np.zeros(2)
        self._pending = deque()

    @property
    def pose(self):
        return float(self.z[0]), float(self.z[1]), float(self.z[2])

    @property
    def speed(self):
        return float(self.z[3])

    def send(self, steering, throttle):
        """Queue a command. steering is normalized to [-1, 1]."""
        delta = float(np.clip(steering, -1.0, 1.0)) * self.limits.steer_max
        self._pending.append((self.time + self.latency, np.array([delta, float(throttle)])))

    def advance(self, dt):
        while self._pending and self._pending[0][0] <= self.time + 1e-9:
            self._target = self._pending.popleft()[1]
        u = self.actuator.apply(self._target, dt)
        self.z = step_array(self.z, u, dt, self.lf)
        self.z[3] = max(self.z[3], 0.0)
        self.time += dt
        return self.z.copy()
