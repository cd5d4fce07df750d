from dataclasses import dataclass

import numpy as np

# Index of each quantity in the 6-vector form of VehicleState
X, Y, PSI, V, CTE, EPSI = range(6)
NX = 6
NU = 2


@dataclass(frozen=True)
class VehicleState:
    x: float
    y: float
    psi: float
    v: float
    cte: float = 0.0
    epsi: float = 0.0

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.psi, self.v, self.cte, self.epsi], dtype=float)

    @classmethod
    def from_array(cls, z) -> "VehicleState":
        z = np.asarray(z, dtype=float)
        return cls(*(float(value) for value in z[:NX]))


@dataclass(frozen=True)
class Actuation:
    delta: float = 0.0
    a: float = 0.0

    def as_array(self) -> np.ndarray:
        return np.array([self.delta, self.a], dtype=float)

    @classmethod
    def from_array(cls, u) -> "Actuation":
        return cls(float(u[0]), float(u[1]))

    def clipped(self, limits) -> "Actuation":
        return Actuation(
            delta=float(np.clip(self.delta, -limits.steer_max, limits.steer_max)),
            a=float(np.clip(self.a, limits.accel_min, limits.accel_max)),
        )
