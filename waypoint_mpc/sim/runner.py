"""
Closed-loop simulation: a simulated car reports telemetry, the controller
answers, the car applies the command after the actuation delay.
"""
import logging
from dataclasses import dataclass, field

import numpy as np

from waypoint_mpc.control.controller import ControllerSession, Telemetry
from waypoint_mpc.sim.track import lateral_offset, nearest_index, start_pose, waypoints_ahead
from waypoint_mpc.sim.vehicle import SimulatedCar
from waypoint_mpc.track.frame import to_world_frame

logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    states: list = field(default_factory=list)
    commands: list = field(default_factory=list)
    predictions: list = field(default_factory=list)
    lateral_errors: list = field(default_factory=list)
    solve_times: list = field(default_factory=list)
    failures: int = 0
    rejected: int = 0

    @property
    def steps(self):
        return len(self.commands)

    def summary(self):
        errors = np.abs(np.asarray(self.lateral_errors)) if self.lateral_errors else np.zeros(1)
        states = np.asarray(self.states) if self.states else np.zeros((1, 6))
        return {
            "steps": self.steps,
            "mean_lateral_error": float(np.mean(errors)),
            "max_lateral_error": float(np.max(errors)),
            "mean_speed": float(np.mean(states[:, 3])),
            "failures": self.failures,
            "rejected": self.rejected,
            "mean_solve_time": float(np.mean(self.solve_times)) if self.solve_times else 0.0,
        }


def run_simulation(config, center, steps=200, control_period=0.1, sim_dt=0.02,
                   initial_speed=10.0, waypoint_count=6, closed=False, session=None):
    """
    Drive a simulated car along the center line with the MPC controller.

    Args:
        config: ControllerConfig shared by the controller and the car
        center: road center line [M, 2]
        steps: number of control cycles
        control_period: time between telemetry messages (s)
        sim_dt: integration step of the simulated car (s)
        initial_speed: starting speed
        waypoint_count: waypoints reported per telemetry message
        closed: whether the center line loops

    Returns:
        SimulationResult
    """
    session = session or ControllerSession(config)
    x0, y0, psi0 = start_pose(center)
    car = SimulatedCar(x0, y0, psi0, initial_speed, config.vehicle.lf, config.limits, latency=config.latency)
    result = SimulationResult()
    substeps = max(1, int(round(control_period / sim_dt)))

    for t in range(steps):
        x, y, psi = car.pose
        if not closed and nearest_index(center, (x, y)) >= len(center) - 2:
            logger.info("End of road reached after %d steps", t)
            break

        ptsx, ptsy = waypoints_ahead(center, (x, y), waypoint_count, closed)
        telemetry = Telemetry(x, y, psi, car.speed, tuple(ptsx), tuple(ptsy))
        command = session.handle_telemetry(telemetry)

        if command is None:
            result.rejected += 1
        else:
            car.send(command.steering_angle, command.throttle)
            result.commands.append(command)
            if not command.solved:
                result.failures += 1
            else:
                result.solve_times.append(session.last_result.solve_time)
                px, py = to_world_frame(x, y, psi, command.mpc_x, command.mpc_y)
                result.predictions.append(np.column_stack([px, py]))

        for _ in range(substeps):
            car.advance(sim_dt)
        result.states.append(car.z.copy())
        result.lateral_errors.append(lateral_offset(center, car.z, closed))

        if t % 50 == 0:
            logger.info(
                "Step %d/%d: Position (%.1f, %.1f), Speed: %.1f, Lateral error: %.2f",
                t, steps, car.z[0], car.z[1], car.z[3], result.lateral_errors[-1],
            )

    return result
