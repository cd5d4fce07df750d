import logging
import time
from dataclasses import dataclass

import numpy as np
import osqp
import scipy.sparse as sp

from waypoint_mpc.control.linearize import linearize
from waypoint_mpc.vehicle.dynamics import rollout
from waypoint_mpc.vehicle.state import CTE, EPSI, NU, NX, V, Actuation, VehicleState

logger = logging.getLogger(__name__)

# OSQP status values accepted as a solution: solved, solved inaccurate
_ACCEPTED_STATUS = (1, 2)


@dataclass(frozen=True)
class Trajectory:
    """Result of a successful solve: N states and the N-1 actuations between them."""

    states: tuple
    actuations: tuple
    iterations: int
    solve_time: float
    converged: bool = True

    @property
    def first_actuation(self) -> Actuation:
        return self.actuations[0]

    @property
    def xs(self) -> np.ndarray:
        return np.array([s.x for s in self.states])

    @property
    def ys(self) -> np.ndarray:
        return np.array([s.y for s in self.states])

    def plan(self) -> np.ndarray:
        return np.array([u.as_array() for u in self.actuations])

    def shifted_plan(self) -> np.ndarray:
        """Actuation plan advanced by one step, last action repeated. Used as a warm start."""
        plan = self.plan()
        return np.vstack([plan[1:], plan[-1:]])


@dataclass(frozen=True)
class SolveFailure:
    reason: str
    status: str = ""
    iterations: int = 0
    solve_time: float = 0.0


class MPC:
    """
    Nonlinear receding-horizon optimizer, solved by sequential quadratic programming.

    Every iteration linearizes the kinematic model around the current guess,
    casts the horizon problem as a QP and solves it with OSQP. The guess is
    then replaced by a rollout of the new actuation plan through the nonlinear
    model.

    Decision vector z is stacked as:
    [x_0, ..., x_{N-1}, u_0, ..., u_{N-2}, (u_1-u_0), ..., (u_{N-2}-u_{N-3})]
    """

    def __init__(self, config):
        self.config = config
        self.N = config.horizon.N
        self.dt = config.horizon.dt
        self.lf = config.vehicle.lf
        self.small_angle = config.small_angle_heading_error
        self.n_inputs = self.N - 1
        self.n_jerks = max(self.N - 2, 0)
        self.u_offset = self.N * NX
        self.du_offset = self.u_offset + self.n_inputs * NU
        self.total_vars = self.du_offset + self.n_jerks * NU
        self.umin = np.array(config.limits.lower, dtype=float)
        self.umax = np.array(config.limits.upper, dtype=float)
        self.P, self.q = self._build_cost()

    def _build_cost(self):
        """
        Build QP objective:
        sum w_cte cte_k^2 + w_epsi epsi_k^2 + w_v (v_k - v_ref)^2
            + ||u_k||_R^2 + ||u_{k+1} - u_k||_Rj^2
        """
        w = self.config.weights
        state_w = np.zeros(NX)
        state_w[V] = w.speed
        state_w[CTE] = w.cte
        state_w[EPSI] = w.epsi

        blocks = [
            sp.kron(sp.eye(self.N), sp.diags(state_w)),
            sp.kron(sp.eye(self.n_inputs), sp.diags([w.steer, w.accel])),
        ]
        if self.n_jerks:
            blocks.append(sp.kron(sp.eye(self.n_jerks), sp.diags([w.steer_rate, w.accel_rate])))
        P = sp.block_diag(blocks, format="csc")

        q = np.zeros(self.total_vars)
        for k in range(self.N):
            q[k * NX + V] = -w.speed * self.config.reference_speed

        return P, q

    def _state_slice(self, k):
        return slice(k * NX, (k + 1) * NX)

    def _input_slice(self, k):
        return slice(self.u_offset + k * NU, self.u_offset + (k + 1) * NU)

    def _build_dynamics_constraints(self, x0, A, B, c):
        """
        Enforce x_0 = initial state and x_{k+1} = A_k x_k + B_k u_k + c_k.
        """
        rows, lower, upper = [], [], []

        row = np.zeros((NX, self.total_vars))
        row[:, self._state_slice(0)] = np.eye(NX)
        rows.append(row)
        lower.append(x0)
        upper.append(x0)

        for k in range(self.n_inputs):
            row = np.zeros((NX, self.total_vars))
            row[:, self._state_slice(k)] = -A[k]
            row[:, self._state_slice(k + 1)] = np.eye(NX)
            row[:, self._input_slice(k)] = -B[k]
            rows.append(row)
            lower.append(c[k])
            upper.append(c[k])

        return rows, lower, upper

    def _build_input_constraints(self):
        """Box constraints u_min <= u_k <= u_max."""
        rows, lower, upper = [], [], []
        for k in range(self.n_inputs):
            row = np.zeros((NU, self.total_vars))
            row[:, self._input_slice(k)] = np.eye(NU)
            rows.append(row)
            lower.append(self.umin)
            upper.append(self.umax)
        return rows, lower, upper

    def _build_jerk_constraints(self):
        """
        Define jerk variables as delta_u_k = u_{k+1} - u_k.
        No explicit bounds are added here; cost on delta_u regularizes changes.
        """
        rows, lower, upper = [], [], []
        for k in range(self.n_jerks):
            row = np.zeros((NU, self.total_vars))
            du_k = slice(self.du_offset + k * NU, self.du_offset + (k + 1) * NU)
            row[:, self._input_slice(k + 1)] = np.eye(NU)
            row[:, self._input_slice(k)] = -np.eye(NU)
            row[:, du_k] = -np.eye(NU)
            rows.append(row)
            lower.append(np.zeros(NU))
            upper.append(np.zeros(NU))
        return rows, lower, upper

    def _build_corridor_constraints(self):
        """|cte_k| <= cte_limit for every predicted step."""
        limit = self.config.cte_limit
        rows, lower, upper = [], [], []
        if limit is None:
            return rows, lower, upper
        for k in range(1, self.N):
            row = np.zeros((1, self.total_vars))
            row[0, k * NX + CTE] = 1.0
            rows.append(row)
            lower.append([-limit])
            upper.append([limit])
        return rows, lower, upper

    def _initial_plan(self, warm_start):
        plan = np.zeros((self.n_inputs, NU))
        if warm_start is not None:
            warm_start = np.asarray(warm_start, dtype=float).reshape(-1, NU)
            n = min(len(warm_start), self.n_inputs)
            if n:
                plan[:n] = warm_start[:n]
                plan[n:] = warm_start[n - 1]
        return np.clip(plan, self.umin, self.umax)

    def _pack(self, states, plan):
        z = np.zeros(self.total_vars)
        z[:self.u_offset] = states.ravel()
        z[self.u_offset:self.du_offset] = plan.ravel()
        if self.n_jerks:
            z[self.du_offset:] = np.diff(plan, axis=0).ravel()
        return z

    def _solve_qp(self, x0, states, plan, curve, time_limit):
        A, B, c = [], [], []
        for k in range(self.n_inputs):
            a, b, cc = linearize(states[k], plan[k], self.dt, self.lf, curve, self.small_angle)
            A.append(a)
            B.append(b)
            c.append(cc)

        rows, l, u = [], [], []
        builders = [
            self._build_dynamics_constraints(x0, A, B, c),
            self._build_input_constraints(),
            self._build_jerk_constraints(),
            self._build_corridor_constraints(),
        ]
        for block_rows, block_l, block_u in builders:
            rows.extend(block_rows)
            l.extend(block_l)
            u.extend(block_u)

        Aqp = sp.csc_matrix(np.vstack(rows))
        lqp = np.hstack(l)
        uqp = np.hstack(u)

        settings = self.config.solver
        solver = osqp.OSQP()
        solver.setup(
            P=self.P, q=self.q, A=Aqp, l=lqp, u=uqp,
            warm_start=True, verbose=False,
            eps_abs=settings.eps_abs, eps_rel=settings.eps_rel,
            max_iter=settings.max_qp_iterations, time_limit=time_limit,
        )
        solver.warm_start(x=self._pack(states, plan))
        return solver.solve(raise_error=False)

    def solve(self, initial_state: VehicleState, curve, warm_start=None):
        """
        Plan N steps from initial_state along curve.

        Args:
            initial_state: state the first actuation will act on
            curve: ReferenceCurve in the same frame as initial_state
            warm_start: optional actuation plan of shape (N-1, 2) to start from

        Returns:
            Trajectory on success, SolveFailure when the QP is infeasible, the
            solver fails or the time budget runs out.
        """
        settings = self.config.solver
        start = time.perf_counter()
        x0 = initial_state.as_array()
        plan = self._initial_plan(warm_start)
        states = rollout(x0, plan, self.dt, self.lf, curve, self.small_angle)

        converged = False
        iteration = 0
        for iteration in range(1, settings.max_iterations + 1):
            remaining = settings.time_budget - (time.perf_counter() - start)
            if remaining <= 0.0:
                return self._fail("time budget exhausted", "deadline", iteration - 1, start)

            try:
                res = self._solve_qp(x0, states, plan, curve, remaining)
            except ValueError as exc:
                logger.warning("OSQP rejected the problem: %s", exc)
                return self._fail(f"solver error: {exc}", "error", iteration, start)

            if res.x is None or res.info.status_val not in _ACCEPTED_STATUS or not np.all(np.isfinite(res.x)):
                return self._fail("QP not solved", str(res.info.status), iteration, start)

            new_plan = res.x[self.u_offset:self.du_offset].reshape(self.n_inputs, NU)
            new_plan = np.clip(new_plan, self.umin, self.umax)
            change = float(np.max(np.abs(new_plan - plan))) if self.n_inputs else 0.0
            plan = new_plan
            states = rollout(x0, plan, self.dt, self.lf, curve, self.small_angle)
            if change < settings.tolerance:
                converged = True
                break

        elapsed = time.perf_counter() - start
        if elapsed > settings.time_budget:
            return self._fail("time budget exhausted", "deadline", iteration, start)
        if not converged:
            logger.debug("SQP stopped after %d iterations without meeting tolerance", iteration)

        return Trajectory(
            states=tuple(VehicleState.from_array(s) for s in states),
            actuations=tuple(Actuation.from_array(u) for u in plan),
            iterations=iteration,
            solve_time=elapsed,
            converged=converged,
        )

    def _fail(self, reason, status, iterations, start):
        failure = SolveFailure(
            reason=reason,
            status=status,
            iterations=iterations,
            solve_time=time.perf_counter() - start,
        )
        logger.debug("Solve failed: %s", failure)
        return failure
