"""Worldtube orbit integrator: the single actor evolving the orbit and near-field.

State vector y = [x (3), v (3), Psi0, dtPsi0], advanced with an explicit
Runge-Kutta tableau. Every RK stage is one sub-step of the two-phase protocol:

  broadcast()  -> KinematicsBroadcast valid for the sub-step
  receive(r)   -> consume the reduction of adjacent-element samples

The right-hand side is
  dx/dt      = v
  dv/dt      = geodesic acceleration (+ self-force acceleration if Mass > 0)
  dPsi0/dt   = dtPsi0
  ddtPsi0/dt = 3 <∂_n Ψ_R> / R

where <.> is the area mean over the worldtube boundary of radius R. At
expansion order 1 the dipole coefficient Psi1 = 3 <Ψ_R n> / R is refreshed
from each reduction; at order 0 it stays zero.

Lifecycle: UNINITIALIZED -> SEEDED -> STEPPING -> TERMINATED. Calling the
phases out of order raises RuntimeError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

import numpy as np

from .functions_of_time import FunctionsOfTime
from .geometry import ExcisionGeometry
from .kinematics import (
    MapParticleKinematics,
    ParticleKinematics,
    evolved_particle_kinematics,
    geodesic_acceleration,
    self_force_acceleration,
)
from .puncture import check_expansion_order
from .utils.logging import get_logger, log_metrics

if TYPE_CHECKING:  # pragma: no cover
    from .coupling import Reduction

__all__ = [
    "ButcherTableau",
    "TIME_STEPPERS",
    "WorldtubeStatus",
    "KinematicsBroadcast",
    "WorldtubeOrbitIntegrator",
]

logger = get_logger("worldtube.integrator")


@dataclass(frozen=True)
class ButcherTableau:
    a: Tuple[Tuple[float, ...], ...]
    b: Tuple[float, ...]
    c: Tuple[float, ...]

    def __post_init__(self) -> None:
        n = len(self.b)
        if n < 1 or len(self.a) != n or len(self.c) != n:
            raise ValueError("tableau a, b, c must describe the same number of stages")
        for i, row in enumerate(self.a):
            if len(row) != i:
                raise ValueError("tableau must be explicit (row i has i entries)")
        if abs(sum(self.b) - 1.0) > 1e-14:
            raise ValueError("tableau weights b must sum to 1")

    @property
    def num_stages(self) -> int:
        return len(self.b)


TIME_STEPPERS: Dict[str, ButcherTableau] = {
    "euler": ButcherTableau(a=((),), b=(1.0,), c=(0.0,)),
    "heun": ButcherTableau(a=((), (1.0,)), b=(0.5, 0.5), c=(0.0, 1.0)),
    "rk4": ButcherTableau(
        a=((), (0.5,), (0.0, 0.5), (0.0, 0.0, 1.0)),
        b=(1.0 / 6.0, 1.0 / 3.0, 1.0 / 3.0, 1.0 / 6.0),
        c=(0.0, 0.5, 0.5, 1.0),
    ),
}


class WorldtubeStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    SEEDED = "seeded"
    STEPPING = "stepping"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class KinematicsBroadcast:
    """Everything adjacent elements need for one sub-step; immutable once published."""

    time: float
    step: int
    substep: int
    position: np.ndarray
    velocity: np.ndarray
    acceleration: np.ndarray  # geodesic plus self-force (Mass > 0) at (position, velocity)
    psi0: float
    dt_psi0: float
    psi1: np.ndarray

    @property
    def kinematics(self) -> ParticleKinematics:
        return ParticleKinematics(position=self.position, velocity=self.velocity)


class WorldtubeOrbitIntegrator:
    """Owns and exclusively mutates (position, velocity, Psi0, dtPsi0)."""

    def __init__(
        self,
        geometry: ExcisionGeometry,
        charge: float,
        mass: float = 0.0,
        expansion_order: int = 0,
        time_stepper: str = "rk4",
    ) -> None:
        if time_stepper not in TIME_STEPPERS:
            raise ValueError(f"time_stepper must be one of {sorted(TIME_STEPPERS)}")
        if not (np.isfinite(mass) and float(mass) >= 0.0):
            raise ValueError("mass must be a finite float >= 0")
        self._geometry = geometry
        self._charge = float(charge)
        self._mass = float(mass)
        self._order = check_expansion_order(expansion_order)
        self._tableau = TIME_STEPPERS[time_stepper]

        self._status = WorldtubeStatus.UNINITIALIZED
        self._time = float("nan")
        self._step = 0
        self._y = np.full(8, np.nan)
        self._psi1 = np.zeros(3, dtype=float)

        # Per-step RK bookkeeping
        self._dt: Optional[float] = None
        self._y0: Optional[np.ndarray] = None
        self._stage_derivs: List[np.ndarray] = []
        self._awaiting: Optional[np.ndarray] = None

    # ---- read-only views ----

    @property
    def status(self) -> WorldtubeStatus:
        return self._status

    @property
    def time(self) -> float:
        return self._time

    @property
    def step_number(self) -> int:
        return self._step

    @property
    def expansion_order(self) -> int:
        return self._order

    @property
    def charge(self) -> float:
        return self._charge

    @property
    def mass(self) -> float:
        return self._mass

    @property
    def kinematics(self) -> ParticleKinematics:
        """State-based producer of (position, velocity)."""
        return evolved_particle_kinematics(self._y[0:3], self._y[3:6])

    @property
    def psi0(self) -> float:
        return float(self._y[6])

    @property
    def dt_psi0(self) -> float:
        return float(self._y[7])

    @property
    def psi1(self) -> np.ndarray:
        return self._psi1.copy()

    def coefficients(self) -> Dict[str, float]:
        return {
            "psi0": self.psi0,
            "dt_psi0": self.dt_psi0,
            "psi1_x": float(self._psi1[0]),
            "psi1_y": float(self._psi1[1]),
            "psi1_z": float(self._psi1[2]),
        }

    # ---- lifecycle ----

    def seed(
        self,
        initial_time: float,
        functions_of_time: FunctionsOfTime,
        psi0: float = 0.0,
        dt_psi0: float = 0.0,
        initial_reduction: Optional["Reduction"] = None,
    ) -> None:
        """Seed position/velocity from the map at t0 and the regular-field coefficients."""
        if self._status is not WorldtubeStatus.UNINITIALIZED:
            raise RuntimeError(f"seed() called in state {self._status.value}")
        kin = MapParticleKinematics(self._geometry)(initial_time, functions_of_time)
        if initial_reduction is not None:
            psi0 = initial_reduction.mean_psi
            if self._order >= 1:
                self._psi1 = initial_reduction.dipole_coefficient(self._geometry.radius)
        self._time = float(initial_time)
        self._y = np.concatenate((kin.position, kin.velocity, [float(psi0), float(dt_psi0)]))
        self._status = WorldtubeStatus.SEEDED
        logger.info(
            "worldtube seeded at t=%.10g: position=%s velocity=%s psi0=%.10g dt_psi0=%.10g",
            self._time,
            np.array2string(kin.position, precision=10),
            np.array2string(kin.velocity, precision=10),
            self.psi0,
            self.dt_psi0,
        )

    def begin_step(self, dt: float) -> None:
        if self._status not in (WorldtubeStatus.SEEDED, WorldtubeStatus.STEPPING):
            raise RuntimeError(f"begin_step() called in state {self._status.value}")
        if self._y0 is not None:
            raise RuntimeError("begin_step() called while a step is in progress")
        if not (np.isfinite(dt) and float(dt) > 0.0):
            raise ValueError("dt must be a positive finite float")
        self._dt = float(dt)
        self._y0 = self._y.copy()
        self._stage_derivs = []
        self._status = WorldtubeStatus.STEPPING

    @property
    def step_in_progress(self) -> bool:
        return self._y0 is not None

    def broadcast(self) -> KinematicsBroadcast:
        """Publish the kinematics valid for the current sub-step."""
        if self._y0 is None or self._dt is None:
            raise RuntimeError("broadcast() called before begin_step()")
        if self._awaiting is not None:
            raise RuntimeError("broadcast() called twice without receive()")
        stage = len(self._stage_derivs)
        y_stage = self._y0.copy()
        for coef, k in zip(self._tableau.a[stage], self._stage_derivs):
            if coef != 0.0:
                y_stage = y_stage + self._dt * coef * k
        self._awaiting = y_stage
        x, v = y_stage[0:3], y_stage[3:6]
        return KinematicsBroadcast(
            time=self._time + self._tableau.c[stage] * self._dt,
            step=self._step,
            substep=stage,
            position=x.copy(),
            velocity=v.copy(),
            acceleration=self.acceleration(x, v, float(y_stage[7])),
            psi0=float(y_stage[6]),
            dt_psi0=float(y_stage[7]),
            psi1=self._psi1.copy(),
        )

    def receive(self, reduction: "Reduction") -> bool:
        """Consume the sub-step reduction; return True once the full step is complete."""
        if self._awaiting is None:
            raise RuntimeError("receive() called before broadcast()")
        y_stage = self._awaiting
        self._awaiting = None
        if self._order >= 1:
            self._psi1 = reduction.dipole_coefficient(self._geometry.radius)
        self._stage_derivs.append(self._rhs(y_stage, reduction))
        if len(self._stage_derivs) < self._tableau.num_stages:
            return False

        assert self._y0 is not None and self._dt is not None
        y_new = self._y0.copy()
        for coef, k in zip(self._tableau.b, self._stage_derivs):
            y_new = y_new + self._dt * coef * k
        self._y = y_new
        self._time = self._time + self._dt
        self._step += 1
        self._y0 = None
        self._stage_derivs = []
        log_metrics(
            {
                "t": self._time,
                "psi0": self.psi0,
                "dt_psi0": self.dt_psi0,
                "orbital_radius": float(np.linalg.norm(self._y[0:3])),
            },
            step=self._step,
            logger=logger,
            level=logging.DEBUG,
        )
        return True

    def terminate(self) -> None:
        if self._y0 is not None:
            raise RuntimeError("terminate() called while a step is in progress")
        self._status = WorldtubeStatus.TERMINATED
        logger.info("worldtube terminated at t=%.10g after %d steps", self._time, self._step)

    # ---- equations of motion ----

    def acceleration(self, position: np.ndarray, velocity: np.ndarray, dt_psi0: float) -> np.ndarray:
        """
        Coordinate acceleration of the particle.

        The regular field Psi0(t) + Psi1·(x - x_p(t)) has ∂_t Ψ_R = dtPsi0 - Psi1·v
        at the particle; Psi1 is zero at expansion order 0.
        """
        background = self._geometry.background
        acc = geodesic_acceleration(position, velocity, background)
        if self._mass > 0.0:
            dt_psi_regular = float(dt_psi0) - float(self._psi1 @ np.asarray(velocity, dtype=float))
            acc = acc + self_force_acceleration(
                position, velocity, self._charge, self._mass, dt_psi_regular, self._psi1, background
            )
        return acc

    def _rhs(self, y: np.ndarray, reduction: "Reduction") -> np.ndarray:
        x, v = y[0:3], y[3:6]
        dt_psi0 = float(y[7])
        acc = self.acceleration(x, v, dt_psi0)
        dd_psi0 = 3.0 * reduction.mean_normal_derivative / self._geometry.radius
        return np.concatenate((v, acc, [dt_psi0, dd_psi0]))
