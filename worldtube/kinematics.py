"""Particle kinematics oracles and point evaluations of the equations of motion.

Two interchangeable producers of (position, velocity):
- MapParticleKinematics: evaluates the cavity's time-dependent map at its
  center; pure and stateless. Used by field elements.
- evolved_particle_kinematics: wraps the integrator's stored state. Used only
  by the worldtube orbit integrator.

At the initial time the integrator is seeded from the map-based producer, so the
two agree there; later differences are the self-force signal.

Point evaluations (single point, deterministic):
- geodesic_acceleration: d^2 x^i/dt^2 = -Γ^i_ab u^a u^b + Γ^0_ab u^a u^b v^i
  with u = (1, v) in coordinate-time parametrisation.
- self_force_acceleration: coordinate acceleration from the scalar self-force
  f^a = (q/m) (g^ab + u^a u^b) ∂_b Ψ_R.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .background import KerrSchild
from .functions_of_time import FunctionsOfTime
from .geometry import ExcisionGeometry

__all__ = [
    "ParticleKinematics",
    "MapParticleKinematics",
    "evolved_particle_kinematics",
    "four_velocity",
    "geodesic_acceleration",
    "self_force_acceleration",
]


@dataclass(frozen=True)
class ParticleKinematics:
    """Inertial-frame position and coordinate velocity of the scalar charge."""

    position: np.ndarray
    velocity: np.ndarray

    def __post_init__(self) -> None:
        x = np.array(self.position, dtype=float)
        v = np.array(self.velocity, dtype=float)
        if x.shape != (3,) or v.shape != (3,):
            raise ValueError("position and velocity must be 3-vectors")
        x.setflags(write=False)
        v.setflags(write=False)
        object.__setattr__(self, "position", x)
        object.__setattr__(self, "velocity", v)


class MapParticleKinematics:
    """Map-based producer: the moving map evaluated at the cavity center."""

    def __init__(self, geometry: ExcisionGeometry) -> None:
        self._geometry = geometry

    def __call__(self, time: float, functions_of_time: FunctionsOfTime) -> ParticleKinematics:
        grid_map = self._geometry.grid_to_inertial_map
        x, _, _, frame_velocity = grid_map.coords_frame_velocity_jacobians(
            self._geometry.grid_center, time, functions_of_time
        )
        return ParticleKinematics(position=x, velocity=frame_velocity)


def evolved_particle_kinematics(position: np.ndarray, velocity: np.ndarray) -> ParticleKinematics:
    """State-based producer: snapshot of the integrator's evolved position and velocity."""
    return ParticleKinematics(position=position, velocity=velocity)


def four_velocity(
    position: np.ndarray, velocity: np.ndarray, background: KerrSchild
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Return (u^a, u_a, g_ab) at the particle.

    u^a = u^t (1, v^i) with u^t = (-g_ab V^a V^b)^(-1/2), V = (1, v).
    """
    g = background.spacetime_metric(position)
    V = np.concatenate(([1.0], np.asarray(velocity, dtype=float)))
    norm = float(V @ g @ V)
    if not norm < 0.0:
        raise ValueError("particle velocity must be timelike")
    u_up = V / np.sqrt(-norm)
    return u_up, g @ u_up, g


def geodesic_acceleration(position: np.ndarray, velocity: np.ndarray, background: KerrSchild) -> np.ndarray:
    """Coordinate geodesic acceleration in the inertial frame, shape (3,)."""
    x = np.asarray(position, dtype=float)
    v = np.asarray(velocity, dtype=float)
    Gamma = background.christoffel_second_kind(x)
    u = np.concatenate(([1.0], v))
    gamma_uu = np.einsum("abc,b,c->a", Gamma, u, u)
    return -gamma_uu[1:] + gamma_uu[0] * v


def self_force_acceleration(
    position: np.ndarray,
    velocity: np.ndarray,
    charge: float,
    mass: float,
    dt_psi_regular: float,
    grad_psi_regular: np.ndarray,
    background: KerrSchild,
) -> np.ndarray:
    """
    Coordinate acceleration sourced by the regular field at the particle.

    Returns zeros in the test-particle limit mass == 0.
    """
    if mass == 0.0:
        return np.zeros(3, dtype=float)
    u_up, _, _ = four_velocity(position, velocity, background)
    g_inv = background.inverse_spacetime_metric(position)
    d_psi = np.concatenate(([float(dt_psi_regular)], np.asarray(grad_psi_regular, dtype=float)))
    projector = g_inv + np.outer(u_up, u_up)
    f_up = (float(charge) / float(mass)) * (projector @ d_psi)
    v = np.asarray(velocity, dtype=float)
    return (f_up[1:] - v * f_up[0]) / (u_up[0] * u_up[0])
