"""Boundary coupling between the worldtube integrator and adjacent elements.

Outbound (integrator -> element)
- WorldtubeSolution: regular field from the Taylor coefficients,
    order 0: Ψ_R = Psi0,              ∂_t Ψ_R = dtPsi0,            Φ_R = 0
    order 1: Ψ_R = Psi0 + Psi1·Δx,    ∂_t Ψ_R = dtPsi0 - Psi1·v,   Φ_R = Psi1
  converted to Π = -(∂_t Ψ - β^i Φ_i) / α with the background lapse and shift.
- BoundaryData = WorldtubeSolution + PunctureField on the abutting face.

Inbound (element -> integrator)
- Each adjacent element turns its numerical face samples (value, normal
  derivative) into regular-field face integrals: ∫Ψ_R dA, ∫∂_n Ψ_R dA,
  ∫Ψ_R n dA and the face area. The normal n points away from the particle.
- reduce() sums contributions of exactly the run-wide adjacency set. The
  contributions are sorted by ElementId before summation, so the result does
  not depend on arrival order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import numpy as np

from .domain import Direction, ElementId
from .face_coordinates import FaceCoordinateCache, Frame
from .functions_of_time import FunctionsOfTime
from .integrator import KinematicsBroadcast
from .puncture import PunctureField, check_expansion_order, puncture_field

__all__ = [
    "WorldtubeSolution",
    "BoundaryData",
    "ElementContribution",
    "Reduction",
    "BoundaryCouplingProtocol",
]


@dataclass(frozen=True)
class WorldtubeSolution:
    psi: np.ndarray  # (N,)
    pi: np.ndarray  # (N,)
    phi: np.ndarray  # (3, N)


@dataclass(frozen=True)
class BoundaryData:
    """Full field (regular + singular) on the face abutting the worldtube."""

    element_id: ElementId
    direction: Direction
    inertial_coords: np.ndarray  # (3, N)
    centered_coords: np.ndarray  # (3, N), inertial minus particle position
    regular: WorldtubeSolution
    puncture: PunctureField
    psi: np.ndarray
    pi: np.ndarray
    phi: np.ndarray


@dataclass(frozen=True)
class ElementContribution:
    element_id: ElementId
    area: float
    psi_integral: float
    normal_derivative_integral: float
    dipole_integral: np.ndarray  # (3,)


@dataclass(frozen=True)
class Reduction:
    element_ids: Tuple[ElementId, ...]
    area: float
    psi_integral: float
    normal_derivative_integral: float
    dipole_integral: np.ndarray

    @property
    def mean_psi(self) -> float:
        return self.psi_integral / self.area

    @property
    def mean_normal_derivative(self) -> float:
        return self.normal_derivative_integral / self.area

    def dipole_coefficient(self, radius: float) -> np.ndarray:
        """Psi1 = 3 <Ψ_R n> / R for a regular field Psi0 + Psi1·Δx on a sphere of radius R."""
        return 3.0 * self.dipole_integral / (self.area * float(radius))


def _lapse_shift_phi_to_pi(
    dt_psi: np.ndarray, phi: np.ndarray, lapse: np.ndarray, shift: np.ndarray
) -> np.ndarray:
    return -(dt_psi - np.einsum("iN,iN->N", shift, phi)) / lapse


class BoundaryCouplingProtocol:
    """Outbound boundary data and inbound reduction for the adjacent elements."""

    def __init__(self, face_cache: FaceCoordinateCache, charge: float, expansion_order: int = 0) -> None:
        self._cache = face_cache
        self._charge = float(charge)
        self._order = check_expansion_order(expansion_order)
        self._background = face_cache.geometry.background

    @property
    def face_cache(self) -> FaceCoordinateCache:
        return self._cache

    @property
    def adjacent_ids(self) -> Tuple[ElementId, ...]:
        return self._cache.adjacent_ids

    # ---- per-element pieces ----

    def centered_inertial_coordinates(
        self, element_id: ElementId, broadcast: KinematicsBroadcast, functions_of_time: FunctionsOfTime
    ) -> Optional[np.ndarray]:
        return self._cache.face_coordinates(
            element_id, Frame.INERTIAL, True, broadcast.time, functions_of_time, broadcast.kinematics
        )

    def puncture(
        self, element_id: ElementId, broadcast: KinematicsBroadcast, functions_of_time: FunctionsOfTime
    ) -> Optional[PunctureField]:
        centered = self.centered_inertial_coordinates(element_id, broadcast, functions_of_time)
        return self._puncture_at(centered, broadcast)

    def _puncture_at(self, centered: Optional[np.ndarray], broadcast: KinematicsBroadcast) -> Optional[PunctureField]:
        return puncture_field(
            centered,
            broadcast.position,
            broadcast.velocity,
            broadcast.acceleration,
            self._charge,
            self._order,
            self._background,
        )

    def _regular_field(
        self, centered: np.ndarray, broadcast: KinematicsBroadcast
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        n = centered.shape[1]
        psi = np.full(n, broadcast.psi0, dtype=float)
        dt_psi = np.full(n, broadcast.dt_psi0, dtype=float)
        phi = np.zeros((3, n), dtype=float)
        if self._order >= 1:
            psi = psi + broadcast.psi1 @ centered
            dt_psi = dt_psi - float(broadcast.psi1 @ broadcast.velocity)
            phi = phi + broadcast.psi1[:, None]
        return psi, dt_psi, phi

    def worldtube_solution(
        self, centered: np.ndarray, inertial: np.ndarray, broadcast: KinematicsBroadcast
    ) -> WorldtubeSolution:
        psi, dt_psi, phi = self._regular_field(centered, broadcast)
        lapse = self._background.lapse(inertial)
        shift = self._background.shift(inertial)
        return WorldtubeSolution(psi=psi, pi=_lapse_shift_phi_to_pi(dt_psi, phi, lapse, shift), phi=phi)

    # ---- outbound ----

    def boundary_data(
        self, element_id: ElementId, broadcast: KinematicsBroadcast, functions_of_time: FunctionsOfTime
    ) -> Optional[BoundaryData]:
        """Boundary data for the element's abutting face, or None if not adjacent."""
        if not self._cache.is_adjacent(element_id):
            return None
        inertial = self._cache.face_coordinates(element_id, Frame.INERTIAL, False, broadcast.time, functions_of_time)
        centered = inertial - broadcast.position[:, None]  # type: ignore[operator]
        punct = self._puncture_at(centered, broadcast)
        psi_r, dt_psi_r, phi_r = self._regular_field(centered, broadcast)  # type: ignore[arg-type]
        lapse = self._background.lapse(inertial)
        shift = self._background.shift(inertial)
        regular = WorldtubeSolution(psi=psi_r, pi=_lapse_shift_phi_to_pi(dt_psi_r, phi_r, lapse, shift), phi=phi_r)
        phi = phi_r + punct.d_psi  # type: ignore[union-attr]
        pi = _lapse_shift_phi_to_pi(dt_psi_r + punct.dt_psi, phi, lapse, shift)  # type: ignore[union-attr]
        return BoundaryData(
            element_id=element_id,
            direction=self._cache.abutting_direction(element_id),  # type: ignore[arg-type]
            inertial_coords=inertial,  # type: ignore[arg-type]
            centered_coords=centered,
            regular=regular,
            puncture=punct,  # type: ignore[arg-type]
            psi=regular.psi + punct.psi,  # type: ignore[union-attr]
            pi=pi,
            phi=phi,
        )

    # ---- inbound ----

    def contribution(
        self,
        element_id: ElementId,
        broadcast: KinematicsBroadcast,
        functions_of_time: FunctionsOfTime,
        psi: np.ndarray,
        normal_derivative: np.ndarray,
        boundary: Optional[BoundaryData] = None,
    ) -> Optional[ElementContribution]:
        """
        Regular-field face integrals from the element's numerical samples.

        `boundary` is this sub-step's outbound data for the element; when given,
        its puncture and centered coordinates are reused instead of recomputed.
        """
        if not self._cache.is_adjacent(element_id):
            return None
        if boundary is None:
            centered = self.centered_inertial_coordinates(element_id, broadcast, functions_of_time)
            punct = self._puncture_at(centered, broadcast)
        elif boundary.element_id != element_id:
            raise ValueError(f"boundary data of {boundary.element_id} passed for {element_id}")
        else:
            centered = boundary.centered_coords
            punct = boundary.puncture
        weights = self._cache.face_weights(element_id)
        psi = np.asarray(psi, dtype=float)
        normal_derivative = np.asarray(normal_derivative, dtype=float)
        if psi.shape != weights.shape or normal_derivative.shape != weights.shape:  # type: ignore[union-attr]
            raise ValueError(f"samples for {element_id} must have shape {weights.shape}")  # type: ignore[union-attr]
        normals = centered / np.linalg.norm(centered, axis=0)  # type: ignore[operator]
        psi_regular = psi - punct.psi  # type: ignore[union-attr]
        dn_regular = normal_derivative - punct.normal_derivative(normals)  # type: ignore[union-attr]
        return ElementContribution(
            element_id=element_id,
            area=float(np.sum(weights)),
            psi_integral=float(weights @ psi_regular),
            normal_derivative_integral=float(weights @ dn_regular),
            dipole_integral=normals @ (weights * psi_regular),
        )

    def reduce(self, contributions: Iterable[ElementContribution]) -> Reduction:
        """Sum the contributions of exactly the adjacency set, in ElementId order."""
        items = sorted(contributions, key=lambda c: c.element_id)
        ids = tuple(c.element_id for c in items)
        if len(set(ids)) != len(ids):
            raise RuntimeError("duplicate element contributions in worldtube reduction")
        if ids != self.adjacent_ids:
            missing = sorted(set(self.adjacent_ids) - set(ids))
            extra = sorted(set(ids) - set(self.adjacent_ids))
            raise RuntimeError(
                f"worldtube reduction needs exactly the adjacent elements; "
                f"missing={[str(i) for i in missing]} unexpected={[str(i) for i in extra]}"
            )
        scalars = np.array([[c.area, c.psi_integral, c.normal_derivative_integral] for c in items])
        dipoles = np.array([c.dipole_integral for c in items])
        totals = np.sum(scalars, axis=0)
        return Reduction(
            element_ids=ids,
            area=float(totals[0]),
            psi_integral=float(totals[1]),
            normal_derivative_integral=float(totals[2]),
            dipole_integral=np.sum(dipoles, axis=0),
        )
