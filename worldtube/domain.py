"""Minimal domain collaborator: elements, faces, excision spheres and maps.

Domain construction proper lives outside this package; this module provides
the small surface the worldtube core consumes plus a deterministic shell
builder used by the runner and tests.

Conventions
- Face grid coordinates have shape (3, N); quadrature weights have shape (N,).
- The grid→inertial map of an excision sphere is a rigid rotation driven by a
  named ROTATION function of time.
- Directions follow the logical element axes: LOWER_XI ... UPPER_ZETA.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np

from .functions_of_time import FunctionOfTimeKind, FunctionsOfTime, QuaternionFunctionOfTime

__all__ = [
    "Direction",
    "ElementId",
    "Face",
    "Element",
    "RotationMap",
    "ExcisionSphere",
    "Domain",
    "build_shell_domain",
]


class Direction(IntEnum):
    LOWER_XI = 0
    UPPER_XI = 1
    LOWER_ETA = 2
    UPPER_ETA = 3
    LOWER_ZETA = 4
    UPPER_ZETA = 5


@dataclass(frozen=True, order=True)
class ElementId:
    """Element identity; ordering is total and used for deterministic reductions."""
    block_id: int
    index: int

    def __str__(self) -> str:
        return f"[B{self.block_id},{self.index}]"


@dataclass(frozen=True)
class Face:
    grid_coords: np.ndarray  # (3, N)
    weights: np.ndarray  # (N,), grid-frame area elements

    def __post_init__(self) -> None:
        coords = np.array(self.grid_coords, dtype=float)
        weights = np.array(self.weights, dtype=float)
        if coords.ndim != 2 or coords.shape[0] != 3:
            raise ValueError("face grid_coords must have shape (3, N)")
        if weights.shape != (coords.shape[1],):
            raise ValueError("face weights must have shape (N,) matching grid_coords")
        if not (np.all(np.isfinite(coords)) and np.all(np.isfinite(weights))):
            raise ValueError("face coordinates and weights must be finite")
        coords.setflags(write=False)
        weights.setflags(write=False)
        object.__setattr__(self, "grid_coords", coords)
        object.__setattr__(self, "weights", weights)

    @property
    def num_points(self) -> int:
        return int(self.grid_coords.shape[1])


@dataclass(frozen=True)
class Element:
    element_id: ElementId
    faces: Mapping[Direction, Face] = field(default_factory=dict)


@dataclass(frozen=True)
class RotationMap:
    """Grid→inertial rigid rotation x_I = R(t) x_G driven by a named function of time."""

    function_of_time_name: str = "Rotation"

    def _rotation(self, time: float, functions_of_time: FunctionsOfTime) -> QuaternionFunctionOfTime:
        fot = functions_of_time.expect(self.function_of_time_name, FunctionOfTimeKind.ROTATION)
        return fot  # type: ignore[return-value]

    def __call__(self, x_grid: np.ndarray, time: float, functions_of_time: FunctionsOfTime) -> np.ndarray:
        R = self._rotation(time, functions_of_time).rotation_matrix(time)
        return R @ np.asarray(x_grid, dtype=float)

    def inverse(self, x_inertial: np.ndarray, time: float, functions_of_time: FunctionsOfTime) -> np.ndarray:
        R = self._rotation(time, functions_of_time).rotation_matrix(time)
        return R.T @ np.asarray(x_inertial, dtype=float)

    def jacobian(self, time: float, functions_of_time: FunctionsOfTime) -> np.ndarray:
        """∂x_I^i / ∂x_G^j; spatially constant for a rigid rotation."""
        return self._rotation(time, functions_of_time).rotation_matrix(time)

    def inv_jacobian(self, time: float, functions_of_time: FunctionsOfTime) -> np.ndarray:
        return self.jacobian(time, functions_of_time).T

    def frame_velocity(self, x_grid: np.ndarray, time: float, functions_of_time: FunctionsOfTime) -> np.ndarray:
        _, dR = self._rotation(time, functions_of_time).rotation_matrix_and_deriv(time)
        return dR @ np.asarray(x_grid, dtype=float)

    def coords_frame_velocity_jacobians(
        self, x_grid: np.ndarray, time: float, functions_of_time: FunctionsOfTime
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """Return (inertial coords, inverse jacobian, jacobian, frame velocity)."""
        R, dR = self._rotation(time, functions_of_time).rotation_matrix_and_deriv(time)
        xg = np.asarray(x_grid, dtype=float)
        return R @ xg, R.T.copy(), R, dR @ xg


@dataclass(frozen=True)
class ExcisionSphere:
    """Spherical cavity with a grid-frame center and an optional moving map."""

    radius: float
    center: np.ndarray  # grid-frame center
    grid_to_inertial_map: Optional[RotationMap] = None

    def __post_init__(self) -> None:
        center = np.array(self.center, dtype=float)
        if center.shape != (3,) or not np.all(np.isfinite(center)):
            raise ValueError("excision sphere center must be a finite 3-vector")
        if not (np.isfinite(self.radius) and float(self.radius) > 0.0):
            raise ValueError("excision sphere radius must be a positive finite float")
        center.setflags(write=False)
        object.__setattr__(self, "center", center)
        object.__setattr__(self, "radius", float(self.radius))

    @property
    def is_time_dependent(self) -> bool:
        return self.grid_to_inertial_map is not None

    def moving_mesh_grid_to_inertial_map(self) -> RotationMap:
        if self.grid_to_inertial_map is None:
            raise ValueError("excision sphere is not time dependent")
        return self.grid_to_inertial_map

    def abutting_direction(self, element: Element, rtol: float = 1e-10) -> Optional[Direction]:
        """Direction of the face of `element` lying on this sphere, if any."""
        tol = rtol * max(1.0, self.radius)
        for direction in sorted(element.faces):
            face = element.faces[direction]
            dist = np.linalg.norm(face.grid_coords - self.center[:, None], axis=0)
            if face.num_points > 0 and bool(np.all(np.abs(dist - self.radius) <= tol)):
                return direction
        return None


@dataclass(frozen=True)
class Domain:
    elements: Tuple[Element, ...]
    excision_spheres: Mapping[str, ExcisionSphere]
    outer_radius: float

    def __post_init__(self) -> None:
        ids = [e.element_id for e in self.elements]
        if len(set(ids)) != len(ids):
            raise ValueError("element ids must be unique")
        for name, sphere in self.excision_spheres.items():
            reach = float(np.linalg.norm(sphere.center)) + sphere.radius
            if reach >= float(self.outer_radius):
                raise ValueError(
                    f"excision sphere '{name}' intersects the outer boundary "
                    f"(|center| + radius = {reach} >= {self.outer_radius})"
                )
        object.__setattr__(self, "elements", tuple(self.elements))
        object.__setattr__(self, "excision_spheres", dict(self.excision_spheres))


def _sphere_patch(
    center: np.ndarray,
    radius: float,
    mu_edges: Tuple[float, float],
    phi_edges: Tuple[float, float],
    n_points: int,
) -> Face:
    """Gauss-Legendre (in cos θ) × midpoint (in φ) quadrature on one angular patch."""
    nodes, w = np.polynomial.legendre.leggauss(n_points)
    mu_lo, mu_hi = mu_edges
    phi_lo, phi_hi = phi_edges
    mu = 0.5 * (mu_hi - mu_lo) * nodes + 0.5 * (mu_hi + mu_lo)
    w_mu = 0.5 * (mu_hi - mu_lo) * w
    dphi = (phi_hi - phi_lo) / n_points
    phi = phi_lo + dphi * (np.arange(n_points) + 0.5)
    MU, PHI = np.meshgrid(mu, phi, indexing="ij")
    WMU, _ = np.meshgrid(w_mu, phi, indexing="ij")
    sin_theta = np.sqrt(np.clip(1.0 - MU * MU, 0.0, None))
    n_hat = np.stack([sin_theta * np.cos(PHI), sin_theta * np.sin(PHI), MU]).reshape(3, -1)
    coords = center[:, None] + radius * n_hat
    weights = (radius * radius * WMU * dphi).reshape(-1)
    return Face(grid_coords=coords, weights=weights)


def build_shell_domain(
    orbital_radius: float,
    excision_radius: float,
    outer_radius: float,
    n_polar: int = 2,
    n_azimuthal: int = 4,
    points_per_dim: int = 4,
    shell_radius: Optional[float] = None,
    sphere_name: str = "ExcisionSphereA",
    function_of_time_name: str = "Rotation",
) -> Domain:
    """
    Build a deterministic shell domain around an excision sphere at (r0, 0, 0).

    Inner ring: n_polar × n_azimuthal elements (block 0) whose LOWER_ZETA face lies
    on the excision sphere. Outer ring: the same number of elements (block 1) whose
    LOWER_ZETA face lies on a larger sphere of radius shell_radius and therefore
    does not abut the cavity.
    """
    if not (excision_radius > 0.0 and orbital_radius > excision_radius):
        raise ValueError("need 0 < excision_radius < orbital_radius")
    if n_polar < 1 or n_azimuthal < 1 or points_per_dim < 1:
        raise ValueError("n_polar, n_azimuthal and points_per_dim must be >= 1")
    shell = float(shell_radius) if shell_radius is not None else 2.0 * float(excision_radius)
    if shell <= excision_radius:
        raise ValueError("shell_radius must exceed excision_radius")
    center = np.array([float(orbital_radius), 0.0, 0.0])
    mu_edges = np.linspace(-1.0, 1.0, n_polar + 1)
    phi_edges = np.linspace(0.0, 2.0 * np.pi, n_azimuthal + 1)

    elements: List[Element] = []
    for block_id, radius in ((0, float(excision_radius)), (1, shell)):
        idx = 0
        for i in range(n_polar):
            for j in range(n_azimuthal):
                face = _sphere_patch(
                    center,
                    radius,
                    (float(mu_edges[i]), float(mu_edges[i + 1])),
                    (float(phi_edges[j]), float(phi_edges[j + 1])),
                    points_per_dim,
                )
                faces: Dict[Direction, Face] = {Direction.LOWER_ZETA: face}
                elements.append(Element(element_id=ElementId(block_id, idx), faces=faces))
                idx += 1

    sphere = ExcisionSphere(
        radius=float(excision_radius),
        center=center,
        grid_to_inertial_map=RotationMap(function_of_time_name=function_of_time_name),
    )
    return Domain(elements=tuple(elements), excision_spheres={sphere_name: sphere}, outer_radius=float(outer_radius))

