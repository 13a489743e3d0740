"""Excision geometry: the worldtube cavity, its moving map and element adjacency.

Startup validation (all failures raise ConfigurationError):
- background is the non-spinning Kerr-Schild family, centered at the origin,
  with unit mass;
- the named excision sphere exists and is time dependent;
- the orbital radius |center| is nonzero;
- the registry holds a ROTATION entry named by the sphere's map whose angular
  velocity equals (0, 0, r^(-3/2)) within round-off (circular Keplerian orbit).

Adjacency is evaluated once per element when the mesh is built and never
per step.
"""

from __future__ import annotations

from typing import Dict, Iterable, Optional

import numpy as np

from .background import KerrSchild
from .domain import Direction, Domain, Element, ElementId, ExcisionSphere, RotationMap
from .errors import ConfigurationError
from .functions_of_time import FunctionOfTimeKind, FunctionsOfTime
from .utils.logging import get_logger

__all__ = ["equal_within_roundoff", "validate_circular_orbit", "ExcisionGeometry"]

_ROUNDOFF_EPS = 100.0 * np.finfo(float).eps

logger = get_logger("worldtube.geometry")


def equal_within_roundoff(a, b, eps: float = _ROUNDOFF_EPS, scale: float = 1.0) -> bool:
    """True if |a - b| <= eps * max(scale, |a|, |b|) elementwise."""
    A = np.asarray(a, dtype=float)
    B = np.asarray(b, dtype=float)
    if A.shape != B.shape:
        return False
    bound = eps * max(float(scale), float(np.max(np.abs(A), initial=0.0)), float(np.max(np.abs(B), initial=0.0)))
    return bool(np.all(np.abs(A - B) <= bound))


def validate_circular_orbit(
    background: object,
    excision_sphere: ExcisionSphere,
    functions_of_time: FunctionsOfTime,
    initial_time: float = 0.0,
) -> float:
    """Validate the circular-orbit setup and return the orbital radius."""
    if not isinstance(background, KerrSchild):
        raise ConfigurationError(
            "The puncture field is specialised on a Kerr-Schild background",
            quantity="background",
            expected="KerrSchild",
            actual=type(background).__name__,
        )
    if not background.zero_spin():
        raise ConfigurationError(
            "Black hole spin is not implemented yet but you requested non-zero spin",
            quantity="background.dimensionless_spin",
            expected=[0.0, 0.0, 0.0],
            actual=background.dimensionless_spin,
        )
    if not equal_within_roundoff(background.center, np.zeros(3)):
        raise ConfigurationError(
            "The central black hole must be centered at [0., 0., 0.]",
            quantity="background.center",
            expected=[0.0, 0.0, 0.0],
            actual=background.center,
        )
    if not equal_within_roundoff(background.mass, 1.0):
        raise ConfigurationError(
            "The central black hole must have mass 1",
            quantity="background.mass",
            expected=1.0,
            actual=background.mass,
        )
    if not excision_sphere.is_time_dependent:
        raise ConfigurationError(
            "The worldtube excision sphere must carry a time-dependent map",
            quantity="excision_sphere.is_time_dependent",
            expected=True,
            actual=False,
        )

    orbital_radius = float(np.linalg.norm(excision_sphere.center))
    if equal_within_roundoff(orbital_radius, 0.0):
        raise ConfigurationError(
            "The orbital radius was set to 0",
            quantity="orbital_radius",
            actual=orbital_radius,
        )

    fot_name = excision_sphere.moving_mesh_grid_to_inertial_map().function_of_time_name
    rotation = functions_of_time.expect(fot_name, FunctionOfTimeKind.ROTATION)
    angular_velocity = rotation.angle_func_and_deriv(initial_time)[1]  # type: ignore[attr-defined]
    expected = np.array([0.0, 0.0, orbital_radius ** -1.5])
    if not equal_within_roundoff(angular_velocity, expected):
        raise ConfigurationError(
            "Only circular orbits are implemented at the moment so the angular "
            "velocity should be [0., 0., orbital_radius^(-3/2)]",
            quantity="angular_velocity",
            expected=expected,
            actual=angular_velocity,
        )
    return orbital_radius


class ExcisionGeometry:
    """Validated worldtube cavity; built once at startup and read-only afterwards."""

    def __init__(
        self,
        name: str,
        excision_sphere: ExcisionSphere,
        background: KerrSchild,
        orbital_radius: float,
    ) -> None:
        self._name = str(name)
        self._sphere = excision_sphere
        self._background = background
        self._orbital_radius = float(orbital_radius)

    @classmethod
    def from_domain(
        cls,
        domain: Domain,
        excision_sphere_name: str,
        background: object,
        functions_of_time: FunctionsOfTime,
        initial_time: float = 0.0,
    ) -> "ExcisionGeometry":
        spheres = domain.excision_spheres
        if excision_sphere_name not in spheres:
            raise ConfigurationError(
                f"Specified excision sphere '{excision_sphere_name}' not available. "
                f"Available excision spheres are: {sorted(spheres)}",
                quantity="ExcisionSphere",
            )
        sphere = spheres[excision_sphere_name]
        radius = validate_circular_orbit(background, sphere, functions_of_time, initial_time)
        logger.info(
            "excision sphere '%s' validated: orbital_radius=%.10g excision_radius=%.10g",
            excision_sphere_name,
            radius,
            sphere.radius,
        )
        return cls(excision_sphere_name, sphere, background, radius)  # type: ignore[arg-type]

    @property
    def name(self) -> str:
        return self._name

    @property
    def excision_sphere(self) -> ExcisionSphere:
        return self._sphere

    @property
    def radius(self) -> float:
        """Cavity (worldtube) radius."""
        return self._sphere.radius

    @property
    def orbital_radius(self) -> float:
        return self._orbital_radius

    @property
    def background(self) -> KerrSchild:
        return self._background

    @property
    def grid_to_inertial_map(self) -> RotationMap:
        return self._sphere.moving_mesh_grid_to_inertial_map()

    @property
    def grid_center(self) -> np.ndarray:
        return self._sphere.center

    def center(self, time: float, functions_of_time: FunctionsOfTime) -> np.ndarray:
        """Inertial-frame cavity center at `time`."""
        return self.grid_to_inertial_map(self._sphere.center, time, functions_of_time)

    def abutting_direction(self, element: Element) -> Optional[Direction]:
        return self._sphere.abutting_direction(element)

    def adjacency(self, elements: Iterable[Element]) -> Dict[ElementId, Optional[Direction]]:
        """Adjacency predicate for every element; call once at mesh construction."""
        return {e.element_id: self._sphere.abutting_direction(e) for e in elements}
