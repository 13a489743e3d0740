"""Per-element cache of cavity-adjacent face coordinates across frames.

At mesh construction each element's adjacency is decided once; grid-frame
coordinates of abutting faces go into a run-wide write-once map keyed by
ElementId. Every later evaluation derives:
- inertial coordinates: the current map applied to the cached grid coordinates;
- centered coordinates (any frame): coordinates minus the current particle
  position in that frame.

Non-adjacent elements short-circuit to None for every variant. Adjacency and
defined/undefined status never change during a run; only values evolve.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple

import numpy as np

from .domain import Direction, Element, ElementId, Face
from .functions_of_time import FunctionsOfTime
from .geometry import ExcisionGeometry
from .kinematics import ParticleKinematics

__all__ = ["Frame", "ElementFacesGridCoordinates", "FaceCoordinateCache"]


class Frame(str, Enum):
    GRID = "grid"
    INERTIAL = "inertial"


class ElementFacesGridCoordinates(Mapping[ElementId, np.ndarray]):
    """Run-wide, write-once map from element identity to grid-frame face coordinates."""

    def __init__(self) -> None:
        self._coords: Dict[ElementId, np.ndarray] = {}
        self._frozen = False

    def insert(self, element_id: ElementId, grid_coords: np.ndarray) -> None:
        if self._frozen:
            raise RuntimeError("ElementFacesGridCoordinates is frozen after mesh construction")
        if element_id in self._coords:
            raise KeyError(f"grid face coordinates for {element_id} already written")
        arr = np.array(grid_coords, dtype=float)
        arr.setflags(write=False)
        self._coords[element_id] = arr

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __getitem__(self, element_id: ElementId) -> np.ndarray:
        return self._coords[element_id]

    def __iter__(self) -> Iterator[ElementId]:
        return iter(sorted(self._coords))

    def __len__(self) -> int:
        return len(self._coords)


class FaceCoordinateCache:
    """Adjacency, cached grid faces and on-demand frame variants for all elements."""

    def __init__(self, geometry: ExcisionGeometry, elements: Iterable[Element]) -> None:
        self._geometry = geometry
        self._adjacent: Dict[ElementId, Tuple[Direction, Face]] = {}
        self._element_ids: Tuple[ElementId, ...] = ()
        self._grid_coords = ElementFacesGridCoordinates()

        by_id = {e.element_id: e for e in elements}
        for element_id, direction in geometry.adjacency(by_id.values()).items():
            if direction is None:
                continue
            face = by_id[element_id].faces[direction]
            self._adjacent[element_id] = (direction, face)
            self._grid_coords.insert(element_id, face.grid_coords)
        self._grid_coords.freeze()
        self._element_ids = tuple(sorted(by_id))

    @property
    def geometry(self) -> ExcisionGeometry:
        return self._geometry

    @property
    def element_ids(self) -> Tuple[ElementId, ...]:
        return self._element_ids

    @property
    def adjacent_ids(self) -> Tuple[ElementId, ...]:
        """The run-wide adjacency set, sorted."""
        return tuple(self._grid_coords)

    @property
    def element_faces_grid_coordinates(self) -> ElementFacesGridCoordinates:
        return self._grid_coords

    def is_adjacent(self, element_id: ElementId) -> bool:
        if element_id not in self._element_ids:
            raise KeyError(f"unknown element {element_id}")
        return element_id in self._adjacent

    def abutting_direction(self, element_id: ElementId) -> Optional[Direction]:
        entry = self._adjacent.get(element_id)
        return None if entry is None else entry[0]

    def face_weights(self, element_id: ElementId) -> Optional[np.ndarray]:
        entry = self._adjacent.get(element_id)
        return None if entry is None else entry[1].weights

    def face_coordinates(
        self,
        element_id: ElementId,
        frame: Frame,
        centered: bool,
        time: float,
        functions_of_time: FunctionsOfTime,
        kinematics: Optional[ParticleKinematics] = None,
    ) -> Optional[np.ndarray]:
        """
        Coordinates of the abutting face, shape (3, N), or None if not adjacent.

        `kinematics` is required for centered variants; its position is inertial and
        is pulled back through the map for the grid-frame variant.
        """
        frame = Frame(frame)
        if not self.is_adjacent(element_id):
            return None
        grid = self._grid_coords[element_id]
        grid_map = self._geometry.grid_to_inertial_map
        if centered and kinematics is None:
            raise ValueError("centered face coordinates need the particle kinematics")

        if frame is Frame.GRID:
            if not centered:
                return grid
            particle_grid = grid_map.inverse(kinematics.position, time, functions_of_time)  # type: ignore[union-attr]
            return grid - particle_grid[:, None]

        inertial = grid_map(grid, time, functions_of_time)
        if not centered:
            return inertial
        return inertial - kinematics.position[:, None]  # type: ignore[union-attr]
