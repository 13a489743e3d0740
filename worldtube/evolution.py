"""Coupled worldtube evolution: the broadcast/reduce driver.

One step of the driver, for every Runge-Kutta stage of the integrator:

  1. integrator.broadcast()        kinematics for the sub-step (immutable)
  2. per element, in ElementId order:
       boundary_data(...)          outbound WorldtubeSolution + puncture,
                                   None for non-adjacent elements
       sampler(boundary, ...)      numerical face samples of adjacent elements
       contribution(..., boundary) regular-field face integrals
  3. protocol.reduce(...)          exactly the adjacency set, arrival-order free
  4. integrator.receive(...)       advance the stage

After every completed step (and once after seeding) the observers are called
if the ObserveCoefficientsTrigger fires at (time, step).

The sampler stands in for the field solver: it maps the element's outbound
BoundaryData and the broadcast to the full field and its outward normal
derivative on the abutting face. The puncture and centered coordinates of
that BoundaryData are reused by contribution(), so each is evaluated once per
element and sub-step.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .background import KerrSchild
from .config import WorldtubeOptions
from .coupling import BoundaryCouplingProtocol, BoundaryData, ElementContribution, Reduction
from .domain import Domain, ElementId
from .errors import ConfigurationError
from .face_coordinates import FaceCoordinateCache
from .functions_of_time import FunctionsOfTime, QuaternionFunctionOfTime
from .geometry import ExcisionGeometry
from .integrator import KinematicsBroadcast, WorldtubeOrbitIntegrator
from .kinematics import MapParticleKinematics
from .triggers import Trigger
from .utils.logging import get_logger

__all__ = [
    "FieldSampler",
    "CoefficientsObserver",
    "QuadraticRegularField",
    "SyntheticFieldSampler",
    "circular_orbit_functions_of_time",
    "WorldtubeEvolution",
    "setup_worldtube",
]

logger = get_logger("worldtube.evolution")

FieldSampler = Callable[[BoundaryData, KinematicsBroadcast], Tuple[np.ndarray, np.ndarray]]
CoefficientsObserver = Callable[[WorldtubeOrbitIntegrator], None]


def circular_orbit_functions_of_time(
    orbital_radius: float, initial_time: float = 0.0, name: str = "Rotation"
) -> FunctionsOfTime:
    """Registry with a uniform rotation about z at the Keplerian rate r^(-3/2)."""
    omega = float(orbital_radius) ** -1.5
    rotation = QuaternionFunctionOfTime(
        initial_time=float(initial_time),
        angle_coefs=(np.zeros(3), np.array([0.0, 0.0, omega]), np.zeros(3)),
    )
    return FunctionsOfTime({name: rotation})


@dataclass(frozen=True)
class QuadraticRegularField:
    """
    Analytic regular field around the particle, Δ = x - x_p:

      Ψ_R = value + rate * t + gradient·Δ + curvature * |Δ|^2

    Its boundary mean of ∂_n Ψ_R is 2 * curvature * R, so the near-field ODE
    gives d^2 Psi0/dt^2 = 6 * curvature.
    """

    value: float = 0.0
    rate: float = 0.0
    gradient: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    curvature: float = 0.0

    def __call__(self, time: float, centered: np.ndarray, normals: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        g = np.asarray(self.gradient, dtype=float)
        dist2 = np.einsum("iN,iN->N", centered, centered)
        psi = self.value + self.rate * float(time) + g @ centered + self.curvature * dist2
        dn_psi = g @ normals + 2.0 * self.curvature * np.sqrt(dist2)
        return psi, dn_psi


class SyntheticFieldSampler:
    """Field samples made of the puncture field plus an analytic regular field."""

    def __init__(self, regular_field: Optional[QuadraticRegularField] = None) -> None:
        self._regular = regular_field if regular_field is not None else QuadraticRegularField()

    def __call__(self, boundary: BoundaryData, broadcast: KinematicsBroadcast) -> Tuple[np.ndarray, np.ndarray]:
        centered = boundary.centered_coords
        normals = centered / np.linalg.norm(centered, axis=0)
        psi_r, dn_r = self._regular(broadcast.time, centered, normals)
        return boundary.puncture.psi + psi_r, boundary.puncture.normal_derivative(normals) + dn_r


class WorldtubeEvolution:
    """Drives integrator and elements through the two-phase sub-step protocol."""

    def __init__(
        self,
        geometry: ExcisionGeometry,
        face_cache: FaceCoordinateCache,
        protocol: BoundaryCouplingProtocol,
        integrator: WorldtubeOrbitIntegrator,
        functions_of_time: FunctionsOfTime,
        trigger: Trigger,
        sampler: Optional[FieldSampler] = None,
        observers: Sequence[CoefficientsObserver] = (),
    ) -> None:
        self.geometry = geometry
        self.face_cache = face_cache
        self.protocol = protocol
        self.integrator = integrator
        self.functions_of_time = functions_of_time
        self.trigger = trigger
        self.sampler: FieldSampler = sampler if sampler is not None else SyntheticFieldSampler()
        self.observers: List[CoefficientsObserver] = list(observers)
        self._boundary_data: Dict[ElementId, Optional[BoundaryData]] = {}

    @property
    def boundary_data(self) -> Dict[ElementId, Optional[BoundaryData]]:
        """Outbound data of the latest sub-step for every element (None if not adjacent)."""
        return dict(self._boundary_data)

    def _gather(self, broadcast: KinematicsBroadcast) -> Reduction:
        contributions: List[ElementContribution] = []
        boundary: Dict[ElementId, Optional[BoundaryData]] = {}
        for element_id in self.face_cache.element_ids:
            data = self.protocol.boundary_data(element_id, broadcast, self.functions_of_time)
            boundary[element_id] = data
            if data is None:
                continue
            psi, dn_psi = self.sampler(data, broadcast)
            contrib = self.protocol.contribution(
                element_id, broadcast, self.functions_of_time, psi, dn_psi, boundary=data
            )
            contributions.append(contrib)  # type: ignore[arg-type]
        self._boundary_data = boundary
        return self.protocol.reduce(contributions)

    def _observe(self) -> None:
        if self.trigger.is_triggered(self.integrator.time, self.integrator.step_number):
            for observer in self.observers:
                observer(self.integrator)

    def initialize(self, initial_time: float, psi0: Optional[float] = None, dt_psi0: float = 0.0) -> None:
        """
        Seed the integrator at `initial_time`.

        If psi0 is None the regular field is read off the initial face samples:
        Psi0 is their boundary mean (and Psi1 their dipole at order 1).
        """
        reduction: Optional[Reduction] = None
        if psi0 is None:
            kin = MapParticleKinematics(self.geometry)(initial_time, self.functions_of_time)
            provisional = KinematicsBroadcast(
                time=float(initial_time),
                step=0,
                substep=0,
                position=np.array(kin.position),
                velocity=np.array(kin.velocity),
                acceleration=self.integrator.acceleration(kin.position, kin.velocity, dt_psi0),
                psi0=0.0,
                dt_psi0=float(dt_psi0),
                psi1=np.zeros(3),
            )
            reduction = self._gather(provisional)
            psi0 = 0.0
        self.integrator.seed(initial_time, self.functions_of_time, psi0, dt_psi0, initial_reduction=reduction)
        self._observe()

    def step(self, dt: float) -> None:
        self.integrator.begin_step(dt)
        done = False
        while not done:
            broadcast = self.integrator.broadcast()
            done = self.integrator.receive(self._gather(broadcast))
        self._observe()

    def run(self, dt: float, num_steps: int) -> WorldtubeOrbitIntegrator:
        if num_steps < 0:
            raise ValueError("num_steps must be >= 0")
        for _ in range(int(num_steps)):
            self.step(dt)
        return self.integrator


def setup_worldtube(
    domain: Domain,
    background: KerrSchild,
    functions_of_time: FunctionsOfTime,
    options: WorldtubeOptions,
    initial_time: float = 0.0,
    time_stepper: str = "rk4",
    sampler: Optional[FieldSampler] = None,
    observers: Iterable[CoefficientsObserver] = (),
) -> WorldtubeEvolution:
    """Validate the configuration and wire the worldtube components; raises ConfigurationError."""
    geometry = ExcisionGeometry.from_domain(
        domain, options.excision_sphere, background, functions_of_time, initial_time
    )
    face_cache = FaceCoordinateCache(geometry, domain.elements)
    if not face_cache.adjacent_ids:
        raise ConfigurationError(
            f"No element abuts excision sphere '{options.excision_sphere}'",
            quantity="ExcisionSphere",
        )
    protocol = BoundaryCouplingProtocol(face_cache, options.charge, options.expansion_order)
    integrator = WorldtubeOrbitIntegrator(
        geometry,
        charge=options.charge,
        mass=options.mass,
        expansion_order=options.expansion_order,
        time_stepper=time_stepper,
    )
    logger.info(
        "worldtube setup: sphere=%s charge=%.10g mass=%.10g expansion_order=%d "
        "time_stepper=%s adjacent_elements=%d/%d",
        options.excision_sphere,
        options.charge,
        options.mass,
        options.expansion_order,
        time_stepper,
        len(face_cache.adjacent_ids),
        len(face_cache.element_ids),
    )
    return WorldtubeEvolution(
        geometry,
        face_cache,
        protocol,
        integrator,
        functions_of_time,
        options.observe_coefficients_trigger,
        sampler=sampler,
        observers=list(observers),
    )
