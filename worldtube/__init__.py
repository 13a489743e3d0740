"""Worldtube scalar self-force core.

Exports:
- ConfigurationError
- KerrSchild background, FunctionsOfTime registry, domain collaborators
- ExcisionGeometry, ParticleKinematics producers, FaceCoordinateCache
- puncture_field, WorldtubeOrbitIntegrator, BoundaryCouplingProtocol
- triggers, WorldtubeOptions, WorldtubeEvolution / setup_worldtube
"""

from .errors import ConfigurationError
from .functions_of_time import (
    FunctionOfTimeKind,
    FunctionsOfTime,
    QuaternionFunctionOfTime,
    ScaleFunctionOfTime,
    TranslationFunctionOfTime,
)
from .background import KerrSchild
from .domain import Direction, Domain, Element, ElementId, ExcisionSphere, Face, RotationMap, build_shell_domain
from .geometry import ExcisionGeometry, equal_within_roundoff, validate_circular_orbit
from .kinematics import (
    MapParticleKinematics,
    ParticleKinematics,
    evolved_particle_kinematics,
    geodesic_acceleration,
    self_force_acceleration,
)
from .face_coordinates import ElementFacesGridCoordinates, FaceCoordinateCache, Frame
from .puncture import PunctureField, puncture_field
from .integrator import KinematicsBroadcast, WorldtubeOrbitIntegrator, WorldtubeStatus
from .coupling import BoundaryCouplingProtocol, BoundaryData, ElementContribution, Reduction, WorldtubeSolution
from .triggers import Trigger, deserialize_trigger, serialize_trigger, trigger_from_dict
from .config import WorldtubeOptions, load_options_from_json
from .evolution import (
    QuadraticRegularField,
    SyntheticFieldSampler,
    WorldtubeEvolution,
    circular_orbit_functions_of_time,
    setup_worldtube,
)

__all__ = [
    "ConfigurationError",
    "FunctionOfTimeKind",
    "FunctionsOfTime",
    "QuaternionFunctionOfTime",
    "ScaleFunctionOfTime",
    "TranslationFunctionOfTime",
    "KerrSchild",
    "Direction",
    "Domain",
    "Element",
    "ElementId",
    "ExcisionSphere",
    "Face",
    "RotationMap",
    "build_shell_domain",
    "ExcisionGeometry",
    "equal_within_roundoff",
    "validate_circular_orbit",
    "MapParticleKinematics",
    "ParticleKinematics",
    "evolved_particle_kinematics",
    "geodesic_acceleration",
    "self_force_acceleration",
    "ElementFacesGridCoordinates",
    "FaceCoordinateCache",
    "Frame",
    "PunctureField",
    "puncture_field",
    "KinematicsBroadcast",
    "WorldtubeOrbitIntegrator",
    "WorldtubeStatus",
    "BoundaryCouplingProtocol",
    "BoundaryData",
    "ElementContribution",
    "Reduction",
    "WorldtubeSolution",
    "Trigger",
    "deserialize_trigger",
    "serialize_trigger",
    "trigger_from_dict",
    "WorldtubeOptions",
    "load_options_from_json",
    "QuadraticRegularField",
    "SyntheticFieldSampler",
    "WorldtubeEvolution",
    "circular_orbit_functions_of_time",
    "setup_worldtube",
]
