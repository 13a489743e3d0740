"""Worldtube configuration surface.

Options (grouped under "Worldtube" in an input file):
  Charge                      real, the scalar charge q
  SelfForceOptions.Mass       real >= 0; 0 disables the self-force (geodesic limit)
  ExcisionSphere              name of the excision sphere hosting the worldtube
  ExpansionOrder              0 or 1
  ObserveCoefficientsTrigger  trigger deciding when the coefficients are observed

Example
  {"Worldtube": {
      "Charge": 1.0,
      "SelfForceOptions": {"Mass": 0.0},
      "ExcisionSphere": "ExcisionSphereA",
      "ExpansionOrder": 0,
      "ObserveCoefficientsTrigger": {"EveryNSteps": {"N": 1, "Offset": 0}}}}

All problems raise ConfigurationError naming the option.
"""

from __future__ import annotations

import json
import math
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from .errors import ConfigurationError
from .puncture import check_expansion_order
from .triggers import Always, Trigger, deserialize_trigger, serialize_trigger, trigger_from_dict

__all__ = ["WorldtubeOptions", "load_options_from_json"]

_REQUIRED_KEYS = ("Charge", "ExcisionSphere", "ExpansionOrder", "ObserveCoefficientsTrigger")
_ALLOWED_KEYS = set(_REQUIRED_KEYS) | {"SelfForceOptions"}


@dataclass(frozen=True)
class WorldtubeOptions:
    """
    Validated, immutable worldtube options.

    The stored trigger is the deserialization of the given trigger's
    serialization, so options built in-process and options read back from a
    file behave identically.
    """

    charge: float
    excision_sphere: str
    expansion_order: int = 0
    mass: float = 0.0
    observe_coefficients_trigger: Trigger = field(default_factory=Always)

    def __post_init__(self) -> None:
        object.__setattr__(self, "charge", _real(self.charge, "Charge"))
        mass = _real(self.mass, "SelfForceOptions.Mass")
        if mass < 0.0:
            raise ConfigurationError("Mass must be non-negative", quantity="SelfForceOptions.Mass", actual=mass)
        object.__setattr__(self, "mass", mass)
        if not isinstance(self.excision_sphere, str) or not self.excision_sphere:
            raise ConfigurationError(
                "ExcisionSphere must be a non-empty name", quantity="ExcisionSphere", actual=self.excision_sphere
            )
        object.__setattr__(self, "expansion_order", check_expansion_order(self.expansion_order))
        if not isinstance(self.observe_coefficients_trigger, Trigger):
            raise ConfigurationError(
                "ObserveCoefficientsTrigger must be a trigger",
                quantity="ObserveCoefficientsTrigger",
                actual=type(self.observe_coefficients_trigger).__name__,
            )
        trigger = deserialize_trigger(serialize_trigger(self.observe_coefficients_trigger))
        object.__setattr__(self, "observe_coefficients_trigger", trigger)

    @property
    def self_force_enabled(self) -> bool:
        return self.mass > 0.0

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "WorldtubeOptions":
        """Build from {"Worldtube": {...}} or from the bare option group."""
        if not isinstance(raw, Mapping):
            raise ConfigurationError("worldtube options must be a mapping", quantity="Worldtube")
        group = raw["Worldtube"] if "Worldtube" in raw else raw
        if not isinstance(group, Mapping):
            raise ConfigurationError("Worldtube must be a mapping", quantity="Worldtube", actual=group)

        extra = sorted(k for k in group if k not in _ALLOWED_KEYS)
        if extra:
            raise ConfigurationError(f"unknown Worldtube options: {extra}", quantity="Worldtube")
        missing = [k for k in _REQUIRED_KEYS if k not in group]
        if missing:
            raise ConfigurationError(f"missing Worldtube options: {missing}", quantity="Worldtube")

        self_force = group.get("SelfForceOptions") or {}
        if not isinstance(self_force, Mapping) or set(self_force) - {"Mass"}:
            raise ConfigurationError(
                "SelfForceOptions accepts only Mass", quantity="SelfForceOptions", actual=self_force
            )
        return cls(
            charge=group["Charge"],
            excision_sphere=group["ExcisionSphere"],
            expansion_order=group["ExpansionOrder"],
            mass=self_force.get("Mass", 0.0),
            observe_coefficients_trigger=trigger_from_dict(group["ObserveCoefficientsTrigger"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Worldtube": {
                "Charge": self.charge,
                "SelfForceOptions": {"Mass": self.mass},
                "ExcisionSphere": self.excision_sphere,
                "ExpansionOrder": self.expansion_order,
                "ObserveCoefficientsTrigger": self.observe_coefficients_trigger.to_dict(),
            }
        }


def _real(value: Any, name: str) -> float:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a real number", quantity=name, actual=value)
    try:
        val = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be a real number", quantity=name, actual=value) from e
    if not math.isfinite(val):
        raise ConfigurationError(f"{name} must be finite", quantity=name, actual=val)
    return val


def load_options_from_json(path: str) -> WorldtubeOptions:
    """Load WorldtubeOptions from a JSON file."""
    if not isinstance(path, str) or not path:
        raise ConfigurationError("load_options_from_json: path must be a non-empty string", quantity="path")
    if not os.path.exists(path):
        raise ConfigurationError(f"load_options_from_json: file not found: {path}", quantity="path")
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"load_options_from_json: failed to parse JSON: {e}", quantity="path") from e
    return WorldtubeOptions.from_dict(raw)
