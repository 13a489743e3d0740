"""Triggers deciding when the near-field coefficients are observed.

A trigger is a pure predicate over (time, step). The family is closed and
serializable; the serialized form is canonical JSON of a single-key mapping
{kind: options}, e.g.

  {"EveryNSteps": {"N": 2, "Offset": 0}}
  {"Times": {"EvenlySpaced": {"Interval": 0.5, "Offset": 0.0}}}
  {"Or": [{"Always": {}}, {"Not": {"Never": {}}}]}

Floats are written with their shortest round-tripping repr, so a trigger read
back from its serialization fires on exactly the same times as the original.
"""

from __future__ import annotations

import json
import math
import operator
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Tuple, Type, Union

from .errors import ConfigurationError
from .geometry import equal_within_roundoff

__all__ = [
    "Trigger",
    "Always",
    "Never",
    "EveryNSteps",
    "TimeCompares",
    "SpecifiedTimes",
    "EvenlySpacedTimes",
    "Times",
    "Not",
    "And",
    "Or",
    "trigger_from_dict",
    "serialize_trigger",
    "deserialize_trigger",
]

_COMPARISONS: Dict[str, Callable[[float, float], bool]] = {
    "EqualTo": operator.eq,
    "NotEqualTo": operator.ne,
    "LessThan": operator.lt,
    "GreaterThan": operator.gt,
    "LessThanOrEqualTo": operator.le,
    "GreaterThanOrEqualTo": operator.ge,
}


class Trigger:
    """Base class; subclasses are frozen dataclasses registered by kind name."""

    kind: str = ""

    def is_triggered(self, time: float, step: int) -> bool:  # pragma: no cover - overridden
        raise NotImplementedError

    def options(self) -> Any:  # pragma: no cover - overridden
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        return {self.kind: self.options()}


_REGISTRY: Dict[str, Type[Trigger]] = {}


def _register(cls: Type[Trigger]) -> Type[Trigger]:
    _REGISTRY[cls.kind] = cls
    return cls


def _finite(value: Any, name: str) -> float:
    try:
        val = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be a real number", quantity=name, actual=value) from e
    if not math.isfinite(val):
        raise ConfigurationError(f"{name} must be finite", quantity=name, actual=val)
    return val


def _integer(value: Any, name: str, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ConfigurationError(
            f"{name} must be an integer >= {minimum}", quantity=name, actual=value
        )
    return int(value)


@_register
@dataclass(frozen=True)
class Always(Trigger):
    kind = "Always"

    def is_triggered(self, time: float, step: int) -> bool:
        return True

    def options(self) -> Dict[str, Any]:
        return {}


@_register
@dataclass(frozen=True)
class Never(Trigger):
    kind = "Never"

    def is_triggered(self, time: float, step: int) -> bool:
        return False

    def options(self) -> Dict[str, Any]:
        return {}


@_register
@dataclass(frozen=True)
class EveryNSteps(Trigger):
    """Fires when step >= offset and (step - offset) is a multiple of n."""

    n: int
    offset: int = 0
    kind = "EveryNSteps"

    def __post_init__(self) -> None:
        object.__setattr__(self, "n", _integer(self.n, "EveryNSteps.N", 1))
        object.__setattr__(self, "offset", _integer(self.offset, "EveryNSteps.Offset", 0))

    def is_triggered(self, time: float, step: int) -> bool:
        return step >= self.offset and (step - self.offset) % self.n == 0

    def options(self) -> Dict[str, Any]:
        return {"N": self.n, "Offset": self.offset}

    @classmethod
    def from_options(cls, opts: Mapping[str, Any]) -> "EveryNSteps":
        return cls(n=opts["N"], offset=opts.get("Offset", 0))


@_register
@dataclass(frozen=True)
class TimeCompares(Trigger):
    comparison: str
    value: float
    kind = "TimeCompares"

    def __post_init__(self) -> None:
        if self.comparison not in _COMPARISONS:
            raise ConfigurationError(
                "Unknown time comparison",
                quantity="TimeCompares.Comparison",
                expected=sorted(_COMPARISONS),
                actual=self.comparison,
            )
        object.__setattr__(self, "value", _finite(self.value, "TimeCompares.Value"))

    def is_triggered(self, time: float, step: int) -> bool:
        return bool(_COMPARISONS[self.comparison](float(time), self.value))

    def options(self) -> Dict[str, Any]:
        return {"Comparison": self.comparison, "Value": self.value}

    @classmethod
    def from_options(cls, opts: Mapping[str, Any]) -> "TimeCompares":
        return cls(comparison=opts["Comparison"], value=opts["Value"])


# ---- time sequences for Times ----


@dataclass(frozen=True)
class SpecifiedTimes:
    values: Tuple[float, ...]
    kind = "Specified"

    def __post_init__(self) -> None:
        vals = tuple(sorted(_finite(v, "Times.Specified") for v in self.values))
        object.__setattr__(self, "values", vals)

    def contains(self, time: float) -> bool:
        return any(equal_within_roundoff(v, time) for v in self.values)

    def options(self) -> Dict[str, Any]:
        return {"Values": list(self.values)}

    @classmethod
    def from_options(cls, opts: Mapping[str, Any]) -> "SpecifiedTimes":
        return cls(values=tuple(opts["Values"]))


@dataclass(frozen=True)
class EvenlySpacedTimes:
    interval: float
    offset: float = 0.0
    kind = "EvenlySpaced"

    def __post_init__(self) -> None:
        interval = _finite(self.interval, "Times.EvenlySpaced.Interval")
        if interval <= 0.0:
            raise ConfigurationError(
                "Times.EvenlySpaced.Interval must be positive",
                quantity="Times.EvenlySpaced.Interval",
                actual=interval,
            )
        object.__setattr__(self, "interval", interval)
        object.__setattr__(self, "offset", _finite(self.offset, "Times.EvenlySpaced.Offset"))

    def contains(self, time: float) -> bool:
        k = round((float(time) - self.offset) / self.interval)
        return equal_within_roundoff(self.offset + k * self.interval, time)

    def options(self) -> Dict[str, Any]:
        return {"Interval": self.interval, "Offset": self.offset}

    @classmethod
    def from_options(cls, opts: Mapping[str, Any]) -> "EvenlySpacedTimes":
        return cls(interval=opts["Interval"], offset=opts.get("Offset", 0.0))


TimeSequence = Union[SpecifiedTimes, EvenlySpacedTimes]
_SEQUENCES: Dict[str, Any] = {"Specified": SpecifiedTimes, "EvenlySpaced": EvenlySpacedTimes}


@_register
@dataclass(frozen=True)
class Times(Trigger):
    """Fires when the time matches an element of the sequence within round-off."""

    sequence: TimeSequence
    kind = "Times"

    def is_triggered(self, time: float, step: int) -> bool:
        return self.sequence.contains(time)

    def options(self) -> Dict[str, Any]:
        return {self.sequence.kind: self.sequence.options()}

    @classmethod
    def from_options(cls, opts: Mapping[str, Any]) -> "Times":
        name, sub = _single_entry(opts, "Times")
        if name not in _SEQUENCES:
            raise ConfigurationError(
                "Unknown time sequence", quantity="Times", expected=sorted(_SEQUENCES), actual=name
            )
        return cls(sequence=_SEQUENCES[name].from_options(sub))


@_register
@dataclass(frozen=True)
class Not(Trigger):
    trigger: Trigger
    kind = "Not"

    def is_triggered(self, time: float, step: int) -> bool:
        return not self.trigger.is_triggered(time, step)

    def options(self) -> Dict[str, Any]:
        return self.trigger.to_dict()

    @classmethod
    def from_options(cls, opts: Any) -> "Not":
        return cls(trigger=trigger_from_dict(opts))


@dataclass(frozen=True)
class _Combination(Trigger):
    triggers: Tuple[Trigger, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "triggers", tuple(self.triggers))
        if len(self.triggers) == 0:
            raise ConfigurationError(f"{self.kind} needs at least one trigger", quantity=self.kind)

    def options(self) -> Any:
        return [t.to_dict() for t in self.triggers]

    @classmethod
    def from_options(cls, opts: Any) -> "_Combination":
        if not isinstance(opts, (list, tuple)):
            raise ConfigurationError(f"{cls.kind} expects a list of triggers", quantity=cls.kind, actual=opts)
        return cls(triggers=tuple(trigger_from_dict(o) for o in opts))


@_register
@dataclass(frozen=True)
class And(_Combination):
    kind = "And"

    def is_triggered(self, time: float, step: int) -> bool:
        return all(t.is_triggered(time, step) for t in self.triggers)


@_register
@dataclass(frozen=True)
class Or(_Combination):
    kind = "Or"

    def is_triggered(self, time: float, step: int) -> bool:
        return any(t.is_triggered(time, step) for t in self.triggers)


# ---- (de)serialization ----


def _single_entry(obj: Any, where: str) -> Tuple[str, Any]:
    if not isinstance(obj, Mapping) or len(obj) != 1:
        raise ConfigurationError(f"{where} expects a mapping with exactly one entry", quantity=where, actual=obj)
    ((name, sub),) = obj.items()
    return str(name), sub


def trigger_from_dict(obj: Any) -> Trigger:
    """Build a trigger from {kind: options}; the bare strings "Always"/"Never" are accepted."""
    if isinstance(obj, str):
        obj = {obj: {}}
    kind, opts = _single_entry(obj, "ObserveCoefficientsTrigger")
    cls = _REGISTRY.get(kind)
    if cls is None:
        raise ConfigurationError(
            "Unknown trigger kind",
            quantity="ObserveCoefficientsTrigger",
            expected=sorted(_REGISTRY),
            actual=kind,
        )
    if cls in (Always, Never):
        return cls()
    try:
        return cls.from_options(opts)  # type: ignore[attr-defined]
    except (KeyError, TypeError) as e:
        raise ConfigurationError(
            f"Malformed options for trigger {kind}: {e}", quantity="ObserveCoefficientsTrigger", actual=opts
        ) from e


def serialize_trigger(trigger: Trigger) -> bytes:
    """Canonical JSON (sorted keys, no whitespace), UTF-8 encoded."""
    return json.dumps(trigger.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def deserialize_trigger(data: Union[bytes, str]) -> Trigger:
    text = data.decode("utf-8") if isinstance(data, bytes) else data
    try:
        obj = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Trigger is not valid JSON: {e}", quantity="ObserveCoefficientsTrigger") from e
    return trigger_from_dict(obj)
