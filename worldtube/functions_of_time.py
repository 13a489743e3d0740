"""Named, time-evaluable transforms driving the moving coordinate maps.

The registry is a tagged union over transform kinds. Consumers match on
``FunctionOfTime.kind`` explicitly and report a kind mismatch instead of
relying on a runtime downcast.

Kinds
- ROTATION: quaternion rotation about a fixed axis; the angle vector is a
  quadratic polynomial in time, angle(t) = a0 + a1*dt + a2*dt^2/2.
- TRANSLATION: vector offset, quadratic polynomial in time.
- SCALE: scalar expansion factor, quadratic polynomial in time.

All evaluations are pure; the registry handle is read-only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Sequence, Tuple

import numpy as np

from .errors import ConfigurationError

__all__ = [
    "FunctionOfTimeKind",
    "FunctionOfTime",
    "QuaternionFunctionOfTime",
    "TranslationFunctionOfTime",
    "ScaleFunctionOfTime",
    "FunctionsOfTime",
    "quaternion_multiply",
    "quaternion_to_rotation_matrix",
    "skew",
]


class FunctionOfTimeKind(str, Enum):
    ROTATION = "rotation"
    TRANSLATION = "translation"
    SCALE = "scale"


def quaternion_multiply(p: np.ndarray, q: np.ndarray) -> np.ndarray:
    """Hamilton product p ⊗ q for quaternions stored as (w, x, y, z)."""
    pw, px, py, pz = (float(c) for c in p)
    qw, qx, qy, qz = (float(c) for c in q)
    return np.array(
        [
            pw * qw - px * qx - py * qy - pz * qz,
            pw * qx + px * qw + py * qz - pz * qy,
            pw * qy - px * qz + py * qw + pz * qx,
            pw * qz + px * qy - py * qx + pz * qw,
        ],
        dtype=float,
    )


def quaternion_to_rotation_matrix(q: np.ndarray) -> np.ndarray:
    """Rotation matrix of a unit quaternion (w, x, y, z)."""
    w, x, y, z = (float(c) for c in q)
    return np.array(
        [
            [1.0 - 2.0 * (y * y + z * z), 2.0 * (x * y - w * z), 2.0 * (x * z + w * y)],
            [2.0 * (x * y + w * z), 1.0 - 2.0 * (x * x + z * z), 2.0 * (y * z - w * x)],
            [2.0 * (x * z - w * y), 2.0 * (y * z + w * x), 1.0 - 2.0 * (x * x + y * y)],
        ],
        dtype=float,
    )


def skew(omega: np.ndarray) -> np.ndarray:
    """Cross-product matrix [ω]× such that skew(ω) @ x == ω × x."""
    wx, wy, wz = (float(c) for c in omega)
    return np.array([[0.0, -wz, wy], [wz, 0.0, -wx], [-wy, wx, 0.0]], dtype=float)


def _as_vector_coefs(coefs: Sequence[Sequence[float]], name: str) -> Tuple[np.ndarray, ...]:
    out: List[np.ndarray] = []
    for c in coefs:
        arr = np.asarray(c, dtype=float)
        if arr.shape != (3,):
            raise ValueError(f"{name} coefficients must be 3-vectors; got shape {arr.shape}")
        if not np.all(np.isfinite(arr)):
            raise ValueError(f"{name} coefficients must be finite")
        out.append(arr)
    if not 1 <= len(out) <= 3:
        raise ValueError(f"{name} needs between 1 and 3 polynomial coefficients")
    while len(out) < 3:
        out.append(np.zeros(3, dtype=float))
    return tuple(out)


def _poly_and_derivs(coefs: Sequence[np.ndarray], dt: float) -> List[np.ndarray]:
    a0, a1, a2 = coefs
    return [
        np.asarray(a0 + a1 * dt + 0.5 * a2 * dt * dt, dtype=float),
        np.asarray(a1 + a2 * dt, dtype=float),
        np.asarray(a2, dtype=float).copy(),
    ]


@dataclass(frozen=True)
class FunctionOfTime:
    """Base record; ``kind`` is the union tag."""

    initial_time: float

    @property
    def kind(self) -> FunctionOfTimeKind:  # pragma: no cover - overridden
        raise NotImplementedError


@dataclass(frozen=True)
class QuaternionFunctionOfTime(FunctionOfTime):
    """
    Rigid rotation q(t) = q0 ⊗ exp(angle(t)/2) about a fixed axis.

    angle_coefs holds (angle, angular velocity, angular acceleration) at
    initial_time; nonzero coefficients must be parallel.
    """

    angle_coefs: Tuple[np.ndarray, ...] = field(
        default_factory=lambda: (np.zeros(3), np.zeros(3), np.zeros(3))
    )
    initial_quaternion: np.ndarray = field(default_factory=lambda: np.array([1.0, 0.0, 0.0, 0.0]))

    def __post_init__(self) -> None:
        coefs = _as_vector_coefs(self.angle_coefs, "angle")
        object.__setattr__(self, "angle_coefs", coefs)
        q0 = np.asarray(self.initial_quaternion, dtype=float)
        if q0.shape != (4,) or not np.all(np.isfinite(q0)):
            raise ValueError("initial_quaternion must be a finite 4-vector (w, x, y, z)")
        norm = float(np.linalg.norm(q0))
        if norm == 0.0:
            raise ValueError("initial_quaternion must be nonzero")
        object.__setattr__(self, "initial_quaternion", q0 / norm)
        # Fixed-axis requirement
        nonzero = [c for c in coefs if float(np.linalg.norm(c)) > 0.0]
        for c in nonzero[1:]:
            if float(np.linalg.norm(np.cross(nonzero[0], c))) > 1e-12 * float(
                np.linalg.norm(nonzero[0]) * np.linalg.norm(c)
            ):
                raise ValueError("rotation angle coefficients must share a fixed axis")

    @property
    def kind(self) -> FunctionOfTimeKind:
        return FunctionOfTimeKind.ROTATION

    def angle_func_and_deriv(self, t: float) -> List[np.ndarray]:
        """Return [angle, d angle/dt, d^2 angle/dt^2] at time t."""
        return _poly_and_derivs(self.angle_coefs, float(t) - float(self.initial_time))

    def quat_func(self, t: float) -> np.ndarray:
        angle = self.angle_func_and_deriv(t)[0]
        theta = float(np.linalg.norm(angle))
        if theta == 0.0:
            dq = np.array([1.0, 0.0, 0.0, 0.0], dtype=float)
        else:
            axis = angle / theta
            dq = np.concatenate(([np.cos(0.5 * theta)], np.sin(0.5 * theta) * axis))
        return quaternion_multiply(self.initial_quaternion, dq)

    def rotation_matrix(self, t: float) -> np.ndarray:
        return quaternion_to_rotation_matrix(self.quat_func(t))

    def angular_velocity(self, t: float) -> np.ndarray:
        """Inertial-frame angular velocity R(q0) · d angle/dt."""
        omega = self.angle_func_and_deriv(t)[1]
        return quaternion_to_rotation_matrix(self.initial_quaternion) @ omega

    def rotation_matrix_and_deriv(self, t: float) -> Tuple[np.ndarray, np.ndarray]:
        """Return (R(t), dR/dt) with dR/dt = [Ω]× R."""
        R = self.rotation_matrix(t)
        return R, skew(self.angular_velocity(t)) @ R


@dataclass(frozen=True)
class TranslationFunctionOfTime(FunctionOfTime):
    coefs: Tuple[np.ndarray, ...] = field(
        default_factory=lambda: (np.zeros(3), np.zeros(3), np.zeros(3))
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "coefs", _as_vector_coefs(self.coefs, "translation"))

    @property
    def kind(self) -> FunctionOfTimeKind:
        return FunctionOfTimeKind.TRANSLATION

    def func_and_deriv(self, t: float) -> List[np.ndarray]:
        return _poly_and_derivs(self.coefs, float(t) - float(self.initial_time))


@dataclass(frozen=True)
class ScaleFunctionOfTime(FunctionOfTime):
    coefs: Tuple[float, ...] = (1.0, 0.0, 0.0)

    def __post_init__(self) -> None:
        c = [float(x) for x in self.coefs]
        if not 1 <= len(c) <= 3 or not all(np.isfinite(c)):
            raise ValueError("scale needs between 1 and 3 finite polynomial coefficients")
        while len(c) < 3:
            c.append(0.0)
        object.__setattr__(self, "coefs", tuple(c))

    @property
    def kind(self) -> FunctionOfTimeKind:
        return FunctionOfTimeKind.SCALE

    def func_and_deriv(self, t: float) -> List[float]:
        a0, a1, a2 = self.coefs
        dt = float(t) - float(self.initial_time)
        return [a0 + a1 * dt + 0.5 * a2 * dt * dt, a1 + a2 * dt, a2]


class FunctionsOfTime(Mapping[str, FunctionOfTime]):
    """Read-only registry handle: name -> FunctionOfTime."""

    def __init__(self, entries: Mapping[str, FunctionOfTime]) -> None:
        for name, fot in entries.items():
            if not isinstance(name, str) or not name:
                raise ValueError("function-of-time names must be non-empty strings")
            if not isinstance(fot, FunctionOfTime):
                raise TypeError(f"entry '{name}' is not a FunctionOfTime")
        self._entries: Mapping[str, FunctionOfTime] = MappingProxyType(dict(entries))

    def __getitem__(self, name: str) -> FunctionOfTime:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def expect(self, name: str, kind: FunctionOfTimeKind) -> FunctionOfTime:
        """Return entry `name`, raising ConfigurationError if absent or of another kind."""
        if name not in self._entries:
            raise ConfigurationError(
                f"Expected functions of time to contain '{name}'; available: {sorted(self._entries)}",
                quantity=f"functions_of_time[{name}]",
            )
        fot = self._entries[name]
        if fot.kind is not kind:
            raise ConfigurationError(
                f"Function of time '{name}' has the wrong kind (kind mismatch)",
                quantity=f"functions_of_time[{name}].kind",
                expected=kind.value,
                actual=fot.kind.value,
            )
        return fot

    def as_dict(self) -> Dict[str, FunctionOfTime]:
        return dict(self._entries)
