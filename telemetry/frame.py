"""
CoefficientFrame and CRC-32C (Castagnoli) for observed near-field coefficients.

Canonical serialization for CRC:
- Use JSON with sorted keys and no whitespace (separators=(',', ':'), ensure_ascii=False).
- Encode as UTF-8 bytes.
- Exclude the 'frame_crc32c' field from the payload when computing/validating CRC.
- The canonical object root is {"coefficient_frame": <frame_dict>}.

CRC parameters:
- Polynomial: 0x1EDC6F41 (Castagnoli), reflected representation 0x82F63B78 for table-driven impl.
- Init: 0xFFFFFFFF, XOR-out: 0xFFFFFFFF, input bytes processed LSB-first (reflected).
"""
from __future__ import annotations
from dataclasses import dataclass, field, asdict, replace
from typing import List, Dict, Optional, Any, Tuple
import json
import math

SCHEMA_VERSION = "worldtube-coefficients/1"

# ---- CRC-32C (Castagnoli) implementation ----
def _make_crc32c_table() -> Tuple[int, ...]:
    poly = 0x82F63B78  # reversed 0x1EDC6F41
    table: List[int] = []
    for i in range(256):
        crc = i
        for _ in range(8):
            if crc & 1:
                crc = (crc >> 1) ^ poly
            else:
                crc >>= 1
        table.append(crc & 0xFFFFFFFF)
    return tuple(table)

_CRC32C_TABLE: Tuple[int, ...] = _make_crc32c_table()

def crc32c(data: bytes) -> int:
    """Compute CRC-32C (Castagnoli) over data bytes."""
    crc = 0xFFFFFFFF
    for b in data:
        idx = (crc ^ b) & 0xFF
        crc = (_CRC32C_TABLE[idx] ^ (crc >> 8)) & 0xFFFFFFFF
    return crc ^ 0xFFFFFFFF

def canonical_encode(obj: Any) -> bytes:
    """Canonical JSON encoding for CRC purposes (sorted keys, no whitespace)."""
    return json.dumps(obj, sort_keys=True, separators=(',', ':'), ensure_ascii=False).encode('utf-8')


@dataclass
class CoefficientFrame:
    """Near-field coefficients and particle state observed at one step."""
    run_id: str
    time: float
    step: int
    psi0: float
    dt_psi0: float
    psi1: List[float]  # length 3, zero at expansion order 0
    position: List[float]  # inertial, length 3
    velocity: List[float]  # coordinate velocity, length 3
    schema_version: str = SCHEMA_VERSION
    frame_crc32c: Optional[int] = None
    meta: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_integrator(cls, integrator: Any, run_id: str = "run", meta: Optional[Dict[str, str]] = None) -> 'CoefficientFrame':
        kin = integrator.kinematics
        return cls(
            run_id=str(run_id),
            time=float(integrator.time),
            step=int(integrator.step_number),
            psi0=float(integrator.psi0),
            dt_psi0=float(integrator.dt_psi0),
            psi1=[float(v) for v in integrator.psi1],
            position=[float(v) for v in kin.position],
            velocity=[float(v) for v in kin.velocity],
            meta=dict(meta or {}),
        ).with_crc()

    @property
    def orbital_radius(self) -> float:
        return math.sqrt(sum(v * v for v in self.position))

    def to_dict(self, include_crc: bool = True) -> Dict[str, Any]:
        d = asdict(self)
        if not include_crc:
            d.pop('frame_crc32c', None)
        return {'coefficient_frame': d}

    def to_bytes(self) -> bytes:
        """Canonical bytes for CRC: JSON UTF-8 of to_dict(include_crc=False) with sorted keys."""
        return canonical_encode(self.to_dict(include_crc=False))

    def compute_crc32c(self) -> int:
        return crc32c(self.to_bytes())

    def with_crc(self) -> 'CoefficientFrame':
        return replace(self, frame_crc32c=self.compute_crc32c())

    def validate(self, previous: Optional['CoefficientFrame'] = None) -> Tuple[bool, Optional[str]]:
        for name in ("psi1", "position", "velocity"):
            if len(getattr(self, name)) != 3:
                return (False, f"{name} must have length 3")
        values = [self.time, self.psi0, self.dt_psi0] + list(self.psi1) + list(self.position) + list(self.velocity)
        if not all(math.isfinite(float(v)) for v in values):
            return (False, "non-finite coefficient")
        if self.step < 0:
            return (False, "step must be non-negative")
        # Integrity
        expected = self.compute_crc32c()
        if self.frame_crc32c is None or int(self.frame_crc32c) != expected:
            return (False, "crc_mismatch")
        # Monotonic time and step within a run
        if previous is not None and previous.run_id == self.run_id:
            if previous.step >= self.step or previous.time >= self.time:
                return (False, "frames must advance in step and time within a run")
        return (True, None)

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> 'CoefficientFrame':
        d = dict(obj['coefficient_frame'])
        return cls(**d)


# Known-answer test for CRC-32C: "123456789" -> 0xE3069283
def _selftest_crc32c() -> None:
    kat = b"123456789"
    val = crc32c(kat)
    assert val == 0xE3069283, f"CRC-32C self-test failed, got {val:08X}"

# Run KAT on import to avoid silent mismatches
_selftest_crc32c()
