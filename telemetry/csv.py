"""
CSV emitter for observed worldtube coefficients.

Deterministic behavior:
- Stable column order (explicit header list, not dict iteration).
- Fixed float formatting in scientific notation with 12 digits after the point.
- None values serialized as empty string.
"""

from __future__ import annotations
import csv
from typing import Iterable, List, TextIO

from .frame import CoefficientFrame


# Stable, explicit header order
_HEADER: List[str] = [
    "step",
    "time",
    "psi0",
    "dt_psi0",
    "psi1_x",
    "psi1_y",
    "psi1_z",
    "position_x",
    "position_y",
    "position_z",
    "velocity_x",
    "velocity_y",
    "velocity_z",
    "orbital_radius",
]


def _fmt(val) -> str:
    if val is None:
        return ""
    if isinstance(val, float):
        return f"{val:.12e}"
    return str(val)


def write_coefficients_csv(frames: Iterable[CoefficientFrame], fp: TextIO) -> int:
    """
    Write CoefficientFrame rows to CSV with deterministic header and formatting.

    Returns:
        int: number of rows written (excluding header).
    """
    writer = csv.writer(fp, lineterminator="\n")
    writer.writerow(_HEADER)

    count = 0
    for f in frames:
        row = [_fmt(int(f.step)), _fmt(float(f.time)), _fmt(float(f.psi0)), _fmt(float(f.dt_psi0))]
        row += [_fmt(float(v)) for v in f.psi1]
        row += [_fmt(float(v)) for v in f.position]
        row += [_fmt(float(v)) for v in f.velocity]
        row.append(_fmt(f.orbital_radius))
        writer.writerow(row)
        count += 1
    return count
