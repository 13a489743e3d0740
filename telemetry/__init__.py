# Telemetry package init: observed worldtube coefficients (frames, observer, CSV)
from __future__ import annotations

from .frame import (
    CoefficientFrame,
    SCHEMA_VERSION,
    canonical_encode,
    crc32c,
)
from .observer import CoefficientObserver
from .csv import write_coefficients_csv

__all__ = [
    "CoefficientFrame",
    "SCHEMA_VERSION",
    "canonical_encode",
    "crc32c",
    "CoefficientObserver",
    "write_coefficients_csv",
]
