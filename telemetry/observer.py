"""
Coefficient observer: sink for the worldtube ObserveCoefficientsTrigger.

The evolution driver decides when to observe; this observer turns the
integrator's current state into a CRC-stamped CoefficientFrame and keeps the
frames in emission order.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional

from worldtube.utils.logging import get_logger

from .frame import CoefficientFrame

logger = get_logger("worldtube.telemetry")


class CoefficientObserver:
    def __init__(self, run_id: str = "run", meta: Optional[Dict[str, str]] = None) -> None:
        self.run_id = str(run_id)
        self.meta = dict(meta or {})
        self._frames: List[CoefficientFrame] = []

    def __call__(self, integrator: Any) -> CoefficientFrame:
        frame = CoefficientFrame.from_integrator(integrator, run_id=self.run_id, meta=self.meta)
        ok, err = frame.validate(self._frames[-1] if self._frames else None)
        if not ok:
            raise ValueError(f"coefficient frame rejected: {err}")
        self._frames.append(frame)
        logger.info(
            "observed coefficients step=%d t=%.10g psi0=%.10g dt_psi0=%.10g crc=%08X",
            frame.step,
            frame.time,
            frame.psi0,
            frame.dt_psi0,
            frame.frame_crc32c,
        )
        return frame

    @property
    def frames(self) -> List[CoefficientFrame]:
        return list(self._frames)

    def __len__(self) -> int:
        return len(self._frames)
