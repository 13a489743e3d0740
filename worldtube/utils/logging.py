"""Structured logging utilities (dependency-free).

Invariants
- Idempotent handler installation per logger.
- Values and step (if provided) must be finite floats.

Public API
- get_logger(name="worldtube", level=logging.INFO) -> logging.Logger
- log_metric(name, value, step=None, logger=None, level=logging.INFO) -> None
- log_metrics(metrics: dict[str, float], step=None, logger=None, level=logging.INFO) -> None
"""
from __future__ import annotations

import logging
import math
from typing import Mapping, Optional


def get_logger(name: str = "worldtube", level: int = logging.INFO) -> logging.Logger:
    """
    Return a configured logger with concise formatter.

    Idempotent: installs at most one StreamHandler marked by _worldtube_handler.
    Child loggers ("worldtube.integrator", ...) share the handler of the
    "worldtube" root logger through propagation.
    """
    root_name = name.split(".", 1)[0]
    root = logging.getLogger(root_name)
    has_handler = any(getattr(h, "_worldtube_handler", False) for h in root.handlers)
    if not has_handler:
        root.setLevel(int(level))
        root.propagate = False  # avoid duplicate logs through the stdlib root
        handler = logging.StreamHandler()
        handler._worldtube_handler = True  # type: ignore[attr-defined]
        handler.setLevel(logging.DEBUG)
        formatter = logging.Formatter(
            fmt="%(asctime)s %(name)s %(levelname)s: %(message)s",
            datefmt="%H:%M:%S",
        )
        handler.setFormatter(formatter)
        root.addHandler(handler)
    return logging.getLogger(name)


def _ensure_finite_float(x: object, name: str) -> float:
    try:
        val = float(x)  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise TypeError(f"{name} must be a real number convertible to float") from e
    if not math.isfinite(val):
        raise ValueError(f"{name} must be finite, got {val}")
    return val


def _format_float(x: float) -> str:
    return f"{x:.10g}"


def log_metric(
    name: str,
    value: float,
    step: Optional[int] = None,
    logger: Optional[logging.Logger] = None,
    level: int = logging.INFO,
) -> None:
    """Log a single metric as: "metric name=value step=step"."""
    if not isinstance(name, str) or not name:
        raise ValueError("name must be a non-empty string")
    v = _ensure_finite_float(value, "value")
    s_str = ""
    if step is not None:
        s = _ensure_finite_float(step, "step")
        s_str = f" step={int(s)}"
    lg = logger if logger is not None else get_logger()
    lg.log(level, f"metric {name}={_format_float(v)}{s_str}")


def log_metrics(
    metrics: Mapping[str, float],
    step: Optional[int] = None,
    logger: Optional[logging.Logger] = None,
    level: int = logging.INFO,
) -> None:
    """
    Log a dictionary of metrics as: "metrics k1=v1 k2=v2 ... step=step".

    - Keys are sorted for deterministic ordering.
    - Values validated to be finite floats.
    """
    if not isinstance(metrics, Mapping) or len(metrics) == 0:
        raise ValueError("metrics must be a non-empty mapping of str->float")
    lg = logger if logger is not None else get_logger()
    if not lg.isEnabledFor(level):
        return
    parts: list[str] = []
    for k in sorted(metrics.keys()):
        if not isinstance(k, str) or not k:
            raise ValueError("metric keys must be non-empty strings")
        v = _ensure_finite_float(metrics[k], f"value for '{k}'")
        parts.append(f"{k}={_format_float(v)}")
    s_str = ""
    if step is not None:
        s = _ensure_finite_float(step, "step")
        s_str = f" step={int(s)}"
    lg.log(level, "metrics " + " ".join(parts) + s_str)


__all__ = ["get_logger", "log_metric", "log_metrics"]
