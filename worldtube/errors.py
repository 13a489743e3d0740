"""Configuration errors raised while setting up the worldtube.

Every failure detected by this package is a configuration failure found once at
startup; per-step evaluations are total over the validated inputs.
"""

from __future__ import annotations

from typing import Any, Optional

__all__ = ["ConfigurationError"]


class ConfigurationError(ValueError):
    """
    Fatal startup error naming the offending quantity.

    Attributes
    - quantity: short name of the quantity that failed validation
    - expected: expected value (if meaningful), else None
    - actual: actual value (if meaningful), else None
    """

    def __init__(
        self,
        message: str,
        quantity: str = "",
        expected: Optional[Any] = None,
        actual: Optional[Any] = None,
    ) -> None:
        self.quantity = str(quantity)
        self.expected = expected
        self.actual = actual
        detail = message
        if expected is not None or actual is not None:
            detail = f"{message} (expected {_fmt(expected)}, got {_fmt(actual)})"
        super().__init__(detail)


def _fmt(val: Any) -> str:
    tolist = getattr(val, "tolist", None)
    if callable(tolist):
        val = tolist()
    if isinstance(val, (list, tuple)):
        return "[" + ", ".join(_fmt(v) for v in val) + "]"
    if isinstance(val, float):
        return f"{val:.16g}"
    return str(val)
