"""Kerr-Schild background spacetime (non-spinning family).

Conventions
- Coordinates x^a = (t, x, y, z); index 0 is time. Signature (-, +, +, +).
- g_ab = η_ab + 2 H l_a l_b with H = M / r and l_a = (1, x_i / r), where r is
  measured from the background center.
- g^ab = η^ab - 2 H l^a l^b with l^a = (-1, x_i / r).
- The background is static: ∂_t g_ab = 0.
- dg[k, a, b] = ∂_k g_ab with k running over all four coordinates.
- Γ[a, b, c] = Γ^a_{bc}.

Only zero spin is evaluated; a spinning background can be constructed (so that
configuration validation can report it) but raises NotImplementedError on
evaluation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

import numpy as np

__all__ = ["KerrSchild", "christoffel"]

_ETA = np.diag([-1.0, 1.0, 1.0, 1.0])


def christoffel(g_inv: np.ndarray, dg: np.ndarray) -> np.ndarray:
    """
    Christoffel symbols of the Levi-Civita connection at a point.

    Formula
    Γ^a_{bc} = 0.5 * g^{aδ} * ( ∂_b g_{δc} + ∂_c g_{δb} − ∂_δ g_{bc} )

    Parameters
    ----------
    g_inv : np.ndarray
        Inverse metric, shape (n, n).
    dg : np.ndarray
        dg[k, i, j] = ∂_k g_{ij}, shape (n, n, n).

    Returns
    -------
    np.ndarray
        Γ with shape (n, n, n), Γ[a, b, c] = Γ^a_{bc}.
    """
    g_inv = np.asarray(g_inv, dtype=float)
    dg = np.asarray(dg, dtype=float)
    n = g_inv.shape[0]
    if g_inv.shape != (n, n):
        raise ValueError("g_inv must be a square 2D array with shape (n, n).")
    if dg.shape != (n, n, n):
        raise ValueError(f"dg must have shape (n, n, n) matching g_inv; got {dg.shape} for n={n}.")

    Gamma = np.zeros((n, n, n), dtype=float)
    for b in range(n):
        for c in range(n):
            S = dg[b, :, c] + dg[c, :, b] - dg[:, b, c]  # shape (n,)
            Gamma[:, b, c] = 0.5 * (g_inv @ S)
    return Gamma


@dataclass(frozen=True)
class KerrSchild:
    mass: float = 1.0
    dimensionless_spin: np.ndarray = field(default_factory=lambda: np.zeros(3))
    center: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self) -> None:
        spin = np.asarray(self.dimensionless_spin, dtype=float)
        center = np.asarray(self.center, dtype=float)
        if spin.shape != (3,) or center.shape != (3,):
            raise ValueError("dimensionless_spin and center must be 3-vectors")
        if not (np.all(np.isfinite(spin)) and np.all(np.isfinite(center))):
            raise ValueError("dimensionless_spin and center must be finite")
        if not (np.isfinite(self.mass) and float(self.mass) > 0.0):
            raise ValueError("mass must be a positive finite float")
        if float(np.linalg.norm(spin)) > 1.0:
            raise ValueError("dimensionless spin magnitude must be <= 1")
        object.__setattr__(self, "mass", float(self.mass))
        object.__setattr__(self, "dimensionless_spin", spin)
        object.__setattr__(self, "center", center)

    def zero_spin(self) -> bool:
        return bool(np.all(self.dimensionless_spin == 0.0))

    # ---- pointwise pieces ----

    def _h_and_l(self, x: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Return (H, l_spatial, r) for points x of shape (3,) or (3, N)."""
        if not self.zero_spin():
            raise NotImplementedError("spinning Kerr-Schild backgrounds are not supported")
        xr = np.asarray(x, dtype=float)
        rel = xr - (self.center if xr.ndim == 1 else self.center[:, None])
        r = np.sqrt(np.sum(rel * rel, axis=0))
        H = self.mass / r
        return H, rel / r, r

    def spacetime_metric(self, x: np.ndarray) -> np.ndarray:
        """g_ab at a single point x (3,), shape (4, 4)."""
        H, l_sp, _ = self._h_and_l(x)
        l = np.concatenate(([1.0], l_sp))
        return _ETA + 2.0 * H * np.outer(l, l)

    def inverse_spacetime_metric(self, x: np.ndarray) -> np.ndarray:
        """g^ab at a single point x (3,), shape (4, 4)."""
        H, l_sp, _ = self._h_and_l(x)
        l_up = np.concatenate(([-1.0], l_sp))
        return _ETA - 2.0 * H * np.outer(l_up, l_up)

    def derivative_spacetime_metric(self, x: np.ndarray) -> np.ndarray:
        """dg[k, a, b] = ∂_k g_ab at a single point x (3,), shape (4, 4, 4)."""
        H, l_sp, r = self._h_and_l(x)
        l = np.concatenate(([1.0], l_sp))
        dH = -H * l_sp / r  # ∂_i H = -M x_i / r^3
        dl = np.zeros((3, 4), dtype=float)  # dl[i, a] = ∂_i l_a
        dl[:, 1:] = (np.eye(3) - np.outer(l_sp, l_sp)) / r
        dg = np.zeros((4, 4, 4), dtype=float)
        dg[1:] = 2.0 * (
            dH[:, None, None] * np.outer(l, l)[None, :, :]
            + H * (dl[:, :, None] * l[None, None, :] + l[None, :, None] * dl[:, None, :])
        )
        return dg

    def christoffel_second_kind(self, x: np.ndarray) -> np.ndarray:
        """Γ^a_{bc} at a single point x (3,), shape (4, 4, 4)."""
        return christoffel(self.inverse_spacetime_metric(x), self.derivative_spacetime_metric(x))

    # ---- 3+1 quantities, vectorized over points (3,) or (3, N) ----

    def lapse(self, x: np.ndarray) -> np.ndarray:
        H, _, _ = self._h_and_l(x)
        return 1.0 / np.sqrt(1.0 + 2.0 * H)

    def shift(self, x: np.ndarray) -> np.ndarray:
        H, l_sp, _ = self._h_and_l(x)
        return 2.0 * H / (1.0 + 2.0 * H) * l_sp

    def spatial_metric(self, x: np.ndarray) -> np.ndarray:
        H, l_sp, _ = self._h_and_l(x)
        if l_sp.ndim == 1:
            return np.eye(3) + 2.0 * H * np.outer(l_sp, l_sp)
        return np.eye(3)[:, :, None] + 2.0 * H * np.einsum("iN,jN->ijN", l_sp, l_sp)

    def inverse_spatial_metric(self, x: np.ndarray) -> np.ndarray:
        H, l_sp, _ = self._h_and_l(x)
        fac = 2.0 * H / (1.0 + 2.0 * H)
        if l_sp.ndim == 1:
            return np.eye(3) - fac * np.outer(l_sp, l_sp)
        return np.eye(3)[:, :, None] - fac * np.einsum("iN,jN->ijN", l_sp, l_sp)
