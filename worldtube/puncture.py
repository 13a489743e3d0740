"""Puncture field: analytic singular field of a scalar charge near its worldline.

Let Δ^i = x^i - x_p^i be the centered inertial face coordinates on the slice
of the particle, u^a the particle's four-velocity, g_ab and ∂_k g_ab the
background metric and its derivatives at the particle. The singular field is
q / ρ where ρ^2 = (g^{a'b'} + u^{a'} u^{b'}) σ_{a'} σ_{b'}, expanded in Δ:

  2σ      = g_ij Δ^i Δ^j + ½ ∂_k g_ij Δ^i Δ^j Δ^k + O(Δ^4)
  u·σ     = A + B + O(Δ^3)
  A       = -u_j Δ^j
  B       = -½ u^a ∂_k g_aj Δ^j Δ^k + ¼ u^l ∂_l g_jk Δ^j Δ^k
  ρ^2     = ρ0^2 + ρ1 + O(Δ^4)
  ρ0^2    = (g_ij + u_i u_j) Δ^i Δ^j
  ρ1      = ½ ∂_k g_ij Δ^i Δ^j Δ^k + 2 A B

Truncations
- order 0:  Ψ_P = q / ρ0; gradient from Δ only; ∂_t Ψ_P = -v^i ∂_i Ψ_P.
- order 1:  Ψ_P = q / ρ0 - q ρ1 / (2 ρ0^3); ∂_t Ψ_P adds the change of the
  projector g_ij + u_i u_j along the orbit, which is where the particle
  acceleration enters.

Purely algebraic per point; no iteration. The only failure is an unsupported
expansion order, reported as a ConfigurationError.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .background import KerrSchild
from .errors import ConfigurationError
from .kinematics import four_velocity

__all__ = ["SUPPORTED_EXPANSION_ORDERS", "check_expansion_order", "PunctureField", "puncture_field"]

SUPPORTED_EXPANSION_ORDERS = (0, 1)


def check_expansion_order(expansion_order: int) -> int:
    try:
        order = int(expansion_order)
        integral = not isinstance(expansion_order, bool) and order == expansion_order
    except (TypeError, ValueError, OverflowError):
        integral = False
    if not integral:
        raise ConfigurationError(
            "ExpansionOrder must be an integer", quantity="ExpansionOrder", actual=expansion_order
        )
    if order not in SUPPORTED_EXPANSION_ORDERS:
        raise ConfigurationError(
            "Unsupported worldtube expansion order; orders 0 and 1 are implemented",
            quantity="ExpansionOrder",
            expected=list(SUPPORTED_EXPANSION_ORDERS),
            actual=order,
        )
    return order


@dataclass(frozen=True)
class PunctureField:
    psi: np.ndarray  # (N,)
    dt_psi: np.ndarray  # (N,)
    d_psi: np.ndarray  # (3, N), inertial spatial gradient

    def normal_derivative(self, normals: np.ndarray) -> np.ndarray:
        return np.einsum("iN,iN->N", self.d_psi, normals)


def puncture_field(
    centered_coords: Optional[np.ndarray],
    position: np.ndarray,
    velocity: np.ndarray,
    acceleration: np.ndarray,
    charge: float,
    expansion_order: int,
    background: KerrSchild,
) -> Optional[PunctureField]:
    """Evaluate the puncture field at centered inertial face coordinates (3, N)."""
    if centered_coords is None:
        return None
    order = check_expansion_order(expansion_order)
    dx = np.asarray(centered_coords, dtype=float)
    x_p = np.asarray(position, dtype=float)
    v = np.asarray(velocity, dtype=float)
    q = float(charge)

    u_up, u_dn, g = four_velocity(x_p, v, background)
    u_sp = u_dn[1:]
    P = g[1:, 1:] + np.outer(u_sp, u_sp)
    P_dx = P @ dx
    rho0 = np.sqrt(np.einsum("iN,iN->N", dx, P_dx))
    rho0_3 = rho0 ** 3

    psi = q / rho0
    d_psi = -q * P_dx / rho0_3
    dt_psi = -(v @ d_psi)
    if order == 0:
        return PunctureField(psi=psi, dt_psi=dt_psi, d_psi=d_psi)

    dg = background.derivative_spacetime_metric(x_p)
    D = dg[1:, 1:, 1:]  # D[k, i, j] = ∂_k g_ij

    # Cubic part of the world function
    D_dx = np.einsum("kij,jN->kiN", D, dx)
    c1 = 0.5 * np.einsum("kiN,kN,iN->N", D_dx, dx, dx)
    d_c1 = 0.5 * (np.einsum("miN,iN->mN", D_dx, dx) + 2.0 * np.einsum("kmN,kN->mN", D_dx, dx))

    # u·σ split into linear (A) and quadratic (B) pieces
    a_lin = -(u_sp @ dx)
    E = np.einsum("a,kaj->kj", u_up, dg[1:, :, 1:])
    F = np.einsum("l,ljk->jk", u_up[1:], D)
    Q = -0.5 * E.T + 0.25 * F
    Q = 0.5 * (Q + Q.T)
    Q_dx = Q @ dx
    b_quad = np.einsum("jN,jN->N", dx, Q_dx)

    rho1 = c1 + 2.0 * a_lin * b_quad
    d_rho1 = d_c1 - 2.0 * u_sp[:, None] * b_quad + 4.0 * a_lin * Q_dx

    psi1 = -0.5 * q * rho1 / rho0_3
    d_psi1 = -0.5 * q * (d_rho1 / rho0_3 - 3.0 * rho1 * P_dx / rho0 ** 5)

    # Change of the projector along the orbit
    acc = np.asarray(acceleration, dtype=float)
    V = np.concatenate(([1.0], v))
    A4 = np.concatenate(([0.0], acc))
    dg_v = np.einsum("k,kab->ab", v, dg[1:])
    u_t = u_up[0]
    dN = float(V @ dg_v @ V + 2.0 * (V @ g @ A4))
    du_t = 0.5 * u_t ** 3 * dN
    w = g[1:, :] @ V
    dw = dg_v[1:, :] @ V + g[1:, :] @ A4
    du_sp = du_t * w + u_t * dw
    dP = dg_v[1:, 1:] + np.outer(du_sp, u_sp) + np.outer(u_sp, du_sp)
    dt_projector = -0.5 * q * np.einsum("iN,ij,jN->N", dx, dP, dx) / rho0_3

    return PunctureField(
        psi=psi + psi1,
        dt_psi=dt_psi - (v @ d_psi1) + dt_projector,
        d_psi=d_psi + d_psi1,
    )
