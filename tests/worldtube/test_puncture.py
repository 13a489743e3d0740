import numpy as np
import pytest

from worldtube.background import KerrSchild
from worldtube.errors import ConfigurationError
from worldtube.kinematics import geodesic_acceleration
from worldtube.puncture import check_expansion_order, puncture_field

R0 = 10.0
OMEGA = R0 ** -1.5
RADIUS = 0.5


def _sphere_points(n: int = 40, radius: float = RADIUS, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    pts = rng.normal(size=(3, n))
    return radius * pts / np.linalg.norm(pts, axis=0)


def _orbit_state(t: float):
    phase = OMEGA * t
    x = R0 * np.array([np.cos(phase), np.sin(phase), 0.0])
    v = np.cross([0.0, 0.0, OMEGA], x)
    return x, v


def test_undefined_coordinates_give_no_puncture():
    bg = KerrSchild()
    assert puncture_field(None, np.array([R0, 0, 0]), np.zeros(3), np.zeros(3), 1.0, 0, bg) is None


def test_unsupported_expansion_order():
    with pytest.raises(ConfigurationError) as excinfo:
        check_expansion_order(2)
    assert excinfo.value.quantity == "ExpansionOrder"
    assert excinfo.value.expected == [0, 1]
    assert excinfo.value.actual == 2
    with pytest.raises(ConfigurationError):
        puncture_field(_sphere_points(), np.array([R0, 0, 0]), np.zeros(3), np.zeros(3), 1.0, 2, KerrSchild())
    assert check_expansion_order(1) == 1


@pytest.mark.parametrize("order", [0, 1])
def test_flat_limit_static_charge(order):
    bg = KerrSchild()
    q = 0.7
    dx = _sphere_points()
    x_p = np.array([1e8, 0.0, 0.0])
    p = puncture_field(dx, x_p, np.zeros(3), np.zeros(3), q, order, bg)
    dist = np.linalg.norm(dx, axis=0)
    assert np.allclose(p.psi, q / dist, rtol=1e-6)
    assert np.allclose(p.d_psi, -q * dx / dist ** 3, rtol=1e-6, atol=1e-12)
    assert np.allclose(p.dt_psi, 0.0, atol=1e-6)


def test_flat_limit_boosted_charge():
    bg = KerrSchild()
    q = 1.0
    dx = _sphere_points()
    x_p = np.array([1e8, 0.0, 0.0])
    v = np.array([0.0, 0.5, 0.0])
    gamma2 = 1.0 / (1.0 - 0.25)
    p = puncture_field(dx, x_p, v, np.zeros(3), q, 0, bg)
    rho = np.sqrt(np.sum(dx * dx, axis=0) + gamma2 * (v @ dx) ** 2)
    assert np.allclose(p.psi, q / rho, rtol=1e-6)


@pytest.mark.parametrize("order", [0, 1])
def test_gradient_matches_finite_difference(order):
    bg = KerrSchild()
    x_p, v = _orbit_state(0.0)
    acc = geodesic_acceleration(x_p, v, bg)
    dx = _sphere_points(12)
    p = puncture_field(dx, x_p, v, acc, 1.0, order, bg)
    h = 1e-5
    for k in range(3):
        e = np.zeros((3, 1))
        e[k] = h
        plus = puncture_field(dx + e, x_p, v, acc, 1.0, order, bg).psi
        minus = puncture_field(dx - e, x_p, v, acc, 1.0, order, bg).psi
        assert np.allclose(p.d_psi[k], (plus - minus) / (2.0 * h), rtol=1e-6, atol=1e-7)


def test_order_one_time_derivative_along_the_orbit():
    bg = KerrSchild()
    t, h = 3.0, 1e-3
    x_p, v = _orbit_state(t)
    points = x_p[:, None] + _sphere_points(12)

    def psi_at(time):
        xt, vt = _orbit_state(time)
        at = geodesic_acceleration(xt, vt, bg)
        return puncture_field(points - xt[:, None], xt, vt, at, 1.0, 1, bg).psi

    fd = (psi_at(t + h) - psi_at(t - h)) / (2.0 * h)
    p = puncture_field(points - x_p[:, None], x_p, v, geodesic_acceleration(x_p, v, bg), 1.0, 1, bg)
    assert np.allclose(p.dt_psi, fd, rtol=0.0, atol=1e-3 * np.max(np.abs(fd)))


def test_order_one_is_a_small_correction():
    bg = KerrSchild()
    x_p, v = _orbit_state(0.0)
    acc = geodesic_acceleration(x_p, v, bg)
    dx = _sphere_points()
    p0 = puncture_field(dx, x_p, v, acc, 1.0, 0, bg)
    p1 = puncture_field(dx, x_p, v, acc, 1.0, 1, bg)
    rel = np.abs(p1.psi - p0.psi) / np.abs(p0.psi)
    assert np.all(rel < 0.05)
    assert np.any(rel > 0.0)


def test_puncture_is_deterministic():
    bg = KerrSchild()
    x_p, v = _orbit_state(1.0)
    acc = geodesic_acceleration(x_p, v, bg)
    dx = _sphere_points()
    a = puncture_field(dx, x_p, v, acc, 1.0, 1, bg)
    b = puncture_field(dx.copy(), x_p.copy(), v.copy(), acc.copy(), 1.0, 1, bg)
    assert np.array_equal(a.psi, b.psi)
    assert np.array_equal(a.dt_psi, b.dt_psi)
    assert np.array_equal(a.d_psi, b.d_psi)
