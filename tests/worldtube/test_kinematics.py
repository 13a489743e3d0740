import numpy as np
import pytest

from worldtube.background import KerrSchild
from worldtube.domain import build_shell_domain
from worldtube.evolution import circular_orbit_functions_of_time
from worldtube.geometry import ExcisionGeometry
from worldtube.kinematics import (
    MapParticleKinematics,
    ParticleKinematics,
    evolved_particle_kinematics,
    four_velocity,
    geodesic_acceleration,
    self_force_acceleration,
)

R0 = 10.0
OMEGA = R0 ** -1.5


def _geometry():
    domain = build_shell_domain(R0, 0.5, 4.0 * R0)
    fot = circular_orbit_functions_of_time(R0)
    return ExcisionGeometry.from_domain(domain, "ExcisionSphereA", KerrSchild(), fot), fot


def test_particle_kinematics_is_immutable_copy():
    x = np.array([1.0, 2.0, 3.0])
    kin = ParticleKinematics(position=x, velocity=[0.0, 0.1, 0.0])
    x[0] = 9.0
    assert kin.position[0] == 1.0
    with pytest.raises(ValueError):
        kin.velocity[0] = 1.0
    with pytest.raises(ValueError):
        ParticleKinematics(position=[1.0, 2.0], velocity=[0.0, 0.0, 0.0])


def test_map_kinematics_follow_the_circular_orbit():
    geom, fot = _geometry()
    oracle = MapParticleKinematics(geom)
    for t in (0.0, 5.0, 50.0):
        kin = oracle(t, fot)
        phase = OMEGA * t
        assert np.allclose(kin.position, R0 * np.array([np.cos(phase), np.sin(phase), 0.0]), atol=1e-12)
        assert np.allclose(kin.velocity, np.cross([0.0, 0.0, OMEGA], kin.position), atol=1e-14)


def test_state_based_producer_snapshots_state():
    y = np.array([10.0, 0.0, 0.0, 0.0, 0.3, 0.0])
    kin = evolved_particle_kinematics(y[0:3], y[3:6])
    y[:] = 0.0
    assert np.allclose(kin.position, [10.0, 0.0, 0.0])
    assert np.allclose(kin.velocity, [0.0, 0.3, 0.0])


def test_geodesic_acceleration_is_centripetal_on_circular_orbit():
    bg = KerrSchild()
    x = np.array([R0, 0.0, 0.0])
    v = np.array([0.0, R0 * OMEGA, 0.0])
    acc = geodesic_acceleration(x, v, bg)
    assert np.allclose(acc, -OMEGA ** 2 * x, rtol=1e-12, atol=1e-15)


def test_geodesic_acceleration_is_deterministic():
    bg = KerrSchild()
    x = np.array([7.5, -2.0, 0.3])
    v = np.array([0.05, 0.25, -0.01])
    a1 = geodesic_acceleration(x, v, bg)
    a2 = geodesic_acceleration(x.copy(), v.copy(), bg)
    assert np.array_equal(a1, a2)


def test_newtonian_limit_at_rest():
    bg = KerrSchild()
    x = np.array([1e4, 0.0, 0.0])
    acc = geodesic_acceleration(x, np.zeros(3), bg)
    assert acc[0] == pytest.approx(-1.0 / 1e8, rel=1e-3)
    assert np.allclose(acc[1:], 0.0)


def test_four_velocity_normalization():
    bg = KerrSchild()
    x = np.array([R0, 0.0, 0.0])
    u_up, u_dn, g = four_velocity(x, [0.0, R0 * OMEGA, 0.0], bg)
    assert float(u_up @ u_dn) == pytest.approx(-1.0, rel=1e-14)
    assert np.allclose(g @ u_up, u_dn)
    with pytest.raises(ValueError):
        four_velocity(x, [2.0, 0.0, 0.0], bg)


def test_self_force_vanishes_for_zero_mass():
    bg = KerrSchild()
    x = np.array([R0, 0.0, 0.0])
    v = np.array([0.0, R0 * OMEGA, 0.0])
    acc = self_force_acceleration(x, v, 1.0, 0.0, 0.2, np.array([0.1, 0.0, 0.0]), bg)
    assert np.array_equal(acc, np.zeros(3))


def test_self_force_flat_limit_at_rest():
    bg = KerrSchild()
    x = np.array([1e8, 0.0, 0.0])
    grad = np.array([1e-3, -2e-3, 0.5e-3])
    acc = self_force_acceleration(x, np.zeros(3), 2.0, 4.0, 0.0, grad, bg)
    assert np.allclose(acc, 0.5 * grad, rtol=1e-6)
