import numpy as np
import pytest

from worldtube.domain import (
    Direction,
    Domain,
    Element,
    ElementId,
    ExcisionSphere,
    Face,
    RotationMap,
    build_shell_domain,
)
from worldtube.evolution import circular_orbit_functions_of_time


def test_element_id_ordering_and_str():
    ids = [ElementId(1, 0), ElementId(0, 3), ElementId(0, 1)]
    assert sorted(ids) == [ElementId(0, 1), ElementId(0, 3), ElementId(1, 0)]
    assert str(ElementId(0, 3)) == "[B0,3]"


def test_face_copies_and_freezes_input():
    coords = np.zeros((3, 2))
    face = Face(grid_coords=coords, weights=[1.0, 2.0])
    coords[0, 0] = 5.0
    assert face.grid_coords[0, 0] == 0.0
    assert face.num_points == 2
    with pytest.raises(ValueError):
        face.grid_coords[0, 0] = 1.0
    with pytest.raises(ValueError):
        Face(grid_coords=np.zeros((2, 2)), weights=[1.0, 1.0])


def test_shell_domain_layout_and_quadrature():
    domain = build_shell_domain(10.0, 0.5, 40.0, n_polar=2, n_azimuthal=4, points_per_dim=4)
    assert len(domain.elements) == 16
    sphere = domain.excision_spheres["ExcisionSphereA"]
    assert np.allclose(sphere.center, [10.0, 0.0, 0.0])
    inner = [e for e in domain.elements if e.element_id.block_id == 0]
    outer = [e for e in domain.elements if e.element_id.block_id == 1]
    area = sum(float(np.sum(e.faces[Direction.LOWER_ZETA].weights)) for e in inner)
    assert area == pytest.approx(4.0 * np.pi * 0.25, rel=1e-12)
    assert all(sphere.abutting_direction(e) is Direction.LOWER_ZETA for e in inner)
    assert all(sphere.abutting_direction(e) is None for e in outer)


def test_domain_rejects_sphere_outside_outer_boundary():
    sphere = ExcisionSphere(radius=1.0, center=[10.0, 0.0, 0.0], grid_to_inertial_map=RotationMap())
    with pytest.raises(ValueError):
        Domain(elements=(), excision_spheres={"A": sphere}, outer_radius=10.5)
    el = Element(element_id=ElementId(0, 0))
    with pytest.raises(ValueError):
        Domain(elements=(el, el), excision_spheres={}, outer_radius=1.0)


def test_excision_sphere_time_dependence():
    static = ExcisionSphere(radius=0.5, center=[10.0, 0.0, 0.0])
    assert not static.is_time_dependent
    with pytest.raises(ValueError):
        static.moving_mesh_grid_to_inertial_map()
    with pytest.raises(ValueError):
        ExcisionSphere(radius=0.0, center=[10.0, 0.0, 0.0])


def test_rotation_map_jacobians_and_frame_velocity():
    fot = circular_orbit_functions_of_time(10.0)
    grid_map = RotationMap()
    x_grid = np.array([10.0, 0.0, 0.0])
    t = 3.0
    x, inv_jac, jac, frame_velocity = grid_map.coords_frame_velocity_jacobians(x_grid, t, fot)
    assert np.allclose(jac @ inv_jac, np.eye(3), atol=1e-14)
    assert np.allclose(grid_map.inverse(x, t, fot), x_grid, atol=1e-13)
    omega = np.array([0.0, 0.0, 10.0 ** -1.5])
    assert np.allclose(frame_velocity, np.cross(omega, x), atol=1e-14)
    assert np.allclose(grid_map.frame_velocity(x_grid, t, fot), frame_velocity)
    assert np.allclose(grid_map.jacobian(t, fot), jac)
    assert np.allclose(grid_map.inv_jacobian(t, fot), inv_jac)
