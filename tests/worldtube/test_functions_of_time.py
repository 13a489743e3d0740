import numpy as np
import pytest

from worldtube.errors import ConfigurationError
from worldtube.functions_of_time import (
    FunctionOfTimeKind,
    FunctionsOfTime,
    QuaternionFunctionOfTime,
    ScaleFunctionOfTime,
    TranslationFunctionOfTime,
    quaternion_multiply,
    skew,
)


def _rotation(omega: float = 0.5, alpha: float = 0.0) -> QuaternionFunctionOfTime:
    return QuaternionFunctionOfTime(
        initial_time=0.0,
        angle_coefs=([0.0, 0.0, 0.0], [0.0, 0.0, omega], [0.0, 0.0, alpha]),
    )


def test_quarter_turn_about_z():
    rot = _rotation(0.5)
    R = rot.rotation_matrix(np.pi)  # angle = pi / 2
    assert np.allclose(R @ np.array([1.0, 0.0, 0.0]), [0.0, 1.0, 0.0], atol=1e-14)
    assert np.allclose(R @ R.T, np.eye(3), atol=1e-14)


def test_rotation_derivative_matches_finite_difference():
    rot = _rotation(0.3, 0.01)
    t, h = 1.7, 1e-6
    R, dR = rot.rotation_matrix_and_deriv(t)
    fd = (rot.rotation_matrix(t + h) - rot.rotation_matrix(t - h)) / (2.0 * h)
    assert np.allclose(dR, fd, atol=1e-8)
    angle, omega, alpha = rot.angle_func_and_deriv(t)
    assert np.allclose(omega, [0.0, 0.0, 0.3 + 0.01 * t])
    assert np.allclose(alpha, [0.0, 0.0, 0.01])


def test_quaternion_helpers():
    q = np.array([np.cos(0.2), 0.0, 0.0, np.sin(0.2)])
    identity = np.array([1.0, 0.0, 0.0, 0.0])
    assert np.allclose(quaternion_multiply(identity, q), q)
    w = np.array([0.1, -0.2, 0.3])
    x = np.array([1.0, 2.0, 3.0])
    assert np.allclose(skew(w) @ x, np.cross(w, x))


def test_rotation_requires_fixed_axis():
    with pytest.raises(ValueError):
        QuaternionFunctionOfTime(initial_time=0.0, angle_coefs=([0.0, 0.0, 1.0], [1.0, 0.0, 0.0]))


def test_translation_and_scale_polynomials():
    tr = TranslationFunctionOfTime(initial_time=1.0, coefs=([1.0, 0.0, 0.0], [0.0, 2.0, 0.0]))
    f, df, ddf = tr.func_and_deriv(2.0)
    assert np.allclose(f, [1.0, 2.0, 0.0])
    assert np.allclose(df, [0.0, 2.0, 0.0])
    assert np.allclose(ddf, 0.0)
    sc = ScaleFunctionOfTime(initial_time=0.0, coefs=(1.0, 0.1))
    assert sc.func_and_deriv(2.0) == pytest.approx([1.2, 0.1, 0.0])


def test_registry_expect_reports_missing_and_kind_mismatch():
    rot = _rotation()
    reg = FunctionsOfTime({"Rotation": rot, "Expansion": ScaleFunctionOfTime(initial_time=0.0)})
    assert reg.expect("Rotation", FunctionOfTimeKind.ROTATION) is rot

    with pytest.raises(ConfigurationError) as excinfo:
        reg.expect("Expansion", FunctionOfTimeKind.ROTATION)
    assert "kind mismatch" in str(excinfo.value)
    assert excinfo.value.expected == "rotation"
    assert excinfo.value.actual == "scale"

    with pytest.raises(ConfigurationError) as excinfo:
        reg.expect("Translation", FunctionOfTimeKind.TRANSLATION)
    assert "Expansion" in str(excinfo.value) and "Rotation" in str(excinfo.value)


def test_registry_is_read_only():
    entries = {"Rotation": _rotation()}
    reg = FunctionsOfTime(entries)
    entries["Other"] = _rotation(1.0)
    assert sorted(reg) == ["Rotation"]
    with pytest.raises(TypeError):
        reg["Other"] = _rotation(1.0)  # type: ignore[index]
    with pytest.raises(TypeError):
        FunctionsOfTime({"Rotation": object()})  # type: ignore[dict-item]
