from dataclasses import replace

from telemetry.frame import CoefficientFrame, canonical_encode, crc32c


def _frame(step: int = 1, time: float = 0.5) -> CoefficientFrame:
    return CoefficientFrame(
        run_id="r0",
        time=time,
        step=step,
        psi0=0.25,
        dt_psi0=-0.01,
        psi1=[0.0, 0.1, 0.0],
        position=[10.0, 0.0, 0.0],
        velocity=[0.0, 0.316, 0.0],
    ).with_crc()


def test_crc32c_known_answer():
    assert crc32c(b"123456789") == 0xE3069283


def test_canonical_encoding_is_sorted_and_compact():
    assert canonical_encode({"b": 1, "a": [1.5, 2]}) == b'{"a":[1.5,2],"b":1}'


def test_frame_crc_and_validation():
    f = _frame()
    ok, err = f.validate()
    assert ok and err is None
    assert f.frame_crc32c == crc32c(f.to_bytes())
    assert b"frame_crc32c" not in f.to_bytes()

    tampered = replace(f, psi0=0.26)
    ok, err = tampered.validate()
    assert not ok and err == "crc_mismatch"


def test_frame_rejects_bad_shapes_and_non_finite():
    ok, err = replace(_frame(), psi1=[0.0, 0.0]).with_crc().validate()
    assert not ok and "psi1" in err
    ok, err = replace(_frame(), psi0=float("nan")).with_crc().validate()
    assert not ok and "non-finite" in err


def test_frames_must_advance_within_a_run():
    first = _frame(step=2, time=1.0)
    ok, _ = _frame(step=3, time=1.5).validate(previous=first)
    assert ok
    ok, err = _frame(step=2, time=1.0).validate(previous=first)
    assert not ok and "advance" in err
    other_run = replace(_frame(step=1, time=0.5), run_id="r1").with_crc()
    ok, _ = other_run.validate(previous=first)
    assert ok


def test_dict_round_trip():
    f = _frame()
    g = CoefficientFrame.from_dict(f.to_dict())
    assert g == f
    assert g.validate()[0]
    assert abs(f.orbital_radius - 10.0) < 1e-12
