import pytest

from telemetry import CoefficientObserver
from worldtube import (
    KerrSchild,
    WorldtubeOptions,
    build_shell_domain,
    circular_orbit_functions_of_time,
    setup_worldtube,
)
from worldtube.triggers import EveryNSteps


def _run(observer, steps=6):
    domain = build_shell_domain(10.0, 0.5, 40.0)
    options = WorldtubeOptions(
        charge=1.0, excision_sphere="ExcisionSphereA", observe_coefficients_trigger=EveryNSteps(n=2)
    )
    evolution = setup_worldtube(
        domain, KerrSchild(), circular_orbit_functions_of_time(10.0), options, observers=[observer]
    )
    evolution.initialize(0.0)
    evolution.run(0.1, steps)
    return evolution


def test_observer_collects_frames_on_trigger():
    observer = CoefficientObserver(run_id="obs", meta={"case": "geodesic"})
    evolution = _run(observer)
    frames = observer.frames
    assert [f.step for f in frames] == [0, 2, 4, 6]
    assert len(observer) == 4
    assert all(f.validate()[0] for f in frames)
    assert frames[-1].time == pytest.approx(evolution.integrator.time)
    assert frames[0].meta == {"case": "geodesic"}
    assert frames[0].position == pytest.approx([10.0, 0.0, 0.0])


def test_observer_rejects_repeated_observation():
    observer = CoefficientObserver()
    evolution = _run(observer, steps=0)
    with pytest.raises(ValueError):
        observer(evolution.integrator)
