import numpy as np
import pytest

from worldtube.errors import ConfigurationError
from worldtube.triggers import (
    Always,
    And,
    EvenlySpacedTimes,
    EveryNSteps,
    Never,
    Not,
    Or,
    SpecifiedTimes,
    TimeCompares,
    Times,
    deserialize_trigger,
    serialize_trigger,
    trigger_from_dict,
)

TIMES = [0.1 * k for k in range(61)]


def _firing(trigger):
    return [trigger.is_triggered(t, step) for step, t in enumerate(TIMES)]


TRIGGERS = [
    Always(),
    Never(),
    EveryNSteps(n=3, offset=2),
    TimeCompares(comparison="GreaterThanOrEqualTo", value=2.5),
    Times(sequence=SpecifiedTimes(values=(0.3, 1.0 / 3.0, 4.2))),
    Times(sequence=EvenlySpacedTimes(interval=0.7, offset=0.1)),
    Not(trigger=EveryNSteps(n=2)),
    And(triggers=(EveryNSteps(n=2), TimeCompares(comparison="LessThan", value=3.0))),
    Or(triggers=(Times(sequence=SpecifiedTimes(values=(5.5,))), Not(trigger=Always()))),
]


@pytest.mark.parametrize("trigger", TRIGGERS, ids=lambda t: t.kind)
def test_round_trip_fires_identically(trigger):
    data = serialize_trigger(trigger)
    restored = deserialize_trigger(data)
    assert restored == trigger
    assert _firing(restored) == _firing(trigger)
    assert serialize_trigger(restored) == data


def test_serialization_is_canonical_json():
    data = serialize_trigger(EveryNSteps(n=2, offset=1))
    assert data == b'{"EveryNSteps":{"N":2,"Offset":1}}'
    assert deserialize_trigger(data.decode("utf-8")) == EveryNSteps(n=2, offset=1)


def test_every_n_steps():
    trigger = EveryNSteps(n=3, offset=2)
    assert [s for s in range(12) if trigger.is_triggered(0.0, s)] == [2, 5, 8, 11]
    with pytest.raises(ConfigurationError):
        EveryNSteps(n=0)
    with pytest.raises(ConfigurationError):
        EveryNSteps(n=2, offset=-1)


def test_times_match_within_roundoff():
    trigger = Times(sequence=EvenlySpacedTimes(interval=1.0))
    t = sum([0.1] * 10)  # 0.9999999999999999
    assert t != 1.0
    assert trigger.is_triggered(t, 0)
    assert not trigger.is_triggered(1.0 + 1e-9, 0)
    assert Times(sequence=SpecifiedTimes(values=(0.3,))).is_triggered(0.1 + 0.2, 0)
    with pytest.raises(ConfigurationError):
        EvenlySpacedTimes(interval=0.0)


def test_time_compares():
    assert TimeCompares("LessThan", 1.0).is_triggered(0.5, 0)
    assert not TimeCompares("EqualTo", 1.0).is_triggered(0.5, 0)
    with pytest.raises(ConfigurationError) as excinfo:
        TimeCompares("Within", 1.0)
    assert "LessThan" in str(excinfo.value)


def test_from_dict_forms_and_errors():
    assert trigger_from_dict("Always") == Always()
    assert trigger_from_dict({"Never": {}}) == Never()
    t = trigger_from_dict({"Times": {"EvenlySpaced": {"Interval": 0.5}}})
    assert t == Times(sequence=EvenlySpacedTimes(interval=0.5, offset=0.0))
    with pytest.raises(ConfigurationError):
        trigger_from_dict({"Sometimes": {}})
    with pytest.raises(ConfigurationError):
        trigger_from_dict({"EveryNSteps": {"Offset": 1}})
    with pytest.raises(ConfigurationError):
        trigger_from_dict({"Always": {}, "Never": {}})
    with pytest.raises(ConfigurationError):
        trigger_from_dict({"Or": []})
    with pytest.raises(ConfigurationError):
        deserialize_trigger(b"{not json")


def test_specified_times_are_sorted():
    t = Times(sequence=SpecifiedTimes(values=(2.0, 1.0)))
    assert t.sequence.values == (1.0, 2.0)
    assert np.isclose(t.sequence.values[0], 1.0)
