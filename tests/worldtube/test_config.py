import json

import pytest

from worldtube.config import WorldtubeOptions, load_options_from_json
from worldtube.errors import ConfigurationError
from worldtube.triggers import EveryNSteps, Times, SpecifiedTimes


def _raw(**overrides):
    group = {
        "Charge": 1.0,
        "SelfForceOptions": {"Mass": 0.5},
        "ExcisionSphere": "ExcisionSphereA",
        "ExpansionOrder": 1,
        "ObserveCoefficientsTrigger": {"EveryNSteps": {"N": 2, "Offset": 0}},
    }
    group.update(overrides)
    return {"Worldtube": group}


def test_from_dict():
    opts = WorldtubeOptions.from_dict(_raw())
    assert opts.charge == 1.0
    assert opts.mass == 0.5
    assert opts.self_force_enabled
    assert opts.excision_sphere == "ExcisionSphereA"
    assert opts.expansion_order == 1
    assert opts.observe_coefficients_trigger == EveryNSteps(n=2, offset=0)
    assert WorldtubeOptions.from_dict(opts.to_dict()) == opts


def test_mass_defaults_to_geodesic_limit():
    raw = _raw()
    del raw["Worldtube"]["SelfForceOptions"]
    opts = WorldtubeOptions.from_dict(raw)
    assert opts.mass == 0.0
    assert not opts.self_force_enabled


def test_trigger_is_stored_as_its_round_trip():
    trigger = Times(sequence=SpecifiedTimes(values=(0.5, 1.5)))
    opts = WorldtubeOptions(charge=1.0, excision_sphere="A", observe_coefficients_trigger=trigger)
    assert opts.observe_coefficients_trigger == trigger
    assert opts.observe_coefficients_trigger is not trigger


@pytest.mark.parametrize(
    "overrides, quantity",
    [
        ({"ExpansionOrder": 2}, "ExpansionOrder"),
        ({"ExpansionOrder": None}, "ExpansionOrder"),
        ({"ExpansionOrder": [1]}, "ExpansionOrder"),
        ({"ExpansionOrder": "one"}, "ExpansionOrder"),
        ({"ExpansionOrder": 0.5}, "ExpansionOrder"),
        ({"SelfForceOptions": {"Mass": -1.0}}, "SelfForceOptions.Mass"),
        ({"Charge": "one"}, "Charge"),
        ({"Charge": float("nan")}, "Charge"),
        ({"ExcisionSphere": ""}, "ExcisionSphere"),
        ({"ObserveCoefficientsTrigger": {"Sometimes": {}}}, "ObserveCoefficientsTrigger"),
        ({"Extra": 1}, "Worldtube"),
        ({"SelfForceOptions": {"Mass": 1.0, "Iterations": 2}}, "SelfForceOptions"),
    ],
)
def test_bad_options_raise_configuration_error(overrides, quantity):
    with pytest.raises(ConfigurationError) as excinfo:
        WorldtubeOptions.from_dict(_raw(**overrides))
    assert excinfo.value.quantity == quantity


def test_missing_option():
    raw = _raw()
    del raw["Worldtube"]["Charge"]
    with pytest.raises(ConfigurationError) as excinfo:
        WorldtubeOptions.from_dict(raw)
    assert "Charge" in str(excinfo.value)


def test_load_options_from_json(tmp_path):
    path = tmp_path / "worldtube.json"
    path.write_text(json.dumps(_raw()), encoding="utf-8")
    opts = load_options_from_json(str(path))
    assert opts.expansion_order == 1
    with pytest.raises(ConfigurationError):
        load_options_from_json(str(tmp_path / "missing.json"))
    bad = tmp_path / "bad.json"
    bad.write_text("{", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_options_from_json(str(bad))
