import csv

from harness.run_worldtube import main, run_worldtube
from worldtube import WorldtubeOptions
from worldtube.triggers import EveryNSteps


def test_run_worldtube_kpis():
    options = WorldtubeOptions(
        charge=1.0, excision_sphere="ExcisionSphereA", observe_coefficients_trigger=EveryNSteps(n=5)
    )
    res = run_worldtube(options, orbital_radius=10.0, dt=0.5, steps=10, report_interval=5)
    assert res["steps"] == 10
    assert res["final_time"] == 5.0
    assert res["radius_drift"] < 1e-6
    assert [f.step for f in res["frames"]] == [0, 5, 10]
    assert len(res["lines"]) == 2
    assert res["lines"][0].startswith("step=5 ")


def test_main_prints_summary_and_writes_csv(tmp_path, capsys):
    out = tmp_path / "coefs.csv"
    main(["--steps", "4", "--dt", "0.25", "--observe-every", "2", "--report-interval", "2", "--csv", str(out)])
    printed = capsys.readouterr().out.strip().splitlines()
    assert printed[-1].startswith("WORLDTUBE: r0=10 steps=4 ")
    assert "frames=3" in printed[-1]
    with open(out, newline="", encoding="utf-8") as fp:
        rows = list(csv.reader(fp))
    assert rows[0][0] == "step"
    assert [r[0] for r in rows[1:]] == ["0", "2", "4"]
