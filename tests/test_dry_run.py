"""
End-to-end dry run: CSV inputs → roster → audit → risk reports
"""

import json
from datetime import date

import pytest

from nurse_roster.dry_run import main, run_dry_run
from nurse_roster.models import GenerationOptions

START = date(2026, 3, 2)
END = date(2026, 3, 15)


@pytest.fixture
def inputs(tmp_path):
    roster = tmp_path / "roster.csv"
    roster.write_text(
        "id,name,level,team\n"
        "a,Alice,lv1,icu\n"
        "b,Bob,lv1,icu\n"
        "c,Carol,lv1,icu\n"
        "d,Dana,lv1,icu\n"
        "s,Sara,lv3,icu\n"
        "t,Tom,lv3,icu\n"
    )
    coverage = tmp_path / "coverage.csv"
    coverage.write_text(
        "date,shift_type,level,count\n"
        ",day,lv1,1\n"
        ",day,lv3,1\n"
        ",evening,lv1,1\n"
        ",night,lv1,1\n"
    )
    leave = tmp_path / "leave.csv"
    leave.write_text("date,employee_ids\n2026-03-04,a;s\n")
    return {"roster_path": roster, "coverage_path": coverage, "leave_path": leave}


class TestRunDryRun:

    def test_outputs_written(self, inputs, tmp_path):
        out = tmp_path / "out"
        result = run_dry_run(START, END, output_dir=out, seed=42, analysis_date=date(2026, 3, 1), **inputs)

        for path in result["outputs"].values():
            assert path.exists()

        data = json.loads(result["outputs"]["assignments"].read_text())
        assert data["seed"] == 42
        assert len(data["assignments"]) == len(result["assignments"])
        assert len(data["rest_exceptions"]) == len(result["rest_exceptions"])

        risk = json.loads(result["outputs"]["risk"].read_text())
        assert len(risk["analyses"]) == 6
        assert risk["team"]["total_employees"] == 6
        assert risk["analyses"][0]["analysis_date"] == "2026-03-01"

        assert result["hard_violations"] == []
        assert "HARD (0)" in result["outputs"]["violations"].read_text()

    def test_leave_respected(self, inputs, tmp_path):
        result = run_dry_run(START, END, output_dir=tmp_path, seed=1, **inputs)
        on_leave_day = [a for a in result["assignments"] if a.date == date(2026, 3, 4)]
        staffed = {e.id for a in on_leave_day for e in a.employees}
        assert not staffed & {"a", "s"}

    def test_same_seed_same_output(self, inputs, tmp_path):
        first = run_dry_run(START, END, output_dir=tmp_path / "1", seed=9, **inputs)
        second = run_dry_run(START, END, output_dir=tmp_path / "2", seed=9, **inputs)
        assert first["assignments"] == second["assignments"]
        assert [a.risk_score for a in first["analyses"]] == [a.risk_score for a in second["analyses"]]

    def test_mentorship_audit(self, inputs, tmp_path):
        result = run_dry_run(
            START, END, output_dir=tmp_path, seed=3,
            options=GenerationOptions(enforce_mentorship_pairing=True), **inputs
        )
        # evening and night only require level 1
        gaps = [v for v in result["soft_violations"] if v.constraint_type == "MENTORSHIP_GAP"]
        assert gaps

    def test_roster_errors_exit(self, inputs, tmp_path):
        inputs["roster_path"].write_text("id,name,level\na,Alice,1\na,Alicia,1\n")
        with pytest.raises(SystemExit) as exc:
            run_dry_run(START, END, output_dir=tmp_path, **inputs)
        assert exc.value.code == 1

    def test_invalid_request_exits(self, inputs, tmp_path):
        with pytest.raises(SystemExit) as exc:
            run_dry_run(START, date(2026, 7, 1), output_dir=tmp_path, **inputs)
        assert exc.value.code == 1


class TestCli:

    def test_main(self, inputs, tmp_path):
        out = tmp_path / "cli"
        main([
            "--start", "2026-03-02", "--end", "2026-03-08",
            "--roster", str(inputs["roster_path"]),
            "--coverage", str(inputs["coverage_path"]),
            "--leave", str(inputs["leave_path"]),
            "--seed", "5", "--output-dir", str(out),
            "--no-fairness", "--mentorship",
        ])
        assert (out / "dry_run_2026-03-02_2026-03-08_risk.json").exists()

    def test_bad_date(self, capsys):
        with pytest.raises(SystemExit):
            main(["--start", "03/02/2026", "--end", "2026-03-08"])
