"""Tests for roster loading and the simulation loop."""

import json

import pandas as pd
import pytest

from school_letters.simulation import (
    School,
    SchoolDataError,
    SimulationError,
    load_engine,
    load_parameters,
    load_school_data,
    pending_schools,
    run_simulations,
    school_parameters,
    simulate_school,
)

ROSTER = """\
# synthetic roster
school_name,school_id,vax_rate,pop_size,group
Test Elementary School,UT/001,0.91,420,District A
Demo Middle School,UT-002,0.85,610,District B
Sample High School,UT-003,0.97,1200,
"""


class FakeEngine:
    def __init__(self):
        self.calls = []

    def __call__(self, parameters):
        self.calls.append(parameters)
        n = parameters["Population size"]
        return {
            "no_quarantine_mean_cases": n * 0.1,
            "no_quarantine_mean_hosp": n * 0.01,
            "quarantine_mean_cases": n * 0.05,
            "quarantine_mean_hosp": n * 0.005,
        }


def fake_engine(parameters):
    return FakeEngine()(parameters)


@pytest.fixture
def roster(tmp_path):
    path = tmp_path / "school_vax_data.csv"
    path.write_text(ROSTER)
    return path


@pytest.fixture
def schools(roster):
    return load_school_data(roster)


def test_load_school_data(schools):
    assert [s.id for s in schools] == ["UT/001", "UT-002", "UT-003"]
    first = schools[0]
    assert first.name == "Test Elementary School"
    assert first.population_size == 420
    assert first.vaccination_rate == pytest.approx(0.91)
    assert first.group == "District A"
    assert schools[2].group == ""
    assert first.template_path == "letter_head.docx"


def test_load_school_data_template_column(tmp_path):
    path = tmp_path / "roster.csv"
    path.write_text(
        "school_name,school_id,vax_rate,pop_size,template_path\n"
        "A,1,0.9,100,custom_head.docx\n"
    )
    (school,) = load_school_data(path)
    assert school.template_path == "custom_head.docx"
    assert school.group == ""


def test_missing_columns(tmp_path):
    path = tmp_path / "roster.csv"
    path.write_text("school_name,pop_size\nA,100\n")
    with pytest.raises(SchoolDataError, match="school_id, vax_rate"):
        load_school_data(path)


def test_duplicate_ids(tmp_path):
    path = tmp_path / "roster.csv"
    path.write_text(
        "school_name,school_id,vax_rate,pop_size\n"
        "A,7,0.9,100\n"
        "B,7,0.8,200\n"
    )
    with pytest.raises(SchoolDataError, match="Duplicate school IDs"):
        load_school_data(path)


def test_school_parameters_override_base():
    base = {"Population size": 1, "Contact rate": 2.0, "nested": {"a": 1}}
    school = School(id="x", name="X", population_size=300, vaccination_rate=0.9)
    params = school_parameters(school, base)

    assert params["Population size"] == 300
    assert params["Vaccination rate"] == 0.9
    assert params["school_name"] == "X"
    assert params["Contact rate"] == 2.0
    params["nested"]["a"] = 99
    assert base["nested"]["a"] == 1


def test_run_simulations_writes_cache_and_summary(schools, tmp_path):
    engine = FakeEngine()
    sim_dir = tmp_path / "simulation_data"
    summary_csv = tmp_path / "simulation_data.csv"

    combined = run_simulations(schools, engine, {"Contact rate": 15}, sim_dir, summary_csv)

    assert len(engine.calls) == 3
    assert (sim_dir / "UT-slash-001.csv").is_file()
    assert sorted(combined["id"]) == ["UT-002", "UT-003", "UT/001"]

    df = pd.read_csv(summary_csv, dtype={"id": str}, keep_default_na=False)
    row = df[df["id"] == "UT/001"].iloc[0]
    assert row["pop_size"] == 420
    assert row["no_quarantine_mean_cases"] == pytest.approx(42.0)
    assert row["group"] == "District A"


def test_cached_schools_are_not_rerun(schools, tmp_path):
    sim_dir = tmp_path / "simulation_data"
    summary_csv = tmp_path / "simulation_data.csv"
    run_simulations(schools[:1], FakeEngine(), {}, sim_dir, summary_csv)

    assert [s.id for s in pending_schools(schools, sim_dir)] == ["UT-002", "UT-003"]

    engine = FakeEngine()
    combined = run_simulations(schools, engine, {}, sim_dir, summary_csv)
    assert [c["school_name"] for c in engine.calls] == ["Demo Middle School", "Sample High School"]
    assert len(combined) == 3


def test_simulate_school_reads_cache(schools, tmp_path):
    first = simulate_school(schools[0], FakeEngine(), {}, tmp_path)
    engine = FakeEngine()
    again = simulate_school(schools[0], engine, {}, tmp_path)

    assert engine.calls == []
    assert again == first


def test_incomplete_engine_result(schools, tmp_path):
    with pytest.raises(SimulationError, match="quarantine_mean_hosp"):
        simulate_school(
            schools[0],
            lambda params: {"no_quarantine_mean_cases": 1},
            {},
            tmp_path / "sims",
        )
    assert not (tmp_path / "sims").exists()


def test_load_engine():
    engine = load_engine("test_simulation:fake_engine")
    assert engine({"Population size": 10})["no_quarantine_mean_cases"] == pytest.approx(1.0)

    with pytest.raises(ValueError):
        load_engine("no_colon_here")


def test_load_parameters(tmp_path):
    path = tmp_path / "params.json"
    path.write_text(json.dumps({"Contact rate": 15, "Prevalence": 1}))
    assert load_parameters(path) == {"Contact rate": 15, "Prevalence": 1}

    path.write_text("[1, 2]")
    with pytest.raises(ValueError):
        load_parameters(path)
