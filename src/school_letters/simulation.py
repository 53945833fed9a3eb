"""Per-school outbreak simulations.

Reads the school roster, runs the configured simulation engine once per school
and caches each result as ``<simulation_dir>/<safe_id>.csv``. Schools with a
cached result are not re-run. All cached results are then combined into a
single summary CSV consumed by the report stage.
"""

from __future__ import annotations

import copy
import importlib
import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol

import pandas as pd
from pydantic import BaseModel, ValidationError

from .config.settings import settings
from .utils import safe_id

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["school_name", "school_id", "vax_rate", "pop_size"]

OUTCOME_FIELDS = (
    "no_quarantine_mean_cases",
    "no_quarantine_mean_hosp",
    "quarantine_mean_cases",
    "quarantine_mean_hosp",
)

_RESULT_TEXT_COLUMNS = {"id": str, "name": str, "group": str, "template_path": str}


class SchoolDataError(ValueError):
    """The school roster is missing columns or has duplicate ids."""


class SimulationError(RuntimeError):
    """The engine returned an incomplete result."""


class School(BaseModel):
    id: str
    name: str
    population_size: int
    vaccination_rate: float
    group: str = ""
    template_path: str = ""


class SimulationResult(BaseModel):
    """One row of the simulation summary."""

    id: str
    name: str
    group: str = ""
    template_path: str = ""
    vax_rate: float
    pop_size: int
    no_quarantine_mean_cases: float
    no_quarantine_mean_hosp: float
    quarantine_mean_cases: float
    quarantine_mean_hosp: float


class SimulationEngine(Protocol):
    """Runs the outbreak model for one school.

    Receives the full parameter set and returns at least the four
    ``OUTCOME_FIELDS`` means.
    """

    def __call__(self, parameters: dict[str, Any]) -> Mapping[str, float]: ...


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

def _text_column(df: pd.DataFrame, column: str, default: str) -> pd.Series:
    if column not in df.columns:
        return pd.Series([default] * len(df), index=df.index, dtype=object)
    return df[column].fillna(default).astype(str)


def load_school_data(path: str | os.PathLike) -> list[School]:
    """Load and validate the school roster CSV.

    Lines starting with ``#`` are comments. ``group`` and ``template_path``
    are optional columns.

    Raises:
        SchoolDataError: Required columns missing or duplicate school ids.
    """
    df = pd.read_csv(path, comment="#", dtype={"school_id": str})

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise SchoolDataError(f"Missing required columns: {', '.join(missing)}")

    duplicated = df["school_id"][df["school_id"].duplicated()].unique().tolist()
    if duplicated:
        raise SchoolDataError(
            "Duplicate school IDs found. Please ensure each school has a unique "
            f"ID: {', '.join(map(str, duplicated))}"
        )

    groups = _text_column(df, "group", "")
    templates = _text_column(df, "template_path", settings.letter_head)

    schools = []
    for i, row in df.iterrows():
        try:
            schools.append(
                School(
                    id=str(row["school_id"]),
                    name=str(row["school_name"]),
                    population_size=int(row["pop_size"]),
                    vaccination_rate=float(row["vax_rate"]),
                    group=groups[i],
                    template_path=templates[i],
                )
            )
        except (ValueError, ValidationError) as e:
            raise SchoolDataError(f"Invalid row for school {row['school_id']!r}: {e}") from e

    logger.info("Loaded %d schools from %s", len(schools), path)
    return schools


def load_parameters(path: str | os.PathLike) -> dict[str, Any]:
    """Load the base model parameters (JSON object)."""
    with open(path, "r", encoding="utf-8") as f:
        params = json.load(f)
    if not isinstance(params, dict):
        raise ValueError(f"Parameters file must hold a JSON object: {path}")
    return params


def load_engine(import_path: str) -> SimulationEngine:
    """Resolve a ``"package.module:callable"`` string to the engine callable."""
    module_name, sep, attr = import_path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(
            f"simulation_engine must look like 'package.module:callable', got {import_path!r}"
        )
    module = importlib.import_module(module_name)
    engine: Callable = module
    for part in attr.split("."):
        engine = getattr(engine, part)
    if not callable(engine):
        raise TypeError(f"{import_path} is not callable")
    return engine


# ---------------------------------------------------------------------------
# Running
# ---------------------------------------------------------------------------

def result_path(school_id: str, simulation_dir: str | os.PathLike) -> Path:
    return Path(simulation_dir) / f"{safe_id(school_id)}.csv"


def read_results_csv(path: str | os.PathLike) -> pd.DataFrame:
    return pd.read_csv(
        path, dtype=_RESULT_TEXT_COLUMNS, keep_default_na=False, float_precision="round_trip"
    )


def pending_schools(schools: list[School], simulation_dir: str | os.PathLike) -> list[School]:
    """Schools that have no cached result yet."""
    return [s for s in schools if not result_path(s.id, simulation_dir).exists()]


def school_parameters(school: School, base_parameters: Mapping[str, Any]) -> dict[str, Any]:
    params = copy.deepcopy(dict(base_parameters))
    params["Population size"] = school.population_size
    params["Vaccination rate"] = school.vaccination_rate
    params["school_name"] = school.name
    return params


def simulate_school(
    school: School,
    engine: SimulationEngine,
    base_parameters: Mapping[str, Any],
    simulation_dir: str | os.PathLike,
) -> SimulationResult:
    """Run (or load the cached) simulation for one school."""
    output_file = result_path(school.id, simulation_dir)
    if output_file.exists():
        row = read_results_csv(output_file).iloc[0]
        return SimulationResult.model_validate(
            {k: v.item() if hasattr(v, "item") else v for k, v in row.items()}
        )

    params = school_parameters(school, base_parameters)
    outcome = engine(params)

    missing = [f for f in OUTCOME_FIELDS if f not in outcome]
    if missing:
        raise SimulationError(
            f"Engine result for school {school.id!r} lacks: {', '.join(missing)}"
        )

    result = SimulationResult(
        id=school.id,
        name=school.name,
        group=school.group,
        template_path=school.template_path,
        vax_rate=params["Vaccination rate"],
        pop_size=params["Population size"],
        **{f: float(outcome[f]) for f in OUTCOME_FIELDS},
    )

    output_file.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame([result.model_dump()]).to_csv(output_file, index=False)
    logger.info("Simulated school %s -> %s", school.id, output_file)
    return result


def combine_results(simulation_dir: str | os.PathLike, output_csv: str | os.PathLike) -> pd.DataFrame:
    """Concatenate every cached per-school CSV into ``output_csv``."""
    files = sorted(Path(simulation_dir).glob("*.csv"))
    frames = [read_results_csv(f) for f in files]
    if frames:
        combined = pd.concat(frames, ignore_index=True)
    else:
        combined = pd.DataFrame(columns=list(SimulationResult.model_fields))
    combined.to_csv(output_csv, index=False)
    logger.info("Combined %d simulation results into %s", len(combined), output_csv)
    return combined


def run_simulations(
    schools: list[School],
    engine: SimulationEngine,
    base_parameters: Mapping[str, Any],
    simulation_dir: str | os.PathLike,
    output_csv: str | os.PathLike,
) -> pd.DataFrame:
    """Simulate every school without a cached result, then combine all results."""
    Path(simulation_dir).mkdir(parents=True, exist_ok=True)

    todo = pending_schools(schools, simulation_dir)
    logger.info("Number of simulations to do: %d", len(todo))

    for school in todo:
        simulate_school(school, engine, base_parameters, simulation_dir)

    return combine_results(simulation_dir, output_csv)
