"""Split the simulation summary into one CSV per group."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from .simulation import read_results_csv
from .utils import safe_group_name

logger = logging.getLogger(__name__)


def split_by_group(
    simulation_csv: str | os.PathLike,
    output_dir: str | os.PathLike = ".",
    column: str = "group",
) -> list[Path]:
    """Write ``simulation_data_<group>.csv`` for every non-empty group.

    Returns:
        Paths of the files written, in group order.
    """
    df = read_results_csv(simulation_csv)
    if column not in df.columns:
        logger.warning(
            "No '%s' column found in %s. Skipping split operation.", column, simulation_csv
        )
        return []

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for group_name, part in df.groupby(column, sort=True):
        if not str(group_name).strip():
            continue
        path = output_dir / f"simulation_data_{safe_group_name(group_name)}.csv"
        part.to_csv(path, index=False)
        logger.info("Wrote %d rows for group '%s' to %s", len(part), group_name, path)
        written.append(path)
    return written
