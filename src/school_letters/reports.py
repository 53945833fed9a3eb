"""Per-school letter generation.

For every row of the simulation summary: render the letter template to DOCX,
highlight the key figures in bold red, and move the result into
``<reports_dir>/<group>/<safe_id>.docx``. A failing school is logged and
recorded; the loop carries on with the next one.
"""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
import subprocess
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, Sequence

import pandas as pd

from .config.settings import settings
from .docx import patch_document_bold_red, validate_docx
from .utils import safe_id

logger = logging.getLogger(__name__)


class RenderError(RuntimeError):
    """The template renderer failed."""


class Renderer(Protocol):
    """Renders ``template`` inside ``workdir`` to ``workdir / output_file``."""

    def __call__(
        self,
        template: Path,
        output_file: str,
        parameters: dict[str, Any],
        workdir: Path,
    ) -> Path: ...


@dataclass
class QuartoRenderer:
    """Render a Quarto document with the ``quarto`` command line tool."""

    command: str = "quarto"
    timeout: int = 600

    def __call__(
        self,
        template: Path,
        output_file: str,
        parameters: dict[str, Any],
        workdir: Path,
    ) -> Path:
        cmd = [self.command, "render", template.name, "--to", "docx", "--output", output_file]
        for key, value in parameters.items():
            cmd.extend(["-P", f"{key}:{value}"])

        try:
            proc = subprocess.run(
                cmd, cwd=workdir, capture_output=True, text=True, timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise RenderError(f"Timed out after {self.timeout}s: {template.name}") from e
        except OSError as e:
            raise RenderError(f"Failed to run {self.command}: {e}") from e

        if proc.returncode != 0:
            raise RenderError(
                f"{self.command} exited with {proc.returncode}: {proc.stderr.strip()}"
            )

        rendered = workdir / output_file
        if not rendered.is_file():
            raise RenderError(f"Renderer did not produce {output_file}")
        return rendered


@dataclass
class ReportSummary:
    completed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    errors: list[dict[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def prepare_template(template: Path, letter_head: str, school_id: str) -> None:
    """Point the template header at this school's letterhead and id."""
    text = template.read_text(encoding="utf-8")
    text = re.sub(
        r"reference-doc:\s*.+",
        lambda _: f'reference-doc: "{letter_head}"',
        text,
    )
    text = re.sub(
        r"school_id:\s*.+",
        lambda _: f'school_id: "{school_id}"',
        text,
    )
    template.write_text(text, encoding="utf-8")


def report_destination(
    row: dict[str, Any],
    reports_dir: str | os.PathLike,
    folder_group: str = "",
) -> Path:
    """Final location of a school's letter."""
    group_dir = str(row[folder_group]) if folder_group else ""
    return Path(reports_dir) / group_dir / f"{safe_id(row['id'])}.docx"


def write_error_log(errors: list[dict[str, str]], path: str | os.PathLike) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(errors, f, indent=2, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Main loop
# ---------------------------------------------------------------------------

def _render_one(
    row: dict[str, Any],
    destination: Path,
    renderer: Renderer,
    rules: Sequence[tuple[str, str]],
    template_path: Path,
    letter_head: Path,
    simulation_csv: Path,
    workspace_root: str | None,
) -> None:
    sid = safe_id(row["id"])
    file_word = f"{sid}.docx"

    with tempfile.TemporaryDirectory(prefix=f"render_{sid}_", dir=workspace_root) as tmp:
        workdir = Path(tmp)
        for src in (template_path, letter_head, simulation_csv):
            shutil.copy2(src, workdir / src.name)

        template = workdir / template_path.name
        prepare_template(template, letter_head.name, str(row["id"]))

        rendered = renderer(template, file_word, {"school_id": row["id"]}, workdir)
        logger.info("Report rendered for school '%s'", sid)

        patterns = [pattern for pattern, _ in rules]
        replacements = [replacement for _, replacement in rules]
        patch_document_bold_red(
            rendered, patterns, replacements, rendered, workspace_root=workspace_root
        )
        logger.info("Bold text applied to report for school '%s'", sid)

        check = validate_docx(rendered)
        for issue in check["errors"]:
            logger.warning("School '%s': %s", sid, issue["message"])

        destination.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Moving report for school '%s' to %s", sid, destination)
        shutil.move(str(rendered), str(destination))


def generate_reports(
    results: pd.DataFrame,
    renderer: Renderer,
    rules: Sequence[tuple[str, str]] | None = None,
    reports_dir: str | os.PathLike | None = None,
    folder_group: str | None = None,
    excluded_groups: Sequence[str] | None = None,
    template_path: str | os.PathLike | None = None,
    letter_head: str | os.PathLike | None = None,
    simulation_csv: str | os.PathLike | None = None,
    workspace_root: str | None = None,
) -> ReportSummary:
    """Render, highlight and file one letter per school.

    Every argument left as None falls back to the matching setting. A school
    whose letter already exists is skipped. Per-school failures are logged and
    collected in the returned summary.

    Raises:
        ValueError: If ``folder_group`` names a column ``results`` lacks.
    """
    rules = list(settings.highlight_rules if rules is None else rules)
    reports_dir = Path(settings.reports_dir if reports_dir is None else reports_dir)
    folder_group = settings.folder_group if folder_group is None else folder_group
    excluded = set(settings.excluded_groups if excluded_groups is None else excluded_groups)
    template_path = Path(settings.template_path if template_path is None else template_path)
    default_letter_head = Path(settings.letter_head if letter_head is None else letter_head)
    simulation_csv = Path(settings.simulation_csv if simulation_csv is None else simulation_csv)
    workspace_root = workspace_root or settings.workspace_root or None

    if folder_group and folder_group not in results.columns:
        raise ValueError(f"Grouping column {folder_group!r} not found in simulation results")

    if folder_group and excluded:
        results = results[~results[folder_group].astype(str).isin(excluded)]
    elif excluded:
        logger.warning(
            "excluded_groups %s ignored: no grouping column configured", sorted(excluded)
        )

    summary = ReportSummary()
    for row in results.to_dict(orient="records"):
        sid = safe_id(row["id"])
        destination = report_destination(row, reports_dir, folder_group)

        if destination.exists():
            logger.info("Report for school '%s' already exists. Skipping.", sid)
            summary.skipped.append(sid)
            continue

        own_letter_head = row.get("template_path")
        school_letter_head = (
            Path(own_letter_head)
            if isinstance(own_letter_head, str) and own_letter_head and Path(own_letter_head).is_file()
            else default_letter_head
        )

        try:
            _render_one(
                row,
                destination,
                renderer,
                rules,
                template_path,
                school_letter_head,
                simulation_csv,
                workspace_root,
            )
        except Exception as e:
            logger.exception("Error processing school '%s'", sid)
            summary.errors.append(
                {"school": sid, "error": str(e), "error_type": type(e).__name__}
            )
            continue

        logger.info("Report for school '%s' completed.", sid)
        summary.completed.append(sid)

    logger.info(
        "Reports: %d completed, %d skipped, %d failed",
        len(summary.completed), len(summary.skipped), len(summary.errors),
    )
    return summary
