"""Command line entry point.

Usage:
    school-letters simulate [--engine MODULE:CALLABLE]
    school-letters reports
    school-letters split [--output-dir DIR] [--column NAME]
    school-letters patch <input_docx> <output_docx> -e PATTERN REPLACEMENT ... [--plain] [--check]
    school-letters clean {reports,sims,all}
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config.settings import settings
from .docx import DocxEditError, patch_document, patch_document_bold_red, validate_docx
from .reports import QuartoRenderer, generate_reports, write_error_log
from .simulation import (
    SchoolDataError,
    load_engine,
    load_parameters,
    load_school_data,
    read_results_csv,
    run_simulations,
)
from .split import split_by_group
from .utils import setup_logging

logger = logging.getLogger(__name__)


def cmd_simulate(args: argparse.Namespace) -> int:
    engine_path = args.engine or settings.simulation_engine
    if not engine_path:
        logger.error("No simulation engine configured (set SIMULATION_ENGINE or pass --engine)")
        return 1

    try:
        schools = load_school_data(settings.active_school_data_path)
    except SchoolDataError as e:
        logger.error("%s", e)
        return 1

    try:
        engine = load_engine(engine_path)
        parameters = load_parameters(settings.parameters_path)
    except (ImportError, AttributeError, ValueError, TypeError, OSError) as e:
        logger.error("%s", e)
        return 1

    run_simulations(schools, engine, parameters, settings.simulation_dir, settings.simulation_csv)
    return 0


def cmd_reports(args: argparse.Namespace) -> int:
    if not Path(settings.simulation_csv).is_file():
        logger.error("Simulation results not found: %s (run `simulate` first)", settings.simulation_csv)
        return 1

    results = read_results_csv(settings.simulation_csv)
    renderer = QuartoRenderer(command=settings.renderer_command, timeout=settings.render_timeout)

    summary = generate_reports(results, renderer)
    write_error_log(summary.errors, settings.errors_path)

    if not summary.ok:
        logger.error(
            "There were errors processing some schools. See '%s' for details.",
            settings.errors_path,
        )
        return 1
    return 0


def cmd_split(args: argparse.Namespace) -> int:
    split_by_group(settings.simulation_csv, args.output_dir, args.column)
    return 0


def cmd_patch(args: argparse.Namespace) -> int:
    rules = args.edit or []
    patterns = [pattern for pattern, _ in rules]
    replacements = [replacement for _, replacement in rules]
    patch_fn = patch_document if args.plain else patch_document_bold_red

    try:
        patch_fn(
            args.input_docx,
            patterns,
            replacements,
            args.output_docx,
            workspace_root=settings.workspace_root or None,
        )
    except DocxEditError as e:
        logger.error("%s", e)
        return 1

    if args.check:
        result = validate_docx(args.output_docx)
        for issue in result["errors"]:
            logger.error("%s: %s", issue["check"], issue["message"])
        if not result["valid"]:
            return 1
        logger.info("Validation passed: %s", args.output_docx)
    return 0


def cmd_clean(args: argparse.Namespace) -> int:
    removed = []
    if args.target in ("reports", "all"):
        removed.extend(Path(settings.reports_dir).glob("**/*.docx"))
    if args.target in ("sims", "all"):
        removed.extend(Path(settings.simulation_dir).glob("*.csv"))
        removed.append(Path(settings.simulation_csv))

    for path in removed:
        if path.is_file():
            path.unlink()
            logger.debug("Removed %s", path)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="school-letters",
        description="Simulate school outbreaks and generate highlighted risk letters.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("simulate", help="Run simulations for schools without cached results")
    p.add_argument("--engine", help="Engine import path, e.g. mypkg.model:run")
    p.set_defaults(func=cmd_simulate)

    p = sub.add_parser("reports", help="Render, highlight and file one letter per school")
    p.set_defaults(func=cmd_reports)

    p = sub.add_parser("split", help="Write one simulation CSV per group")
    p.add_argument("--output-dir", default=".")
    p.add_argument("--column", default="group")
    p.set_defaults(func=cmd_split)

    p = sub.add_parser("patch", help="Regex find/replace inside a .docx")
    p.add_argument("input_docx")
    p.add_argument("output_docx")
    p.add_argument(
        "-e", "--edit", nargs=2, action="append", metavar=("PATTERN", "REPLACEMENT"),
        help="Rule to apply; repeat for more rules (applied in order)",
    )
    p.add_argument("--plain", action="store_true", help="Do not make replacements bold and red")
    p.add_argument("--check", action="store_true", help="Validate the output document")
    p.set_defaults(func=cmd_patch)

    p = sub.add_parser("clean", help="Remove generated reports and/or simulation data")
    p.add_argument("target", choices=["reports", "sims", "all"])
    p.set_defaults(func=cmd_clean)

    return parser


def main(argv: list[str] | None = None) -> int:
    setup_logging()
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
