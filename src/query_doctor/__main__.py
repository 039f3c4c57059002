"""CLI entry-point for query_doctor.

Usage:
    python -m query_doctor analyze <queries.json> [--config FILE] [--threshold N]
        [--chain-threshold N] [--overlap dual|merge] [--json] [--out DIR]
        [--ci] [--fail-on info|low|medium|critical]
    python -m query_doctor normalize <sql>
    python -m query_doctor validate <analysis_result.json>
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path

import jsonschema

from query_doctor import __version__
from query_doctor.contracts.load import validate_file
from query_doctor.core.config import CHAIN_OVERLAP_MODES, AnalysisConfig
from query_doctor.core.runner import run_analysis
from query_doctor.errors import QueryDoctorError
from query_doctor.model import Severity
from query_doctor.model.analysis_result import AnalysisResult
from query_doctor.policy.thresholds import DEFAULT_FAIL_ON, exit_code_from_findings
from query_doctor.schemas.queries import load_payload
from query_doctor.sql.cache import configure_shared_cache
from query_doctor.sql.normalizer import normalize
from query_doctor.utils.exit_codes import ExitCode
from query_doctor.utils.json_norm import stable_json_dumps

_logger = logging.getLogger("query_doctor")


def _env_requires_ci_mode() -> bool:
    """Return True when the environment asks for deterministic output."""
    if os.getenv("QUERY_DOCTOR_DETERMINISTIC") == "1":
        return True
    return os.getenv("CI", "").lower() in ("1", "true", "yes", "on")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="query-doctor",
        description="Detect N+1 and repeated-query patterns in a profiled SQL stream.",
    )
    p.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    verbosity = p.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Errors only.")
    sub = p.add_subparsers(dest="command")

    # ── analyze ─────────────────────────────────────────────────────
    an_p = sub.add_parser("analyze", help="Analyse a JSON file of executed queries.")
    an_p.add_argument("queries", type=Path, help="JSON list of query records.")
    an_p.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML config file (default: discovered in the current directory).",
    )
    an_p.add_argument(
        "--threshold",
        type=int,
        default=None,
        help="Minimum repetitions for a flat N+1 finding.",
    )
    an_p.add_argument(
        "--chain-threshold",
        dest="chain_threshold",
        type=int,
        default=None,
        help="Minimum repetitions for a level of a nested chain.",
    )
    an_p.add_argument(
        "--overlap",
        choices=CHAIN_OVERLAP_MODES,
        default=None,
        help="Keep flat findings covered by a chain (dual) or drop them (merge).",
    )
    an_p.add_argument(
        "--json",
        dest="json_out",
        action="store_true",
        default=False,
        help="Print the full AnalysisResult JSON to stdout.",
    )
    an_p.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Directory to write analysis_result.json into.",
    )
    an_p.add_argument(
        "--ci",
        "--deterministic",
        dest="ci_mode",
        action="store_true",
        default=False,
        help="Enable deterministic output (stable ids, timestamps, rounding).",
    )
    an_p.add_argument(
        "--fail-on",
        dest="fail_on",
        choices=[s.value for s in Severity],
        default=DEFAULT_FAIL_ON.value,
        help="Exit 1 when any finding reaches this severity (default: %(default)s).",
    )

    # ── normalize ───────────────────────────────────────────────────
    norm_p = sub.add_parser("normalize", help="Print the normalized pattern of a statement.")
    norm_p.add_argument("sql", help="SQL text.")

    # ── validate ────────────────────────────────────────────────────
    val_p = sub.add_parser("validate", help="Validate an analysis_result.json artifact.")
    val_p.add_argument("instance", type=Path, help="Path to the JSON file to validate.")

    return p


def _configure_logging(args: argparse.Namespace) -> None:
    level = logging.WARNING
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.ERROR
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _load_config(args: argparse.Namespace) -> AnalysisConfig:
    if args.config is not None:
        config = AnalysisConfig.load(args.config)
    else:
        config = AnalysisConfig.discover(Path.cwd())
    config = config.with_env_overrides()

    changes: dict = {}
    if args.threshold is not None:
        changes["min_occurrence_threshold"] = args.threshold
    if args.chain_threshold is not None:
        changes["chain_min_threshold"] = args.chain_threshold
    if args.overlap is not None:
        changes["chain_overlap"] = args.overlap
    return replace(config, **changes) if changes else config


def _print_summary(result: AnalysisResult) -> None:
    stats = result.stats
    print(
        f"query-doctor: {stats.queries_analyzed} queries, "
        f"{stats.distinct_patterns} patterns, {len(result.findings)} findings",
        file=sys.stderr,
    )
    for f in result.findings:
        print(f"  [{f.severity.value.upper():8}] {f.title}", file=sys.stderr)
        for g in f.groups:
            print(f"             {g.pattern}", file=sys.stderr)


def _handle_analyze(args: argparse.Namespace) -> int:
    if _env_requires_ci_mode() and not args.ci_mode:
        print(
            "error: CI environment requires deterministic mode. "
            "Re-run with --ci/--deterministic.",
            file=sys.stderr,
        )
        return ExitCode.ERROR
    try:
        config = _load_config(args)
        records = load_payload(args.queries)
    except QueryDoctorError as e:
        print(f"error: {e}", file=sys.stderr)
        return ExitCode.ERROR

    configure_shared_cache(config.cache_max_entries)
    result = run_analysis(
        records,
        config=config,
        out_dir=args.out,
        ci_mode=args.ci_mode,
    )
    if args.json_out:
        sys.stdout.write(stable_json_dumps(result.to_dict(), ci_mode=args.ci_mode))
    else:
        _print_summary(result)
    return exit_code_from_findings(result.findings, fail_on=Severity(args.fail_on))


def _handle_validate(args: argparse.Namespace) -> int:
    # Exit code contract: 1 = schema violation, 2 = unreadable / unexpected
    try:
        validate_file(args.instance)
    except jsonschema.ValidationError as e:
        print(f"FAIL: {e.message}", file=sys.stderr)
        return ExitCode.VIOLATION
    except (OSError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return ExitCode.ERROR
    print("OK")
    return ExitCode.SUCCESS


def main(argv: list[str] | None = None) -> int:
    """Entry-point: returns an exit code (see ``utils.exit_codes``)."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args)

    if args.command == "analyze":
        return _handle_analyze(args)
    if args.command == "normalize":
        print(normalize(args.sql))
        return ExitCode.SUCCESS
    if args.command == "validate":
        return _handle_validate(args)

    parser.print_help(sys.stderr)
    return ExitCode.ERROR


if __name__ == "__main__":
    sys.exit(main())
