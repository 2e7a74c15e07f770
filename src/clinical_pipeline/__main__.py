"""Command-line entry point.

Usage:
    python -m clinical_pipeline run --notes notes.txt --complaint "chest pain"
    cat notes.txt | python -m clinical_pipeline run --notes - --complaint "dyspnea" --json
    python -m clinical_pipeline config --json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
import sys
from typing import TYPE_CHECKING

from clinical_pipeline.config import resolve_config
from clinical_pipeline.core.exceptions import ClinicalPipelineError
from clinical_pipeline.frontdoor import run_pipeline
from clinical_pipeline.pipeline.stages import list_pipeline_versions

if TYPE_CHECKING:
    from collections.abc import Sequence

    from clinical_pipeline.core.types import PipelineResult


def _read_notes(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def _print_result(result: PipelineResult) -> None:
    if result.success:
        print(result.report)
        if result.reasoning_trace:
            print("\n--- Reasoning ---")
            print(result.reasoning_trace)
        print(
            f"\n[{result.version}] stages={', '.join(result.metadata.stages_completed)} "
            f"time={result.metadata.execution_time_ms:.0f}ms "
            f"trace_id={result.final_trace_id}"
        )
    else:
        print(f"Pipeline failed at stage '{result.stage}': {result.error}", file=sys.stderr)
        print(f"trace_id={result.trace_id}", file=sys.stderr)


def _cmd_run(args: argparse.Namespace) -> int:
    overrides = {"pipeline_version": args.version} if args.version else None
    config = resolve_config(overrides, env_file=args.env_file)
    notes = _read_notes(args.notes)
    result = asyncio.run(run_pipeline(notes, args.complaint, config=config))
    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        _print_result(result)
    return 0 if result.success else 1


def _cmd_config(args: argparse.Namespace) -> int:
    config = resolve_config(env_file=args.env_file)
    if args.json:
        print(json.dumps(config.to_redacted_dict(), indent=2))
    else:
        for key, value in config.to_redacted_dict().items():
            print(f"{key:<18} {value}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run the clinical reasoning pipeline",
        prog="python -m clinical_pipeline",
    )
    parser.add_argument("--env-file", help="Optional .env file to read settings from")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Analyze clinical notes")
    run.add_argument("--notes", required=True, help="Notes file, or '-' for stdin")
    run.add_argument("--complaint", required=True, help="Chief complaint / focus query")
    run.add_argument(
        "--version", choices=list_pipeline_versions(), help="Pipeline version to run"
    )
    run.add_argument("--json", action="store_true", help="Print the full result as JSON")
    run.set_defaults(handler=_cmd_run)

    cfg = sub.add_parser("config", help="Show the effective configuration")
    cfg.add_argument("--json", action="store_true", help="Output as JSON")
    cfg.set_defaults(handler=_cmd_config)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.handler(args)
    except (ClinicalPipelineError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
