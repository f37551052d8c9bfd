"""CLI entrypoint for the Kinopoisk rating import."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from kinoreview.common.config_loader import load_settings, require_api_keys
from kinoreview.common.constants import COMMANDS, EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS
from kinoreview.common.errors import BatchConversionError, ImportPipelineError
from kinoreview.common.ids import generate_run_id
from kinoreview.common.logging import build_logger, log_event
from kinoreview.common.models import AppUser
from kinoreview.pipeline.reports import write_run_summary
from kinoreview.pipeline.resolver import find_media_by_source_id
from kinoreview.pipeline.runner import build_pipeline, run_import_and_convert


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("target", help="Kinopoisk user id (import-ratings) or Kinopoisk title id (find-media)")
    parser.add_argument("--author-id", default=None)
    parser.add_argument("--author-name", default=None)
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--workers", type=int, default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    return parser.parse_args(argv)


def _find_media(pipeline, target: str) -> int:
    media = find_media_by_source_id(pipeline.resolver, int(target))
    print(json.dumps(media.to_dict(), ensure_ascii=False, indent=2))
    return EXIT_SUCCESS


def _import_ratings(pipeline, args: argparse.Namespace, run_id: str, data_dir: Path, logger: logging.Logger) -> int:
    if not args.author_id or not args.author_name:
        log_event(
            logger,
            "import-ratings needs --author-id and --author-name",
            level=logging.ERROR,
            run_id=run_id,
            event="BAD_ARGS",
            status="error",
        )
        return EXIT_HARD_FAIL

    user = AppUser(id=args.author_id, name=args.author_name)
    try:
        report = run_import_and_convert(pipeline, args.target, user)
    except BatchConversionError as exc:
        write_run_summary(
            data_dir,
            run_id,
            user_id=args.target,
            failed_result=exc.result,
            imported=exc.result.failed if exc.result is not None else 0,
        )
        return EXIT_HARD_FAIL

    write_run_summary(data_dir, run_id, user_id=args.target, report=report)
    print(
        json.dumps(
            {"totalImported": report.imported, "totalConverted": report.converted, "failed": len(report.failures)}
        )
    )
    if report.failures or report.status == "cancelled":
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    data_dir = Path(args.data_dir)
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None

    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level)
    settings = load_settings(Path(args.config_dir), overlay_config_dir=overlay_config_dir)
    require_api_keys(settings)
    if args.workers is not None:
        settings = replace(settings, max_workers=max(1, args.workers))

    log_event(logger, "command start", run_id=run_id, stage=args.command, event="STAGE_START", status="ok")
    with build_pipeline(settings) as pipeline:
        try:
            if args.command == "find-media":
                exit_code = _find_media(pipeline, args.target)
            else:
                exit_code = _import_ratings(pipeline, args, run_id, data_dir, logger)
        except ImportPipelineError as exc:
            log_event(
                logger,
                f"{args.command} failed: {exc}",
                level=logging.ERROR,
                run_id=run_id,
                stage=args.command,
                event="STAGE_FAIL",
                status="error",
                error_code=exc.error_code,
            )
            return EXIT_HARD_FAIL
    log_event(logger, "command end", run_id=run_id, stage=args.command, event="STAGE_END", status="ok")
    return exit_code


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or sys.argv[1:])
    try:
        return run_command(args)
    except ImportPipelineError:
        return EXIT_HARD_FAIL
    except Exception:
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
