"""CLI entrypoint for the tract event rates pipeline."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from tract_rates.common.config_loader import load_config, with_overrides
from tract_rates.common.constants import COMMANDS, EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS
from tract_rates.common.errors import PipelineError
from tract_rates.common.http import HttpClient, build_http_client
from tract_rates.common.ids import generate_run_id
from tract_rates.common.logging import build_logger, close_logger, log_event
from tract_rates.pipeline.runner import fetch_reference_data, run_pipeline


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("--input", default=None, help="event CSV; overrides input.path")
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--strict", action="store_true", help="fail on points inside overlapping regions")
    return parser.parse_args(argv)


def _apply_cli_overrides(config, args: argparse.Namespace):
    sections = {}
    if args.input:
        sections["input"] = {"path": args.input}
    if args.strict:
        sections["join"] = {"strict": True}
    if not sections:
        return config
    return with_overrides(config, **sections)


def run_command(args: argparse.Namespace, http_client: HttpClient | None = None) -> int:
    run_id = args.run_id or generate_run_id()
    data_dir = Path(args.data_dir)
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None

    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level)
    owns_client = http_client is None
    client = http_client
    try:
        config = _apply_cli_overrides(
            load_config(Path(args.config_dir), overlay_config_dir=overlay_config_dir),
            args,
        )
        if client is None:
            client = build_http_client(config.http, logger=logger)

        log_event(logger, f"{args.command} start", run_id=run_id, event="RUN_START", status="ok")
        if args.command == "fetch":
            fetch_reference_data(config, data_dir, http_client=client, logger=logger, run_id=run_id)
            exit_code = EXIT_SUCCESS
        else:
            result = run_pipeline(config, data_dir, http_client=client, logger=logger, run_id=run_id)
            exit_code = EXIT_PARTIAL if result.report["warnings"] else EXIT_SUCCESS
        log_event(logger, f"{args.command} end", run_id=run_id, event="RUN_END", status="ok")
        return exit_code
    except PipelineError as exc:
        log_event(
            logger,
            f"{args.command} failed: {exc}",
            level=logging.ERROR,
            run_id=run_id,
            event="RUN_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        return EXIT_HARD_FAIL
    except Exception as exc:
        log_event(
            logger,
            f"unexpected failure: {exc!r}",
            level=logging.ERROR,
            run_id=run_id,
            event="RUN_FAIL",
            status="error",
            error_code="UNEXPECTED_ERROR",
        )
        return EXIT_HARD_FAIL
    finally:
        if owns_client and client is not None:
            client.close()
        close_logger(logger)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    return run_command(args)


if __name__ == "__main__":
    raise SystemExit(main())
