"""Command-line front end: analyze a Chrome ``Bookmarks`` file and apply plans.

Typical session::

    tidymarks folders ~/.config/chromium/Default/Bookmarks
    tidymarks analyze Bookmarks --dead-links --duplicates -o plan.json
    # edit plan.json, set "ignored": true on anything to keep
    tidymarks execute Bookmarks plan.json -o Bookmarks.new
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import signal
import sys
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING

from tidymarks.adapters.llm.classifier import LLMClassifier
from tidymarks.adapters.store.chrome_bookmarks import ChromeBookmarksFile
from tidymarks.config import AppConfig, load_config
from tidymarks.core.logging_utils import setup_json_logging
from tidymarks.domain.exceptions.domain_exceptions import (
    ClassificationError,
    ConfigurationError,
    OperationCancelledError,
)
from tidymarks.domain.models.plan import Plan
from tidymarks.services.organizer import AnalysisOptions, BookmarkOrganizer
from tidymarks.services.reporting import LogLevel, OperationReporter

if TYPE_CHECKING:
    from collections.abc import Awaitable

logger = logging.getLogger(__name__)

__all__ = ["main", "parse_args"]

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_CANCELLED = 130


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        prog="tidymarks",
        description="Reorganize browser bookmarks with a remote language model",
        allow_abbrev=False,
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override the configured log level for this session.",
    )
    parser.add_argument(
        "--target-language",
        help="Override the language used for generated folder names.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    folders = sub.add_parser("folders", help="List folders that can be analyzed selectively")
    folders.add_argument("bookmarks", type=Path, help="Path to a Chrome Bookmarks file")

    analyze = sub.add_parser("analyze", help="Produce a reorganization plan")
    analyze.add_argument("bookmarks", type=Path, help="Path to a Chrome Bookmarks file")
    analyze.add_argument(
        "--folder",
        action="append",
        dest="folders",
        metavar="ID",
        help="Only analyze this folder (repeatable).",
    )
    analyze.add_argument("--dead-links", action="store_true", help="Probe every http(s) link.")
    analyze.add_argument("--duplicates", action="store_true", help="Detect duplicate links.")
    analyze.add_argument(
        "--skip-ai",
        action="store_true",
        help="Do not call the classifier; only run the local checks.",
    )
    analyze.add_argument(
        "-o", "--output", type=Path, help="Write the plan JSON here instead of stdout."
    )

    execute = sub.add_parser("execute", help="Apply a reviewed plan")
    execute.add_argument("bookmarks", type=Path, help="Path to a Chrome Bookmarks file")
    execute.add_argument("plan", type=Path, help="Plan JSON produced by 'analyze'")
    execute.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Write the updated bookmarks here (default: overwrite the input).",
    )

    sub.add_parser("check", help="Send a small request to the configured classifier")
    return parser.parse_args(argv)


def _prepare_config(args: argparse.Namespace) -> AppConfig:
    """Load configuration, applying CLI overrides."""
    cfg = load_config()
    if args.log_level:
        cfg = replace(cfg, runtime=cfg.runtime.model_copy(update={"log_level": args.log_level}))
    if args.target_language:
        cfg = replace(
            cfg,
            classifier=cfg.classifier.model_copy(
                update={"target_language": args.target_language}
            ),
        )
    return cfg


def _console_reporter() -> OperationReporter:
    def on_log(message: str, level: LogLevel) -> None:
        prefix = "" if level is LogLevel.INFO else f"[{level.value}] "
        print(f"{prefix}{message}", file=sys.stderr)

    def on_progress(percentage: int, message: str) -> None:
        print(f"{percentage:3d}% {message}", file=sys.stderr)

    return OperationReporter(on_log=on_log, on_progress=on_progress)


async def _run_cancellable(organizer: BookmarkOrganizer, work: Awaitable) -> object:
    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, organizer.cancel)
    try:
        return await work
    finally:
        with contextlib.suppress(NotImplementedError):
            loop.remove_signal_handler(signal.SIGINT)


async def _cmd_folders(args: argparse.Namespace, cfg: AppConfig) -> int:
    bookmarks = ChromeBookmarksFile.load(args.bookmarks)
    organizer = BookmarkOrganizer(bookmarks.store, cfg)
    for choice in await organizer.top_level_folders():
        indent = "" if choice.is_root_container else "  "
        print(f"{indent}{choice.id}\t{choice.path}")
    return EXIT_OK


async def _cmd_analyze(args: argparse.Namespace, cfg: AppConfig) -> int:
    bookmarks = ChromeBookmarksFile.load(args.bookmarks)
    organizer = BookmarkOrganizer(bookmarks.store, cfg, reporter=_console_reporter())
    options = AnalysisOptions(
        check_dead_links=args.dead_links,
        check_duplicates=args.duplicates,
        skip_classification=args.skip_ai,
    )
    result = await _run_cancellable(organizer, organizer.analyze(args.folders, options))
    payload = result.plan.model_dump_json(indent=2)
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(payload, encoding="utf-8")
        print(f"Plan written to {args.output}", file=sys.stderr)
    else:
        print(payload)
    for name, count in result.plan.counts().items():
        print(f"  {name}: {count}", file=sys.stderr)
    return EXIT_OK


async def _cmd_execute(args: argparse.Namespace, cfg: AppConfig) -> int:
    bookmarks = ChromeBookmarksFile.load(args.bookmarks)
    plan = Plan.model_validate(json.loads(args.plan.read_text(encoding="utf-8")))
    organizer = BookmarkOrganizer(bookmarks.store, cfg, reporter=_console_reporter())
    try:
        report = await _run_cancellable(organizer, organizer.execute(plan))
    finally:
        # Whatever was applied before a cancellation is kept.
        await bookmarks.save(args.output or args.bookmarks)
    print(
        f"Applied {report.succeeded} operation(s), {report.failed} failed, "
        f"{report.folders_removed} empty folder(s) removed",
        file=sys.stderr,
    )
    return EXIT_OK if report.failed == 0 else EXIT_FAILED


async def _cmd_check(args: argparse.Namespace, cfg: AppConfig) -> int:
    async with LLMClassifier.from_config(cfg.classifier) as classifier:
        await classifier.check_connection()
    print(f"Connected to {classifier.provider_name} at {classifier.endpoint}", file=sys.stderr)
    return EXIT_OK


_COMMANDS = {
    "folders": _cmd_folders,
    "analyze": _cmd_analyze,
    "execute": _cmd_execute,
    "check": _cmd_check,
}


async def run_cli(args: argparse.Namespace) -> int:
    cfg = _prepare_config(args)
    setup_json_logging(
        cfg.runtime.log_level, serialize=cfg.runtime.json_logs, log_file=cfg.runtime.log_file
    )
    logger.debug("cli_start", extra={"command": args.command})
    return await _COMMANDS[args.command](args, cfg)


def main(argv: list[str] | None = None) -> int:
    """Entry point for the ``tidymarks`` console script."""
    args = parse_args(argv)
    try:
        return asyncio.run(run_cli(args))
    except OperationCancelledError:
        print("Cancelled", file=sys.stderr)
        return EXIT_CANCELLED
    except KeyboardInterrupt:  # pragma: no cover - interrupted outside a run
        return EXIT_CANCELLED
    except ConfigurationError as exc:
        print(f"Configuration error: {exc.message}", file=sys.stderr)
        return EXIT_CONFIG
    except ClassificationError as exc:
        print(f"Classifier error ({exc.kind}): {exc.message}", file=sys.stderr)
        return EXIT_FAILED
    except Exception as exc:
        logger.exception("cli_failed", exc_info=exc)
        return EXIT_FAILED


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
