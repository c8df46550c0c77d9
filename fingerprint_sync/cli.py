from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, List, Optional, Sequence

from .corpus import BucketWrite, load_corpus, write_corpus
from .merge import CorpusDiff, compare_corpora, merge_corpora
from .reporting import summarize_diff, summarize_outcome, write_markdown_report
from .workspace import (
    UPSTREAM_REPO,
    SyncConfig,
    SyncError,
    build_config,
    cleanup_scratch,
    create_backup,
    fetch_upstream,
    update_categories,
    upstream_revision,
)

ANSI_COLORS = {
    "red": "\x1b[31m",
    "green": "\x1b[32m",
    "yellow": "\x1b[33m",
    "blue": "\x1b[34m",
    "magenta": "\x1b[35m",
    "cyan": "\x1b[36m",
}
ANSI_RESET = "\x1b[0m"


class ColorFormatter(logging.Formatter):
    """Wrap each line in an ANSI color picked from ``record.color`` or the level."""

    LEVEL_COLORS = {
        logging.WARNING: "yellow",
        logging.ERROR: "red",
        logging.CRITICAL: "red",
    }

    def __init__(self, fmt: str, *, use_color: bool = True) -> None:
        super().__init__(fmt)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if not self.use_color:
            return message
        color = getattr(record, "color", None) or self.LEVEL_COLORS.get(record.levelno)
        if color not in ANSI_COLORS:
            return message
        return f"{ANSI_COLORS[color]}{message}{ANSI_RESET}"


@dataclass
class SyncOutcome:
    diff: CorpusDiff
    local_total: int
    upstream_total: int
    revision: Optional[str] = None
    backup_path: Optional[Path] = None
    writes: List[BucketWrite] = field(default_factory=list)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fingerprint-sync",
        description=(
            "Update technology fingerprints from upstream while preserving "
            "local-only technologies."
        ),
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would change without backing up or writing anything.",
    )
    mode.add_argument(
        "--report",
        action="store_true",
        help="Only print the difference report.",
    )
    parser.add_argument(
        "--root",
        type=Path,
        default=Path("."),
        help="Directory the default corpus, categories and backup paths are relative to.",
    )
    parser.add_argument(
        "--technologies-dir",
        type=Path,
        help="Local corpus directory (default: <root>/technologies).",
    )
    parser.add_argument(
        "--categories-file",
        type=Path,
        help="Local categories file (default: <root>/categories.json).",
    )
    parser.add_argument(
        "--backup-dir",
        type=Path,
        help="Directory that receives timestamped backups (default: <root>/backup).",
    )
    parser.add_argument(
        "--scratch-dir",
        type=Path,
        help="Scratch location for the upstream snapshot (default: system temp dir).",
    )
    parser.add_argument(
        "--upstream-repo",
        default=UPSTREAM_REPO,
        help="Upstream git repository to clone.",
    )
    parser.add_argument(
        "--report-output",
        type=Path,
        help="Also write the difference report as Markdown to this path.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser


def configure_logging(verbose: bool, stream: Optional[IO[str]] = None) -> None:
    stream = stream or sys.stderr
    use_color = bool(getattr(stream, "isatty", lambda: False)()) and "NO_COLOR" not in os.environ
    handler = logging.StreamHandler(stream)
    handler.setFormatter(ColorFormatter("%(levelname)s: %(message)s", use_color=use_color))
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, handlers=[handler])


def config_from_args(args: argparse.Namespace) -> SyncConfig:
    return build_config(
        args.root,
        technologies_dir=args.technologies_dir,
        categories_file=args.categories_file,
        backup_root=args.backup_dir,
        scratch_dir=args.scratch_dir,
        upstream_repo=args.upstream_repo,
        dry_run=args.dry_run,
        report_only=args.report,
        report_output=args.report_output,
    )


def run(args: argparse.Namespace) -> int:
    configure_logging(args.verbose)
    logging.debug("Arguments: %s", args)
    sync(config_from_args(args))
    return 0


def sync(config: SyncConfig) -> SyncOutcome:
    logging.info("WAPPALYZER SMART UPDATE", extra={"color": "magenta"})
    logging.info("Updates from upstream PRESERVING custom technologies", extra={"color": "magenta"})
    if config.dry_run:
        logging.warning("DRY-RUN MODE - No changes will be made")
    if config.report_only:
        logging.info("REPORT MODE - Statistics only", extra={"color": "yellow"})

    try:
        _log_section("Downloading upstream...")
        snapshot = fetch_upstream(config)
        revision = upstream_revision(snapshot)
        if revision:
            logging.info("Upstream revision: %s", revision)

        _log_section("Loading technologies...")
        local = load_corpus(config.technologies_dir)
        upstream = load_corpus(snapshot / config.upstream_technologies)
        local_technologies = local.technologies
        upstream_technologies = upstream.technologies
        logging.info("Local technologies: %d", len(local_technologies), extra={"color": "blue"})
        logging.info(
            "Upstream technologies: %d", len(upstream_technologies), extra={"color": "blue"}
        )

        diff = compare_corpora(local_technologies, upstream_technologies)
        outcome = SyncOutcome(
            diff=diff,
            local_total=len(local_technologies),
            upstream_total=len(upstream_technologies),
            revision=revision,
        )
        _log_section("Difference Report")
        logging.info(
            "\n%s",
            summarize_diff(diff, outcome.local_total, outcome.upstream_total, revision),
        )
        if config.report_output:
            write_markdown_report(
                config.report_output,
                diff,
                outcome.local_total,
                outcome.upstream_total,
                revision,
            )

        if config.report_only:
            logging.info("Report mode - no changes made", extra={"color": "green"})
            return outcome

        if not config.dry_run:
            _log_section("Creating backup...")
            outcome.backup_path = create_backup(config)

        _log_section("Merging technologies...")
        merged = merge_corpora(local.by_file, upstream.by_file, diff)

        _log_section("Saving technologies...")
        outcome.writes = write_corpus(
            config.technologies_dir,
            merged,
            dry_run=config.dry_run,
            keep=local.malformed,
        )

        _log_section("Updating categories...")
        update_categories(config, snapshot)

        _log_section("COMPLETE")
        if not config.dry_run:
            logging.info(
                "\n%s",
                summarize_outcome(diff, outcome.writes, outcome.backup_path),
                extra={"color": "green"},
            )
        return outcome
    finally:
        cleanup_scratch(config)


def _log_section(title: str) -> None:
    rule = "=" * 60
    logging.info("\n%s\n%s\n%s", rule, title, rule, extra={"color": "cyan"})


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return run(args)
    except SyncError as exc:
        logging.error("%s", exc)
        return 2
    except KeyboardInterrupt:
        logging.error("Interrupted")
        return 130
    except Exception as exc:
        logging.exception("Unexpected error: %s", exc)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
