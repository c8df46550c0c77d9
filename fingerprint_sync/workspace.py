from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .gitutils import clone_repo, git_rev_parse, has_git_dir

UPSTREAM_REPO = "https://github.com/enthec/webappanalyzer.git"
SCRATCH_NAME = "webappanalyzer_update"
BACKUP_CATEGORIES = "categories.json"


class SyncError(Exception):
    """Base exception for synchronization errors."""


class FetchError(SyncError):
    """Raised when the upstream snapshot cannot be obtained."""


@dataclass(frozen=True)
class SyncConfig:
    technologies_dir: Path
    categories_file: Path
    backup_root: Path
    scratch_dir: Path
    upstream_repo: str = UPSTREAM_REPO
    upstream_technologies: str = "src/technologies"
    upstream_categories: str = "src/categories.json"
    dry_run: bool = False
    report_only: bool = False
    report_output: Optional[Path] = None


def build_config(
    root: Path,
    *,
    technologies_dir: Optional[Path] = None,
    categories_file: Optional[Path] = None,
    backup_root: Optional[Path] = None,
    scratch_dir: Optional[Path] = None,
    upstream_repo: str = UPSTREAM_REPO,
    dry_run: bool = False,
    report_only: bool = False,
    report_output: Optional[Path] = None,
) -> SyncConfig:
    root = root.expanduser().resolve()
    return SyncConfig(
        technologies_dir=_resolve(root, technologies_dir, "technologies"),
        categories_file=_resolve(root, categories_file, "categories.json"),
        backup_root=_resolve(root, backup_root, "backup"),
        scratch_dir=(scratch_dir or Path(tempfile.gettempdir()) / SCRATCH_NAME).expanduser(),
        upstream_repo=upstream_repo,
        dry_run=dry_run,
        report_only=report_only,
        report_output=report_output.expanduser() if report_output else None,
    )


def fetch_upstream(config: SyncConfig) -> Path:
    """Shallow-clone the upstream repository into the scratch directory.

    Any stale scratch directory from an earlier run is removed first. Returns
    the snapshot root.
    """
    destination = config.scratch_dir
    if destination.exists():
        logging.debug("Removing stale scratch directory %s", destination)
        shutil.rmtree(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    logging.info("Cloning %s...", config.upstream_repo)
    try:
        clone_repo(config.upstream_repo, destination, depth=1)
    except subprocess.CalledProcessError as exc:
        raise FetchError(
            f"git clone failed for {config.upstream_repo}: {(exc.stderr or '').strip()}"
        ) from exc
    except OSError as exc:
        raise FetchError(f"Unable to run git clone: {exc}") from exc

    technologies = destination / config.upstream_technologies
    if not technologies.is_dir():
        raise FetchError(
            f"Upstream snapshot has no {config.upstream_technologies} directory: {destination}"
        )
    logging.info("Download complete")
    return destination


def upstream_revision(snapshot: Path) -> Optional[str]:
    if not has_git_dir(snapshot):
        return None
    try:
        return git_rev_parse(snapshot)
    except RuntimeError as exc:
        logging.debug("Unable to read upstream revision: %s", exc)
        return None


def cleanup_scratch(config: SyncConfig) -> None:
    if not config.scratch_dir.exists():
        return
    try:
        shutil.rmtree(config.scratch_dir)
    except OSError as exc:
        logging.warning("Failed to remove scratch directory %s: %s", config.scratch_dir, exc)


def create_backup(config: SyncConfig, now: Optional[datetime] = None) -> Path:
    """Copy the corpus directory and categories file into a new backup directory."""
    now = now or datetime.now(timezone.utc)
    stamp = now.strftime("%Y-%m-%dT%H-%M-%S") + f"-{now.microsecond // 1000:03d}Z"
    backup_path = config.backup_root / f"backup-{stamp}"

    try:
        config.backup_root.mkdir(parents=True, exist_ok=True)
        backup_path.mkdir(exist_ok=False)
        technologies_backup = backup_path / "technologies"
        technologies_backup.mkdir()
        if config.technologies_dir.is_dir():
            for item in sorted(config.technologies_dir.glob("*.json")):
                shutil.copy2(item, technologies_backup / item.name)
        if config.categories_file.is_file():
            shutil.copy2(config.categories_file, backup_path / BACKUP_CATEGORIES)
    except FileExistsError as exc:
        raise SyncError(f"Backup directory already exists: {backup_path}") from exc
    except OSError as exc:
        raise SyncError(f"Backup failed at {backup_path}: {exc}") from exc

    logging.info("Backup created at: %s", backup_path)
    return backup_path


def update_categories(config: SyncConfig, snapshot: Path) -> bool:
    source = snapshot / config.upstream_categories
    if not source.is_file():
        logging.warning("categories.json not found in upstream")
        return False
    if config.dry_run:
        logging.info("Dry run: would update %s", config.categories_file)
        return False
    try:
        config.categories_file.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, config.categories_file)
    except OSError as exc:
        raise SyncError(f"Failed to update {config.categories_file}: {exc}") from exc
    logging.info("%s updated", config.categories_file.name)
    return True


def _resolve(root: Path, value: Optional[Path], default: str) -> Path:
    if value is None:
        return root / default
    value = value.expanduser()
    return value if value.is_absolute() else root / value
