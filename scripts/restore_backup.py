#!/usr/bin/env python3
"""Restore the technology corpus and categories file from a sync backup."""

from __future__ import annotations

import argparse
import shutil
import sys
from pathlib import Path
from typing import Optional


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("backup", type=Path, nargs="?", help="Backup directory (backup-<timestamp>)")
    parser.add_argument(
        "--root",
        type=Path,
        default=Path("."),
        help="Directory the default corpus, categories and backup paths are relative to (default: .)",
    )
    parser.add_argument(
        "--technologies-dir",
        type=Path,
        help="Corpus directory to restore into (default: <root>/technologies)",
    )
    parser.add_argument(
        "--categories-file",
        type=Path,
        help="Categories file to restore (default: <root>/categories.json)",
    )
    parser.add_argument(
        "--backup-dir",
        type=Path,
        help="Directory searched by --latest (default: <root>/backup)",
    )
    parser.add_argument(
        "--latest",
        action="store_true",
        help="Restore the newest backup under the backup directory",
    )
    return parser.parse_args()


def resolve(root: Path, value: Optional[Path], default: str) -> Path:
    if value is None:
        return root / default
    value = value.expanduser()
    return value if value.is_absolute() else root / value


def latest_backup(backup_root: Path) -> Optional[Path]:
    if not backup_root.is_dir():
        return None
    candidates = sorted(p for p in backup_root.glob("backup-*") if p.is_dir())
    return candidates[-1] if candidates else None


def restore(backup: Path, technologies_dir: Path, categories_file: Path) -> int:
    technologies_backup = backup / "technologies"
    if not technologies_backup.is_dir():
        raise FileNotFoundError(f"backup has no technologies directory: {backup}")

    technologies_dir.mkdir(parents=True, exist_ok=True)
    for stale in technologies_dir.glob("*.json"):
        stale.unlink()
    restored = 0
    for item in sorted(technologies_backup.glob("*.json")):
        shutil.copy2(item, technologies_dir / item.name)
        restored += 1

    categories = backup / "categories.json"
    if categories.is_file():
        categories_file.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(categories, categories_file)
    return restored


def main() -> None:
    args = parse_args()
    root = args.root.expanduser().resolve()
    technologies_dir = resolve(root, args.technologies_dir, "technologies")
    categories_file = resolve(root, args.categories_file, "categories.json")
    backup_root = resolve(root, args.backup_dir, "backup")

    if args.latest:
        backup = latest_backup(backup_root)
        if backup is None:
            sys.exit(f"no backups found under {backup_root}")
    elif args.backup:
        backup = args.backup.expanduser().resolve()
    else:
        sys.exit("pass a backup directory or --latest")

    if not backup.is_dir():
        sys.exit(f"backup does not exist: {backup}")
    try:
        restored = restore(backup, technologies_dir, categories_file)
    except FileNotFoundError as exc:
        sys.exit(str(exc))
    print(f"Restored {restored} technology files from {backup} into {technologies_dir}")


if __name__ == "__main__":
    main()
