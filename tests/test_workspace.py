from __future__ import annotations

import json
import os
import subprocess
from datetime import datetime, timezone
from pathlib import Path

import pytest

from fingerprint_sync.workspace import (
    FetchError,
    SyncError,
    build_config,
    cleanup_scratch,
    create_backup,
    fetch_upstream,
    update_categories,
    upstream_revision,
)


def run_git(args: list[str], cwd: Path) -> None:
    env = os.environ.copy()
    env.setdefault("GIT_AUTHOR_NAME", "fingerprint-sync")
    env.setdefault("GIT_AUTHOR_EMAIL", "fingerprint-sync@example.com")
    env.setdefault("GIT_COMMITTER_NAME", env["GIT_AUTHOR_NAME"])
    env.setdefault("GIT_COMMITTER_EMAIL", env["GIT_AUTHOR_EMAIL"])
    subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        check=True,
        env=env,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    )


def setup_upstream_repo(base: Path, with_technologies: bool = True) -> Path:
    upstream = base / "upstream"
    src = upstream / "src"
    src.mkdir(parents=True)
    if with_technologies:
        (src / "technologies").mkdir()
        (src / "technologies" / "a.json").write_text(json.dumps({"Apache": {"v": 1}}))
    (src / "categories.json").write_text(json.dumps({"1": {"name": "CMS"}}))
    run_git(["init"], upstream)
    run_git(["add", "."], upstream)
    run_git(["commit", "-m", "init"], upstream)
    return upstream


def test_build_config_resolves_defaults(tmp_path: Path) -> None:
    config = build_config(tmp_path, categories_file=Path("data/categories.json"))
    root = tmp_path.resolve()
    assert config.technologies_dir == root / "technologies"
    assert config.categories_file == root / "data" / "categories.json"
    assert config.backup_root == root / "backup"
    assert config.scratch_dir.name == "webappanalyzer_update"
    assert not config.dry_run
    assert not config.report_only


def test_fetch_upstream_clones_snapshot(tmp_path: Path) -> None:
    upstream = setup_upstream_repo(tmp_path)
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    (scratch / "stale.txt").write_text("old run")
    config = build_config(tmp_path / "site", scratch_dir=scratch, upstream_repo=upstream.as_uri())

    snapshot = fetch_upstream(config)

    assert (snapshot / "src" / "technologies" / "a.json").is_file()
    assert not (snapshot / "stale.txt").exists()
    revision = upstream_revision(snapshot)
    assert revision and len(revision) == 40

    cleanup_scratch(config)
    assert not scratch.exists()


def test_fetch_upstream_reports_clone_failure(tmp_path: Path) -> None:
    config = build_config(
        tmp_path / "site",
        scratch_dir=tmp_path / "scratch",
        upstream_repo=str(tmp_path / "does-not-exist"),
    )
    with pytest.raises(FetchError, match="git clone failed"):
        fetch_upstream(config)


def test_fetch_upstream_requires_technologies_directory(tmp_path: Path) -> None:
    upstream = setup_upstream_repo(tmp_path, with_technologies=False)
    config = build_config(
        tmp_path / "site", scratch_dir=tmp_path / "scratch", upstream_repo=upstream.as_uri()
    )
    with pytest.raises(FetchError, match="src/technologies"):
        fetch_upstream(config)


def test_create_backup_copies_corpus_and_never_overwrites(tmp_path: Path) -> None:
    config = build_config(tmp_path)
    config.technologies_dir.mkdir()
    (config.technologies_dir / "a.json").write_text('{"Apache": {}}')
    (config.technologies_dir / "README.md").write_text("not copied")
    config.categories_file.write_text('{"1": {}}')
    now = datetime(2026, 10, 19, 8, 30, 15, 123000, tzinfo=timezone.utc)

    backup = create_backup(config, now=now)

    assert backup.name == "backup-2026-10-19T08-30-15-123Z"
    assert (backup / "technologies" / "a.json").read_text() == '{"Apache": {}}'
    assert not (backup / "technologies" / "README.md").exists()
    assert (backup / "categories.json").read_text() == '{"1": {}}'

    with pytest.raises(SyncError, match="already exists"):
        create_backup(config, now=now)


def test_update_categories(tmp_path: Path) -> None:
    snapshot = tmp_path / "snapshot"
    (snapshot / "src").mkdir(parents=True)
    (snapshot / "src" / "categories.json").write_text('{"2": {"name": "Blogs"}}')
    config = build_config(tmp_path / "site")

    dry = build_config(tmp_path / "site", dry_run=True)
    assert update_categories(dry, snapshot) is False
    assert not dry.categories_file.exists()

    assert update_categories(config, snapshot) is True
    assert config.categories_file.read_text() == '{"2": {"name": "Blogs"}}'


def test_update_categories_missing_upstream_file(tmp_path: Path) -> None:
    config = build_config(tmp_path / "site")
    assert update_categories(config, tmp_path / "empty-snapshot") is False
    assert not config.categories_file.exists()
