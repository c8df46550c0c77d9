from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Optional, Sequence, Union


def has_git_dir(path: Path) -> bool:
    return (path / ".git").is_dir()


def run_git(repo: Path, args: Sequence[str]) -> subprocess.CompletedProcess:
    return subprocess.run(
        ["git", "-C", str(repo)] + list(args),
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )


def git_rev_parse(repo: Path) -> str:
    result = run_git(repo, ["rev-parse", "HEAD"])
    if result.returncode != 0:
        raise RuntimeError(f"git rev-parse failed for {repo}: {result.stderr.strip()}")
    return result.stdout.strip()


def clone_repo(
    source: Union[Path, str],
    destination: Path,
    *,
    depth: Optional[int] = None,
) -> None:
    args = ["git", "clone"]
    if depth:
        args.append(f"--depth={depth}")
    args.extend([str(source), str(destination)])
    subprocess.run(
        args,
        check=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )
