from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from .corpus import BucketWrite
from .merge import CorpusDiff

PRESERVED_LIMIT = 50
ADDED_LIMIT = 30
MODIFIED_LIMIT = 20


def summarize_diff(
    diff: CorpusDiff,
    local_total: int,
    upstream_total: int,
    upstream_revision: Optional[str] = None,
) -> str:
    lines = ["Difference Report", "================="]
    if upstream_revision:
        lines.append(f"Upstream revision: {upstream_revision}")
    lines.append("")
    lines.append("STATISTICS:")
    lines.append(f"   Total local technologies: {local_total}")
    lines.append(f"   Total upstream technologies: {upstream_total}")
    lines.append(f"   CUSTOM technologies (only local): {len(diff.only_local)}")
    lines.append(f"   NEW technologies upstream: {len(diff.only_upstream)}")
    lines.append(f"   MODIFIED technologies upstream: {len(diff.modified)}")

    _append_listing(
        lines,
        "CUSTOM TECHNOLOGIES (will be PRESERVED):",
        diff.only_local,
        PRESERVED_LIMIT,
        "custom",
    )
    _append_listing(
        lines,
        "NEW TECHNOLOGIES (will be ADDED):",
        diff.only_upstream,
        ADDED_LIMIT,
        "new",
    )
    _append_listing(
        lines,
        "MODIFIED TECHNOLOGIES (will be UPDATED):",
        diff.modified,
        MODIFIED_LIMIT,
        "modified",
    )
    return "\n".join(lines)


def summarize_outcome(
    diff: CorpusDiff,
    writes: Sequence[BucketWrite],
    backup_path: Optional[Path] = None,
) -> str:
    written = [write for write in writes if write.status == "written"]
    removed = [write for write in writes if write.status == "removed"]
    lines = [
        "SUMMARY:",
        f"   • {len(diff.only_local)} custom technologies PRESERVED",
        f"   • {len(diff.only_upstream)} new technologies ADDED",
        f"   • {len(diff.modified)} technologies UPDATED",
        f"   • {len(written)} files written",
    ]
    if removed:
        lines.append(f"   • {len(removed)} emptied files removed")
    if backup_path:
        lines.append(f"   • backup saved at {backup_path}")
    lines.append("")
    lines.append("Verify changes and test before committing!")
    return "\n".join(lines)


def write_markdown_report(
    output_path: Path,
    diff: CorpusDiff,
    local_total: int,
    upstream_total: int,
    upstream_revision: Optional[str] = None,
) -> None:
    lines = ["# Technology Sync Report", ""]
    if upstream_revision:
        lines.append(f"Upstream revision: `{upstream_revision}`")
        lines.append("")

    lines.append("## Statistics")
    lines.append("")
    lines.append(f"- Local technologies: {local_total}")
    lines.append(f"- Upstream technologies: {upstream_total}")
    lines.append(f"- Preserved (local only): {len(diff.only_local)}")
    lines.append(f"- Added (upstream only): {len(diff.only_upstream)}")
    lines.append(f"- Updated (modified upstream): {len(diff.modified)}")
    lines.append("")

    for title, names in (
        ("Preserved", diff.only_local),
        ("Added", diff.only_upstream),
        ("Updated", diff.modified),
    ):
        if not names:
            continue
        lines.append(f"## {title}")
        lines.append("")
        lines.extend(f"- `{name}`" for name in names)
        lines.append("")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text("\n".join(lines).rstrip() + "\n", encoding="utf-8")
    logging.info("Wrote report to %s", output_path)


def _append_listing(
    lines: List[str],
    title: str,
    names: Sequence[str],
    limit: int,
    noun: str,
) -> None:
    if not names:
        return
    lines.append("")
    lines.append(title)
    for name in names[:limit]:
        lines.append(f"   • {name}")
    if len(names) > limit:
        lines.append(f"   ... and {len(names) - limit} more {noun} technologies")
