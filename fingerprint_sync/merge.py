from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from .corpus import Records, bucket_for_name, sort_key, sort_records


@dataclass
class CorpusDiff:
    only_local: List[str] = field(default_factory=list)
    only_upstream: List[str] = field(default_factory=list)
    in_both: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)


def canonical(record: Any) -> str:
    return json.dumps(record, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def records_equal(left: Any, right: Any) -> bool:
    return canonical(left) == canonical(right)


def compare_corpora(local: Mapping[str, Any], upstream: Mapping[str, Any]) -> CorpusDiff:
    local_names = set(local)
    upstream_names = set(upstream)
    in_both = sorted(local_names & upstream_names, key=sort_key)
    return CorpusDiff(
        only_local=sorted(local_names - upstream_names, key=sort_key),
        only_upstream=sorted(upstream_names - local_names, key=sort_key),
        in_both=in_both,
        modified=[name for name in in_both if not records_equal(local[name], upstream[name])],
    )


def merge_corpora(
    local_by_file: Mapping[str, Records],
    upstream_by_file: Mapping[str, Records],
    diff: CorpusDiff,
) -> Dict[str, Records]:
    """Build the merged per-file corpus.

    Local-only records move to the bucket given by ``bucket_for_name``;
    every upstream record stays in the file upstream keeps it in. Each bucket
    comes back sorted case-insensitively.
    """
    merged: Dict[str, Records] = {
        filename: {} for filename in sorted(set(local_by_file) | set(upstream_by_file))
    }

    logging.info("Preserving %d custom technologies...", len(diff.only_local))
    local_locations = _locate(local_by_file)
    for name in diff.only_local:
        source = local_locations.get(name)
        if source is None:
            logging.warning("Custom technology %s not found in any local file; skipping", name)
            continue
        merged.setdefault(bucket_for_name(name), {})[name] = local_by_file[source][name]

    logging.info("Adding technologies from upstream...")
    for name, source in _locate(upstream_by_file).items():
        merged[source][name] = upstream_by_file[source][name]

    return {filename: sort_records(records) for filename, records in merged.items()}


def _locate(by_file: Mapping[str, Records]) -> Dict[str, str]:
    # Later files win, matching the folded corpus view.
    locations: Dict[str, str] = {}
    for filename in sorted(by_file):
        for name in by_file[filename]:
            locations[name] = filename
    return locations
