from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping

Records = Dict[str, Any]

FALLBACK_BUCKET = "_.json"


@dataclass
class LoadedCorpus:
    directory: Path
    by_file: Dict[str, Records] = field(default_factory=dict)
    malformed: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def technologies(self) -> Records:
        return fold_records(self.by_file)


@dataclass
class BucketWrite:
    filename: str
    count: int
    status: str


def load_corpus(directory: Path) -> LoadedCorpus:
    """Read every ``*.json`` file in ``directory`` into a per-file view.

    A file that cannot be decoded, or whose top level is not an object, is
    recorded as malformed and contributes no records.
    """
    corpus = LoadedCorpus(directory=directory)
    if not directory.is_dir():
        message = f"Corpus directory does not exist: {directory}"
        logging.warning(message)
        corpus.warnings.append(message)
        return corpus

    for path in sorted(directory.glob("*.json")):
        if not path.is_file():
            continue
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            _mark_malformed(corpus, path.name, f"Error parsing {path.name}: {exc}")
            continue
        if not isinstance(data, dict):
            _mark_malformed(
                corpus,
                path.name,
                f"Error parsing {path.name}: expected an object, got {type(data).__name__}",
            )
            continue
        corpus.by_file[path.name] = data
    return corpus


def fold_records(by_file: Mapping[str, Records]) -> Records:
    technologies: Records = {}
    for filename in sorted(by_file):
        technologies.update(by_file[filename])
    return technologies


def bucket_for_name(name: str) -> str:
    first = name[:1]
    if first.isascii() and first.isalpha():
        return f"{first.lower()}.json"
    return FALLBACK_BUCKET


def sort_key(name: str) -> tuple[str, str]:
    return name.lower(), name


def sort_records(records: Mapping[str, Any]) -> Records:
    return {name: records[name] for name in sorted(records, key=sort_key)}


def render_bucket(records: Mapping[str, Any]) -> str:
    return json.dumps(records, indent=2, ensure_ascii=False) + "\n"


def write_corpus(
    directory: Path,
    merged: Mapping[str, Records],
    *,
    dry_run: bool = False,
    keep: Iterable[str] = (),
) -> List[BucketWrite]:
    """Write each non-empty bucket and drop files whose bucket ended up empty.

    Files named in ``keep`` are never removed; when one of them has merged
    records it is replaced with a warning, since its only copy is the backup.
    """
    protected = set(keep)
    results: List[BucketWrite] = []
    if not dry_run:
        directory.mkdir(parents=True, exist_ok=True)

    for filename in sorted(merged):
        records = merged[filename]
        path = directory / filename
        if not records:
            if filename in protected or not path.is_file():
                continue
            if dry_run:
                logging.info("Dry run: would remove emptied bucket %s", filename)
                results.append(BucketWrite(filename=filename, count=0, status="would-remove"))
            else:
                path.unlink()
                logging.info("Removed emptied bucket %s", filename)
                results.append(BucketWrite(filename=filename, count=0, status="removed"))
            continue

        if filename in protected and path.is_file():
            if dry_run:
                logging.warning("Dry run: would replace malformed %s", filename)
            else:
                logging.warning(
                    "Replacing malformed %s with %d merged technologies; "
                    "the original is only in the backup",
                    filename,
                    len(records),
                )
        if dry_run:
            logging.info("Dry run: would save %d technologies to %s", len(records), filename)
            results.append(BucketWrite(filename=filename, count=len(records), status="dry-run"))
            continue
        path.write_text(render_bucket(records), encoding="utf-8")
        logging.info("Saved %d technologies to %s", len(records), filename)
        results.append(BucketWrite(filename=filename, count=len(records), status="written"))
    return results


def _mark_malformed(corpus: LoadedCorpus, filename: str, message: str) -> None:
    logging.warning(message)
    corpus.warnings.append(message)
    corpus.malformed.append(filename)
    corpus.by_file[filename] = {}
