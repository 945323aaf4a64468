"""defect_bench.gt.store

Loading and validation of per-sample ground-truth annotations.

Problem
-------
Every metric the engine produces is computed against the ground truth. A
typo in one annotation (a category nobody maps to, a line range past the end
of the file, two records claiming the same defect) silently corrupts every
downstream number. So unlike analyzer output, which is recovered per record,
ground truth is all-or-nothing: any structural problem raises
:class:`~defect_bench.errors.CorpusError` before a tool is ever run.

Annotation layout
-----------------
Annotation files live anywhere under the corpus root and are named
``*.gt.yaml``, ``*.gt.yml`` or ``*.gt.json``. Each describes one sample::

    sample: c/vuln_bad_code
    language: c
    findings:
      - id: uaf-1
        category: use-after-free
        file: c/vuln_bad_code.c
        lineStart: 40
        lineEnd: 44
        severity: high
        standardRules: [{standard: CERT, ruleId: MEM30-C}]
        note: pointer used after free()
        conditional: false

A bare list of finding records is accepted too; the sample id is then the
annotation path without its ``.gt.*`` suffix.
"""

from __future__ import annotations

import hashlib
import logging
from collections import Counter
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from defect_bench.domain.categories import Severity, parse_category, parse_severity
from defect_bench.domain.ground_truth import CorpusSample, GroundTruthFinding, SourceLocation, StandardRuleRef
from defect_bench.errors import CorpusError
from defect_bench.io.fs import read_structured

logger = logging.getLogger(__name__)

ANNOTATION_SUFFIXES: Tuple[str, ...] = (".gt.yaml", ".gt.yml", ".gt.json")
CORPUS_MANIFEST = "corpus.yaml"

_LANGUAGE_BY_EXT: Dict[str, str] = {
    ".c": "c",
    ".h": "c",
    ".cc": "cpp",
    ".cpp": "cpp",
    ".cxx": "cpp",
    ".hpp": "cpp",
    ".java": "java",
    ".js": "javascript",
    ".kt": "kotlin",
    ".rs": "rust",
    ".swift": "swift",
    ".py": "python",
    ".go": "go",
}


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    for k in keys:
        if k in raw and raw[k] is not None:
            return raw[k]
    return None


def _as_int(v: Any) -> Optional[int]:
    if v is None or isinstance(v, bool):
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def _as_bool(v: Any) -> bool:
    if isinstance(v, str):
        return v.strip().lower() in {"1", "true", "yes", "y"}
    return bool(v)


def _is_safe_relative(path: str) -> bool:
    p = PurePosixPath(path)
    return bool(path) and not p.is_absolute() and ".." not in p.parts


def _sample_id_from_path(rel: str) -> str:
    for suffix in ANNOTATION_SUFFIXES:
        if rel.endswith(suffix):
            return rel[: -len(suffix)]
    return rel


def discover_annotation_files(corpus_root: Path) -> List[Path]:
    """All annotation files under corpus_root, sorted by relative path."""
    root = Path(corpus_root)
    found = set()
    for suffix in ANNOTATION_SUFFIXES:
        for p in root.rglob(f"*{suffix}"):
            if p.is_file() and "__pycache__" not in p.parts:
                found.add(p)
    return sorted(found, key=lambda p: p.relative_to(root).as_posix())


class _LineCounter:
    """Caches per-file line counts for bounds checks."""

    def __init__(self, corpus_root: Path) -> None:
        self._root = corpus_root
        self._cache: Dict[str, Optional[int]] = {}

    def count(self, rel: str) -> Optional[int]:
        if rel not in self._cache:
            p = self._root / rel
            if not p.is_file():
                self._cache[rel] = None
            else:
                text = p.read_text(encoding="utf-8", errors="replace")
                self._cache[rel] = len(text.splitlines())
        return self._cache[rel]


def _parse_rules(raw: Any, where: str, problems: List[str]) -> Tuple[StandardRuleRef, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        problems.append(f"{where}: standardRules must be a list")
        return ()
    out = set()
    for item in raw:
        if not isinstance(item, Mapping):
            problems.append(f"{where}: standardRules entries must be mappings")
            continue
        std = str(item.get("standard") or "").strip()
        rid = str(_first(item, "ruleId", "rule_id", "rule") or "").strip()
        if not std or not rid:
            problems.append(f"{where}: standardRules entry needs both standard and ruleId")
            continue
        out.add(StandardRuleRef(std, rid))
    return tuple(sorted(out))


def _parse_finding(
    raw: Any,
    *,
    sample_id: str,
    where: str,
    lines: _LineCounter,
    problems: List[str],
) -> Optional[GroundTruthFinding]:
    if not isinstance(raw, Mapping):
        problems.append(f"{where}: finding must be a mapping")
        return None

    fid = str(raw.get("id") or "").strip()
    if not fid:
        problems.append(f"{where}: finding is missing an id")
        return None
    where = f"{where} [{fid}]"
    before = len(problems)

    cat_raw = raw.get("category")
    category = parse_category(cat_raw)
    if category is None:
        problems.append(f"{where}: category {cat_raw!r} is not a canonical category")

    sev_raw = raw.get("severity")
    severity = parse_severity(sev_raw) if sev_raw is not None else Severity.MEDIUM
    if severity is None:
        problems.append(f"{where}: severity {sev_raw!r} is not on the 5-point scale")

    file_rel = str(_first(raw, "file", "file_path") or "").strip().replace("\\", "/")
    while file_rel.startswith("./"):
        file_rel = file_rel[2:]
    if not _is_safe_relative(file_rel):
        problems.append(f"{where}: file {file_rel!r} must be a path relative to the corpus root")

    start = _as_int(_first(raw, "lineStart", "line_start", "line"))
    end_raw = _first(raw, "lineEnd", "line_end")
    end = _as_int(end_raw) if end_raw is not None else start
    if start is None or end is None:
        problems.append(f"{where}: lineStart/lineEnd must be integers")
    elif start < 1:
        problems.append(f"{where}: lineStart {start} is below 1")
    elif end < start:
        problems.append(f"{where}: line range {start}-{end} is inverted")
    elif _is_safe_relative(file_rel):
        n = lines.count(file_rel)
        if n is None:
            problems.append(f"{where}: file {file_rel!r} does not exist under the corpus root")
        elif end > n:
            problems.append(f"{where}: line range {start}-{end} exceeds {file_rel} ({n} lines)")

    column = _as_int(raw.get("column"))
    if raw.get("column") is not None and (column is None or column < 1):
        problems.append(f"{where}: column must be a positive integer")

    rules = _parse_rules(_first(raw, "standardRules", "standard_rules"), where, problems)

    if len(problems) != before:
        return None

    assert category is not None and severity is not None and start is not None and end is not None
    return GroundTruthFinding(
        id=fid,
        sample_id=sample_id,
        category=category,
        location=SourceLocation(file=file_rel, line_start=start, line_end=end, column=column),
        severity=severity,
        standard_rules=rules,
        note=str(raw.get("note") or ""),
        conditional=_as_bool(raw.get("conditional")),
        intentional_duplicate=_as_bool(_first(raw, "intentionalDuplicate", "intentional_duplicate")),
    )


def _check_sample_consistency(sample_id: str, findings: Sequence[GroundTruthFinding], problems: List[str]) -> None:
    seen_ids: Counter = Counter(f.id for f in findings)
    for fid, n in sorted(seen_ids.items()):
        if n > 1:
            problems.append(f"sample {sample_id}: finding id {fid!r} is used {n} times")

    by_location: Dict[Tuple[Any, ...], List[GroundTruthFinding]] = {}
    for f in findings:
        loc = f.location
        key = (f.category, loc.file, loc.line_start, loc.line_end, loc.column)
        by_location.setdefault(key, []).append(f)
    for key, group in sorted(by_location.items(), key=lambda kv: (kv[0][1], kv[0][2], kv[0][0].value)):
        if len(group) < 2:
            continue
        if any(f.intentional_duplicate for f in group):
            continue
        ids = ", ".join(sorted(f.id for f in group))
        problems.append(
            f"sample {sample_id}: findings {ids} share category {key[0].value} at "
            f"{key[1]}:{key[2]}-{key[3]} without an intentionalDuplicate marker"
        )


def _read_corpus_version(corpus_root: Path, annotation_files: Sequence[Path]) -> str:
    manifest = corpus_root / CORPUS_MANIFEST
    if manifest.is_file():
        try:
            data = read_structured(manifest)
        except ValueError as e:
            raise CorpusError([f"{CORPUS_MANIFEST}: {e}"]) from e
        if isinstance(data, Mapping) and data.get("version") not in (None, ""):
            return str(data["version"])

    h = hashlib.sha256()
    for p in annotation_files:
        h.update(p.relative_to(corpus_root).as_posix().encode("utf-8"))
        h.update(b"\0")
        h.update(p.read_bytes())
        h.update(b"\0")
    return f"sha256:{h.hexdigest()[:12]}"


@dataclass(frozen=True)
class GroundTruthStore:
    """Read-only view of a validated corpus."""

    corpus_root: Path
    corpus_version: str
    samples: Tuple[CorpusSample, ...]

    @classmethod
    def load(cls, corpus_root: Path) -> "GroundTruthStore":
        root = Path(corpus_root).resolve()
        if not root.is_dir():
            raise CorpusError([f"corpus root {root} is not a directory"])

        files = discover_annotation_files(root)
        if not files:
            raise CorpusError([f"no annotation files (*.gt.yaml|*.gt.yml|*.gt.json) under {root}"])

        problems: List[str] = []
        lines = _LineCounter(root)
        samples: Dict[str, CorpusSample] = {}

        for path in files:
            rel = path.relative_to(root).as_posix()
            try:
                doc = read_structured(path)
            except ValueError as e:
                problems.append(f"{rel}: {e}")
                continue

            if isinstance(doc, list):
                sample_id = _sample_id_from_path(rel)
                language = ""
                raw_findings: Any = doc
            elif isinstance(doc, Mapping):
                sample_id = str(doc.get("sample") or doc.get("id") or _sample_id_from_path(rel)).strip()
                language = str(doc.get("language") or "").strip().lower()
                raw_findings = doc.get("findings") if doc.get("findings") is not None else []
            else:
                problems.append(f"{rel}: annotation must be a mapping or a list of findings")
                continue

            if not isinstance(raw_findings, list):
                problems.append(f"{rel}: findings must be a list")
                continue
            if sample_id in samples:
                problems.append(
                    f"{rel}: sample id {sample_id!r} already declared in {samples[sample_id].annotation_path}"
                )
                continue

            parsed: List[GroundTruthFinding] = []
            for i, item in enumerate(raw_findings):
                gt = _parse_finding(item, sample_id=sample_id, where=f"{rel}#{i}", lines=lines, problems=problems)
                if gt is not None:
                    parsed.append(gt)

            _check_sample_consistency(sample_id, parsed, problems)

            if not language and parsed:
                language = _LANGUAGE_BY_EXT.get(PurePosixPath(parsed[0].file).suffix.lower(), "unknown")

            samples[sample_id] = CorpusSample(
                sample_id=sample_id,
                language=language or "unknown",
                findings=tuple(sorted(parsed, key=lambda f: f.sort_key())),
                annotation_path=rel,
            )

        if problems:
            for p in problems:
                logger.error("corpus: %s", p)
            raise CorpusError(problems)

        version = _read_corpus_version(root, files)
        ordered = tuple(samples[k] for k in sorted(samples))
        logger.info(
            "Loaded corpus %s: %d samples, %d findings",
            version,
            len(ordered),
            sum(len(s.findings) for s in ordered),
        )
        return cls(corpus_root=root, corpus_version=version, samples=ordered)

    def lookup(self, sample_id: str) -> Tuple[GroundTruthFinding, ...]:
        for s in self.samples:
            if s.sample_id == sample_id:
                return s.findings
        return ()

    def all_findings(self) -> Tuple[GroundTruthFinding, ...]:
        out = [f for s in self.samples for f in s.findings]
        return tuple(sorted(out, key=lambda f: (f.sort_key(), f.sample_id)))

    def files(self) -> Tuple[str, ...]:
        return tuple(sorted({f.file for s in self.samples for f in s.findings}))

    def category_counts(self) -> Dict[str, int]:
        counts: Counter = Counter(f.category.value for s in self.samples for f in s.findings)
        return {k: counts[k] for k in sorted(counts)}


def validate_corpus(corpus_root: Path) -> Dict[str, Any]:
    """Schema/consistency check only. Raises CorpusError on failure."""
    store = GroundTruthStore.load(corpus_root)
    return {
        "corpus_root": str(store.corpus_root),
        "corpus_version": store.corpus_version,
        "samples": len(store.samples),
        "findings": sum(len(s.findings) for s in store.samples),
        "conditional": sum(1 for s in store.samples for f in s.findings if f.conditional),
        "by_category": store.category_counts(),
    }


__all__ = [
    "ANNOTATION_SUFFIXES",
    "GroundTruthStore",
    "discover_annotation_files",
    "validate_corpus",
]
