"""pipeline.evaluate

One evaluation unit: (corpus, tool) -> RunReport.

This module is intentionally "boring": it wires together existing components.

    GroundTruthStore + TaxonomyCrosswalk   (loaded once by the caller, shared)
      -> tools.invoke (or pre-captured output)
      -> FindingNormalizer
      -> Matcher
      -> aggregate
      -> RunReport

Failure policy
--------------
A tool that times out or crashes does not abort the run. Whatever it wrote
before failing is normalized and scored, the report is marked
``incomplete`` and the ``timeouts``/``crashes`` counter is set. The caller
gets the error back next to the report so it can choose the exit status.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Mapping, Optional

from defect_bench.domain.results import UNCLASSIFIED, Diagnostics, RunReport
from defect_bench.errors import ConfigError, ToolInvocationError
from defect_bench.gt.store import GroundTruthStore
from defect_bench.scoring.aggregate import aggregate
from defect_bench.scoring.matcher import DEFAULT_COARSE_DISCOUNT, DEFAULT_LOCATION_TOLERANCE, Matcher
from defect_bench.taxonomy.crosswalk import TaxonomyCrosswalk, load_crosswalk

from pipeline.normalizer import FindingNormalizer, NormalizationResult
from tools.invoke import invoke_tool, probe_version
from tools.registry import get_tool

logger = logging.getLogger(__name__)

CROSSWALK_DEFAULT_NAMES = ("crosswalk.yaml", "crosswalk.yml", "crosswalk.json")


@dataclass(frozen=True)
class RunRequest:
    """Everything needed to evaluate one tool against one corpus."""

    tool: str
    tool_output: Optional[Path] = None
    command: Optional[str] = None
    tool_version: Optional[str] = None
    timeout_seconds: int = 600
    tolerance: int = DEFAULT_LOCATION_TOLERANCE
    coarse_discount: float = DEFAULT_COARSE_DISCOUNT
    timestamp: Optional[str] = None


@dataclass(frozen=True)
class RunOutcome:
    report: RunReport
    error: Optional[ToolInvocationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def resolve_timestamp(explicit: Optional[str] = None, *, environ: Optional[Mapping[str, str]] = None) -> str:
    """ISO-8601 UTC timestamp; ``SOURCE_DATE_EPOCH`` pins it for reproducible reports."""
    if explicit:
        return str(explicit)
    env = os.environ if environ is None else environ
    epoch = (env.get("SOURCE_DATE_EPOCH") or "").strip()
    if epoch:
        try:
            dt = datetime.fromtimestamp(int(epoch), tz=timezone.utc)
        except (ValueError, OverflowError, OSError) as e:
            raise ConfigError(f"SOURCE_DATE_EPOCH must be an integer epoch, got {epoch!r}") from e
    else:
        dt = datetime.now(timezone.utc)
    return dt.replace(microsecond=0).isoformat().replace("+00:00", "Z")


def resolve_crosswalk(corpus_root: Path, crosswalk_path: Optional[Path] = None) -> TaxonomyCrosswalk:
    """Explicit path, else ``crosswalk.yaml|yml|json`` at the corpus root."""
    if crosswalk_path is not None:
        return load_crosswalk(Path(crosswalk_path))
    for name in CROSSWALK_DEFAULT_NAMES:
        p = Path(corpus_root) / name
        if p.is_file():
            logger.info("Using crosswalk %s", p)
            return load_crosswalk(p)
    raise ConfigError(
        f"no crosswalk given and none of {', '.join(CROSSWALK_DEFAULT_NAMES)} exists under {corpus_root}"
    )


def _count_unknown_files(store: GroundTruthStore, normalized: NormalizationResult, diagnostics: Diagnostics) -> None:
    # Findings that name no corpus file can never match.
    known = set(store.files())
    checked: Dict[str, bool] = {}
    for f in normalized.findings:
        if not f.file or f.file in known:
            continue
        if f.file not in checked:
            checked[f.file] = (store.corpus_root / f.file).is_file()
        if not checked[f.file]:
            diagnostics.record_unknown_file(f.file)
    if diagnostics.unknown_files:
        logger.warning(
            "%d finding(s) reference files outside the corpus (e.g. %s); check tool path output",
            diagnostics.unknown_files,
            diagnostics.unknown_file_paths[0],
        )


def score(
    *,
    store: GroundTruthStore,
    crosswalk: TaxonomyCrosswalk,
    normalized: NormalizationResult,
    matcher: Matcher,
    timestamp: str,
) -> RunReport:
    """Match normalized findings against the corpus and build the report."""
    results = matcher.match(normalized.findings, store.all_findings())
    diagnostics = normalized.diagnostics
    diagnostics.unclassified_extras = sum(1 for r in results if r.kind == UNCLASSIFIED)
    _count_unknown_files(store, normalized, diagnostics)
    return RunReport(
        corpus_version=store.corpus_version,
        tool=normalized.tool,
        tool_version=normalized.tool_version,
        crosswalk_version=crosswalk.version,
        timestamp=timestamp,
        results=tuple(results),
        metrics=aggregate(results),
        diagnostics=diagnostics,
        matching=matcher.settings(),
    )


def _read_tool_output(path: Path) -> str:
    p = Path(path)
    if not p.is_file():
        raise ConfigError(f"tool output file not found: {p}")
    return p.read_text(encoding="utf-8", errors="replace")


def evaluate_tool(
    req: RunRequest,
    *,
    store: GroundTruthStore,
    crosswalk: TaxonomyCrosswalk,
    default_command: Optional[str] = None,
    default_version: Optional[str] = None,
) -> RunOutcome:
    """Run (or read) one tool's output and score it.

    ``default_command``/``default_version`` come from configuration and sit
    between the request and the registry in precedence.
    """
    info = get_tool(req.tool)
    matcher = Matcher(tolerance=req.tolerance, coarse_discount=req.coarse_discount)
    normalizer = FindingNormalizer(crosswalk, store.corpus_root)
    timestamp = resolve_timestamp(req.timestamp)
    version = req.tool_version or default_version

    error: Optional[ToolInvocationError] = None
    if req.tool_output is not None:
        raw_output = _read_tool_output(req.tool_output)
    else:
        template = req.command or default_command or info.command
        if not template:
            raise ConfigError(f"tool {info.key!r} has no default command; pass --command or --tool-output")
        if not version:
            version = probe_version(info)
        try:
            raw_output = invoke_tool(
                info,
                corpus_root=store.corpus_root,
                template=template,
                timeout_seconds=req.timeout_seconds,
            ).report
        except ToolInvocationError as e:
            logger.warning("%s (normalizing %d chars of partial output)", e, len(e.stdout or ""))
            error = e
            raw_output = e.stdout or ""

    normalized = normalizer.normalize(info.key, raw_output, tool_version=version)
    if error is not None:
        if error.timed_out:
            normalized.diagnostics.timeouts += 1
        else:
            normalized.diagnostics.crashes += 1

    report = score(
        store=store,
        crosswalk=crosswalk,
        normalized=normalized,
        matcher=matcher,
        timestamp=timestamp,
    )
    if error is not None:
        report = replace(report, incomplete=True)
    overall = report.metrics["overall"]
    logger.info(
        "%s: tp=%d fp=%d fn=%d precision=%s recall=%s",
        info.key,
        overall["tp"],
        overall["fp"],
        overall["fn"],
        overall["precision"],
        overall["recall"],
    )
    return RunOutcome(report=report, error=error)
