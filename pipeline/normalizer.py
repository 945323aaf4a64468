"""pipeline.normalizer

Raw analyzer output -> canonical findings.

Two-step contract
-----------------
1) The tool registry picks the parser by tool name. The parser cuts the blob
   into records (``split``) and turns each record into a RawFinding
   (``parse_record``).
2) This module canonicalizes every RawFinding: corpus-relative path,
   1-indexed line, 5-point severity, crosswalk categories.

Recovery
--------
A malformed record costs that record only: its ParseError is caught here,
counted, and its message kept. A blob whose container cannot be decoded at
all counts one failure and yields nothing. Normalization itself never raises
for bad tool output; an unknown tool name is the only error that escapes.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

from defect_bench.domain.finding import CanonicalFinding, RawFinding, order_resolutions
from defect_bench.domain.results import Diagnostics
from defect_bench.errors import CrosswalkGapWarning, ParseError
from defect_bench.io.paths import normalize_file_path
from defect_bench.taxonomy.crosswalk import TaxonomyCrosswalk, gap_label

from tools.common import map_native_severity
from tools.registry import ToolInfo, get_tool

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizationResult:
    tool: str
    tool_version: str
    findings: Tuple[CanonicalFinding, ...]
    diagnostics: Diagnostics = field(default_factory=Diagnostics)


def absolute_line(line: Optional[int], line_base: int) -> Optional[int]:
    """Tool line -> 1-indexed line, or None when no usable line exists."""
    if line is None:
        return None
    out = line - line_base + 1
    return out if out >= 1 else None


class FindingNormalizer:
    def __init__(self, crosswalk: TaxonomyCrosswalk, corpus_root: Optional[Union[str, Path]] = None) -> None:
        self.crosswalk = crosswalk
        self.corpus_root = corpus_root

    def canonicalize(self, raw: RawFinding, *, index: int, info: ToolInfo, diagnostics: Diagnostics) -> CanonicalFinding:
        line = absolute_line(raw.line, info.line_base)
        coarse = line is None
        if coarse:
            diagnostics.coarse_locations += 1

        covered = self.crosswalk.covers(info.rule_namespace, raw.rule_id)
        if not covered:
            diagnostics.record_gap(gap_label(info.rule_namespace, raw.rule_id))
        with warnings.catch_warnings():
            # Counted in diagnostics; resolve() already logs each gap.
            warnings.simplefilter("ignore", CrosswalkGapWarning)
            resolutions = self.crosswalk.resolve(info.rule_namespace, raw.rule_id)

        return CanonicalFinding(
            raw=raw,
            index=index,
            file=normalize_file_path(raw.file, corpus_root=self.corpus_root),
            line=line,
            severity=map_native_severity(info.parser.severity_map, raw.native_severity),
            categories=order_resolutions(resolutions),
            coarse_location=coarse,
        )

    def normalize(self, tool: str, raw_output: str, *, tool_version: Optional[str] = None) -> NormalizationResult:
        info = get_tool(tool)
        parser = info.parser
        diagnostics = Diagnostics()

        version = tool_version or parser.detect_version(raw_output or "") or "unknown"

        if not (raw_output or "").strip():
            logger.info("%s produced no output", info.key)
            return NormalizationResult(tool=info.key, tool_version=version, findings=(), diagnostics=diagnostics)

        try:
            records = parser.split(raw_output)
        except ParseError as e:
            logger.warning("%s output could not be decoded: %s", info.key, e)
            diagnostics.record_parse_failure(f"{info.key}: {e}")
            return NormalizationResult(tool=info.key, tool_version=version, findings=(), diagnostics=diagnostics)

        findings: List[CanonicalFinding] = []
        for i, record in enumerate(records):
            try:
                raw = parser.parse_record(record, tool=info.key, tool_version=version)
            except ParseError as e:
                logger.warning("%s record %d skipped: %s", info.key, i, e)
                msg = f"{info.key} record {i}: {e}"
                if e.record:
                    msg += f" [{e.record}]"
                diagnostics.record_parse_failure(msg)
                continue
            findings.append(self.canonicalize(raw, index=len(findings), info=info, diagnostics=diagnostics))

        if diagnostics.coverage_gaps:
            logger.warning(
                "%s: %d finding(s) hit %d unmapped rule(s): %s",
                info.key,
                diagnostics.coverage_gaps,
                len(diagnostics.gap_rules),
                ", ".join(diagnostics.gap_rules),
            )
        logger.info(
            "Normalized %d %s finding(s) (%d parse failures, %d coarse)",
            len(findings),
            info.key,
            diagnostics.parse_failures,
            diagnostics.coarse_locations,
        )
        return NormalizationResult(
            tool=info.key,
            tool_version=version,
            findings=tuple(findings),
            diagnostics=diagnostics,
        )
