"""tools/semgrep/parse.py

Semgrep ``--json`` output -> RawFinding.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional

from defect_bench.domain.categories import Severity
from defect_bench.domain.finding import RawFinding
from defect_bench.errors import ParseError

from tools.common import preview, require_mapping, require_text, safe_int

SEVERITY_MAP: Dict[str, Severity] = {
    "critical": Severity.CRITICAL,
    "error": Severity.HIGH,
    "warning": Severity.MEDIUM,
    "info": Severity.LOW,
    "inventory": Severity.INFO,
    "experiment": Severity.INFO,
}


def _load(raw_output: str) -> Mapping[str, Any]:
    try:
        doc = json.loads(raw_output)
    except json.JSONDecodeError as e:
        raise ParseError(f"semgrep output is not valid JSON: {e}", record=preview(raw_output)) from e
    if not isinstance(doc, Mapping) or not isinstance(doc.get("results"), list):
        raise ParseError("semgrep output has no 'results' array", record=preview(raw_output))
    return doc


def split(raw_output: str) -> List[Any]:
    return list(_load(raw_output)["results"])


def detect_version(raw_output: str) -> Optional[str]:
    try:
        v = _load(raw_output).get("version")
    except ParseError:
        return None
    return str(v) if v else None


def parse_record(record: Any, *, tool: str, tool_version: str) -> RawFinding:
    res = require_mapping(record, "semgrep result")
    rule_id = require_text(res.get("check_id") or res.get("rule_id"), "check_id", record)
    path = require_text(res.get("path"), "path", record)

    start = res.get("start") or {}
    if not isinstance(start, Mapping):
        raise ParseError(f"result {rule_id} has a malformed 'start'", record=preview(record))

    extra = res.get("extra") or {}
    if not isinstance(extra, Mapping):
        extra = {}
    sev = extra.get("severity")
    if sev is None and isinstance(extra.get("metadata"), Mapping):
        sev = extra["metadata"].get("severity")

    return RawFinding(
        tool=tool,
        tool_version=tool_version,
        rule_id=rule_id,
        file=path,
        line=safe_int(start.get("line")),
        column=safe_int(start.get("col")),
        message=str(extra.get("message") or res.get("message") or ""),
        native_severity=str(sev) if sev is not None else None,
    )
