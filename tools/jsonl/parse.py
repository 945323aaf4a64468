"""tools/jsonl/parse.py

Generic JSON Lines format, one finding per line::

    {"ruleId": "X1", "file": "src/a.c", "line": 12, "message": "...", "severity": "high"}

Useful for wrapping analyzers that have no structured output of their own.
Each line is decoded separately, so one bad line costs one record.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional

from defect_bench.domain.categories import Severity
from defect_bench.domain.finding import RawFinding
from defect_bench.errors import ParseError

from tools.common import preview, require_mapping, require_text, safe_int

SEVERITY_MAP: Dict[str, Severity] = {}


def split(raw_output: str) -> List[Any]:
    return [line for line in raw_output.splitlines() if line.strip()]


def detect_version(raw_output: str) -> Optional[str]:
    return None


def _get(d: Mapping[str, Any], *keys: str) -> Any:
    for k in keys:
        if d.get(k) is not None:
            return d[k]
    return None


def parse_record(record: Any, *, tool: str, tool_version: str) -> RawFinding:
    if isinstance(record, str):
        try:
            obj = json.loads(record)
        except json.JSONDecodeError as e:
            raise ParseError(f"invalid JSON line: {e}", record=preview(record)) from e
    else:
        obj = record
    d = require_mapping(obj, "JSON line")

    sev = _get(d, "severity", "level")
    return RawFinding(
        tool=tool,
        tool_version=tool_version,
        rule_id=require_text(_get(d, "ruleId", "rule_id", "rule"), "ruleId", record),
        file=require_text(_get(d, "file", "path"), "file", record),
        line=safe_int(_get(d, "line", "startLine")),
        column=safe_int(_get(d, "column", "col")),
        message=str(_get(d, "message", "msg") or ""),
        native_severity=str(sev) if sev is not None else None,
    )
