"""tools/sarif/parse.py

SARIF 2.1.0 -> RawFinding.

Only the fields matching needs are read: ``ruleId`` (or ``rule.id``), the
first physical location, and ``level``. SARIF lines and columns are 1-based.
A result without a region is kept; the normalizer marks it coarse.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional

from defect_bench.domain.categories import Severity
from defect_bench.domain.finding import RawFinding
from defect_bench.errors import ParseError

from tools.common import as_list, preview, require_mapping, require_text, safe_int

SEVERITY_MAP: Dict[str, Severity] = {
    "error": Severity.HIGH,
    "warning": Severity.MEDIUM,
    "note": Severity.LOW,
    "none": Severity.INFO,
}

# SARIF's default when a result omits ``level``.
DEFAULT_LEVEL = "warning"


def _load(raw_output: str) -> Mapping[str, Any]:
    try:
        doc = json.loads(raw_output)
    except json.JSONDecodeError as e:
        raise ParseError(f"SARIF output is not valid JSON: {e}", record=preview(raw_output)) from e
    if not isinstance(doc, Mapping) or not isinstance(doc.get("runs"), list):
        raise ParseError("SARIF output has no 'runs' array", record=preview(raw_output))
    return doc


def split(raw_output: str) -> List[Any]:
    doc = _load(raw_output)
    records: List[Any] = []
    for run in doc["runs"]:
        if not isinstance(run, Mapping):
            # Kept so the normalizer counts it as one failed record.
            records.append(run)
            continue
        records.extend(as_list(run.get("results")))
    return records


def detect_version(raw_output: str) -> Optional[str]:
    try:
        doc = _load(raw_output)
    except ParseError:
        return None
    for run in doc["runs"]:
        driver = ((run or {}).get("tool") or {}).get("driver") if isinstance(run, Mapping) else None
        if isinstance(driver, Mapping):
            v = driver.get("semanticVersion") or driver.get("version")
            if v:
                return str(v)
    return None


def _first_physical_location(result: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
    for loc in as_list(result.get("locations")):
        if isinstance(loc, Mapping) and isinstance(loc.get("physicalLocation"), Mapping):
            return loc["physicalLocation"]
    return None


def parse_record(record: Any, *, tool: str, tool_version: str) -> RawFinding:
    result = require_mapping(record, "SARIF result")

    rule_id = result.get("ruleId")
    if not rule_id and isinstance(result.get("rule"), Mapping):
        rule_id = result["rule"].get("id")
    rule_id = require_text(rule_id, "ruleId", record)

    phys = _first_physical_location(result)
    if phys is None:
        raise ParseError(f"result {rule_id} has no physical location", record=preview(record))
    artifact = phys.get("artifactLocation") or {}
    uri = require_text(artifact.get("uri") if isinstance(artifact, Mapping) else None, "artifactLocation.uri", record)

    region = phys.get("region") or {}
    line = safe_int(region.get("startLine")) if isinstance(region, Mapping) else None
    column = safe_int(region.get("startColumn")) if isinstance(region, Mapping) else None

    message = result.get("message") or {}
    text = message.get("text") if isinstance(message, Mapping) else message

    return RawFinding(
        tool=tool,
        tool_version=tool_version,
        rule_id=rule_id,
        file=uri,
        line=line,
        column=column,
        message=str(text or ""),
        native_severity=str(result.get("level") or DEFAULT_LEVEL),
    )
