"""tools/cppcheck/parse.py

cppcheck ``--xml --xml-version=2`` output -> RawFinding.

Shape::

    <results version="2">
      <cppcheck version="2.13.0"/>
      <errors>
        <error id="arrayIndexOutOfBounds" severity="error" msg="..." cwe="788">
          <location file="src/a.c" line="12" column="5"/>
        </error>
      </errors>
    </results>

cppcheck reports ``line="0"`` (or no ``<location>`` at all) for file-level
diagnostics; those come through with ``line=None`` and are matched as coarse.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional

from defect_bench.domain.categories import Severity
from defect_bench.domain.finding import RawFinding
from defect_bench.errors import ParseError

from tools.common import preview, safe_int

SEVERITY_MAP: Dict[str, Severity] = {
    "error": Severity.HIGH,
    "warning": Severity.MEDIUM,
    "style": Severity.LOW,
    "performance": Severity.LOW,
    "portability": Severity.LOW,
    "information": Severity.INFO,
    "debug": Severity.INFO,
}

# Run bookkeeping rather than findings about the code.
NOISE_IDS = frozenset({"checkersReport", "missingInclude", "missingIncludeSystem", "toomanyconfigs"})


def _load(raw_output: str) -> ET.Element:
    try:
        return ET.fromstring(raw_output)
    except ET.ParseError as e:
        raise ParseError(f"cppcheck output is not valid XML: {e}", record=preview(raw_output)) from e


def split(raw_output: str) -> List[Any]:
    root = _load(raw_output)
    errors = root.find("errors")
    if errors is None:
        raise ParseError("cppcheck output has no <errors> element", record=preview(raw_output))
    return [e for e in errors if e.get("id") not in NOISE_IDS]


def detect_version(raw_output: str) -> Optional[str]:
    try:
        node = _load(raw_output).find("cppcheck")
    except ParseError:
        return None
    if node is None:
        return None
    return node.get("version") or None


def parse_record(record: Any, *, tool: str, tool_version: str) -> RawFinding:
    if not isinstance(record, ET.Element) or record.tag != "error":
        raise ParseError("cppcheck record is not an <error> element", record=preview(record))
    rule_id = (record.get("id") or "").strip()
    if not rule_id:
        raise ParseError("cppcheck <error> has no id", record=preview(ET.tostring(record, encoding="unicode")))

    loc = record.find("location")
    file = ""
    line: Optional[int] = None
    column: Optional[int] = None
    if loc is not None:
        file = (loc.get("file") or "").strip()
        line = safe_int(loc.get("line"))
        column = safe_int(loc.get("column"))
        if line is not None and line <= 0:
            line = None
        if column is not None and column <= 0:
            column = None

    return RawFinding(
        tool=tool,
        tool_version=tool_version,
        rule_id=rule_id,
        file=file,
        line=line,
        column=column,
        message=record.get("verbose") or record.get("msg") or "",
        native_severity=record.get("severity"),
    )
