"""tools/gcc/parse.py

Compiler-style text diagnostics -> RawFinding.

Covers gcc ``-W...`` warnings, clang and clang-tidy, which all print::

    path:line[:col]: warning|error: message [rule]

Records are single lines. ``split`` drops the lines every compiler prints
around a diagnostic (include chains, "In function" headers, source echo and
caret lines, notes, summary counters). Any other line reaches
``parse_record``; if it is not a diagnostic it fails there and is counted.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from defect_bench.domain.categories import Severity
from defect_bench.domain.finding import RawFinding
from defect_bench.errors import ParseError

from tools.common import preview, safe_int

SEVERITY_MAP: Dict[str, Severity] = {
    "fatal error": Severity.HIGH,
    "error": Severity.HIGH,
    "warning": Severity.MEDIUM,
    "remark": Severity.LOW,
}

_DIAG_RE = re.compile(
    r"^(?P<file>(?:[A-Za-z]:)?[^:\n]+?):(?P<line>\d+):(?:(?P<col>\d+):)?\s*"
    r"(?P<level>fatal error|error|warning|remark):\s*(?P<msg>.*?)"
    r"(?:\s+\[(?P<rule>[^\[\]]+)\])?\s*$"
)

# ``path: warning: message`` with no line (file-level diagnostic).
_FILE_DIAG_RE = re.compile(
    r"^(?P<file>(?:[A-Za-z]:)?[^:\n]+?):\s*(?P<level>fatal error|error|warning):\s*(?P<msg>.*?)"
    r"(?:\s+\[(?P<rule>[^\[\]]+)\])?\s*$"
)

_NOISE_RES = (
    re.compile(r"^\s"),
    re.compile(r"^In file included from "),
    re.compile(r"^[^:\n]+: (In|At) (function|member function|static member function|constructor|destructor|instantiation|top level|global scope)\b"),
    re.compile(r"^[^:\n]+:\d+(:\d+)?:\s+(required|in) (from|expansion)\b"),
    re.compile(r"^[^:\n]+:\d+(:\d+)?:\s*note:"),
    re.compile(r"^\d+ (warning|error)s?( and \d+ (warning|error)s?)? generated\.?$"),
    re.compile(r"^compilation terminated\.?$"),
    re.compile(r"^Suppressed \d+ warnings?"),
    re.compile(r"^Use -header-filter="),
    re.compile(r"^Error while processing "),
    re.compile(r"^Running without flags provided"),
    re.compile(r"^Found compiler errors?"),
    re.compile(r"^[~^ ]+$"),
    # gcc driver messages name the program, not a source file.
    re.compile(r"^(cc1|cc1plus|gcc|g\+\+|clang|clang\+\+|clang-tidy|ld|collect2):"),
)

_WERROR_RE = re.compile(r"^-Werror=")


def _is_noise(line: str) -> bool:
    return any(r.match(line) for r in _NOISE_RES)


def split(raw_output: str) -> List[Any]:
    out: List[Any] = []
    for line in raw_output.splitlines():
        if not line.strip() or _is_noise(line):
            continue
        out.append(line.rstrip())
    return out


def detect_version(raw_output: str) -> Optional[str]:
    return None


def _rule_id(rule: Optional[str], level: str) -> str:
    if not rule:
        # Hard compiler errors carry no flag; the level is the best rule id.
        return level.replace(" ", "-")
    # clang-tidy lists every check that fired: "bugprone-x,cert-y".
    first = rule.split(",")[0].strip()
    return _WERROR_RE.sub("-W", first)


def parse_record(record: Any, *, tool: str, tool_version: str) -> RawFinding:
    if not isinstance(record, str):
        raise ParseError("compiler diagnostic record is not a text line", record=preview(record))
    m = _DIAG_RE.match(record)
    line: Optional[int] = None
    column: Optional[int] = None
    if m is not None:
        line = safe_int(m.group("line"))
        column = safe_int(m.group("col"))
    else:
        m = _FILE_DIAG_RE.match(record)
        if m is None:
            raise ParseError("line is not a compiler diagnostic", record=preview(record))

    level = m.group("level")
    return RawFinding(
        tool=tool,
        tool_version=tool_version,
        rule_id=_rule_id(m.group("rule"), level),
        file=m.group("file").strip(),
        line=line,
        column=column,
        message=m.group("msg").strip(),
        native_severity=level,
    )
