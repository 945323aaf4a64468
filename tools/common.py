"""tools/common.py

Small helpers shared by the per-format parsers.

Parsers only translate a tool's vocabulary into :class:`RawFinding` records.
Path canonicalization, line bases, severities and categories are applied later
by the normalizer, so nothing here touches the corpus or the crosswalk.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

from defect_bench.domain.categories import Severity, parse_severity
from defect_bench.errors import ParseError

# Upper bound on how much of an offending record is kept in a ParseError.
RECORD_PREVIEW_CHARS = 200


def as_list(v: Any) -> List[Any]:
    if v is None:
        return []
    if isinstance(v, list):
        return v
    return [v]


def safe_int(v: Any) -> Optional[int]:
    if v is None or isinstance(v, bool):
        return None
    try:
        return int(str(v).strip())
    except (TypeError, ValueError):
        return None


def preview(record: Any) -> str:
    s = record if isinstance(record, str) else repr(record)
    s = s.strip()
    if len(s) > RECORD_PREVIEW_CHARS:
        s = s[:RECORD_PREVIEW_CHARS] + "..."
    return s


def require_mapping(record: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(record, Mapping):
        raise ParseError(f"{what} is not an object", record=preview(record))
    return record


def require_text(value: Any, what: str, record: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        raise ParseError(f"missing {what}", record=preview(record))
    s = str(value).strip()
    if not s:
        raise ParseError(f"empty {what}", record=preview(record))
    return s


def map_native_severity(table: Mapping[str, Severity], native: Optional[str]) -> Severity:
    """Map a tool's severity word onto the 5-point scale.

    The per-format table wins; otherwise a canonical label is accepted as-is.
    Anything else is ``medium``.
    """
    if native is None:
        return Severity.MEDIUM
    s = str(native).strip().lower()
    if s in table:
        return table[s]
    return parse_severity(s) or Severity.MEDIUM
