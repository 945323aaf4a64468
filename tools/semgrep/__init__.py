"""tools/semgrep

Parser for semgrep analyzer output (see ``parse.py``).
"""

from __future__ import annotations

from .parse import SEVERITY_MAP, detect_version, parse_record, split

__all__ = ["SEVERITY_MAP", "detect_version", "parse_record", "split"]
