from __future__ import annotations

"""cli.common

Small shared helpers for CLI command modules.

The CLI is split by subcommand (run/compare/validate-corpus/tools). Some
small helpers are useful across several of them; keeping them here avoids
subtle drift when two files copy/paste the same logic.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_CORPUS = 2
EXIT_TOOL_FAILED = 3
EXIT_REGRESSION = 4

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(verbosity: int = 0, log_file: Optional[str] = None) -> None:
    """WARNING by default, INFO with -v, DEBUG with -vv."""
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handlers = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


def parse_csv(raw: Optional[str]) -> list[str]:
    """Parse a comma-separated list value into a list of non-empty strings."""
    if not raw:
        return []
    return [x.strip() for x in raw.split(",") if x.strip()]


def optional_path(raw: Optional[str]) -> Optional[Path]:
    return Path(raw) if raw else None


def format_metric(v: Any) -> str:
    if v is None:
        return "n/a"
    if isinstance(v, float):
        return f"{v:.4f}"
    return str(v)


def overall_line(tool: str, metrics: Dict[str, Any]) -> str:
    o = metrics.get("overall") or {}
    return (
        f"{tool}: tp={o.get('tp', 0)} fp={o.get('fp', 0)} fn={o.get('fn', 0)} "
        f"unclassified={o.get('unclassified', 0)} "
        f"precision={format_metric(o.get('precision'))} "
        f"recall={format_metric(o.get('recall'))} "
        f"f1={format_metric(o.get('f1'))}"
    )
