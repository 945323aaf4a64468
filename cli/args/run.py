from __future__ import annotations

import argparse
from typing import Sequence


def add_run_args(parser: argparse.ArgumentParser, *, tool_keys: Sequence[str]) -> None:
    """Register flags for ``defect-bench run``.

    Matching/timeout/store flags default to None so the config layer can tell
    "not given" apart from an explicit value (CLI > env > file > defaults).
    """

    parser.add_argument("--corpus", required=True, help="Corpus root containing *.gt.yaml annotations.")
    parser.add_argument(
        "--tool",
        required=True,
        help=f"Tool name, or comma-separated names. Registered: {', '.join(tool_keys)}",
    )
    parser.add_argument(
        "--out",
        required=True,
        help="Report file (one tool) or directory receiving <tool>.json (several tools).",
    )
    parser.add_argument(
        "--crosswalk",
        default=None,
        help="Crosswalk YAML/JSON (default: crosswalk.yaml|yml|json at the corpus root).",
    )
    parser.add_argument(
        "--tool-output",
        dest="tool_output",
        default=None,
        help="Score pre-captured tool output instead of invoking the tool (one tool only).",
    )
    parser.add_argument(
        "--command",
        dest="command_template",
        default=None,
        help="Command template overriding the registry/config (placeholders: {corpus} {output} {sources}).",
    )
    parser.add_argument(
        "--tool-version",
        dest="tool_version",
        default=None,
        help="Tool version recorded in the report (default: config, version probe, or detected from output).",
    )
    parser.add_argument("--timeout", type=int, default=None, help="Per-tool timeout in seconds.")
    parser.add_argument(
        "--tolerance",
        type=int,
        default=None,
        help="Line tolerance around a ground-truth midpoint (default: 3).",
    )
    parser.add_argument(
        "--coarse-discount",
        dest="coarse_discount",
        type=float,
        default=None,
        help="Proximity used for findings without a line, in (0, 1] (default: 0.5).",
    )
    parser.add_argument("--store", default=None, help="Regression store root (default: .defect_bench).")
    parser.add_argument(
        "--no-store",
        dest="no_store",
        action="store_true",
        help="Do not persist the report in the regression store.",
    )
    parser.add_argument(
        "--timestamp",
        default=None,
        help="Pin the report timestamp (otherwise SOURCE_DATE_EPOCH, otherwise now).",
    )
    parser.add_argument("--config", default=None, help="YAML config file.")
