from __future__ import annotations

import argparse


def add_compare_args(parser: argparse.ArgumentParser) -> None:
    """Register flags for ``defect-bench compare``. Both run ids are required."""

    parser.add_argument("--baseline", required=True, help="Baseline run id (YYYYMMDDNNHHMMSS).")
    parser.add_argument("--candidate", required=True, help="Candidate run id.")
    parser.add_argument("--store", default=None, help="Regression store root (default: .defect_bench).")
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Allowed recall drop per category before it counts as a regression (default: 0).",
    )
    parser.add_argument("--out", default=None, help="Write the comparison JSON here.")
    parser.add_argument(
        "--fail-on-regression",
        dest="fail_on_regression",
        action="store_true",
        help="Exit 4 when any category regressed.",
    )
    parser.add_argument("--config", default=None, help="YAML config file.")
