from __future__ import annotations

import argparse


def add_validate_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("corpus", help="Corpus root to validate.")
    parser.add_argument(
        "--crosswalk",
        default=None,
        help="Also report ground-truth rule references the crosswalk does not map to their category.",
    )
