#!/usr/bin/env python3
"""
Command-line entrypoint for defect-bench.

Usage:
  python defect_bench_cli.py tools
  python defect_bench_cli.py validate-corpus path/to/corpus
  python defect_bench_cli.py run --corpus path/to/corpus --tool cppcheck --out reports/cppcheck.json
  python defect_bench_cli.py run --corpus path/to/corpus --tool semgrep --tool-output semgrep.json --out r.json
  python defect_bench_cli.py compare --baseline 2026101801120000 --candidate 2026101802130000 --fail-on-regression

Installed as the ``defect-bench`` console script.
"""

from __future__ import annotations

import sys

from cli.dispatch import main

if __name__ == "__main__":
    sys.exit(main())
