"""defect_bench.io

Filesystem contracts and IO helpers.

Design principle
----------------
Report files and the run store layout are a public contract. Writers,
readers and path normalization live here so they evolve in one place.
"""

from __future__ import annotations

from .fs import dumps_json, read_json, read_structured, write_json_atomic, write_text_atomic
from .paths import normalize_file_path
from .run_dir import RUN_ID_RE, create_run_dir

__all__ = [
    "RUN_ID_RE",
    "create_run_dir",
    "dumps_json",
    "normalize_file_path",
    "read_json",
    "read_structured",
    "write_json_atomic",
    "write_text_atomic",
]
