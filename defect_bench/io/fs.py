"""defect_bench.io.fs

Atomic, stable filesystem writers and structured-file readers.

Why this module exists
----------------------
Run reports are compared byte-for-byte across runs, and the regression
tracker reads them back as input. If every writer picked its own indentation,
key ordering or newline convention, identical runs would produce noisy diffs;
if a process died mid-write, a truncated report would poison every later
comparison. Everything that writes JSON goes through here.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

import yaml


def _atomic_write_text(
    path: Path,
    write_fn,
    *,
    encoding: str = "utf-8",
    newline: Optional[str] = None,
) -> None:
    """Write a file atomically by writing to a temp file and os.replace()."""

    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f"{p.name}.", suffix=".tmp", dir=str(p.parent))
    tmp_path = Path(tmp_name)

    try:
        with os.fdopen(fd, "w", encoding=encoding, newline=newline) as f:
            write_fn(f)
            f.flush()
            os.fsync(f.fileno())

        os.replace(tmp_path, p)
    finally:
        # If os.replace fails, best-effort cleanup of the temp file.
        try:
            if tmp_path.exists():
                tmp_path.unlink()
        except OSError:
            pass


def write_text_atomic(path: Path, text: str, *, encoding: str = "utf-8") -> None:
    """Write UTF-8 text atomically."""

    def _write(f) -> None:
        f.write(text)

    _atomic_write_text(Path(path), _write, encoding=encoding)


def dumps_json(data: Any, *, indent: int = 2) -> str:
    """Stable JSON text: sorted keys, fixed indent, trailing newline."""
    return json.dumps(data, indent=indent, sort_keys=True, ensure_ascii=False) + "\n"


def write_json_atomic(path: Path, data: Any, *, indent: int = 2, encoding: str = "utf-8") -> None:
    """Write JSON atomically with stable formatting."""
    write_text_atomic(path, dumps_json(data, indent=indent), encoding=encoding)


def read_json(path: Path, *, encoding: str = "utf-8") -> Any:
    with Path(path).open("r", encoding=encoding) as f:
        return json.load(f)


def read_structured(path: Path) -> Any:
    """Read a YAML or JSON document, chosen by file suffix.

    Raises ``ValueError`` for undecodable content so callers can wrap it in
    their own domain error.
    """
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() == ".json":
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"invalid JSON in {p}: {e}") from e
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValueError(f"invalid YAML in {p}: {e}") from e
