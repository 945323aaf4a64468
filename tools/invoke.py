"""tools/invoke.py

Run an analyzer process and capture what it reported.

This module is intentionally "boring":
- command templates are split with :mod:`shlex`; never ``shell=True``
- any exit code is accepted (analyzers exit non-zero when they find things)
- stdout and stderr are always captured
- a timeout, a process that cannot start, or a process killed by a signal
  raises :class:`~defect_bench.errors.ToolInvocationError` carrying whatever
  output was produced before the failure

Template placeholders
---------------------
``{corpus}``   the corpus root
``{output}``   a temp file the tool writes its report to; when present, that
               file is the report instead of the process stream
``{sources}``  expands to one argument per C/C++ source file under the corpus
               (compilers need files, not directories)
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from defect_bench.errors import ConfigError, ToolInvocationError

from tools.registry import ToolInfo

logger = logging.getLogger(__name__)

SOURCE_SUFFIXES = frozenset({".c", ".cc", ".cpp", ".cxx", ".c++"})

PLACEHOLDERS = ("{corpus}", "{output}", "{sources}")


@dataclass(frozen=True)
class CmdResult:
    exit_code: int
    elapsed_seconds: float
    command_str: str
    stdout: str
    stderr: str


@dataclass(frozen=True)
class Invocation:
    """What a tool run produced. ``report`` is the text handed to the parser."""

    tool: str
    report: str
    result: CmdResult


def _text(v: Optional[object]) -> str:
    if v is None:
        return ""
    if isinstance(v, bytes):
        return v.decode("utf-8", errors="replace")
    return str(v)


def run_cmd(
    cmd: Sequence[str],
    *,
    tool: str,
    cwd: Optional[Path] = None,
    timeout_seconds: int = 0,
) -> CmdResult:
    """Run a subprocess and capture stdout/stderr. Does NOT use shell=True.

    Never raises on non-zero exit codes. Raises ToolInvocationError when the
    process cannot start, is killed by a signal, or times out.
    """
    command_str = shlex.join(list(cmd))
    logger.info("Running %s: %s", tool, command_str)
    t0 = time.time()
    try:
        proc = subprocess.run(
            list(cmd),
            cwd=str(cwd) if cwd else None,
            text=True,
            errors="replace",
            capture_output=True,
            timeout=timeout_seconds if timeout_seconds and timeout_seconds > 0 else None,
        )
    except subprocess.TimeoutExpired as e:
        raise ToolInvocationError(
            f"{tool} timed out after {timeout_seconds}s",
            tool=tool,
            timed_out=True,
            stdout=_text(e.stdout),
            stderr=_text(e.stderr),
        ) from e
    except OSError as e:
        raise ToolInvocationError(f"{tool} could not be started: {e}", tool=tool) from e

    elapsed = time.time() - t0
    stdout = proc.stdout or ""
    stderr = proc.stderr or ""
    if proc.returncode < 0:
        raise ToolInvocationError(
            f"{tool} was killed by signal {-proc.returncode}",
            tool=tool,
            stdout=stdout,
            stderr=stderr,
        )
    logger.debug("%s exited %d after %.2fs", tool, proc.returncode, elapsed)
    return CmdResult(
        exit_code=proc.returncode,
        elapsed_seconds=elapsed,
        command_str=command_str,
        stdout=stdout,
        stderr=stderr,
    )


def find_sources(corpus_root: Path) -> List[str]:
    root = Path(corpus_root)
    return sorted(str(p) for p in root.rglob("*") if p.is_file() and p.suffix.lower() in SOURCE_SUFFIXES)


def build_command(template: str, *, corpus_root: Path, output_path: Optional[Path] = None) -> List[str]:
    """Split a template with shlex and substitute placeholders per argument."""
    try:
        parts = shlex.split(template)
    except ValueError as e:
        raise ConfigError(f"invalid command template {template!r}: {e}") from e
    if not parts:
        raise ConfigError("empty command template")

    cmd: List[str] = []
    for part in parts:
        if part == "{sources}":
            cmd.extend(find_sources(corpus_root))
            continue
        s = part.replace("{corpus}", str(corpus_root))
        if "{output}" in s:
            if output_path is None:
                raise ConfigError("template uses {output} but no output path was given")
            s = s.replace("{output}", str(output_path))
        cmd.append(s)
    return cmd


def uses_output_file(template: str) -> bool:
    return "{output}" in template


def _read_output_file(path: Path) -> str:
    if not path.is_file():
        return ""
    return path.read_text(encoding="utf-8", errors="replace")


def invoke_tool(
    info: ToolInfo,
    *,
    corpus_root: Path,
    template: str,
    timeout_seconds: int,
) -> Invocation:
    """Run one analyzer over the corpus and return its report text.

    On failure the raised ToolInvocationError's ``stdout`` holds the partial
    report (the output file's content when the template writes one), so the
    caller can still normalize what was produced.
    """
    root = Path(corpus_root)
    with tempfile.TemporaryDirectory(prefix=f"defect-bench-{info.key}-") as tmp:
        output_path = Path(tmp) / "report.out" if uses_output_file(template) else None
        cmd = build_command(template, corpus_root=root, output_path=output_path)
        try:
            res = run_cmd(cmd, tool=info.key, cwd=root, timeout_seconds=timeout_seconds)
        except ToolInvocationError as e:
            if output_path is not None:
                e.stdout = _read_output_file(output_path)
            elif info.output_stream == "stderr":
                e.stdout = e.stderr
            raise

        if output_path is not None:
            report = _read_output_file(output_path)
            if not report:
                logger.warning("%s exited %d without writing %s", info.key, res.exit_code, output_path.name)
        elif info.output_stream == "stderr":
            report = res.stderr
        else:
            report = res.stdout
    return Invocation(tool=info.key, report=report, result=res)


def probe_version(info: ToolInfo, *, timeout_seconds: int = 30) -> Optional[str]:
    """First non-empty output line of the tool's version command, if any."""
    if not info.version_command:
        return None
    try:
        res = run_cmd(shlex.split(info.version_command), tool=info.key, timeout_seconds=timeout_seconds)
    except ToolInvocationError as e:
        logger.warning("Could not probe %s version: %s", info.key, e)
        return None
    for line in (res.stdout or res.stderr).splitlines():
        if line.strip():
            return line.strip()
    return None


__all__ = [
    "CmdResult",
    "Invocation",
    "PLACEHOLDERS",
    "build_command",
    "find_sources",
    "invoke_tool",
    "probe_version",
    "run_cmd",
    "uses_output_file",
]
