"""tools/registry.py

Central registry of supported analyzers and output formats.

Why this exists
---------------
Several parts of the system need to agree on the *same* tool facts:
- which tools are supported (validation, ``defect-bench tools``)
- which parser reads a tool's output (normalization)
- which crosswalk ``standard`` a tool's rule ids live in (category lookup)
- how to invoke the tool and probe its version (``run`` without
  ``--tool-output``)
- whether the tool counts lines from 0 or 1

Parsers are selected by explicit lookup of the tool name here. Output shape is
never sniffed: a SARIF blob handed to the cppcheck parser is a parse failure,
not a silent format switch.

What belongs here
-----------------
Static data and pure lookups only. No subprocess execution, no filesystem
access; invoking a tool is :mod:`tools.invoke`'s job.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from defect_bench.domain.categories import Severity
from defect_bench.domain.finding import RawFinding
from defect_bench.errors import UnknownToolError

from tools import cppcheck, gcc, jsonl, sarif, semgrep

SplitFn = Callable[[str], List[Any]]
ParseRecordFn = Callable[..., RawFinding]
DetectVersionFn = Callable[[str], Optional[str]]


@dataclass(frozen=True)
class ParserSpec:
    """How to read one output format: cut the blob into records, then parse each."""

    format: str
    split: SplitFn
    parse_record: ParseRecordFn
    severity_map: Mapping[str, Severity]
    detect_version: DetectVersionFn


PARSERS: Dict[str, ParserSpec] = {
    mod.__name__.rsplit(".", 1)[-1]: ParserSpec(
        format=mod.__name__.rsplit(".", 1)[-1],
        split=mod.split,
        parse_record=mod.parse_record,
        severity_map=mod.SEVERITY_MAP,
        detect_version=mod.detect_version,
    )
    for mod in (sarif, semgrep, cppcheck, gcc, jsonl)
}


@dataclass(frozen=True)
class ToolInfo:
    """Static metadata describing one analyzer integration."""

    key: str
    label: str
    parser_format: str

    # Crosswalk ``standard`` the tool's rule ids are resolved in.
    rule_namespace: str

    # Command template with ``{corpus}`` and optionally ``{output}``/``{sources}``.
    # None means the tool must be given --command or --tool-output.
    command: Optional[str] = None
    version_command: Optional[str] = None

    # Which stream carries the report when the template has no ``{output}``.
    output_stream: str = "stdout"

    line_base: int = 1

    @property
    def parser(self) -> ParserSpec:
        return PARSERS[self.parser_format]


SUPPORTED_TOOLS: Dict[str, ToolInfo] = {
    "semgrep": ToolInfo(
        key="semgrep",
        label="Semgrep",
        parser_format="semgrep",
        rule_namespace="semgrep",
        command="semgrep scan --config auto --json --quiet --metrics off --output {output} {corpus}",
        version_command="semgrep --version",
    ),
    "cppcheck": ToolInfo(
        key="cppcheck",
        label="Cppcheck",
        parser_format="cppcheck",
        rule_namespace="cppcheck",
        command="cppcheck --enable=all --inconclusive --xml --xml-version=2 --output-file={output} {corpus}",
        version_command="cppcheck --version",
    ),
    "gcc": ToolInfo(
        key="gcc",
        label="GCC warnings",
        parser_format="gcc",
        rule_namespace="gcc",
        command="gcc -fsyntax-only -Wall -Wextra -Wformat=2 -Wconversion -Wsign-compare -fdiagnostics-plain-output {sources}",
        version_command="gcc -dumpfullversion",
        output_stream="stderr",
    ),
    "clang": ToolInfo(
        key="clang",
        label="Clang warnings",
        parser_format="gcc",
        rule_namespace="clang",
        command="clang -fsyntax-only -Weverything -fno-caret-diagnostics {sources}",
        version_command="clang --version",
        output_stream="stderr",
    ),
    "clang-tidy": ToolInfo(
        key="clang-tidy",
        label="clang-tidy",
        parser_format="gcc",
        rule_namespace="clang-tidy",
        command="clang-tidy --quiet --checks=-*,bugprone-*,cert-*,clang-analyzer-*,cppcoreguidelines-* {sources} --",
        version_command="clang-tidy --version",
    ),
    "codeql": ToolInfo(
        key="codeql",
        label="CodeQL (SARIF)",
        parser_format="sarif",
        rule_namespace="codeql",
        version_command="codeql version --format=terse",
    ),
    "sarif": ToolInfo(
        key="sarif",
        label="Any SARIF 2.1.0 producer",
        parser_format="sarif",
        rule_namespace="sarif",
    ),
    "jsonl": ToolInfo(
        key="jsonl",
        label="Generic JSON Lines",
        parser_format="jsonl",
        rule_namespace="generic",
    ),
}


def _validate_registry() -> None:
    for key, info in SUPPORTED_TOOLS.items():
        if key != info.key:
            raise RuntimeError(f"tool registry key mismatch: {key!r} != {info.key!r}")
        if info.parser_format not in PARSERS:
            raise RuntimeError(f"tool {key!r} uses unknown parser format {info.parser_format!r}")
        if info.line_base not in (0, 1):
            raise RuntimeError(f"tool {key!r} has invalid line_base {info.line_base!r}")
        if info.output_stream not in ("stdout", "stderr"):
            raise RuntimeError(f"tool {key!r} has invalid output_stream {info.output_stream!r}")


_validate_registry()


def tool_keys() -> Tuple[str, ...]:
    return tuple(sorted(SUPPORTED_TOOLS))


def get_tool(name: str) -> ToolInfo:
    key = str(name or "").strip().lower()
    info = SUPPORTED_TOOLS.get(key)
    if info is None:
        raise UnknownToolError(f"unknown tool {name!r}; registered tools: {', '.join(tool_keys())}")
    return info


def describe_tools() -> List[Dict[str, Any]]:
    """Rows for ``defect-bench tools``."""
    return [
        {
            "key": info.key,
            "label": info.label,
            "format": info.parser_format,
            "rule_namespace": info.rule_namespace,
            "line_base": info.line_base,
            "command": info.command,
        }
        for info in (SUPPORTED_TOOLS[k] for k in tool_keys())
    ]
