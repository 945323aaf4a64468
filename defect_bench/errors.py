"""defect_bench.errors

Exception types shared across the engine.

Recovery policy (who catches what) is part of the contract:

* CorpusError               fatal, raised before any tool runs
* ConfigError               fatal configuration or usage error
* CrosswalkError            fatal configuration error
* ParseError                caught per analyzer record by the normalizer
* CrosswalkGapWarning       a warning, never raised as an error
* ToolInvocationError       caught per tool run; the report is marked incomplete
* UnknownToolError          usage error
* RegressionBaselineNotFound fatal to a comparison only
"""

from __future__ import annotations

from typing import List, Optional, Sequence


class DefectBenchError(Exception):
    """Base class for all engine errors."""


class CorpusError(DefectBenchError):
    """Ground truth is malformed or contradictory.

    All problems found during a load are collected so one validation pass
    reports every defect in the annotations, not only the first.
    """

    def __init__(self, problems: Sequence[str]) -> None:
        self.problems: List[str] = [str(p) for p in problems]
        head = self.problems[:1]
        more = len(self.problems) - 1
        msg = head[0] if head else "corpus validation failed"
        if more > 0:
            msg += f" (and {more} more problem{'s' if more != 1 else ''})"
        super().__init__(msg)


class ConfigError(DefectBenchError):
    """A config file, environment value or command-line combination is invalid."""


class CrosswalkError(DefectBenchError):
    """The taxonomy crosswalk file or a row in it is invalid."""


class ParseError(DefectBenchError):
    """One analyzer output record could not be parsed."""

    def __init__(self, message: str, *, record: Optional[str] = None) -> None:
        self.record = record
        super().__init__(message)


class CrosswalkGapWarning(UserWarning):
    """A tool rule id has no crosswalk entry; its category resolves to unknown."""


class ToolInvocationError(DefectBenchError):
    """An analyzer process crashed, could not start, or exceeded its timeout."""

    def __init__(
        self,
        message: str,
        *,
        tool: str,
        timed_out: bool = False,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        self.tool = tool
        self.timed_out = timed_out
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(message)


class UnknownToolError(DefectBenchError):
    """A tool name has no registered parser."""


class RegressionBaselineNotFound(DefectBenchError):
    """A run id passed to the regression tracker does not exist."""

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        super().__init__(f"no stored run with id {run_id!r}")


class RunStoreFullError(DefectBenchError):
    """No run id is left for the current UTC day (sequence field exhausted)."""


class CorruptRunError(DefectBenchError):
    """A stored run report exists but cannot be decoded."""
