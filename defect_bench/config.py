"""defect_bench.config

Resolved run configuration.

Precedence, highest first:

1) explicit overrides (CLI flags)
2) environment (``DEFECT_BENCH_*``; a ``.env`` file is folded in by the
   composition root before this module reads ``os.environ``)
3) the YAML config file
4) built-in defaults

This module only *resolves* values. It never reads ``.env`` itself and never
touches the tool registry; per-tool settings are kept as plain data so the
contracts package stays independent of ``tools/``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from defect_bench.errors import ConfigError
from defect_bench.io.fs import read_structured
from defect_bench.scoring.matcher import DEFAULT_COARSE_DISCOUNT, DEFAULT_LOCATION_TOLERANCE

ENV_PREFIX = "DEFECT_BENCH_"
DEFAULT_TIMEOUT_SECONDS = 600
DEFAULT_STORE = ".defect_bench"


@dataclass(frozen=True)
class ToolSettings:
    command: Optional[str] = None
    version: Optional[str] = None
    timeout_seconds: Optional[int] = None


@dataclass(frozen=True)
class BenchConfig:
    tolerance: int = DEFAULT_LOCATION_TOLERANCE
    coarse_discount: float = DEFAULT_COARSE_DISCOUNT
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    store: Path = Path(DEFAULT_STORE)
    regression_threshold: float = 0.0
    tools: Mapping[str, ToolSettings] = field(default_factory=dict)

    def tool(self, name: str) -> ToolSettings:
        return self.tools.get(name, ToolSettings())

    def tool_command(self, name: str) -> Optional[str]:
        return self.tool(name).command

    def tool_timeout(self, name: str) -> int:
        t = self.tool(name).timeout_seconds
        return int(t) if t is not None else self.timeout_seconds


def _as_int(v: Any, what: str) -> int:
    if isinstance(v, bool):
        raise ConfigError(f"{what} must be an integer, got {v!r}")
    try:
        return int(str(v).strip())
    except (TypeError, ValueError):
        raise ConfigError(f"{what} must be an integer, got {v!r}") from None


def _as_float(v: Any, what: str) -> float:
    if isinstance(v, bool):
        raise ConfigError(f"{what} must be a number, got {v!r}")
    try:
        return float(str(v).strip())
    except (TypeError, ValueError):
        raise ConfigError(f"{what} must be a number, got {v!r}") from None


def _env_tool_key(name: str) -> str:
    return f"{ENV_PREFIX}{name.upper().replace('-', '_')}_CMD"


def load_config_file(path: Optional[Path]) -> Dict[str, Any]:
    if path is None:
        return {}
    p = Path(path)
    if not p.is_file():
        raise ConfigError(f"config file not found: {p}")
    try:
        data = read_structured(p)
    except ValueError as e:
        raise ConfigError(str(e)) from e
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigError(f"{p}: config must be a mapping")
    return dict(data)


def resolve_config(
    *,
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> BenchConfig:
    env = os.environ if environ is None else environ
    doc = load_config_file(config_path)
    overrides = {k: v for k, v in (overrides or {}).items() if v is not None}

    matching = doc.get("matching") or {}
    regression = doc.get("regression") or {}
    if not isinstance(matching, Mapping) or not isinstance(regression, Mapping):
        raise ConfigError("'matching' and 'regression' config sections must be mappings")

    values: Dict[str, Any] = {
        "tolerance": matching.get("tolerance", DEFAULT_LOCATION_TOLERANCE),
        "coarse_discount": matching.get("coarse_discount", DEFAULT_COARSE_DISCOUNT),
        "timeout_seconds": doc.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS),
        "store": doc.get("store", DEFAULT_STORE),
        "regression_threshold": regression.get("threshold", 0.0),
    }
    env_names = {
        "tolerance": "TOLERANCE",
        "coarse_discount": "COARSE_DISCOUNT",
        "timeout_seconds": "TIMEOUT",
        "store": "STORE",
        "regression_threshold": "REGRESSION_THRESHOLD",
    }
    for key, suffix in env_names.items():
        raw = env.get(ENV_PREFIX + suffix)
        if raw not in (None, ""):
            values[key] = raw
    values.update({k: v for k, v in overrides.items() if k in values})

    tools: Dict[str, ToolSettings] = {}
    raw_tools = doc.get("tools") or {}
    if not isinstance(raw_tools, Mapping):
        raise ConfigError("'tools' config section must be a mapping")
    names = set(str(k) for k in raw_tools)
    names |= {str(k) for k in (overrides.get("tool_commands") or {})}
    for name in sorted(names):
        entry = raw_tools.get(name) or {}
        if not isinstance(entry, Mapping):
            raise ConfigError(f"tools.{name} must be a mapping")
        timeout = entry.get("timeout_seconds")
        tools[name] = ToolSettings(
            command=str(entry["command"]) if entry.get("command") else None,
            version=str(entry["version"]) if entry.get("version") else None,
            timeout_seconds=_as_int(timeout, f"tools.{name}.timeout_seconds") if timeout is not None else None,
        )

    # Environment command overrides beat the file for every tool it names.
    for key, raw in env.items():
        if key.startswith(ENV_PREFIX) and key.endswith("_CMD") and raw:
            for name in list(tools) + list(overrides.get("known_tools") or []):
                if _env_tool_key(name) == key:
                    cur = tools.get(name, ToolSettings())
                    tools[name] = ToolSettings(command=raw, version=cur.version, timeout_seconds=cur.timeout_seconds)

    for name, cmd in (overrides.get("tool_commands") or {}).items():
        cur = tools.get(name, ToolSettings())
        tools[name] = ToolSettings(command=cmd, version=cur.version, timeout_seconds=cur.timeout_seconds)

    cfg = BenchConfig(
        tolerance=_as_int(values["tolerance"], "tolerance"),
        coarse_discount=_as_float(values["coarse_discount"], "coarse_discount"),
        timeout_seconds=_as_int(values["timeout_seconds"], "timeout_seconds"),
        store=Path(str(values["store"])),
        regression_threshold=_as_float(values["regression_threshold"], "regression threshold"),
        tools=tools,
    )
    if cfg.tolerance < 0:
        raise ConfigError(f"tolerance must be >= 0, got {cfg.tolerance}")
    if not 0.0 < cfg.coarse_discount <= 1.0:
        raise ConfigError(f"coarse_discount must be within (0, 1], got {cfg.coarse_discount}")
    if cfg.timeout_seconds <= 0:
        raise ConfigError(f"timeout_seconds must be > 0, got {cfg.timeout_seconds}")
    if cfg.regression_threshold < 0:
        raise ConfigError(f"regression threshold must be >= 0, got {cfg.regression_threshold}")
    return cfg
