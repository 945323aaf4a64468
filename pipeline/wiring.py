"""pipeline.wiring

This module is the **composition root** for the Python runtime.

"Composition root" means: the single place where we *assemble* the running
application from its building blocks:

- load environment variables (including a local ``.env``)
- resolve configuration (CLI > env > YAML file > defaults)
- hand the tool registry's names to the config layer, which cannot import it

Keeping this wiring in one place prevents configuration setup from being
duplicated across entrypoints (CLI, scripts, CI).
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Mapping, Optional

from defect_bench.config import BenchConfig, resolve_config

from tools.registry import tool_keys


def default_env_path() -> Path:
    return Path.cwd() / ".env"


def load_dotenv_if_present(dotenv_path: Optional[Path] = None) -> None:
    """Minimal .env loader.

    Loads KEY=VALUE lines into ``os.environ`` if the key is not already set.

    Design goals:
    - no third-party dependency
    - simple quoting support
    - safe-ish comment stripping for common cases
    """

    dotenv_path = dotenv_path if dotenv_path is not None else default_env_path()
    if not dotenv_path.exists():
        return

    for raw in dotenv_path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()

        key, val = line.split("=", 1)
        key = key.strip()
        raw_val = val.strip()

        # Quoted value
        if len(raw_val) >= 2 and (
            (raw_val.startswith('"') and raw_val.endswith('"'))
            or (raw_val.startswith("'") and raw_val.endswith("'"))
        ):
            parsed_val = raw_val[1:-1]
        else:
            # Strip inline comments only when preceded by whitespace: "VALUE   # comment"
            parsed_val = re.split(r"\s+#", raw_val, maxsplit=1)[0].strip()
            parsed_val = parsed_val.strip('"').strip("'")

        parsed_val = parsed_val.replace("\r", "")
        if key and key not in os.environ:
            os.environ[key] = parsed_val


def build_config(
    *,
    config_path: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    load_dotenv: bool = True,
    dotenv_path: Optional[Path] = None,
) -> BenchConfig:
    if load_dotenv:
        load_dotenv_if_present(dotenv_path)

    merged = dict(overrides or {})
    merged.setdefault("known_tools", tool_keys())
    return resolve_config(config_path=config_path, environ=os.environ, overrides=merged)
