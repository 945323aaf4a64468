from __future__ import annotations

import argparse

from cli.common import EXIT_OK
from tools.registry import describe_tools


def run_tools(_args: argparse.Namespace) -> int:
    rows = describe_tools()
    width = max(len(r["key"]) for r in rows)
    for r in rows:
        cmd = r["command"] or "(needs --command or --tool-output)"
        print(f"{r['key']:<{width}}  format={r['format']:<8} rules={r['rule_namespace']:<10} {r['label']}")
        print(f"{'':<{width}}  {cmd}")
    return EXIT_OK
