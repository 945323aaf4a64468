from __future__ import annotations

import argparse
from pathlib import Path
from typing import List

from defect_bench.errors import ConfigError
from defect_bench.gt.store import GroundTruthStore
from defect_bench.io.fs import write_json_atomic
from defect_bench.regression.tracker import RegressionTracker

from cli.common import EXIT_OK, EXIT_TOOL_FAILED, optional_path, overall_line, parse_csv
from pipeline.evaluate import RunOutcome, RunRequest, evaluate_tool, resolve_crosswalk
from pipeline.wiring import build_config
from tools.registry import get_tool


def run_run(args: argparse.Namespace) -> int:
    tools = parse_csv(args.tool)
    if not tools:
        raise ConfigError("--tool needs at least one tool name")
    infos = [get_tool(t) for t in tools]
    if len(infos) > 1:
        for flag, value in (("--tool-output", args.tool_output), ("--command", args.command_template), ("--tool-version", args.tool_version)):
            if value:
                raise ConfigError(f"{flag} applies to exactly one tool; got {len(infos)}")

    cfg = build_config(
        config_path=optional_path(args.config),
        overrides={
            "tolerance": args.tolerance,
            "coarse_discount": args.coarse_discount,
            "timeout_seconds": args.timeout,
            "store": args.store,
        },
    )

    # Corpus and crosswalk problems are fatal before any tool runs.
    store = GroundTruthStore.load(Path(args.corpus))
    crosswalk = resolve_crosswalk(store.corpus_root, optional_path(args.crosswalk))
    tracker = None if args.no_store else RegressionTracker(cfg.store)

    out = Path(args.out)
    outcomes: List[RunOutcome] = []
    for info in infos:
        req = RunRequest(
            tool=info.key,
            tool_output=optional_path(args.tool_output),
            command=args.command_template,
            tool_version=args.tool_version,
            timeout_seconds=cfg.tool_timeout(info.key),
            tolerance=cfg.tolerance,
            coarse_discount=cfg.coarse_discount,
            timestamp=args.timestamp,
        )
        outcome = evaluate_tool(
            req,
            store=store,
            crosswalk=crosswalk,
            default_command=cfg.tool_command(info.key),
            default_version=cfg.tool(info.key).version,
        )
        report = outcome.report
        if tracker is not None:
            report = report.with_run_id(tracker.store(report))

        report_path = out / f"{info.key}.json" if len(infos) > 1 else out
        write_json_atomic(report_path, report.to_dict())
        outcomes.append(outcome)

        line = overall_line(info.key, report.metrics)
        if report.run_id:
            line += f" run_id={report.run_id}"
        if report.incomplete:
            line += " INCOMPLETE"
        print(line)
        print(f"  report: {report_path}")
        diag = report.diagnostics
        if diag.parse_failures or diag.coverage_gaps or diag.coarse_locations or diag.unknown_files:
            print(
                f"  diagnostics: parse_failures={diag.parse_failures} "
                f"coverage_gaps={diag.coverage_gaps} coarse_locations={diag.coarse_locations} "
                f"unknown_files={diag.unknown_files}"
            )

    failed = [o.report.tool for o in outcomes if not o.ok]
    if failed:
        print(f"Tool invocation failed (timeout/crash): {', '.join(failed)}")
        return EXIT_TOOL_FAILED
    return EXIT_OK
