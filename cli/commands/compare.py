from __future__ import annotations

import argparse
from pathlib import Path

from defect_bench.io.fs import write_json_atomic
from defect_bench.regression.tracker import CategoryDelta, RegressionTracker

from cli.common import EXIT_OK, EXIT_REGRESSION, format_metric, optional_path
from pipeline.wiring import build_config


def _row(d: CategoryDelta) -> str:
    flag = "REGRESSED" if d.regressed else ""
    return (
        f"  {d.category:<26} recall {format_metric(d.baseline.get('recall')):>7} -> "
        f"{format_metric(d.candidate.get('recall')):>7}  "
        f"precision {format_metric(d.baseline.get('precision')):>7} -> "
        f"{format_metric(d.candidate.get('precision')):>7}  {flag}"
    ).rstrip()


def run_compare(args: argparse.Namespace) -> int:
    cfg = build_config(
        config_path=optional_path(args.config),
        overrides={"store": args.store, "regression_threshold": args.threshold},
    )
    tracker = RegressionTracker(cfg.store)
    comparison = tracker.compare_to_baseline(
        args.candidate,
        args.baseline,
        threshold=cfg.regression_threshold,
    )

    print(f"Baseline {comparison.baseline_run_id} -> candidate {comparison.candidate_run_id}")
    print(_row(comparison.overall))
    for d in comparison.categories:
        print(_row(d))
        for reason in d.reasons:
            print(f"      {reason}")
    for note in comparison.notes:
        print(f"  note: {note}")

    if args.out:
        write_json_atomic(Path(args.out), comparison.to_dict())
        print(f"Comparison written to {args.out}")

    if comparison.has_regression:
        print(f"Regressed categories: {', '.join(comparison.regressed_categories)}")
        if args.fail_on_regression:
            return EXIT_REGRESSION
    return EXIT_OK
