from __future__ import annotations

import argparse
from pathlib import Path
from typing import List

from defect_bench.gt.store import GroundTruthStore, validate_corpus
from defect_bench.taxonomy.crosswalk import TaxonomyCrosswalk, gap_label, load_crosswalk

from cli.common import EXIT_OK


def crosswalk_mismatches(store: GroundTruthStore, crosswalk: TaxonomyCrosswalk) -> List[str]:
    """Ground-truth rule references the crosswalk leaves unmapped or maps elsewhere."""
    out: List[str] = []
    for sample in store.samples:
        for gt in sample.findings:
            for ref in gt.standard_rules:
                label = gap_label(ref.standard, ref.rule_id)
                if not crosswalk.covers(ref.standard, ref.rule_id):
                    out.append(f"{sample.sample_id}/{gt.id}: {label} is not in crosswalk {crosswalk.version}")
                    continue
                cats = {r.category for r in crosswalk.resolve(ref.standard, ref.rule_id)}
                if gt.category not in cats:
                    mapped = ", ".join(sorted(c.value for c in cats))
                    out.append(f"{sample.sample_id}/{gt.id}: {label} maps to {mapped}, not {gt.category.value}")
    return out


def run_validate_corpus(args: argparse.Namespace) -> int:
    summary = validate_corpus(Path(args.corpus))
    print(f"Corpus OK: {summary['corpus_root']}")
    print(f"  version:     {summary['corpus_version']}")
    print(f"  samples:     {summary['samples']}")
    print(f"  findings:    {summary['findings']} ({summary['conditional']} conditional)")
    for cat, n in summary["by_category"].items():
        print(f"    {cat:<26} {n}")

    if args.crosswalk:
        crosswalk = load_crosswalk(Path(args.crosswalk))
        store = GroundTruthStore.load(Path(args.corpus))
        problems = crosswalk_mismatches(store, crosswalk)
        print(f"  crosswalk:   {crosswalk.version} ({len(crosswalk.rows)} rows, {len(problems)} rule mismatches)")
        for p in problems:
            print(f"    {p}")
    return EXIT_OK
