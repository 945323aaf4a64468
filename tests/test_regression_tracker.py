import json
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from defect_bench.domain.categories import Category, Severity
from defect_bench.domain.finding import CanonicalFinding, CategoryResolution, RawFinding
from defect_bench.domain.ground_truth import GroundTruthFinding, SourceLocation
from defect_bench.domain.results import FALSE_NEGATIVE, MATCHED, Diagnostics, MatchResult, RunReport
from defect_bench.errors import CorruptRunError, RegressionBaselineNotFound, RunStoreFullError
from defect_bench.io.run_dir import create_run_dir
from defect_bench.regression.tracker import RegressionTracker, compare_reports
from defect_bench.scoring.aggregate import aggregate


def _gt(id_: str, category: Category) -> GroundTruthFinding:
    return GroundTruthFinding(
        id=id_,
        sample_id="s",
        category=category,
        location=SourceLocation("c/a.c", 10, 12),
        severity=Severity.HIGH,
    )


def _hit(id_: str, category: Category, index: int) -> MatchResult:
    f = CanonicalFinding(
        raw=RawFinding(tool="cppcheck", tool_version="2.13", rule_id="r", file="c/a.c", line=11),
        index=index,
        file="c/a.c",
        line=11,
        severity=Severity.HIGH,
        categories=(CategoryResolution(category, 1.0),),
    )
    return MatchResult(MATCHED, finding=f, ground_truth=_gt(id_, category), score=0.75)


def _miss(id_: str, category: Category) -> MatchResult:
    return MatchResult(FALSE_NEGATIVE, ground_truth=_gt(id_, category))


def _report(results, *, tool_version: str = "2.13", incomplete: bool = False) -> RunReport:
    results = tuple(results)
    return RunReport(
        corpus_version="2026.10",
        tool="cppcheck",
        tool_version=tool_version,
        crosswalk_version="xw-1",
        timestamp="2026-10-18T09:30:05Z",
        results=results,
        metrics=aggregate(results),
        diagnostics=Diagnostics(coarse_locations=1, gap_rules=["cppcheck:foo"]),
        matching={"tolerance": 3, "coarse_discount": 0.5},
        incomplete=incomplete,
    )


UAF = Category.USE_AFTER_FREE
BOF = Category.BUFFER_OVERFLOW


class TestRegressionTrackerStore(unittest.TestCase):
    def test_store_and_load_round_trip(self) -> None:
        report = _report([_hit("u1", UAF, 0), _hit("u2", UAF, 1), _miss("b1", BOF)])
        with tempfile.TemporaryDirectory() as td:
            tracker = RegressionTracker(Path(td))
            run_id = tracker.store(report)
            loaded = tracker.load(run_id)

            self.assertEqual(run_id, loaded.run_id)
            self.assertEqual(report.key, loaded.key)
            self.assertEqual(report.metrics, loaded.metrics)
            self.assertEqual(report.results, loaded.results)
            self.assertEqual(report.diagnostics, loaded.diagnostics)

            on_disk = json.loads((Path(td) / "runs" / run_id / "report.json").read_text(encoding="utf-8"))
            self.assertEqual(run_id, on_disk["run_id"])
            key = json.loads((Path(td) / "runs" / run_id / "key.json").read_text(encoding="utf-8"))
            self.assertEqual(
                {"corpus_version": "2026.10", "tool": "cppcheck", "tool_version": "2.13", "crosswalk_version": "xw-1"},
                key,
            )

    def test_runs_are_append_only(self) -> None:
        report = _report([_hit("u1", UAF, 0)])
        with tempfile.TemporaryDirectory() as td:
            tracker = RegressionTracker(Path(td))
            first = tracker.store(report)
            second = tracker.store(report)
            self.assertNotEqual(first, second)
            self.assertEqual([first, second], tracker.list_runs())
            self.assertEqual([first, second], tracker.list_runs(tool="cppcheck", tool_version="2.13"))
            self.assertEqual([], tracker.list_runs(tool_version="9.9"))
            with self.assertRaises(ValueError):
                tracker.list_runs(colour="blue")

    def test_missing_run_ids(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            tracker = RegressionTracker(Path(td))
            self.assertEqual([], tracker.list_runs())
            for bad in ("2026101801093005", "latest", "", "../../etc"):
                with self.assertRaises(RegressionBaselineNotFound, msg=bad):
                    tracker.load(bad)
            run_id = tracker.store(_report([]))
            with self.assertRaises(RegressionBaselineNotFound) as ctx:
                tracker.compare_to_baseline(run_id, "2000010101000000")
            self.assertEqual("2000010101000000", ctx.exception.run_id)

    def test_half_written_run_is_not_listed(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            tracker = RegressionTracker(Path(td))
            kept = tracker.store(_report([_hit("u1", UAF, 0)]))
            torn = tracker.runs_dir / "2026101899093005"
            torn.mkdir()
            (torn / "key.json").write_text('{"tool": "cppcheck"}', encoding="utf-8")

            self.assertEqual([kept], tracker.list_runs())
            self.assertEqual([kept], tracker.list_runs(tool="cppcheck"))

    def test_malformed_stored_report_raises_typed_error(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            tracker = RegressionTracker(Path(td))
            run_id = tracker.store(_report([_hit("u1", UAF, 0)]))
            path = tracker.runs_dir / run_id / "report.json"
            doc = json.loads(path.read_text(encoding="utf-8"))
            doc["results"][0]["ground_truth"] = None
            path.write_text(json.dumps(doc), encoding="utf-8")

            with self.assertRaises(CorruptRunError):
                tracker.load(run_id)

    def test_exhausted_day_raises_typed_error(self) -> None:
        now = datetime(2026, 10, 18, 9, 30, 5, tzinfo=timezone.utc)
        with tempfile.TemporaryDirectory() as td:
            (Path(td) / "2026101899000000").mkdir()
            with self.assertRaises(RunStoreFullError):
                create_run_dir(Path(td), now=now)


class TestCompare(unittest.TestCase):
    def test_identical_runs_never_regress(self) -> None:
        results = [_hit("u1", UAF, 0), _miss("u2", UAF), _miss("b1", BOF)]
        with tempfile.TemporaryDirectory() as td:
            tracker = RegressionTracker(Path(td))
            a = tracker.store(_report(results))
            b = tracker.store(_report(results))
            cmp = tracker.compare_to_baseline(b, a)

        self.assertFalse(cmp.has_regression)
        self.assertEqual((a, b), (cmp.baseline_run_id, cmp.candidate_run_id))
        self.assertEqual(["buffer-overflow", "use-after-free"], [c.category for c in cmp.categories])
        for block in cmp.categories + (cmp.overall,):
            self.assertFalse(block.regressed)
            self.assertTrue(all(v in (0, 0.0, None) for v in block.deltas.values()), block.deltas)
        self.assertEqual((), cmp.notes)

    def test_recall_drop_is_a_regression(self) -> None:
        base = _report([_hit("u1", UAF, 0), _hit("u2", UAF, 1), _hit("b1", BOF, 2)])
        cand = _report([_hit("u1", UAF, 0), _miss("u2", UAF), _hit("b1", BOF, 1)], tool_version="2.14")
        cmp = compare_reports(base, cand)

        self.assertTrue(cmp.has_regression)
        self.assertEqual(["use-after-free"], cmp.regressed_categories)
        uaf = cmp.categories[1]
        self.assertEqual("use-after-free", uaf.category)
        self.assertEqual(-0.5, uaf.deltas["recall"])
        self.assertEqual(1.0, uaf.deltas["fn"])
        self.assertIn("recall dropped by 0.5000", uaf.reasons[0])
        self.assertIn("tool_version differs: baseline='2.13' candidate='2.14'", cmp.notes)

        # A wide enough threshold tolerates the same drop.
        self.assertFalse(compare_reports(base, cand, threshold=0.5).has_regression)

    def test_losing_every_true_positive_always_regresses(self) -> None:
        base = _report([_hit("u1", UAF, 0)])
        cand = _report([_miss("u1", UAF)])
        cmp = compare_reports(base, cand, threshold=1.0)
        self.assertEqual(["use-after-free"], cmp.regressed_categories)
        self.assertIn("true positives fell from 1 to 0", cmp.categories[0].reasons)

    def test_incomplete_runs_are_noted(self) -> None:
        base = _report([_hit("u1", UAF, 0)])
        cand = _report([_hit("u1", UAF, 0)], incomplete=True)
        notes = compare_reports(base, cand).notes
        self.assertEqual(("candidate run is incomplete (tool timed out or crashed)",), notes)

    def test_negative_threshold_is_rejected(self) -> None:
        r = _report([])
        with self.assertRaises(ValueError):
            compare_reports(r, r, threshold=-0.1)

    def test_comparison_dict(self) -> None:
        base = _report([_hit("u1", UAF, 0)])
        cand = _report([_miss("u1", UAF)])
        d = compare_reports(base, cand).to_dict()
        self.assertEqual("run_comparison_v1", d["schema_version"])
        self.assertTrue(d["has_regression"])
        self.assertEqual(["use-after-free"], d["regressed_categories"])
        self.assertEqual(1, len(d["categories"]))


if __name__ == "__main__":
    unittest.main()
