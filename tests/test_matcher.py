import random
import time
import unittest
from typing import Optional

from defect_bench.domain.categories import Category, Severity
from defect_bench.domain.finding import UNKNOWN_RESOLUTION, CanonicalFinding, CategoryResolution, RawFinding
from defect_bench.domain.ground_truth import GroundTruthFinding, SourceLocation
from defect_bench.domain.results import FALSE_NEGATIVE, FALSE_POSITIVE, MATCHED, UNCLASSIFIED
from defect_bench.scoring.matcher import Matcher, candidate_components

UAF = Category.USE_AFTER_FREE
BOF = Category.BUFFER_OVERFLOW


def gt(id_: str, start: int, end: Optional[int] = None, *, category=UAF, file: str = "c/a.c") -> GroundTruthFinding:
    return GroundTruthFinding(
        id=id_,
        sample_id="a",
        category=category,
        location=SourceLocation(file=file, line_start=start, line_end=end if end is not None else start),
        severity=Severity.HIGH,
    )


def finding(index: int, line: Optional[int], *cats, file: str = "c/a.c") -> CanonicalFinding:
    resolutions = cats or ((UAF, 1.0),)
    categories = tuple(
        UNKNOWN_RESOLUTION if c is Category.UNKNOWN else CategoryResolution(c, conf) for c, conf in resolutions
    )
    return CanonicalFinding(
        raw=RawFinding(tool="t", tool_version="1", rule_id=f"R{index}", file=file, line=line),
        index=index,
        file=file,
        line=line,
        severity=Severity.MEDIUM,
        categories=categories,
        coarse_location=line is None,
    )


def kinds(results):
    return [r.kind for r in results]


def pairs(results):
    return sorted((r.ground_truth.id, r.finding.index) for r in results if r.kind == MATCHED)


class TestMatcherScenarios(unittest.TestCase):
    def setUp(self) -> None:
        self.matcher = Matcher()
        self.uaf = gt("uaf-1", 40, 44)

    def test_hit_inside_range_is_true_positive(self) -> None:
        results = self.matcher.match([finding(0, 42)], [self.uaf])
        self.assertEqual([MATCHED], kinds(results))
        self.assertEqual(1.0, results[0].score)

    def test_silence_is_false_negative(self) -> None:
        results = self.matcher.match([], [self.uaf])
        self.assertEqual([FALSE_NEGATIVE], kinds(results))

    def test_far_duplicate_is_false_positive(self) -> None:
        results = self.matcher.match([finding(0, 42), finding(1, 200)], [self.uaf])
        self.assertEqual([MATCHED, FALSE_POSITIVE], kinds(results))
        self.assertEqual(1, results[1].finding.index)

    def test_unmapped_rule_is_unclassified_not_false_positive(self) -> None:
        results = self.matcher.match([finding(0, 42, (Category.UNKNOWN, 0.0))], [self.uaf])
        self.assertEqual([FALSE_NEGATIVE, UNCLASSIFIED], kinds(results))


class TestCandidateRule(unittest.TestCase):
    def setUp(self) -> None:
        self.matcher = Matcher(tolerance=3, coarse_discount=0.5)
        self.g = gt("g", 40, 44)

    def test_tolerance_is_measured_from_midpoint(self) -> None:
        self.assertEqual(0.25, self.matcher.pair_weight(finding(0, 45), self.g))
        self.assertEqual(0.25, self.matcher.pair_weight(finding(0, 39), self.g))
        self.assertIsNone(self.matcher.pair_weight(finding(0, 46), self.g))

    def test_other_file_or_category_never_matches(self) -> None:
        self.assertIsNone(self.matcher.pair_weight(finding(0, 42, file="c/b.c"), self.g))
        self.assertIsNone(self.matcher.pair_weight(finding(0, 42, (BOF, 1.0)), self.g))

    def test_confidence_scales_weight(self) -> None:
        f = finding(0, 42, (BOF, 0.9), (UAF, 0.4))
        self.assertAlmostEqual(0.4, self.matcher.pair_weight(f, self.g))

    def test_coarse_location_uses_discount(self) -> None:
        self.assertEqual(0.5, self.matcher.pair_weight(finding(0, None), self.g))
        results = self.matcher.match([finding(0, None)], [self.g])
        self.assertEqual([MATCHED], kinds(results))
        self.assertEqual(0.5, results[0].score)

    def test_precise_hit_beats_coarse_one(self) -> None:
        results = self.matcher.match([finding(0, None), finding(1, 43)], [self.g])
        self.assertEqual([("g", 1)], pairs(results))
        self.assertEqual(FALSE_POSITIVE, [r for r in results if r.kind != MATCHED][0].kind)

    def test_zero_tolerance_requires_exact_midpoint(self) -> None:
        m = Matcher(tolerance=0)
        self.assertEqual(1.0, m.pair_weight(finding(0, 7), gt("g", 7)))
        self.assertIsNone(m.pair_weight(finding(0, 8), gt("g", 7)))
        # A two-line range has a fractional midpoint no single line can hit.
        self.assertIsNone(m.pair_weight(finding(0, 7), gt("g", 7, 8)))

    def test_settings_are_validated(self) -> None:
        for bad in (-1, 1.5, True, "3"):
            with self.assertRaises((ValueError, TypeError), msg=repr(bad)):
                Matcher(tolerance=bad)
        for bad in (0.0, -0.5, 1.01):
            with self.assertRaises(ValueError, msg=repr(bad)):
                Matcher(coarse_discount=bad)
        self.assertEqual({"tolerance": 5, "coarse_discount": 1.0}, Matcher(tolerance=5, coarse_discount=1.0).settings())


class TestAssignment(unittest.TestCase):
    def test_global_optimum_not_nearest_first(self) -> None:
        # f0 sits between g1 and g2; f1 only reaches g1. Nearest-first would give
        # f0 to g1 and strand f1.
        g1 = gt("g1", 10)
        g2 = gt("g2", 14)
        results = Matcher(tolerance=3).match([finding(0, 12), finding(1, 9)], [g1, g2])
        self.assertEqual([("g1", 1), ("g2", 0)], pairs(results))

    def test_one_to_one(self) -> None:
        results = Matcher().match([finding(0, 42), finding(1, 42), finding(2, 41)], [gt("g", 42)])
        self.assertEqual(1, sum(1 for r in results if r.kind == MATCHED))
        self.assertEqual(2, sum(1 for r in results if r.kind == FALSE_POSITIVE))

    def test_ties_prefer_lower_ground_truth_id_then_earlier_finding(self) -> None:
        a = gt("a", 20)
        b = gt("b", 20)
        results = Matcher().match([finding(0, 20)], [b, a])
        self.assertEqual([("a", 0)], pairs(results))

        results = Matcher().match([finding(3, 21), finding(1, 19)], [gt("g", 20)])
        self.assertEqual([("g", 1)], pairs(results))

    def test_noisy_file_is_solved_per_component(self) -> None:
        gts = [gt(f"g{i}", 10 * (i + 1)) for i in range(5)]
        fs = [finding(i, 1000 + i) for i in range(1500)]
        fs += [finding(1500 + i, 10 + i % 60, (BOF, 1.0)) for i in range(1500)]
        fs += [finding(3000 + i, 11) for i in range(100)]
        fs += [finding(3100 + i, 10 * (i + 2)) for i in range(4)]

        started = time.perf_counter()
        results = Matcher().match(fs, gts)
        elapsed = time.perf_counter() - started

        self.assertEqual(
            [("g0", 3000), ("g1", 3100), ("g2", 3101), ("g3", 3102), ("g4", 3103)],
            pairs(results),
        )
        self.assertEqual(len(fs) - 5, kinds(results).count(FALSE_POSITIVE))
        self.assertLess(elapsed, 5.0)

    def test_candidate_components(self) -> None:
        edges = [(2, 5), (0, 1), (1, 1), (1, 3), (3, 9)]
        self.assertEqual(
            [([0, 1], [1, 3]), ([2], [5]), ([3], [9])],
            candidate_components(edges),
        )
        self.assertEqual([], candidate_components([]))

    def test_unmatched_finding_goes_to_primary_category(self) -> None:
        results = Matcher().match([finding(0, 99, (BOF, 0.9), (UAF, 0.3))], [])
        self.assertEqual([FALSE_POSITIVE], kinds(results))
        self.assertEqual(BOF, results[0].finding.primary_category)


class TestMatcherProperties(unittest.TestCase):
    def _random_case(self, rng: random.Random):
        files = ["c/a.c", "c/b.c"]
        cats = [UAF, BOF, Category.DOUBLE_FREE]
        gts = [
            gt(f"g{i:02d}", s, s + rng.randint(0, 3), category=rng.choice(cats), file=rng.choice(files))
            for i, s in enumerate(rng.randint(1, 60) for _ in range(rng.randint(0, 8)))
        ]
        fs = []
        for i in range(rng.randint(0, 10)):
            line = None if rng.random() < 0.15 else rng.randint(1, 64)
            if rng.random() < 0.1:
                fs.append(finding(i, line, (Category.UNKNOWN, 0.0), file=rng.choice(files)))
            else:
                fs.append(finding(i, line, (rng.choice(cats), rng.choice([0.5, 0.8, 1.0])), file=rng.choice(files)))
        return fs, gts

    def test_accounting_identity(self) -> None:
        rng = random.Random(7)
        for _ in range(150):
            fs, gts = self._random_case(rng)
            results = Matcher().match(fs, gts)
            k = kinds(results)
            self.assertEqual(len(gts), k.count(MATCHED) + k.count(FALSE_NEGATIVE))
            self.assertEqual(len(fs), k.count(MATCHED) + k.count(FALSE_POSITIVE) + k.count(UNCLASSIFIED))

            matched = [r for r in results if r.kind == MATCHED]
            self.assertEqual(len(matched), len({r.ground_truth.id for r in matched}))
            self.assertEqual(len(matched), len({r.finding.index for r in matched}))

    def test_input_order_does_not_change_results(self) -> None:
        rng = random.Random(11)
        for _ in range(100):
            fs, gts = self._random_case(rng)
            expected = Matcher().match(fs, gts)
            shuffled_fs = list(fs)
            shuffled_gts = list(gts)
            rng.shuffle(shuffled_fs)
            rng.shuffle(shuffled_gts)
            self.assertEqual(expected, Matcher().match(shuffled_fs, shuffled_gts))

    def test_unrelated_finding_does_not_disturb_matches(self) -> None:
        fs = [finding(0, 42), finding(1, 10, (BOF, 1.0))]
        gts = [gt("uaf", 40, 44), gt("bof", 11, category=BOF)]
        before = pairs(Matcher().match(fs, gts))
        after = pairs(Matcher().match(fs + [finding(2, 500, file="c/z.c")], gts))
        self.assertEqual(before, after)

    def test_finding_for_unmatched_ground_truth_never_lowers_tp(self) -> None:
        gts = [gt("uaf", 40, 44), gt("bof", 11, category=BOF), gt("df", 30, category=Category.DOUBLE_FREE)]
        fs = [finding(0, 42), finding(1, 12, (BOF, 0.8))]
        before = Matcher().match(fs, gts)
        self.assertEqual([("bof", 1), ("uaf", 0)], pairs(before))

        after = Matcher().match(fs + [finding(2, 31, (Category.DOUBLE_FREE, 0.5))], gts)
        self.assertEqual([("bof", 1), ("df", 2), ("uaf", 0)], pairs(after))
        self.assertEqual(kinds(before).count(MATCHED) + 1, kinds(after).count(MATCHED))


if __name__ == "__main__":
    unittest.main()
