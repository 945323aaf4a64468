import tempfile
import unittest
import warnings
from pathlib import Path

from defect_bench.domain.categories import Category
from defect_bench.domain.finding import UNKNOWN_RESOLUTION, CategoryResolution
from defect_bench.errors import CrosswalkError, CrosswalkGapWarning
from defect_bench.taxonomy.crosswalk import RuleTaxonomyMapper, build_crosswalk, gap_label, load_crosswalk


class TestRuleTaxonomyMapper(unittest.TestCase):
    def test_many_to_many_rows_resolve(self) -> None:
        m = RuleTaxonomyMapper("xw-1")
        m.register("cppcheck", "arrayIndexOutOfBounds", "buffer-overflow", 0.9)
        m.register("cppcheck", "arrayIndexOutOfBounds", "missing-bounds-check", 0.6)
        m.register("CERT", "MEM30-C", "use-after-free", 1.0)
        xw = m.freeze()

        self.assertEqual(
            frozenset(
                {
                    CategoryResolution(Category.BUFFER_OVERFLOW, 0.9),
                    CategoryResolution(Category.MISSING_BOUNDS_CHECK, 0.6),
                }
            ),
            xw.resolve("cppcheck", "arrayIndexOutOfBounds"),
        )
        # Standards match case-insensitively; rule ids are stripped but exact.
        self.assertTrue(xw.covers("cert", " MEM30-C "))
        self.assertFalse(xw.covers("cert", "mem30-c"))
        self.assertEqual(("cert", "cppcheck"), xw.standards())
        self.assertEqual("xw-1", xw.version)

    def test_duplicate_registration_keeps_higher_confidence(self) -> None:
        m = RuleTaxonomyMapper("v")
        m.register("gcc", "-Wformat-security", "format-string", 0.4)
        m.register("gcc", "-Wformat-security", "format-string", 0.8)
        m.register("gcc", "-Wformat-security", "format-string", 0.5)
        xw = m.freeze()
        self.assertEqual(1, len(xw.rows))
        self.assertEqual(0.8, xw.rows[0].confidence)

    def test_invalid_rows_are_rejected(self) -> None:
        m = RuleTaxonomyMapper("v")
        for args in (
            ("gcc", "x", "sql-injection", 1.0),
            ("gcc", "x", "unknown", 1.0),
            ("gcc", "x", "other", 1.5),
            ("gcc", "x", "other", -0.1),
            ("gcc", "x", "other", "high"),
            ("", "x", "other", 1.0),
            ("gcc", "  ", "other", 1.0),
        ):
            with self.assertRaises(CrosswalkError, msg=repr(args)):
                m.register(*args)
        with self.assertRaises(CrosswalkError):
            RuleTaxonomyMapper("")

    def test_frozen_mapper_refuses_registration(self) -> None:
        m = RuleTaxonomyMapper("v")
        m.register("gcc", "x", "other", 1.0)
        xw = m.freeze()
        with self.assertRaises(CrosswalkError):
            m.register("gcc", "y", "other", 1.0)
        self.assertIs(xw, m.freeze())

    def test_resolve_while_building_does_not_freeze(self) -> None:
        m = RuleTaxonomyMapper("v1")
        m.register("cppcheck", "nullPointer", "other", 1.0)
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", CrosswalkGapWarning)
            self.assertEqual(frozenset({UNKNOWN_RESOLUTION}), m.resolve("cppcheck", "uninitvar"))

        m.register("cppcheck", "uninitvar", "uninitialized-read", 0.9)
        self.assertEqual(
            frozenset({CategoryResolution(Category.UNINITIALIZED_READ, 0.9)}),
            m.resolve("cppcheck", "uninitvar"),
        )
        self.assertTrue(m.freeze().covers("cppcheck", "uninitvar"))

    def test_gap_resolves_to_unknown_and_warns(self) -> None:
        xw = RuleTaxonomyMapper("v").freeze()
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            with self.assertLogs("defect_bench.taxonomy.crosswalk", level="WARNING"):
                got = xw.resolve("semgrep", "XYZ-1")
        self.assertEqual(frozenset({UNKNOWN_RESOLUTION}), got)
        self.assertTrue(any(issubclass(w.category, CrosswalkGapWarning) for w in caught))
        self.assertEqual("semgrep:XYZ-1", gap_label("Semgrep", " XYZ-1"))


class TestLoadCrosswalk(unittest.TestCase):
    def test_load_yaml(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "xw.yaml"
            p.write_text(
                "version: '2026.1'\n"
                "rows:\n"
                "  - {standard: semgrep, ruleId: MEM-03, category: use-after-free, confidence: 1.0}\n"
                "  - {standard: semgrep, rule_id: FMT-01, category: format_string}\n",
                encoding="utf-8",
            )
            xw = load_crosswalk(p)
        self.assertEqual("2026.1", xw.version)
        self.assertEqual(
            frozenset({CategoryResolution(Category.FORMAT_STRING, 1.0)}),
            xw.resolve("semgrep", "FMT-01"),
        )
        self.assertEqual(
            {"version": "2026.1", "rows": [r.to_dict() for r in xw.rows]},
            xw.to_dict(),
        )

    def test_malformed_files(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            cases = {
                "no-version.yaml": "rows: []\n",
                "rows-not-list.yaml": "version: 1\nrows: {a: b}\n",
                "list.yaml": "- 1\n",
                "bad.json": "{",
                "bad-row.yaml": "version: 1\nrows:\n  - {standard: s, ruleId: r, category: nonsense}\n  - 7\n",
            }
            for name, body in cases.items():
                (root / name).write_text(body, encoding="utf-8")
                with self.assertRaises(CrosswalkError, msg=name):
                    load_crosswalk(root / name)
            with self.assertRaises(CrosswalkError):
                load_crosswalk(root / "missing.yaml")

    def test_build_collects_all_row_problems(self) -> None:
        with self.assertRaises(CrosswalkError) as ctx:
            build_crosswalk("v", [{"standard": "s", "ruleId": "a", "category": "nope"}, "x"])
        msg = str(ctx.exception)
        self.assertIn("row 0:", msg)
        self.assertIn("row 1: must be a mapping", msg)


if __name__ == "__main__":
    unittest.main()
