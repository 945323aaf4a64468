import shlex
import sys
import tempfile
import unittest
from pathlib import Path

from defect_bench.errors import ConfigError, ToolInvocationError
from pipeline.evaluate import resolve_crosswalk, resolve_timestamp
from tools.invoke import build_command, find_sources, invoke_tool, run_cmd
from tools.registry import get_tool


def _py(script: str) -> str:
    return f"{shlex.quote(sys.executable)} -c {shlex.quote(script)}"


class TestBuildCommand(unittest.TestCase):
    def test_placeholders(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            (root / "c").mkdir()
            for name in ("b.c", "a.cpp", "notes.txt", "h.h"):
                (root / "c" / name).write_text("", encoding="utf-8")

            self.assertEqual([str(root / "c" / "a.cpp"), str(root / "c" / "b.c")], find_sources(root))
            cmd = build_command(
                "tool --out={output} --root {corpus} {sources} --",
                corpus_root=root,
                output_path=Path("/tmp/r.out"),
            )
            self.assertEqual(
                ["tool", "--out=/tmp/r.out", "--root", str(root), str(root / "c" / "a.cpp"), str(root / "c" / "b.c"), "--"],
                cmd,
            )

    def test_invalid_templates(self) -> None:
        for template in ("", "   ", "tool 'unterminated"):
            with self.assertRaises(ConfigError, msg=template):
                build_command(template, corpus_root=Path("."))
        with self.assertRaises(ConfigError):
            build_command("tool --output {output}", corpus_root=Path("."))


class TestRunCmd(unittest.TestCase):
    def test_non_zero_exit_is_not_an_error(self) -> None:
        res = run_cmd(shlex.split(_py("import sys; print('found'); sys.exit(1)")), tool="t")
        self.assertEqual(1, res.exit_code)
        self.assertEqual("found\n", res.stdout)

    def test_missing_program(self) -> None:
        with self.assertRaises(ToolInvocationError) as ctx:
            run_cmd(["/nonexistent/defect-bench-tool"], tool="t")
        self.assertFalse(ctx.exception.timed_out)

    def test_timeout_keeps_partial_output(self) -> None:
        cmd = shlex.split(_py("import time; print('partial', flush=True); time.sleep(30)"))
        with self.assertRaises(ToolInvocationError) as ctx:
            run_cmd(cmd, tool="t", timeout_seconds=2)
        self.assertTrue(ctx.exception.timed_out)
        self.assertIn("partial", ctx.exception.stdout)


class TestInvokeTool(unittest.TestCase):
    def test_report_comes_from_output_file_or_stream(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            write_file = _py("import sys; open(sys.argv[1], 'w').write('FROM FILE'); print('FROM STDOUT')")
            inv = invoke_tool(get_tool("semgrep"), corpus_root=root, template=write_file + " {output}", timeout_seconds=30)
            self.assertEqual("FROM FILE", inv.report)

            inv = invoke_tool(get_tool("jsonl"), corpus_root=root, template=_py("print('OUT')"), timeout_seconds=30)
            self.assertEqual("OUT\n", inv.report)

            to_stderr = _py("import sys; sys.stderr.write('c.c:1:1: warning: x [-Wall]')")
            inv = invoke_tool(get_tool("gcc"), corpus_root=root, template=to_stderr, timeout_seconds=30)
            self.assertEqual("c.c:1:1: warning: x [-Wall]", inv.report)


class TestEvaluateHelpers(unittest.TestCase):
    def test_timestamp(self) -> None:
        self.assertEqual("pinned", resolve_timestamp("pinned"))
        self.assertEqual("2023-11-14T22:13:20Z", resolve_timestamp(environ={"SOURCE_DATE_EPOCH": "1700000000"}))
        self.assertTrue(resolve_timestamp(environ={}).endswith("Z"))
        with self.assertRaises(ConfigError):
            resolve_timestamp(environ={"SOURCE_DATE_EPOCH": "yesterday"})

    def test_crosswalk_lookup(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            with self.assertRaises(ConfigError):
                resolve_crosswalk(root)
            (root / "crosswalk.yml").write_text("version: found\nrows: []\n", encoding="utf-8")
            self.assertEqual("found", resolve_crosswalk(root).version)

            explicit = root / "other.json"
            explicit.write_text('{"version": "explicit", "rows": []}', encoding="utf-8")
            self.assertEqual("explicit", resolve_crosswalk(root, explicit).version)


if __name__ == "__main__":
    unittest.main()
