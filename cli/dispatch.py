from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable, Dict, List, Optional

from defect_bench import __version__
from defect_bench.errors import CorpusError, DefectBenchError

from cli.args.compare import add_compare_args
from cli.args.run import add_run_args
from cli.args.validate import add_validate_args
from cli.commands.compare import run_compare
from cli.commands.list_tools import run_tools
from cli.commands.run import run_run
from cli.commands.validate_corpus import run_validate_corpus
from cli.common import EXIT_CORPUS, EXIT_USAGE, configure_logging
from tools.registry import tool_keys

logger = logging.getLogger(__name__)

COMMANDS: Dict[str, Callable[[argparse.Namespace], int]] = {
    "run": run_run,
    "compare": run_compare,
    "validate-corpus": run_validate_corpus,
    "tools": run_tools,
}


class _ArgumentParser(argparse.ArgumentParser):
    """argparse exits 2 on bad usage; 2 is reserved for corpus failures here."""

    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="defect-bench",
        description="Score static-analysis tools against a ground-truth defect corpus.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="More logging (-v info, -vv debug).",
    )
    parser.add_argument("--log-file", dest="log_file", default=None, help="Also write logs to this file.")

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    add_run_args(
        sub.add_parser("run", help="Evaluate one or more tools against a corpus."),
        tool_keys=tool_keys(),
    )
    add_compare_args(sub.add_parser("compare", help="Compare two stored runs for regressions."))
    add_validate_args(sub.add_parser("validate-corpus", help="Validate ground-truth annotations only."))
    sub.add_parser("tools", help="List registered tools and their output formats.")
    return parser


def dispatch(args: argparse.Namespace) -> int:
    return int(COMMANDS[args.command](args))


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose, args.log_file)

    try:
        return dispatch(args)
    except CorpusError as e:
        print(f"Corpus validation failed ({len(e.problems)} problem(s)):", file=sys.stderr)
        for p in e.problems:
            print(f"  - {p}", file=sys.stderr)
        return EXIT_CORPUS
    except DefectBenchError as e:
        logger.debug("command failed", exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE
