"""CLI argument builder modules.

The top-level :mod:`cli.dispatch` is intentionally kept thin. Each subcommand
registers its flags via a small "arg builder" function housed here.

Each module exposes a single public function:

- :func:`cli.args.run.add_run_args`
- :func:`cli.args.compare.add_compare_args`
- :func:`cli.args.validate.add_validate_args`

This reduces merge conflicts and makes it easier to evolve one subcommand
without turning the parser setup into a god function.
"""

from __future__ import annotations

__all__ = [
    "run",
    "compare",
    "validate",
]
