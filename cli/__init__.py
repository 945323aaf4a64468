"""cli

Command surface for ``defect-bench``. Thin: parse args, resolve config, call
``pipeline``/``defect_bench``, print summaries, map errors to exit codes.
"""
