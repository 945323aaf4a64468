"""pipeline

Run orchestration: output normalization, per-tool evaluation and the
composition root. Depends on ``defect_bench/`` and ``tools/``, never on
``cli/``.
"""
