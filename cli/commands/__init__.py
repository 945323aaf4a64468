"""One module per ``defect-bench`` subcommand; each exposes ``run_<name>(args) -> int``."""
