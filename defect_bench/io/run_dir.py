"""defect_bench.io.run_dir

Run-id allocation for persisted run reports.

A run id is the name of a directory created with ``exist_ok=False``, so two
processes storing reports at the same time can never be handed the same id:
directory creation is the atomic step, and the loser simply retries with the
next sequence number.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

from defect_bench.errors import RunStoreFullError

# YYYYMMDD + NN (per-day sequence) + HHMMSS
RUN_ID_RE = re.compile(r"^\d{16}$")


def create_run_dir(output_root: Path, *, now: Optional[datetime] = None) -> Tuple[str, Path]:
    """Create a dated run directory like YYYYMMDDNNHHMMSS under output_root.

    - YYYYMMDD   : UTC date
    - NN         : per-day sequence number (01,02,...) computed from existing run dirs
    - HHMMSS     : UTC time (for readability + accidental collision resistance)
    """
    root = Path(output_root)
    root.mkdir(parents=True, exist_ok=True)

    now = now or datetime.now(timezone.utc)
    today = now.strftime("%Y%m%d")
    hhmmss = now.strftime("%H%M%S")

    existing_idx: List[int] = []
    for d in root.iterdir():
        if not d.is_dir():
            continue
        name = d.name
        if not name.startswith(today) or not RUN_ID_RE.match(name):
            continue
        nn = name[8:10]
        if nn.isdigit():
            existing_idx.append(int(nn))

    idx = (max(existing_idx) if existing_idx else 0) + 1

    # Concurrency-safe creation: if a directory already exists (another process),
    # increment NN and retry.
    while True:
        if idx > 99:
            raise RunStoreFullError(f"more than 99 runs stored on {today} under {root}")
        run_id = f"{today}{idx:02d}{hhmmss}"
        run_dir = root / run_id
        try:
            run_dir.mkdir(parents=True, exist_ok=False)
            return run_id, run_dir
        except FileExistsError:
            idx += 1
