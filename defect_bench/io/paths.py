from __future__ import annotations

import re
from pathlib import Path
from typing import Optional, Union

_SLASH_RE = re.compile(r"/+")


def normalize_file_path(path: str, *, corpus_root: Optional[Union[str, Path]] = None) -> str:
    """Normalize a tool-reported path into a corpus-relative POSIX path.

    Tools emit paths in every shape: absolute, ``./``-prefixed, ``file://``
    URIs (SARIF), Windows separators. Matching compares files by string
    equality, so all of them must collapse to the same form.

    Heuristics
    ----------
    1) Strip ``file://`` and normalize separators to "/"
    2) If the corpus root is known and is a prefix, drop it
    3) Otherwise, if the corpus directory name appears as a path segment
       (including the first segment of a relative path), drop everything up
       to it
    4) Strip leading "./" and "/" and collapse multiple slashes

    This never raises; an unrecognizable path is returned cleaned but
    otherwise unchanged, so it simply fails to match any ground truth.
    """
    if not path:
        return ""

    s = str(path).strip()
    if s.lower().startswith("file://"):
        s = s[len("file://"):]
    s = s.replace("\\", "/")

    # Remove Windows drive letters (C:/...)
    if len(s) >= 2 and s[1] == ":":
        s = s[2:]

    if corpus_root is not None:
        root = str(corpus_root).replace("\\", "/").rstrip("/")
        if len(root) >= 2 and root[1] == ":":
            root = root[2:]
        candidates = [root]
        try:
            resolved = str(Path(corpus_root).resolve()).replace("\\", "/").rstrip("/")
            if resolved != root:
                candidates.append(resolved)
        except OSError:
            pass
        cut = False
        for prefix in candidates:
            if prefix and (s == prefix or s.startswith(prefix + "/")):
                s = s[len(prefix):]
                cut = True
                break
        if not cut:
            name = Path(root).name
            if name:
                # Relative paths from the corpus's parent ("corpus/c/a.c") have
                # no leading slash.
                while s.startswith("./"):
                    s = s[2:]
                anchored = "/" + s.lstrip("/")
                needle = f"/{name}/"
                idx = anchored.rfind(needle)
                if idx != -1:
                    s = anchored[idx + len(needle):]

    while s.startswith("./"):
        s = s[2:]
    s = s.lstrip("/")
    s = _SLASH_RE.sub("/", s)
    return s
