from __future__ import annotations

import fnmatch
import logging
import shutil
from pathlib import Path
from typing import Sequence

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDES = ("__pycache__", "*.pyc", "*.log")


def _excluded(rel: Path, patterns: Sequence[str]) -> bool:
    return any(fnmatch.fnmatch(part, pat) for part in rel.parts for pat in patterns)


def copy_tree(src: str, dst: str, *, exclude: Sequence[str] = DEFAULT_EXCLUDES, dry_run: bool = False) -> int:
    """Copy src into dst, skipping anything matching exclude. Returns files copied."""

    s = Path(src)
    d = Path(dst)
    if not s.exists():
        raise FileNotFoundError(src)

    if dry_run:
        logger.info("Would copy tree %s -> %s", str(s), str(d))
        return 0

    copied = 0
    d.mkdir(parents=True, exist_ok=True)
    for item in sorted(s.rglob("*")):
        rel = item.relative_to(s)
        if _excluded(rel, exclude):
            continue
        out = d / rel
        if item.is_dir():
            out.mkdir(parents=True, exist_ok=True)
        else:
            out.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(item, out)
            copied += 1
    logger.info("Copied %d files %s -> %s", copied, str(s), str(d))
    return copied
