from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Tuple

from .lib.env import PATHS

DEFAULT_LOG_PATH = PATHS.log_default
FALLBACK_LOG_NAME = "netboot-zfs.log"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"


def _open_log_file(log_path: str) -> Tuple[logging.FileHandler, str]:
    """File handler at log_path, or at ./netboot-zfs.log if that is not writable.

    Live and netboot environments may not allow writing to /var/log.
    """

    try:
        Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path), log_path
    except OSError:
        fallback = str(Path.cwd() / FALLBACK_LOG_NAME)
        return logging.FileHandler(fallback), fallback


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
    also_console: bool = True,
    verbose: bool = False,
) -> str:
    """Configure root logging once: a file handler plus an optional console.

    verbose lowers the level to DEBUG so command output reaches both handlers.

    Returns the actual file path being used.
    """

    root = logging.getLogger()
    effective = logging.DEBUG if verbose else level
    root.setLevel(effective)

    if getattr(root, "_netboot_zfs_configured", False):
        return getattr(root, "_netboot_zfs_log_path", log_path)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    file_handler, chosen_path = _open_log_file(log_path)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    if also_console:
        console = logging.StreamHandler()
        console.setFormatter(fmt)
        console.setLevel(effective)
        root.addHandler(console)

    setattr(root, "_netboot_zfs_configured", True)
    setattr(root, "_netboot_zfs_log_path", chosen_path)

    logging.getLogger(__name__).info("Logging initialized (requested=%s, actual=%s)", log_path, chosen_path)
    return chosen_path
