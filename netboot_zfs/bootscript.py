"""One-shot boot script runner for the netboot image.

Started by bootscript.service. Fetches the script named by the
``bootscript=`` kernel parameter and runs it, logging next to the download.
"""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path

from .config import Config
from .lib.cmdline import read_boot_params
from .lib.command import stream_cmd
from .lib.env import PATHS
from .lib.net import download_file

logger = logging.getLogger(__name__)


def run_script(script: Path, *, dry_run: bool = False) -> int:
    if not dry_run and not script.is_file():
        raise FileNotFoundError(f"The script file does not exist: {script}")

    log_path = script.with_suffix(".log")
    if not dry_run:
        os.chmod(script, script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    logger.info("Running script '%s' and logging to '%s'", str(script), str(log_path))
    rc = stream_cmd([str(script)], log_path=str(log_path), dry_run=dry_run)
    if rc == 0:
        logger.info("Boot script completed OK.")
    else:
        logger.error("Failure running the boot script: '%s' (exit %d)", str(script), rc)
    return rc


def run_bootscript(cfg: Config, *, cmdline_path: str = PATHS.proc_cmdline, dry_run: bool = False) -> int:
    """Returns the boot script's exit status, or 0 when none is configured."""

    params = read_boot_params(cmdline_path)
    if not params.script_url:
        logger.warning("No bootscript defined.")
        return 0

    local = download_file(
        params.script_url,
        cfg.download_dir,
        retries=cfg.download_retries,
        delay_s=cfg.retry_delay_s,
        dry_run=dry_run,
    )
    return run_script(local, dry_run=dry_run)
