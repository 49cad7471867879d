from __future__ import annotations

import logging
import os
from pathlib import Path

from .build_steps import ALL_STEPS, BuildCtx
from .config import Config
from .errors import ProvisionError

logger = logging.getLogger(__name__)


def check_build_env(cfg: Config, *, dry_run: bool) -> None:
    work = Path(cfg.build_work_dir).resolve()
    if str(work) == "/":
        raise ProvisionError("The build work dir must not be /")
    if not dry_run and os.geteuid() != 0:
        raise ProvisionError("Building the image requires root permissions; run with sudo")


def run_build(cfg: Config, *, dry_run: bool = False) -> BuildCtx:
    """Build the netboot initrd, kernel copy and squashfs root image."""

    check_build_env(cfg, dry_run=dry_run)
    ctx = BuildCtx(cfg=cfg, dry_run=dry_run)
    logger.info("=== Building netboot image in %s ===", str(ctx.work_dir))
    for fn in ALL_STEPS:
        logger.info("Running build step %s", fn.__name__)
        fn(ctx=ctx)
    return ctx
