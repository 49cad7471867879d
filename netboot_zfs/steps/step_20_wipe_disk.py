from __future__ import annotations

import logging

from ..executor import InstallCtx
from ..lib.command import run_cmd

logger = logging.getLogger(__name__)


class WipeDiskStep:
    """Destroy signatures and the partition table. Nothing is recoverable after this."""

    step_id = "20_wipe_disk"
    reaches = None

    def run(self, ctx: InstallCtx) -> None:
        disk = ctx.plan.disk
        logger.warning("Wiping %s", disk)

        # Not every device supports discard; signatures may already be gone.
        for argv in (["wipefs", "-a", disk], ["blkdiscard", "-f", disk]):
            if run_cmd(argv, check=False, dry_run=ctx.dry_run).returncode != 0:
                logger.warning("%s failed on %s; continuing", argv[0], disk)

        run_cmd(["sgdisk", "--zap-all", disk], dry_run=ctx.dry_run)
        run_cmd(["partprobe", disk], dry_run=ctx.dry_run)
