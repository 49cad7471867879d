from __future__ import annotations

import logging

from ..errors import DeviceBusyError
from ..executor import InstallCtx
from ..lib.block import busy_devices, is_block_device

logger = logging.getLogger(__name__)


class PreflightStep:
    step_id = "10_preflight"
    reaches = None

    def run(self, ctx: InstallCtx) -> None:
        disk = ctx.plan.disk
        if ctx.dry_run:
            logger.info("Dry run: not checking that %s is a block device", disk)
        elif not is_block_device(disk):
            raise DeviceBusyError(disk, "not a block device")

        busy = busy_devices(ctx.plan.device_candidates(), disk=disk)
        if busy:
            raise DeviceBusyError(busy[0], "mounted or in use as swap")

        logger.info("Preflight OK for %s", disk)
