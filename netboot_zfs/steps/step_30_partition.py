from __future__ import annotations

import logging

from ..executor import InstallCtx, ProvisionState
from ..lib.block import partition_path, wait_for_device
from ..lib.command import run_cmd
from ..lib.storage import create_partition

logger = logging.getLogger(__name__)


class PartitionStep:
    step_id = "30_partition"
    reaches = ProvisionState.PARTITIONED

    def run(self, ctx: InstallCtx) -> None:
        plan = ctx.plan
        # zpool lays out pool-managed partitions itself; the BIOS stub on that
        # path is carved after the pool exists.
        todo = [p for p in plan.partitions if not (p.pool_managed or p.after_pool)]
        for spec in todo:
            create_partition(plan.disk, spec, dry_run=ctx.dry_run)

        if not todo:
            logger.info("Whole-disk pool: no partitions to create before pool creation")
            return

        run_cmd(["partprobe", plan.disk], dry_run=ctx.dry_run)
        for spec in todo:
            wait_for_device(partition_path(plan.disk, spec.index), dry_run=ctx.dry_run)
