from __future__ import annotations

import logging

from ..executor import InstallCtx, ProvisionState
from ..lib.chroot import target_mounts, unmount_target
from ..lib.command import run_cmd
from ..lib.storage import PartitionRole
from ..lib.zfs import export_pool, snapshot_pool

logger = logging.getLogger(__name__)


class FinalizeStep:
    step_id = "90_finalize"
    reaches = ProvisionState.EXPORTED

    def run(self, ctx: InstallCtx) -> None:
        root = ctx.target_root
        topo = ctx.topology

        esp = f"{root}/boot/efi"
        if ctx.plan.has(PartitionRole.EFI) and (ctx.dry_run or esp in target_mounts(root)):
            run_cmd(["umount", esp], dry_run=ctx.dry_run)

        if topo.bpool is not None:
            snapshot_pool(topo.bpool.name, dry_run=ctx.dry_run)
            export_pool(topo.bpool.name, dry_run=ctx.dry_run)

        run_cmd(["umount", "-f", f"{root}/run"], check=False, dry_run=ctx.dry_run)
        for mp in unmount_target(root, dry_run=ctx.dry_run):
            logger.warning("Still mounted before export: %s", mp)

        snapshot_pool(topo.rpool.name, dry_run=ctx.dry_run)
        export_pool(topo.rpool.name, dry_run=ctx.dry_run)
        logger.info("Installation complete; pools exported")

        if ctx.settings.reboot:
            logger.info("Rebooting")
            run_cmd(["reboot"], dry_run=ctx.dry_run)
