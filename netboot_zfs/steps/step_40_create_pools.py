from __future__ import annotations

import logging
import os
from pathlib import Path

from ..executor import InstallCtx, ProvisionState
from ..lib.block import wait_for_device
from ..lib.command import run_cmd
from ..lib.storage import create_partition
from ..lib.zfs import create_dataset, create_pool

logger = logging.getLogger(__name__)


class CreatePoolsStep:
    step_id = "40_create_pools"
    reaches = ProvisionState.POOLS_CREATED

    def _carve_after_pool(self, ctx: InstallCtx) -> None:
        plan = ctx.plan
        late = [p for p in plan.partitions if p.after_pool]
        for spec in late:
            create_partition(plan.disk, spec, dry_run=ctx.dry_run)
        if late:
            run_cmd(["partprobe", plan.disk], dry_run=ctx.dry_run)

    def _prepare_root(self, ctx: InstallCtx) -> None:
        target = Path(ctx.target_root)
        run_dir = target / "run"
        if ctx.dry_run:
            logger.info("Would prepare %s (permissions, dpkg status, /run tmpfs)", str(target))
            run_cmd(["mount", "-t", "tmpfs", "tmpfs", str(run_dir)], dry_run=True)
            return

        for rel, mode in (("root", 0o700), ("var/tmp", 0o1777)):
            p = target / rel
            p.mkdir(parents=True, exist_ok=True)
            os.chmod(p, mode)

        # apt is unhappy later without these
        (target / "var/lib/dpkg").mkdir(parents=True, exist_ok=True)
        (target / "var/lib/dpkg/status").touch()

        run_dir.mkdir(parents=True, exist_ok=True)
        run_cmd(["mount", "-t", "tmpfs", "tmpfs", str(run_dir)])
        (run_dir / "lock").mkdir(exist_ok=True)

    def run(self, ctx: InstallCtx) -> None:
        topo = ctx.topology
        for pool in topo.pools:
            create_pool(pool, altroot=topo.altroot, dry_run=ctx.dry_run)
            if pool is topo.rpool:
                self._carve_after_pool(ctx)
            for ds in pool.datasets:
                create_dataset(ds, dry_run=ctx.dry_run)

        swap = topo.swap_volume
        if swap is not None:
            wait_for_device(f"/dev/zvol/{swap.name}", dry_run=ctx.dry_run)

        self._prepare_root(ctx)
        logger.info("Pools created: %s", ", ".join(p.name for p in topo.pools))
