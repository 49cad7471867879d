from __future__ import annotations

import logging
from pathlib import Path

from ..executor import InstallCtx
from ..lib.hosts import update_hosts_file
from ..lib.storage import PartitionRole
from ..lib.sysconfig import (
    FSTAB_PATH,
    NETPLAN_PATH,
    SOURCES_LIST_PATH,
    SWAP_LABEL,
    ZVOL_SWAP_DEVICE,
    make_swap,
    render_netplan,
    render_sources_list,
    set_root_password,
    swap_fstab_line,
    write_file,
)

logger = logging.getLogger(__name__)


class WriteConfigStep:
    step_id = "60_write_config"
    reaches = None

    def _configure_swap(self, ctx: InstallCtx) -> None:
        root = ctx.target_root
        if ctx.topology.swap_volume is not None:
            make_swap(ZVOL_SWAP_DEVICE, dry_run=ctx.dry_run)
            write_file(root, FSTAB_PATH, swap_fstab_line(ZVOL_SWAP_DEVICE), append=True, dry_run=ctx.dry_run)
            return

        device = ctx.plan.device(PartitionRole.SWAP)
        if device is None:
            logger.info("No swap configured")
            return
        make_swap(device, label=SWAP_LABEL, dry_run=ctx.dry_run)
        write_file(
            root, FSTAB_PATH, swap_fstab_line(f"/dev/disk/by-label/{SWAP_LABEL}"), append=True, dry_run=ctx.dry_run
        )

    def run(self, ctx: InstallCtx) -> None:
        root = ctx.target_root
        s = ctx.settings

        set_root_password(root, s.root_password, dry_run=ctx.dry_run)
        write_file(root, "etc/hostname", s.hostname.short_name + "\n", dry_run=ctx.dry_run)
        update_hosts_file(s.hostname, hosts_file=str(Path(root) / "etc/hosts"), dry_run=ctx.dry_run)
        write_file(root, SOURCES_LIST_PATH, render_sources_list(s.release, mirror=s.mirror), dry_run=ctx.dry_run)
        write_file(root, NETPLAN_PATH, render_netplan(), mode=0o600, dry_run=ctx.dry_run)
        self._configure_swap(ctx)
        logger.info("Wrote configuration for %s into %s", s.hostname.fqdn, root)
