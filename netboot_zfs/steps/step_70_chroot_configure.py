from __future__ import annotations

import logging
import shutil
from pathlib import Path

from ..executor import InstallCtx, ProvisionState
from ..lib.bootloader import SCRIPT_NAME, ChrootScriptSettings, render_chroot_script
from ..lib.chroot import chroot_cmd, mount_chroot_binds
from ..lib.storage import PartitionRole
from ..lib.sysconfig import write_file

logger = logging.getLogger(__name__)

STUB_RESOLV = "run/systemd/resolve/stub-resolv.conf"


class ChrootConfigureStep:
    step_id = "70_chroot_configure"
    reaches = ProvisionState.CONFIGURED

    def settings_for(self, ctx: InstallCtx) -> ChrootScriptSettings:
        return ChrootScriptSettings(
            firmware=ctx.profile.firmware,
            locale=ctx.settings.locale,
            timezone=ctx.settings.timezone,
            grub_disk=ctx.plan.pool_disk,
            efi_device=ctx.plan.pool_device(PartitionRole.EFI),
            zvol_swap=ctx.topology.swap_volume is not None,
            has_bpool=ctx.topology.bpool is not None,
        )

    def _copy_resolver(self, ctx: InstallCtx) -> None:
        dst = Path(ctx.target_root) / STUB_RESOLV
        if ctx.dry_run:
            logger.info("Would copy /etc/resolv.conf to %s", str(dst))
            return
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile("/etc/resolv.conf", dst)

    def run(self, ctx: InstallCtx) -> None:
        root = ctx.target_root
        script = write_file(
            root, SCRIPT_NAME, render_chroot_script(self.settings_for(ctx)), mode=0o755, dry_run=ctx.dry_run
        )

        mount_chroot_binds(root, dry_run=ctx.dry_run)
        if ctx.settings.netbooted:
            self._copy_resolver(ctx)

        try:
            chroot_cmd(root, ["bash", "-c", f"/{SCRIPT_NAME}"], dry_run=ctx.dry_run)
        finally:
            if not ctx.dry_run:
                script.unlink(missing_ok=True)
        logger.info("Chroot configuration complete")
