from __future__ import annotations

from ..executor import InstallCtx, ProvisionState
from ..lib.pkg import debootstrap_rootfs


class InstallBaseStep:
    step_id = "50_install_base"
    reaches = ProvisionState.BASE_INSTALLED

    def run(self, ctx: InstallCtx) -> None:
        s = ctx.settings
        debootstrap_rootfs(
            target_root=ctx.target_root,
            suite=s.release,
            mirror=s.mirror,
            arch=s.arch,
            include=s.include_packages,
            exclude=s.exclude_packages,
            dry_run=ctx.dry_run,
        )
