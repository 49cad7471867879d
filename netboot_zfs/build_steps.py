from __future__ import annotations

import logging
import os
import re
import shutil
from dataclasses import dataclass
from pathlib import Path

from .config import Config
from .errors import ProbeError
from .lib.assets import copy_tree
from .lib.chroot import chroot_cmd
from .lib.command import run_cmd
from .lib.net import download_file
from .lib.pkg import debootstrap_rootfs, required_components
from .lib.sysconfig import (
    NETPLAN_PATH,
    configure_locale_timezone,
    permit_root_login,
    render_netplan,
    set_root_password,
    write_file,
)

logger = logging.getLogger(__name__)

IMAGE_LABEL = "netboot"
INSTALL_PREFIX = "opt/netboot-zfs"
UNIT_NAME = "bootscript.service"
WANTS_DIR = "etc/systemd/system/multi-user.target.wants"

BOOTSCRIPT_UNIT = f"""[Unit]
Description=Run the boot script named on the kernel command line
After=network-online.target
Wants=network-online.target

[Service]
Type=oneshot
Environment=PYTHONPATH=/{INSTALL_PREFIX}
ExecStart=/usr/bin/python3 -m netboot_zfs bootscript
StandardOutput=journal+console

[Install]
WantedBy=multi-user.target
"""


@dataclass(frozen=True)
class BuildCtx:
    cfg: Config
    dry_run: bool

    @property
    def work_dir(self) -> Path:
        return Path(self.cfg.build_work_dir)

    @property
    def img_path(self) -> Path:
        return self.work_dir / "rootfs.img"

    @property
    def rootfs_mnt(self) -> Path:
        return self.work_dir / "rootfs.mnt"

    @property
    def squashfs_path(self) -> Path:
        return self.img_path.with_suffix(".squashfs")


def step_00_initrd(*, ctx: BuildCtx) -> None:
    conf = Path(ctx.cfg.initramfs_dir)
    if not conf.is_dir():
        raise ProbeError(f"initramfs config dir not found: {conf}")
    if not ctx.dry_run:
        ctx.work_dir.mkdir(parents=True, exist_ok=True)
    run_cmd(["mkinitramfs", "-d", str(conf), "-o", str(ctx.work_dir / "initrd.gz")], dry_run=ctx.dry_run)


def step_01_copy_kernel(*, ctx: BuildCtx) -> None:
    run_cmd(["cp", "-L", "/boot/vmlinuz", str(ctx.work_dir / "vmlinuz")], dry_run=ctx.dry_run)


def step_02_prepare_image(*, ctx: BuildCtx) -> None:
    img = str(ctx.img_path)
    if not ctx.dry_run:
        ctx.rootfs_mnt.mkdir(parents=True, exist_ok=True)
    run_cmd(["truncate", "-s", ctx.cfg.image_size, img], dry_run=ctx.dry_run)
    run_cmd(["shred", "-n", "0", "-z", img], dry_run=ctx.dry_run)
    run_cmd(["mkfs.ext2", "-F", "-L", IMAGE_LABEL, img], dry_run=ctx.dry_run)
    run_cmd(["mount", img, str(ctx.rootfs_mnt)], dry_run=ctx.dry_run)


def step_03_debootstrap(*, ctx: BuildCtx) -> None:
    cfg = ctx.cfg
    rootfs = ctx.rootfs_mnt
    components = required_components(cfg.build_include_packages)
    logger.info("Components for image packages: %s", ",".join(components))

    debootstrap_rootfs(
        target_root=str(rootfs),
        suite=cfg.release,
        mirror=cfg.mirror,
        arch=cfg.arch,
        include=cfg.build_include_packages,
        exclude=cfg.exclude_packages,
        components=components,
        dry_run=ctx.dry_run,
    )
    if not ctx.dry_run:
        os.chmod(rootfs / "root", 0o700)
        os.chmod(rootfs / "var/tmp", 0o1777)


def _haveged_args(rootfs: Path, *, dry_run: bool) -> None:
    p = rootfs / "etc/default/haveged"
    if dry_run or not p.exists():
        logger.info("Skipping haveged DAEMON_ARGS (%s)", "dry run" if dry_run else "not installed")
        return
    txt = re.sub(r"(?m)^#?DAEMON_ARGS.*$", 'DAEMON_ARGS="-w 1024"', p.read_text(encoding="utf-8"))
    p.write_text(txt, encoding="utf-8")


def _stage_authorized_keys(ctx: BuildCtx) -> None:
    url = ctx.cfg.authorized_keys_url
    if not url:
        return
    keys = download_file(
        url,
        str(ctx.work_dir),
        retries=ctx.cfg.download_retries,
        delay_s=ctx.cfg.retry_delay_s,
        dry_run=ctx.dry_run,
    )
    ssh_dir = ctx.rootfs_mnt / "root/.ssh"
    if ctx.dry_run:
        logger.info("Would stage %s into %s", str(keys), str(ssh_dir))
        return
    ssh_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
    dst = ssh_dir / "authorized_keys"
    shutil.copyfile(keys, dst)
    os.chmod(dst, 0o600)


def step_04_configure(*, ctx: BuildCtx) -> None:
    cfg = ctx.cfg
    root = str(ctx.rootfs_mnt)

    write_file(root, "etc/hostname", cfg.build_hostname + "\n", dry_run=ctx.dry_run)
    write_file(root, NETPLAN_PATH, render_netplan(), mode=0o600, dry_run=ctx.dry_run)

    _haveged_args(ctx.rootfs_mnt, dry_run=ctx.dry_run)
    chroot_cmd(root, ["update-rc.d", "haveged", "defaults"], dry_run=ctx.dry_run)
    configure_locale_timezone(root, cfg.locale, cfg.timezone, dry_run=ctx.dry_run)

    if cfg.enable_ssh:
        chroot_cmd(
            root,
            ["ln", "-sf", "/usr/lib/systemd/system/ssh.service", f"/{WANTS_DIR}/ssh.service"],
            dry_run=ctx.dry_run,
        )
        permit_root_login(root, dry_run=ctx.dry_run)
        _stage_authorized_keys(ctx)

    set_root_password(root, cfg.root_password, dry_run=ctx.dry_run)


def step_05_stage_bootscript(*, ctx: BuildCtx) -> None:
    root = str(ctx.rootfs_mnt)
    package_dir = Path(__file__).resolve().parent

    copy_tree(str(package_dir), str(ctx.rootfs_mnt / INSTALL_PREFIX / package_dir.name), dry_run=ctx.dry_run)
    write_file(root, f"etc/systemd/system/{UNIT_NAME}", BOOTSCRIPT_UNIT, mode=0o644, dry_run=ctx.dry_run)
    chroot_cmd(
        root,
        ["ln", "-sf", f"/etc/systemd/system/{UNIT_NAME}", f"/{WANTS_DIR}/{UNIT_NAME}"],
        dry_run=ctx.dry_run,
    )


def step_06_squashfs(*, ctx: BuildCtx) -> None:
    rootfs = ctx.rootfs_mnt
    if not ctx.dry_run:
        for name in ("bin", "lib", "sbin"):
            leftover = rootfs / f"{name}.usr-is-merged"
            if leftover.is_dir():
                leftover.rmdir()

    run_cmd(["mksquashfs", str(rootfs), str(ctx.squashfs_path), "-noappend"], dry_run=ctx.dry_run)
    run_cmd(["umount", str(rootfs)], dry_run=ctx.dry_run)
    logger.info("Completed image files at: %s, %s", str(ctx.img_path), str(ctx.squashfs_path))


ALL_STEPS = [
    step_00_initrd,
    step_01_copy_kernel,
    step_02_prepare_image,
    step_03_debootstrap,
    step_04_configure,
    step_05_stage_bootscript,
    step_06_squashfs,
]
