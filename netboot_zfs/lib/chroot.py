from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Sequence

from .command import CmdResult, run_cmd
from .env import PATHS

logger = logging.getLogger(__name__)

BIND_SOURCES = ("/dev", "/proc", "/sys")


def chroot_cmd(
    target_root: str,
    argv: Sequence[str],
    *,
    check: bool = True,
    input_text: str | None = None,
    dry_run: bool = False,
) -> CmdResult:
    """Run a command inside target root."""

    return run_cmd(["chroot", target_root, *argv], check=check, input_text=input_text, dry_run=dry_run)


def mount_chroot_binds(target_root: str, *, dry_run: bool = False) -> None:
    # Recursive so /dev/pts, /sys/firmware/efi/efivars etc. come along
    for src in BIND_SOURCES:
        dst = f"{target_root}{src}"
        if not dry_run:
            Path(dst).mkdir(parents=True, exist_ok=True)
        run_cmd(["mount", "--rbind", src, dst], dry_run=dry_run)


def umount_chroot_binds(target_root: str, *, dry_run: bool = False) -> None:
    for src in reversed(BIND_SOURCES):
        run_cmd(["umount", "-lf", f"{target_root}{src}"], check=False, dry_run=dry_run)


def target_mounts(target_root: str, *, proc_mounts: str = PATHS.proc_mounts, include_zfs: bool = False) -> List[str]:
    """Mount points at or below target_root, deepest (most recent) first."""

    root = target_root.rstrip("/") or "/"
    try:
        lines = Path(proc_mounts).read_text(encoding="utf-8").splitlines()
    except OSError:
        return []

    found: List[str] = []
    for line in lines:
        fields = line.split()
        if len(fields) < 3:
            continue
        mountpoint, fstype = fields[1], fields[2]
        if fstype == "zfs" and not include_zfs:
            continue
        if mountpoint == root or mountpoint.startswith(root + "/"):
            found.append(mountpoint)
    return list(reversed(found))


def unmount_target(
    target_root: str,
    *,
    proc_mounts: str = PATHS.proc_mounts,
    include_zfs: bool = False,
    dry_run: bool = False,
) -> List[str]:
    """Lazily unmount everything under target_root (best-effort).

    ZFS mounts are left to `zpool export` unless include_zfs is set.
    Returns the mount points that failed to unmount.
    """

    failed: List[str] = []
    for mp in target_mounts(target_root, proc_mounts=proc_mounts, include_zfs=include_zfs):
        if run_cmd(["umount", "-lf", mp], check=False, dry_run=dry_run).returncode != 0:
            logger.warning("Failed to unmount %s", mp)
            failed.append(mp)
    return failed
