from __future__ import annotations

import logging
import os
import stat
import time
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from ..errors import ProbeError, VerificationError
from .command import run_cmd
from .env import PATHS

logger = logging.getLogger(__name__)


def is_block_device(path: str) -> bool:
    try:
        return stat.S_ISBLK(os.stat(path).st_mode)
    except OSError:
        return False


def disk_capacity_bytes(disk: str, *, dry_run: bool = False) -> int:
    r = run_cmd(["blockdev", "--getsize64", disk], check=False, dry_run=dry_run)
    txt = (r.stdout or "").strip()
    if r.returncode != 0 or not txt.isdigit():
        raise ProbeError(f"Unable to determine the size of {disk}")
    return int(txt)


def resolve_by_id(disk: str, *, by_id_dir: str = PATHS.disk_by_id) -> Optional[str]:
    """Return the first /dev/disk/by-id alias pointing at disk, if any.

    Pools embed the device path, and kernel names like /dev/sda can be
    reassigned across reboots; the by-id aliases cannot.
    """

    base = Path(by_id_dir)
    if not base.is_dir():
        return None

    disk_name = Path(disk).resolve().name
    for link in sorted(base.iterdir()):
        if "-part" in link.name:
            continue
        try:
            target = link.resolve().name
        except OSError:
            continue
        if target == disk_name:
            return str(link)
    return None


def partition_path(disk: str, n: int) -> str:
    """Device path of partition n on disk (by-id aliases use -partN)."""

    if "/by-id/" in disk:
        return f"{disk}-part{n}"
    # nvme/mmcblk devices use p suffix
    if disk.endswith(tuple("0123456789")):
        return f"{disk}p{n}"
    return f"{disk}{n}"


def _active_sources(proc_mounts: str, proc_swaps: str) -> List[str]:
    sources: List[str] = []
    for path in (proc_mounts, proc_swaps):
        try:
            lines = Path(path).read_text(encoding="utf-8").splitlines()
        except OSError:
            continue
        for line in lines:
            fields = line.split()
            if fields and fields[0].startswith("/dev/"):
                sources.append(fields[0])
    return sources


def _is_partition_of(dev_name: str, disk_name: str) -> bool:
    if not dev_name.startswith(disk_name):
        return False
    rest = dev_name[len(disk_name):]
    # nvme/mmcblk partitions carry a p separator
    if disk_name[-1:].isdigit():
        if not rest.startswith("p"):
            return False
        rest = rest[1:]
    return rest.isdigit()


def busy_devices(
    candidates: Iterable[str],
    *,
    disk: Optional[str] = None,
    proc_mounts: str = PATHS.proc_mounts,
    proc_swaps: str = PATHS.proc_swaps,
) -> List[str]:
    """Return the candidates that are mounted or in use as swap.

    With disk, every active source on that disk or any of its partitions is
    reported as well, whether or not it is among the candidates.
    """

    sources = _active_sources(proc_mounts, proc_swaps)
    active = {os.path.realpath(s) for s in sources}
    busy = [c for c in candidates if os.path.realpath(c) in active]
    if disk is None:
        return busy

    seen = {os.path.realpath(b) for b in busy}
    disk_name = os.path.basename(os.path.realpath(disk))
    for source in sources:
        real = os.path.realpath(source)
        name = os.path.basename(real)
        if real in seen or not (name == disk_name or _is_partition_of(name, disk_name)):
            continue
        seen.add(real)
        busy.append(source)
    return busy


def wait_for_device(
    path: str,
    *,
    timeout_s: float = 10.0,
    poll_s: float = 0.5,
    dry_run: bool = False,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Wait for a block device node to appear after partitioning."""

    if dry_run:
        return
    run_cmd(["udevadm", "settle"], check=False)
    waited = 0.0
    while not is_block_device(path):
        if waited >= timeout_s:
            raise VerificationError(f"Device not available: {path}")
        sleep(poll_s)
        waited += poll_s
    logger.info("Device ready: %s", path)
