from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class Paths:
    target_root: str = "/mnt"
    efi_dir: str = "/sys/firmware/efi"
    sys_class_net: str = "/sys/class/net"
    proc_net_route: str = "/proc/net/route"
    proc_meminfo: str = "/proc/meminfo"
    proc_cpuinfo: str = "/proc/cpuinfo"
    proc_mounts: str = "/proc/mounts"
    proc_swaps: str = "/proc/swaps"
    proc_cmdline: str = "/proc/cmdline"
    dmi_dir: str = "/sys/class/dmi/id"
    device_tree_model: str = "/proc/device-tree/model"
    disk_by_id: str = "/dev/disk/by-id"
    hostname_file: str = "/etc/hostname"
    hosts_file: str = "/etc/hosts"
    zpool_cache: str = "/etc/zfs/zpool.cache"
    log_default: str = "/var/log/netboot-zfs.log"


PATHS = Paths()


def read_text(path: Path) -> Optional[str]:
    """Read a small sysfs/procfs file, returning None when absent or empty."""

    try:
        txt = path.read_text(encoding="utf-8", errors="ignore").strip()
        return txt or None
    except OSError:
        return None
