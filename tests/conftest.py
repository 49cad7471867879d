"""
Pytest configuration and shared fixtures for netboot-zfs tests.

Hardware facts are supplied through fake sysfs/procfs trees under tmp_path;
nothing here touches real disks or pools.
"""

from pathlib import Path
from typing import Callable

import pytest

from netboot_zfs.lib.env import Paths
from netboot_zfs.lib.firmware import FirmwareMode
from netboot_zfs.lib.hwdetect import GIB, ChassisClass, HostProfile


# ==============================================================================
# Profile Fixtures
# ==============================================================================


@pytest.fixture
def make_profile() -> Callable[..., HostProfile]:
    """Factory for HostProfile with sensible defaults (EFI, 8 GiB, hibernation on)."""

    def _make(
        firmware: FirmwareMode = FirmwareMode.EFI,
        hibernation: bool = True,
        swap_gib: int = 4,
        memory_gib: int = 8,
        chassis: ChassisClass = ChassisClass.DESKTOP,
        mac: str = "52:54:00:12:34:56",
    ) -> HostProfile:
        return HostProfile(
            firmware=firmware,
            memory_bytes=memory_gib * GIB,
            hibernation=hibernation,
            swap_gib=swap_gib,
            chassis=chassis,
            primary_mac=mac,
        )

    return _make


# ==============================================================================
# Fake Host Filesystem
# ==============================================================================


def add_interface(net_dir: Path, name: str, mac: str, operstate: str = "up", if_type: str = "1") -> None:
    iface = net_dir / name
    iface.mkdir(parents=True)
    (iface / "address").write_text(mac + "\n")
    (iface / "operstate").write_text(operstate + "\n")
    (iface / "type").write_text(if_type + "\n")


@pytest.fixture
def fake_host(tmp_path) -> Paths:
    """
    A fake host: EFI firmware, 8 GiB RAM, laptop chassis code, eth0 as the
    default route interface, and an empty hosts file location.
    """
    root = tmp_path / "host"
    net = root / "sys/class/net"
    add_interface(net, "lo", "00:00:00:00:00:00", operstate="unknown", if_type="772")
    add_interface(net, "eth0", "AA:BB:CC:DD:11:22")

    proc = root / "proc"
    proc.mkdir(parents=True)
    (proc / "route").write_text(
        "Iface\tDestination\tGateway \tFlags\tRefCnt\tUse\tMetric\tMask\n"
        "eth0\t00000000\t0100A8C0\t0003\t0\t0\t100\t00000000\n"
        "eth0\t0000A8C0\t00000000\t0001\t0\t0\t100\t00FFFFFF\n"
    )
    (proc / "meminfo").write_text("MemTotal:        8167456 kB\nMemFree:         1000000 kB\n")
    (proc / "cpuinfo").write_text("processor\t: 0\nflags\t\t: fpu vme de pse sse2\n")
    (proc / "mounts").write_text("proc /proc proc rw 0 0\n")
    (proc / "swaps").write_text("Filename\tType\tSize\tUsed\tPriority\n")
    (proc / "cmdline").write_text("BOOT_IMAGE=/vmlinuz root=/dev/vda quiet\n")

    dmi = root / "sys/class/dmi/id"
    dmi.mkdir(parents=True)
    (dmi / "chassis_type").write_text("10\n")
    (dmi / "product_name").write_text("ThinkPad T480\n")

    efi = root / "sys/firmware/efi"
    efi.mkdir(parents=True)

    by_id = root / "dev/disk/by-id"
    by_id.mkdir(parents=True)

    etc = root / "etc"
    etc.mkdir()

    return Paths(
        target_root=str(tmp_path / "target"),
        efi_dir=str(efi),
        sys_class_net=str(net),
        proc_net_route=str(proc / "route"),
        proc_meminfo=str(proc / "meminfo"),
        proc_cpuinfo=str(proc / "cpuinfo"),
        proc_mounts=str(proc / "mounts"),
        proc_swaps=str(proc / "swaps"),
        proc_cmdline=str(proc / "cmdline"),
        dmi_dir=str(dmi),
        device_tree_model=str(root / "proc/device-tree/model"),
        disk_by_id=str(by_id),
        hostname_file=str(etc / "hostname"),
        hosts_file=str(etc / "hosts"),
        zpool_cache="/etc/zfs/zpool.cache",
        log_default=str(tmp_path / "netboot-zfs.log"),
    )
