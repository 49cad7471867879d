from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..errors import InsufficientSpaceError
from .block import partition_path
from .command import run_cmd
from .firmware import FirmwareMode
from .hwdetect import GIB, HostProfile

logger = logging.getLogger(__name__)

SECTOR = 512
MIB = 1024**2

# GPT: protective MBR + header + 32 sectors of entries at the head, and the
# backup entries + header at the tail.
GPT_FIRST_USABLE = 34
GPT_TAIL_SECTORS = 33
ALIGN_SECTORS = 2048  # 1 MiB

BIOS_BOOT_START = GPT_FIRST_USABLE
BIOS_BOOT_END = ALIGN_SECTORS - 1
EFI_SIZE_BYTES = 100 * MIB
ZFS_BOOT_SIZE_BYTES = 2 * GIB
# zpool refuses vdevs smaller than this.
MIN_POOL_BYTES = 64 * MIB

# Partition numbers are fixed per role so device names are predictable.
PART_EFI = 1
PART_BIOS = 1
PART_BOOT = 2
PART_SWAP = 3
PART_ROOT = 4
# On the single-pool path zpool takes partition 1 itself.
PART_WHOLE_DISK_ROOT = 1
PART_WHOLE_DISK_BIOS = 2


class PartitionRole(str, Enum):
    EFI = "efi"
    BIOS_BOOT = "bios_boot"
    SWAP = "swap"
    ZFS_BOOT = "zfs_boot"
    ZFS_ROOT = "zfs_root"


GPT_TYPE_CODES = {
    PartitionRole.EFI: "EF00",
    PartitionRole.BIOS_BOOT: "EF02",
    PartitionRole.SWAP: "8200",
    PartitionRole.ZFS_BOOT: "BF00",
    PartitionRole.ZFS_ROOT: "BF00",
}


@dataclass(frozen=True)
class PartitionSpec:
    index: int
    role: PartitionRole
    start_sector: int
    size_sectors: int
    remainder: bool = False
    # Whole-disk pool path: zpool writes this partition itself, and the BIOS
    # stub can only be carved once the pool has laid out the disk.
    pool_managed: bool = False
    after_pool: bool = False

    @property
    def type_code(self) -> str:
        return GPT_TYPE_CODES[self.role]

    @property
    def end_sector(self) -> int:
        """Last sector (inclusive)."""
        return self.start_sector + self.size_sectors - 1

    @property
    def start_bytes(self) -> int:
        return self.start_sector * SECTOR

    @property
    def size_bytes(self) -> int:
        return self.size_sectors * SECTOR


@dataclass(frozen=True)
class PartitionPlan:
    disk: str
    pool_disk: str
    capacity_bytes: int
    firmware: FirmwareMode
    partitions: Tuple[PartitionSpec, ...]
    whole_disk_pool: bool = False

    def get(self, role: PartitionRole) -> Optional[PartitionSpec]:
        return next((p for p in self.partitions if p.role == role), None)

    def has(self, role: PartitionRole) -> bool:
        return self.get(role) is not None

    @property
    def root(self) -> PartitionSpec:
        return self.partitions[-1]

    @property
    def allocatable_bytes(self) -> int:
        """Space from the first aligned sector to the last usable sector."""
        return (_allocatable_end(self.capacity_bytes) - ALIGN_SECTORS) * SECTOR

    def device(self, role: PartitionRole) -> Optional[str]:
        """Kernel device node for role (for mkswap/mkfs)."""
        spec = self.get(role)
        return partition_path(self.disk, spec.index) if spec else None

    def pool_device(self, role: PartitionRole) -> Optional[str]:
        """Stable path for role, as handed to zpool."""
        spec = self.get(role)
        if spec is None:
            return None
        if spec.pool_managed:
            return self.pool_disk
        return partition_path(self.pool_disk, spec.index)

    def device_candidates(self) -> List[str]:
        """Every path that must not be in use before the disk is wiped."""
        paths = [self.disk]
        for spec in self.partitions:
            paths.append(partition_path(self.disk, spec.index))
        if self.whole_disk_pool:
            paths.append(partition_path(self.disk, 9))
        return paths

    def to_dict(self) -> Dict[str, Any]:
        return {
            "disk": self.disk,
            "pool_disk": self.pool_disk,
            "capacity_bytes": self.capacity_bytes,
            "firmware": self.firmware.value,
            "whole_disk_pool": self.whole_disk_pool,
            "partitions": [
                {
                    "index": p.index,
                    "role": p.role.value,
                    "type_code": p.type_code,
                    "start_sector": p.start_sector,
                    "size_bytes": p.size_bytes,
                    "remainder": p.remainder,
                }
                for p in self.partitions
            ],
        }


def _allocatable_end(capacity_bytes: int) -> int:
    """First sector past the last usable one."""
    return capacity_bytes // SECTOR - GPT_TAIL_SECTORS


def swap_size_gib(profile: HostProfile) -> int:
    """Swap partition size, 0 meaning no swap partition.

    Only hibernation needs a partition outside the pool; the configured
    size is capped at installed memory.
    """

    if not profile.hibernation or profile.swap_gib <= 0:
        return 0
    return min(profile.swap_gib, profile.memory_gib)


def check_invariants(plan: PartitionPlan) -> None:
    roles = [p.role for p in plan.partitions]
    if (PartitionRole.EFI in roles) == (PartitionRole.BIOS_BOOT in roles):
        raise ValueError("Plan must contain exactly one of EFI or BIOS boot")
    if roles[-1] != PartitionRole.ZFS_ROOT or roles.count(PartitionRole.ZFS_ROOT) != 1:
        raise ValueError("ZFS root must be the single, last partition")
    for a, b in zip(plan.partitions, plan.partitions[1:]):
        if a.end_sector >= b.start_sector:
            raise ValueError(f"Partitions {a.index} and {b.index} overlap")
    if plan.root.end_sector >= _allocatable_end(plan.capacity_bytes):
        raise ValueError("ZFS root runs past the end of the disk")


def build_plan(
    profile: HostProfile,
    capacity_bytes: int,
    *,
    disk: str,
    pool_disk: Optional[str] = None,
) -> PartitionPlan:
    """Derive the partition layout for disk from the host profile.

    BIOS without hibernation hands the whole disk to a single pool and tucks
    the BIOS boot stub into the gap zpool leaves at the head of the disk.
    Every other combination gets a boot stub (EFI or BIOS), optional swap,
    a 2 GiB boot pool partition and a root pool partition taking the rest.
    """

    pool_disk = pool_disk or disk
    end = _allocatable_end(capacity_bytes)
    min_pool = MIN_POOL_BYTES // SECTOR
    bios_stub_sectors = BIOS_BOOT_END - BIOS_BOOT_START + 1

    if profile.firmware == FirmwareMode.BIOS and not profile.hibernation:
        if end - ALIGN_SECTORS < min_pool:
            raise InsufficientSpaceError((ALIGN_SECTORS + min_pool + GPT_TAIL_SECTORS) * SECTOR, capacity_bytes)
        parts: List[PartitionSpec] = [
            PartitionSpec(PART_WHOLE_DISK_BIOS, PartitionRole.BIOS_BOOT, BIOS_BOOT_START, bios_stub_sectors, after_pool=True),
            PartitionSpec(
                PART_WHOLE_DISK_ROOT,
                PartitionRole.ZFS_ROOT,
                ALIGN_SECTORS,
                end - ALIGN_SECTORS,
                remainder=True,
                pool_managed=True,
            ),
        ]
        plan = PartitionPlan(
            disk=disk,
            pool_disk=pool_disk,
            capacity_bytes=capacity_bytes,
            firmware=profile.firmware,
            partitions=tuple(parts),
            whole_disk_pool=True,
        )
        check_invariants(plan)
        logger.info("Plan: single pool on whole disk %s (BIOS, no hibernation)", pool_disk)
        return plan

    parts = []
    cursor = ALIGN_SECTORS

    if profile.firmware == FirmwareMode.EFI:
        size = EFI_SIZE_BYTES // SECTOR
        parts.append(PartitionSpec(PART_EFI, PartitionRole.EFI, cursor, size))
        cursor += size
    else:
        parts.append(PartitionSpec(PART_BIOS, PartitionRole.BIOS_BOOT, BIOS_BOOT_START, bios_stub_sectors))

    swap_gib = swap_size_gib(profile)
    if swap_gib:
        size = swap_gib * GIB // SECTOR
        parts.append(PartitionSpec(PART_SWAP, PartitionRole.SWAP, cursor, size))
        cursor += size

    size = ZFS_BOOT_SIZE_BYTES // SECTOR
    parts.append(PartitionSpec(PART_BOOT, PartitionRole.ZFS_BOOT, cursor, size))
    cursor += size

    if end - cursor < min_pool:
        raise InsufficientSpaceError((cursor + min_pool + GPT_TAIL_SECTORS) * SECTOR, capacity_bytes)
    parts.append(PartitionSpec(PART_ROOT, PartitionRole.ZFS_ROOT, cursor, end - cursor, remainder=True))

    plan = PartitionPlan(
        disk=disk,
        pool_disk=pool_disk,
        capacity_bytes=capacity_bytes,
        firmware=profile.firmware,
        partitions=tuple(parts),
    )
    check_invariants(plan)
    logger.info(
        "Plan: %s",
        ", ".join(f"{p.index}:{p.role.value}({p.size_bytes // MIB}MiB)" for p in plan.partitions),
    )
    return plan


def create_partition(disk: str, spec: PartitionSpec, *, dry_run: bool = False) -> None:
    """Write one GPT partition entry with sgdisk."""

    argv = ["sgdisk"]
    if spec.role == PartitionRole.BIOS_BOOT:
        # The stub lives below the 1 MiB alignment boundary.
        argv += ["-a", "1"]
    end = "0" if spec.remainder else str(spec.end_sector)
    argv += ["-n", f"{spec.index}:{spec.start_sector}:{end}", "-t", f"{spec.index}:{spec.type_code}", disk]
    run_cmd(argv, dry_run=dry_run)
