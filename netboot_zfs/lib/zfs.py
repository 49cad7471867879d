from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .command import run_cmd
from .env import PATHS
from .hwdetect import HostProfile
from .storage import PartitionPlan, PartitionRole

logger = logging.getLogger(__name__)

Props = Tuple[Tuple[str, str], ...]

BOOTFS = "rpool/ROOT/ubuntu"
SNAPSHOT_TAG = "shiny_new"

ZSYS_BOOTFS = "com.ubuntu.zsys:bootfs"
ZSYS_LAST_USED = "com.ubuntu.zsys:last-used"
ZSYS_BOOTFS_DATASETS = "com.ubuntu.zsys:bootfs-datasets"
AUTO_SNAPSHOT = "com.sun:auto-snapshot"

_COMMON_POOL_OPTIONS: Props = (("ashift", "12"), ("autotrim", "on"))

RPOOL_FS_OPTIONS: Props = (
    ("acltype", "posixacl"),
    ("xattr", "sa"),
    ("dnodesize", "auto"),
    ("relatime", "on"),
    ("canmount", "off"),
    ("compression", "lz4"),
    ("normalization", "formD"),
    ("mountpoint", "none"),
)

BPOOL_FS_OPTIONS: Props = (
    ("devices", "off"),
    ("acltype", "posixacl"),
    ("xattr", "sa"),
    ("compression", "off"),
    ("normalization", "formD"),
    ("relatime", "on"),
    ("canmount", "off"),
    ("mountpoint", "none"),
)


@dataclass(frozen=True)
class DatasetSpec:
    name: str
    properties: Props = ()
    volume_size: Optional[str] = None

    def prop(self, key: str) -> Optional[str]:
        return dict(self.properties).get(key)

    @property
    def is_volume(self) -> bool:
        return self.volume_size is not None


@dataclass(frozen=True)
class PoolSpec:
    name: str
    device: str
    options: Props
    fs_options: Props
    datasets: Tuple[DatasetSpec, ...]
    force: bool = True


@dataclass(frozen=True)
class PoolTopology:
    rpool: PoolSpec
    bpool: Optional[PoolSpec]
    altroot: str

    @property
    def pools(self) -> List[PoolSpec]:
        """Pools in creation order."""
        return [self.rpool] + ([self.bpool] if self.bpool else [])

    @property
    def swap_volume(self) -> Optional[DatasetSpec]:
        return next((d for d in self.rpool.datasets if d.is_volume), None)


def root_datasets(last_used: int) -> Tuple[DatasetSpec, ...]:
    """The fixed OS/user-data split; independent of any operator input."""

    root = BOOTFS
    return (
        DatasetSpec("rpool/ROOT", (("canmount", "off"), ("mountpoint", "none"))),
        DatasetSpec(root, (("mountpoint", "/"), (ZSYS_BOOTFS, "yes"), (ZSYS_LAST_USED, str(last_used)))),
        # Container only; never mounted itself.
        DatasetSpec(
            f"{root}/var",
            ((ZSYS_BOOTFS, "no"), ("canmount", "off"), ("setuid", "off"), ("exec", "off"), ("devices", "off")),
        ),
        DatasetSpec(f"{root}/var/lib", (("exec", "on"),)),
        DatasetSpec(f"{root}/var/log"),
        DatasetSpec(f"{root}/var/spool"),
        DatasetSpec(f"{root}/var/mail"),
        DatasetSpec(f"{root}/var/cache", ((AUTO_SNAPSHOT, "false"),)),
        DatasetSpec(f"{root}/var/nfs", ((AUTO_SNAPSHOT, "false"), ("mountpoint", "/var/lib/nfs"))),
        DatasetSpec(f"{root}/var/tmp", ((AUTO_SNAPSHOT, "false"), ("exec", "on"))),
        DatasetSpec(f"{root}/tmp", ((AUTO_SNAPSHOT, "false"), (ZSYS_BOOTFS, "no"), ("exec", "on"))),
        DatasetSpec(
            "rpool/home",
            ((ZSYS_BOOTFS_DATASETS, root), ("setuid", "off"), ("devices", "off"), ("mountpoint", "/home")),
        ),
        DatasetSpec("rpool/home/root", (("mountpoint", "/root"),)),
    )


def swap_volume(size_gib: int) -> DatasetSpec:
    return DatasetSpec(
        "rpool/swap",
        (
            ("compression", "zle"),
            ("logbias", "throughput"),
            ("sync", "always"),
            ("primarycache", "metadata"),
            ("secondarycache", "none"),
            (ZSYS_BOOTFS_DATASETS, BOOTFS),
            (AUTO_SNAPSHOT, "false"),
        ),
        volume_size=f"{size_gib}G",
    )


def build_topology(
    plan: PartitionPlan,
    profile: HostProfile,
    *,
    last_used: int,
    altroot: str = PATHS.target_root,
) -> PoolTopology:
    """Pools and datasets for plan.

    A boot pool exists only when the plan carries a ZFS boot partition. On
    the whole-disk path the root pool must stay GRUB-readable.
    """

    rpool_device = plan.pool_device(PartitionRole.ZFS_ROOT)
    if rpool_device is None:
        raise ValueError("plan has no ZFS root partition")

    datasets = list(root_datasets(last_used))
    if not profile.hibernation and profile.swap_gib > 0:
        datasets.append(swap_volume(profile.swap_gib))

    if plan.whole_disk_pool:
        options = (("compatibility", "grub2"),) + _COMMON_POOL_OPTIONS
        fs_options = tuple(kv for kv in RPOOL_FS_OPTIONS if kv[0] != "dnodesize")
    else:
        options = _COMMON_POOL_OPTIONS
        fs_options = RPOOL_FS_OPTIONS

    rpool = PoolSpec("rpool", rpool_device, options, fs_options, tuple(datasets))

    bpool = None
    bpool_device = plan.pool_device(PartitionRole.ZFS_BOOT)
    if bpool_device:
        bpool = PoolSpec(
            "bpool",
            bpool_device,
            _COMMON_POOL_OPTIONS + (("compatibility", "grub2"), ("cachefile", PATHS.zpool_cache)),
            BPOOL_FS_OPTIONS,
            (DatasetSpec("bpool/boot", (("mountpoint", "/boot"),)),),
            force=False,
        )

    topology = PoolTopology(rpool=rpool, bpool=bpool, altroot=altroot)
    logger.info(
        "Topology: %s",
        ", ".join(f"{p.name}@{p.device}({len(p.datasets)} datasets)" for p in topology.pools),
    )
    return topology


def _opts(flag: str, props: Props) -> List[str]:
    out: List[str] = []
    for k, v in props:
        out += [flag, f"{k}={v}"]
    return out


def create_pool(pool: PoolSpec, *, altroot: str, dry_run: bool = False) -> None:
    argv = ["zpool", "create"]
    if pool.force:
        argv.append("-f")
    argv += _opts("-o", pool.options) + _opts("-O", pool.fs_options)
    argv += ["-R", altroot, pool.name, pool.device]
    run_cmd(argv, dry_run=dry_run)


def create_dataset(ds: DatasetSpec, *, dry_run: bool = False) -> None:
    argv = ["zfs", "create"]
    if ds.volume_size:
        argv += ["-V", ds.volume_size]
    argv += _opts("-o", ds.properties) + [ds.name]
    run_cmd(argv, dry_run=dry_run)


def snapshot_pool(name: str, *, tag: str = SNAPSHOT_TAG, dry_run: bool = False) -> None:
    run_cmd(["zfs", "snapshot", "-r", f"{name}@{tag}"], dry_run=dry_run)


def export_pool(name: str, *, check: bool = True, dry_run: bool = False) -> bool:
    return run_cmd(["zpool", "export", "-f", name], check=check, dry_run=dry_run).returncode == 0


def pool_exists(name: str, *, dry_run: bool = False) -> bool:
    return run_cmd(["zfs", "list", name], check=False, dry_run=dry_run).returncode == 0
