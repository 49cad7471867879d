"""Disk installer: inspect the host, plan the disk, provision it."""

from __future__ import annotations

import logging
import time
from typing import List, Optional

from .config import AUTO_HOSTNAME, Config
from .executor import ExecutionResult, InstallCtx, InstallSettings, Step, execute
from .lib.block import disk_capacity_bytes, resolve_by_id
from .lib.cmdline import read_boot_params
from .lib.env import PATHS, Paths
from .lib.hostname import HostnameRecord, derive_hostname
from .lib.hwdetect import HostProfile, inspect_host
from .lib.pkg import ensure_host_packages
from .lib.storage import build_plan
from .lib.zfs import build_topology
from .steps import (
    ChrootConfigureStep,
    CreatePoolsStep,
    FinalizeStep,
    InstallBaseStep,
    PartitionStep,
    PreflightStep,
    WipeDiskStep,
    WriteConfigStep,
)

logger = logging.getLogger(__name__)


def build_steps() -> List[Step]:
    return [
        PreflightStep(),
        WipeDiskStep(),
        PartitionStep(),
        CreatePoolsStep(),
        InstallBaseStep(),
        WriteConfigStep(),
        ChrootConfigureStep(),
        FinalizeStep(),
    ]


def hostname_record(cfg: Config, profile: HostProfile) -> HostnameRecord:
    """The configured hostname, or a derived one when set to "auto"."""

    if cfg.hostname == AUTO_HOSTNAME:
        return derive_hostname(profile.primary_mac, profile.chassis, cfg.domain)
    short, _, domain = cfg.hostname.partition(".")
    return HostnameRecord(short_name=short, domain=domain or cfg.domain)


def prepare(cfg: Config, *, capacity_bytes: Optional[int] = None, paths: Paths = PATHS) -> InstallCtx:
    """Inspect, plan and derive the topology; nothing is written to disk."""

    profile = inspect_host(
        hibernation=cfg.hibernation,
        swap_gib=cfg.swap_size_gib,
        paths=paths,
    )

    disk = cfg.root_disk
    pool_disk = resolve_by_id(disk, by_id_dir=paths.disk_by_id)
    if pool_disk:
        logger.info("Using stable path %s for %s", pool_disk, disk)
    else:
        logger.warning("No by-id alias found for %s; pools will reference the kernel name", disk)
        pool_disk = disk

    # Read-only query; runs even in dry-run mode.
    if capacity_bytes is None:
        capacity_bytes = disk_capacity_bytes(disk)

    plan = build_plan(profile, capacity_bytes, disk=disk, pool_disk=pool_disk)
    topology = build_topology(plan, profile, last_used=int(time.time()), altroot=cfg.target_root)

    settings = InstallSettings(
        hostname=hostname_record(cfg, profile),
        root_password=cfg.root_password,
        locale=cfg.locale,
        timezone=cfg.timezone,
        release=cfg.release,
        arch=cfg.arch,
        mirror=cfg.mirror,
        include_packages=tuple(cfg.include_packages),
        exclude_packages=tuple(cfg.exclude_packages),
        reboot=cfg.reboot,
        netbooted=read_boot_params(paths.proc_cmdline).netbooted,
    )
    return InstallCtx(plan=plan, topology=topology, profile=profile, settings=settings, dry_run=cfg.dry_run)


def run_install(cfg: Config, *, capacity_bytes: Optional[int] = None, paths: Paths = PATHS) -> ExecutionResult:
    ensure_host_packages(cfg.host_packages, dry_run=cfg.dry_run)
    ctx = prepare(cfg, capacity_bytes=capacity_bytes, paths=paths)
    logger.info(
        "Installing to %s as %s (firmware=%s, hibernation=%s)",
        ctx.plan.pool_disk,
        ctx.settings.hostname.fqdn,
        ctx.profile.firmware.value,
        ctx.profile.hibernation,
    )
    result = execute(ctx, build_steps())
    logger.info("Install finished: state=%s steps=%s", result.state.value, ",".join(result.ran_steps))
    return result
