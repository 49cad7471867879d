from __future__ import annotations

import argparse
import json
import logging
from typing import Optional

from .config import Config, load_config
from .errors import ProvisionError
from .logging_utils import DEFAULT_LOG_PATH, configure_logging

logger = logging.getLogger(__name__)

GIB = 1024**3


def _install_overrides(cfg: Config, args: argparse.Namespace) -> Config:
    return cfg.with_overrides(
        "install",
        root_disk=args.disk,
        hostname=args.hostname,
        hibernation=args.hibernation,
        swap_size_gib=args.swap,
        reboot=False if args.no_reboot else None,
        dry_run=True if args.dry_run else None,
    ).with_overrides("hostname", domain=args.domain)


def cmd_install(cfg: Config, args: argparse.Namespace) -> int:
    from .install import run_install

    run_install(_install_overrides(cfg, args))
    return 0


def cmd_plan(cfg: Config, args: argparse.Namespace) -> int:
    from .install import prepare

    cfg = _install_overrides(cfg, args).with_overrides("install", dry_run=True)
    capacity = int(args.capacity_gib * GIB) if args.capacity_gib is not None else None
    ctx = prepare(cfg, capacity_bytes=capacity)
    out = {
        "hostname": ctx.settings.hostname.fqdn,
        "firmware": ctx.profile.firmware.value,
        "chassis": ctx.profile.chassis.value,
        "plan": ctx.plan.to_dict(),
        "pools": [
            {"name": p.name, "device": p.device, "datasets": [d.name for d in p.datasets]} for p in ctx.topology.pools
        ],
    }
    print(json.dumps(out, indent=2))
    return 0


def cmd_hostname(cfg: Config, args: argparse.Namespace) -> int:
    from .hostnamer import run

    run(
        args.mode,
        domain=args.domain or cfg.domain,
        hosts_file=cfg.hosts_file,
        dry_run=bool(args.dry_run),
    )
    return 0


def cmd_bootscript(cfg: Config, args: argparse.Namespace) -> int:
    from .bootscript import run_bootscript

    return run_bootscript(cfg, dry_run=bool(args.dry_run))


def cmd_build(cfg: Config, args: argparse.Namespace) -> int:
    from .build import run_build

    run_build(cfg, dry_run=bool(args.dry_run))
    return 0


def _add_install_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument("--disk", default=None, help="Target disk (e.g. /dev/vda)")
    p.add_argument("--hostname", default=None, help="Hostname for the new system, or 'auto'")
    p.add_argument("--hibernation", dest="hibernation", action="store_true", default=None)
    p.add_argument("--no-hibernation", dest="hibernation", action="store_false")
    p.add_argument("--swap", type=int, default=None, help="Swap size in GiB (0 = none)")
    p.add_argument("--no-reboot", action="store_true")
    p.add_argument("--domain", default=None)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="netboot-zfs")
    p.add_argument("--config", default=None, help="YAML config file")
    p.add_argument("--log", default=DEFAULT_LOG_PATH, help="Path to log file")
    p.add_argument("--dry-run", action="store_true", help="Log commands without running them")
    p.add_argument("-v", "--verbose", action="store_true", help="Also log command output")
    sub = p.add_subparsers(dest="command", required=True)

    sp = sub.add_parser("install", help="Install a ZFS-rooted system onto a disk (destructive)")
    _add_install_flags(sp)
    sp.set_defaults(func=cmd_install)

    sp = sub.add_parser("plan", help="Print the partition and pool plan without touching the disk")
    _add_install_flags(sp)
    sp.add_argument("--capacity-gib", type=float, default=None, help="Plan for this disk size instead of probing")
    sp.set_defaults(func=cmd_plan)

    sp = sub.add_parser("hostname", help="Set the hostname and reconcile /etc/hosts")
    sp.add_argument("mode", nargs="?", default="fqdn", choices=["generate", "fqdn"])
    sp.add_argument("--domain", default=None)
    sp.set_defaults(func=cmd_hostname)

    sp = sub.add_parser("bootscript", help="Download and run the bootscript= URL from the kernel command line")
    sp.set_defaults(func=cmd_bootscript)

    sp = sub.add_parser("build", help="Build the netboot initrd and root image")
    sp.set_defaults(func=cmd_build)
    return p


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(log_path=args.log, verbose=args.verbose)

    try:
        cfg = load_config(args.config)
        return args.func(cfg, args)
    except ProvisionError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
