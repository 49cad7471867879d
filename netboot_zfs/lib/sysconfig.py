from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from .command import run_cmd

logger = logging.getLogger(__name__)

NETPLAN_PATH = "etc/netplan/01-networkd-dhcp-all.yaml"
SOURCES_LIST_PATH = "etc/apt/sources.list"
FSTAB_PATH = "etc/fstab"

ZVOL_SWAP_DEVICE = "/dev/zvol/rpool/swap"
SWAP_LABEL = "SWAP"
SECURITY_MIRROR = "http://security.ubuntu.com/ubuntu"
ALL_COMPONENTS = "main restricted universe multiverse"


def netplan_dhcp_all() -> Dict[str, Any]:
    """DHCP on every Ethernet-like interface."""

    return {
        "network": {
            "version": 2,
            "renderer": "networkd",
            "ethernets": {
                "all_ethernet": {"match": {"name": "e*"}, "dhcp4": True},
            },
        }
    }


def render_netplan() -> str:
    try:
        import yaml  # type: ignore
    except Exception as e:
        raise RuntimeError("PyYAML is required to render the netplan") from e

    return "---\n" + yaml.safe_dump(netplan_dhcp_all(), default_flow_style=False, sort_keys=False)


def render_sources_list(release: str, *, mirror: str, security_mirror: str = SECURITY_MIRROR) -> str:
    lines = [
        "# Generated by netboot-zfs",
        f"deb {mirror} {release} {ALL_COMPONENTS}",
        f"deb {mirror} {release}-updates {ALL_COMPONENTS}",
        f"deb {mirror} {release}-backports {ALL_COMPONENTS}",
        f"deb {security_mirror} {release}-security {ALL_COMPONENTS}",
    ]
    return "\n".join(lines) + "\n"


def swap_fstab_line(device: str) -> str:
    return f"{device} none swap defaults 0 0\n"


def write_file(
    target_root: str,
    rel_path: str,
    content: str,
    *,
    mode: Optional[int] = None,
    append: bool = False,
    dry_run: bool = False,
) -> Path:
    """Write (or append to) a file below target_root."""

    p = Path(target_root) / rel_path.lstrip("/")
    if dry_run:
        logger.info("Would %s %s", "append to" if append else "write", str(p))
        return p
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("a" if append else "w", encoding="utf-8") as f:
        f.write(content)
    if mode is not None:
        os.chmod(p, mode)
    logger.info("Wrote %s", str(p))
    return p


def set_root_password(target_root: str, password: str, *, dry_run: bool = False) -> None:
    if not password:
        logger.info("No root password configured; leaving it unset")
        return
    run_cmd(["chroot", target_root, "chpasswd"], input_text=f"root:{password}", dry_run=dry_run)


def make_swap(device: str, *, label: Optional[str] = None, dry_run: bool = False) -> None:
    argv = ["mkswap", "-f"]
    if label:
        argv += ["--label", label]
    run_cmd(argv + [device], dry_run=dry_run)


def configure_locale_timezone(target_root: str, locale: str, timezone: str, *, dry_run: bool = False) -> None:
    run_cmd(["chroot", target_root, "locale-gen", "--purge", locale], dry_run=dry_run)
    run_cmd(["chroot", target_root, "update-locale", f"LANG={locale}"], dry_run=dry_run)
    write_file(target_root, "etc/timezone", timezone, dry_run=dry_run)
    run_cmd(
        ["chroot", target_root, "dpkg-reconfigure", "--frontend", "noninteractive", "tzdata"],
        dry_run=dry_run,
    )


def permit_root_login(target_root: str, *, dry_run: bool = False) -> bool:
    """Uncomment-and-set PermitRootLogin in sshd_config. Returns True on change."""

    p = Path(target_root) / "etc/ssh/sshd_config"
    if dry_run:
        logger.info("Would enable PermitRootLogin in %s", str(p))
        return False
    if not p.exists():
        logger.warning("%s not found; root SSH login left unchanged", str(p))
        return False

    lines = p.read_text(encoding="utf-8").splitlines()
    changed = False
    for i, line in enumerate(lines):
        if line.startswith("#PermitRootLogin "):
            lines[i] = "PermitRootLogin yes"
            changed = True
    if changed:
        p.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return changed
