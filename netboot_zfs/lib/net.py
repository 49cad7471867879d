from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urlparse

from ..errors import DownloadError, ProbeError
from .command import run_cmd
from .env import PATHS, read_text

logger = logging.getLogger(__name__)

# ARPHRD_LOOPBACK from <linux/if_arp.h>
_ARPHRD_LOOPBACK = "772"


@dataclass(frozen=True)
class MacSelection:
    interface: str
    mac: str
    method: str  # default_route|first_up|ethernet_glob


def default_route_interface(route_path: str = PATHS.proc_net_route) -> Optional[str]:
    """Interface owning the IPv4 default route, from the kernel routing table."""

    try:
        lines = Path(route_path).read_text(encoding="utf-8").splitlines()
    except OSError:
        return None

    for line in lines[1:]:
        fields = line.split()
        if len(fields) >= 2 and fields[1] == "00000000":
            return fields[0]
    return None


def first_up_interface(sys_class_net: str = PATHS.sys_class_net) -> Optional[str]:
    """First administratively-up, non-loopback interface in name order."""

    base = Path(sys_class_net)
    if not base.is_dir():
        return None
    for iface in sorted(p for p in base.iterdir()):
        if iface.name == "lo" or read_text(iface / "type") == _ARPHRD_LOOPBACK:
            continue
        if read_text(iface / "operstate") == "up":
            return iface.name
    return None


def select_primary_mac(
    *,
    sys_class_net: str = PATHS.sys_class_net,
    route_path: str = PATHS.proc_net_route,
) -> MacSelection:
    """Pick the MAC that identifies this host.

    Priority: default-route interface, then first UP interface, then the first
    Ethernet-like (e*) interface. The first candidate with a readable address wins.
    """

    net = Path(sys_class_net)

    primary = default_route_interface(route_path)
    if primary:
        mac = read_text(net / primary / "address")
        if mac:
            logger.info("Using MAC from primary interface (%s): %s", primary, mac)
            return MacSelection(interface=primary, mac=mac, method="default_route")

    up = first_up_interface(sys_class_net)
    if up:
        mac = read_text(net / up / "address")
        if mac:
            logger.info("Using MAC from first UP interface (%s): %s", up, mac)
            return MacSelection(interface=up, mac=mac, method="first_up")

    logger.warning("Could not reliably determine primary/UP interface MAC. Using first available e*/address.")
    for iface in sorted(net.glob("e*")) if net.is_dir() else []:
        mac = read_text(iface / "address")
        if mac:
            return MacSelection(interface=iface.name, mac=mac, method="ethernet_glob")

    raise ProbeError("Could not determine any MAC address for hostname generation")


def download_file(
    url: str,
    dest_dir: str,
    *,
    retries: int = 3,
    delay_s: float = 2.0,
    dry_run: bool = False,
    sleep: Callable[[float], None] = time.sleep,
) -> Path:
    """Download url into dest_dir, retrying a bounded number of times.

    A transfer only counts when wget succeeds and the file is non-empty.
    """

    if not url:
        raise ValueError("download_file() requires a URL")

    name = Path(urlparse(url).path).name or "download"
    local = Path(dest_dir) / name
    if dry_run:
        run_cmd(["wget", url, "-O", str(local)], dry_run=True)
        return local

    local.parent.mkdir(parents=True, exist_ok=True)
    remaining = retries
    while remaining > 0:
        r = run_cmd(["wget", url, "-O", str(local)], check=False)
        if r.returncode == 0 and local.is_file() and local.stat().st_size > 0:
            return local
        remaining -= 1
        if remaining:
            logger.warning("Retrying download. %d tries remaining.", remaining)
            sleep(delay_s)

    raise DownloadError(url, retries)
