from __future__ import annotations

import logging
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import List, Sequence

from .command import run_cmd
from .env import PATHS
from .hostname import HostnameRecord

logger = logging.getLogger(__name__)

MANAGED_ADDRESSES = frozenset({"127.0.0.1", "::1", "127.0.1.1", "ff02::1", "ff02::2"})

BLOCK_BEGIN = "# --- Standard Loopback Entries ---"
BLOCK_END = "# -------------------------------------"

_HEADER_COMMENTS = (
    BLOCK_BEGIN,
    "# --- Dynamic Hostname Entry (Managed by Script) ---",
    "# This line relates the FQDN and short hostname to the loopback address 127.0.1.1",
    "# It is typically used on systems without a permanent IP address to ensure",
    "# applications can resolve the machine's own hostname.",
    "# --- Standard IPv6 Multicast Entries ---",
    "# --- End of Script Managed Entries ---",
    "# Entries below this line were preserved from the original hosts file",
    "# or can be added manually.",
    BLOCK_END,
)
# Older files name the path in the preserved-entries comment.
_MANAGED_COMMENTS = frozenset(_HEADER_COMMENTS) | {"# Entries below this line were preserved from the original /etc/hosts"}


def managed_block(record: HostnameRecord) -> List[str]:
    return [
        BLOCK_BEGIN,
        f"{'127.0.0.1':<15} localhost",
        f"{'::1':<15} localhost ip6-localhost ip6-loopback",
        "",
        "# --- Dynamic Hostname Entry (Managed by Script) ---",
        "# This line relates the FQDN and short hostname to the loopback address 127.0.1.1",
        "# It is typically used on systems without a permanent IP address to ensure",
        "# applications can resolve the machine's own hostname.",
        f"{'127.0.1.1':<15} {record.fqdn} {record.short_name}",
        "",
        "# --- Standard IPv6 Multicast Entries ---",
        f"{'ff02::1':<15} ip6-allnodes",
        f"{'ff02::2':<15} ip6-allrouters",
        "",
        "# --- End of Script Managed Entries ---",
        "# Entries below this line were preserved from the original hosts file",
        "# or can be added manually.",
        BLOCK_END,
    ]


def is_managed_line(line: str) -> bool:
    stripped = line.strip()
    if stripped in _MANAGED_COMMENTS:
        return True
    tokens = stripped.split()
    return bool(tokens) and tokens[0] in MANAGED_ADDRESSES


def _drop_previous_block(lines: Sequence[str]) -> List[str]:
    stripped = [ln.strip() for ln in lines]
    if BLOCK_BEGIN not in stripped:
        return list(lines)
    start = stripped.index(BLOCK_BEGIN)
    try:
        end = stripped.index(BLOCK_END, start + 1)
    except ValueError:
        return list(lines)
    return list(lines[:start]) + list(lines[end + 1 :])


def reconcile(existing: Sequence[str], record: HostnameRecord) -> List[str]:
    """Merge the managed entries for record into existing hosts-file lines.

    Lines are given and returned without trailing newlines. Anything that is
    not a managed address, nor part of a previously written managed block,
    is kept verbatim and in order after a freshly generated block.
    """

    kept = [ln.rstrip("\n") for ln in _drop_previous_block(existing) if not is_managed_line(ln)]
    while kept and not kept[0].strip():
        kept.pop(0)

    out = managed_block(record)
    if kept:
        out.append("")
        out.extend(kept)
    return out


def _timestamp() -> str:
    return datetime.now().strftime("%Y-%m-%d_%H:%M:%S")


def backup_file(path: Path) -> Path | None:
    """Copy path next to itself with a timestamp suffix (best-effort)."""

    backup = path.with_name(f"{path.name}.bak_{_timestamp()}")
    try:
        shutil.copy2(path, backup)
    except OSError as e:
        logger.warning("Could not back up %s: %s", str(path), e)
        return None
    logger.info("Backed up %s to %s", str(path), str(backup))
    return backup


def update_hosts_file(record: HostnameRecord, *, hosts_file: str = PATHS.hosts_file, dry_run: bool = False) -> List[str]:
    p = Path(hosts_file)
    existing = p.read_text(encoding="utf-8").splitlines() if p.exists() else []
    new_lines = reconcile(existing, record)

    if dry_run:
        logger.info("Would write %s", str(p))
        return new_lines

    if p.exists():
        backup_file(p)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text("\n".join(new_lines) + "\n", encoding="utf-8")
    os.chmod(p, 0o644)
    logger.info("%s updated for %s", str(p), record.fqdn)
    return new_lines


def set_system_hostname(fqdn: str, *, hostname_file: str = PATHS.hostname_file, dry_run: bool = False) -> bool:
    """Set the running hostname to fqdn.

    hostnamectl persists on its own; the plain `hostname` fallback needs
    hostname_file rewritten as well. Returns False when neither worked.
    """

    if shutil.which("hostnamectl"):
        if run_cmd(["hostnamectl", "set-hostname", fqdn], check=False, dry_run=dry_run).returncode == 0:
            return True
        logger.warning("'hostnamectl set-hostname' failed; trying fallback")

    if not shutil.which("hostname"):
        logger.warning("Neither hostnamectl nor hostname is available; hostname not set")
        return False

    if run_cmd(["hostname", fqdn], check=False, dry_run=dry_run).returncode != 0:
        logger.warning("'hostname' command failed")
        return False

    p = Path(hostname_file)
    if dry_run:
        logger.info("Would write %s", str(p))
        return True
    if p.exists():
        backup_file(p)
    try:
        p.write_text(fqdn + "\n", encoding="utf-8")
    except OSError as e:
        logger.warning("Failed to write %s (%s); hostname change may not persist", str(p), e)
        return False
    return True
