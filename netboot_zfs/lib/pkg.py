from __future__ import annotations

import logging
import re
import shutil
from typing import Iterable, List, Sequence

from .command import run_cmd

logger = logging.getLogger(__name__)

COMPONENTS = ("main", "universe", "restricted", "multiverse")

HOST_TOOLS = ("debootstrap", "sgdisk", "zpool", "zfs", "wipefs", "partprobe")

# e.g. " 500 http://archive.ubuntu.com/ubuntu noble/universe amd64 Packages"
_POLICY_RE = re.compile(r"http\S*\s+(?:\S+/|\S+\s+)(main|universe|restricted|multiverse)\b")


def debootstrap_rootfs(
    *,
    target_root: str,
    suite: str = "noble",
    mirror: str = "http://archive.ubuntu.com/ubuntu",
    arch: str | None = None,
    include: Sequence[str] = (),
    exclude: Sequence[str] = (),
    components: Sequence[str] = (),
    dry_run: bool = False,
) -> None:
    argv = ["debootstrap"]
    if arch:
        argv.append(f"--arch={arch}")
    if include:
        argv.append(f"--include={','.join(include)}")
    if exclude:
        argv.append(f"--exclude={','.join(exclude)}")
    if components:
        argv.append(f"--components={','.join(components)}")
    argv += [suite, target_root, mirror]
    run_cmd(argv, dry_run=dry_run)


def parse_policy_components(policy_output: str) -> List[str]:
    """Archive components named in `apt-cache policy` output."""

    return sorted({m.group(1) for m in _POLICY_RE.finditer(policy_output)})


def required_components(packages: Iterable[str], *, dry_run: bool = False) -> List[str]:
    """Components the host's apt sources serve the given packages from."""

    found = set()
    for pkg in packages:
        r = run_cmd(["apt-cache", "policy", pkg], check=False, dry_run=dry_run)
        found.update(parse_policy_components(r.stdout))
    if not found:
        logger.warning("No components found via apt-cache policy; using main")
        return ["main"]
    return [c for c in COMPONENTS if c in found]


def missing_host_tools(tools: Sequence[str] = HOST_TOOLS) -> List[str]:
    return [t for t in tools if shutil.which(t) is None]


def ensure_host_packages(packages: Sequence[str], *, tools: Sequence[str] = HOST_TOOLS, dry_run: bool = False) -> bool:
    """Install packages on the host when any required tool is missing.

    Returns True if an install was run.
    """

    missing = missing_host_tools(tools)
    if not missing:
        return False
    logger.info("Missing host tools: %s", ", ".join(missing))
    if dry_run:
        logger.info("Would install host packages: %s", ", ".join(packages))
        return False
    run_cmd(["apt-get", "update"])
    run_cmd(["apt-get", "install", "--yes", *packages])
    return True
