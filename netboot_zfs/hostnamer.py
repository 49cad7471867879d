from __future__ import annotations

import logging

from .errors import ProbeError
from .lib.command import run_cmd
from .lib.env import PATHS, Paths
from .lib.hostname import HostnameRecord, derive_hostname
from .lib.hosts import set_system_hostname, update_hosts_file
from .lib.hwdetect import inspect_host

logger = logging.getLogger(__name__)

MODE_GENERATE = "generate"
MODE_FQDN = "fqdn"
MODES = (MODE_GENERATE, MODE_FQDN)


def current_short_hostname() -> str:
    r = run_cmd(["hostname", "-s"], check=False)
    short = (r.stdout or "").strip()
    if r.returncode == 0 and short:
        return short

    r = run_cmd(["hostname"], check=False)
    short = (r.stdout or "").strip().split(".")[0]
    if r.returncode == 0 and short:
        return short
    raise ProbeError("Unable to determine the current hostname")


def generated_record(domain: str, *, paths: Paths = PATHS) -> HostnameRecord:
    profile = inspect_host(hibernation=False, swap_gib=0, paths=paths)
    return derive_hostname(profile.primary_mac, profile.chassis, domain)


def apply_record(
    record: HostnameRecord,
    *,
    hosts_file: str = PATHS.hosts_file,
    hostname_file: str = PATHS.hostname_file,
    dry_run: bool = False,
) -> None:
    if not set_system_hostname(record.fqdn, hostname_file=hostname_file, dry_run=dry_run):
        logger.warning("Hostname was not set to %s; updating %s anyway", record.fqdn, hosts_file)
    update_hosts_file(record, hosts_file=hosts_file, dry_run=dry_run)


def run(
    mode: str = MODE_FQDN,
    *,
    domain: str,
    hosts_file: str = PATHS.hosts_file,
    dry_run: bool = False,
    paths: Paths = PATHS,
) -> HostnameRecord:
    """Name this host and reconcile its hosts file.

    generate: derive a name from chassis class and primary MAC.
    fqdn: keep the current short name and attach domain to it.
    """

    if mode == MODE_GENERATE:
        record = generated_record(domain, paths=paths)
    elif mode == MODE_FQDN:
        record = HostnameRecord(short_name=current_short_hostname(), domain=domain)
    else:
        raise ValueError(f"Unknown mode {mode!r}; expected one of {', '.join(MODES)}")

    logger.info("Hostname (%s): %s", mode, record.fqdn)
    apply_record(record, hosts_file=hosts_file, hostname_file=paths.hostname_file, dry_run=dry_run)
    return record
