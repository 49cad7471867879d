"""Deterministic hostnames from hardware identity.

A host is named ``<theme-name>-<mac suffix>``: the suffix is the last two
octets of the primary MAC, and the theme name is picked from a per-chassis
pool using the first two decimal digits of that suffix. Re-running on the
same machine therefore yields the same name.

The one exception: a suffix with no decimal digits at all (e.g. ``efab``)
has nothing to index with, so a time-based seed is used instead and the
result is *not* stable across runs.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

from .hwdetect import ChassisClass

logger = logging.getLogger(__name__)

NAME_POOLS: Dict[ChassisClass, Tuple[str, ...]] = {
    ChassisClass.VM: (
        "scar", "shenzi", "banzai", "ed", "jafar", "ursula", "hades",
        "maleficent", "sherekhan", "gaston", "cruella", "facilier", "yzma", "gothel",
    ),
    ChassisClass.NETBOOK: (
        "rafiki", "zazu", "kiara", "jiminy", "tinkerbell", "pascal", "chip", "dale",
        "gus", "jaq", "dory", "olaf", "abu", "meeko", "flit",
    ),
    ChassisClass.LAPTOP: (
        "simba", "nala", "sarabi", "aladdin", "jasmine", "ariel", "belle",
        "pocahontas", "mulan", "hercules", "tarzan", "kuzco", "rapunzel", "flynn",
    ),
    ChassisClass.DESKTOP: (
        "mufasa", "genie", "zeus", "triton", "merlin", "beast", "mickey",
        "goofy", "donald", "maui", "elsa", "anna", "moana", "baymax",
    ),
}


@dataclass(frozen=True)
class HostnameRecord:
    short_name: str
    domain: str

    @property
    def fqdn(self) -> str:
        return f"{self.short_name}.{self.domain}"


def mac_suffix(mac: str) -> str:
    """Last two octets of a colon-separated MAC, as four lowercase characters."""

    octets = [o for o in mac.strip().lower().replace("-", ":").split(":") if o]
    if len(octets) != 6:
        raise ValueError(f"Expected a 6-octet MAC address, got: {mac!r}")
    return f"{octets[4]}{octets[5]}"


def name_index(suffix: str, pool_size: int, *, seed: Callable[[], int] = time.time_ns) -> int:
    """Index into a name pool of pool_size entries.

    Uses the first two decimal digits of the suffix. Falls back to seed()
    when the suffix contains no digit.
    """

    if pool_size <= 0:
        raise ValueError("Name pool is empty")

    digits = re.sub(r"[^0-9]", "", suffix)
    if digits:
        base = int(digits[:2], 10)
    else:
        base = seed()
        logger.warning("MAC suffix %r has no digits; using a time-based seed (name will not be stable)", suffix)
    return base % pool_size


def derive_hostname(
    mac: str,
    chassis: ChassisClass,
    domain: str,
    *,
    seed: Callable[[], int] = time.time_ns,
) -> HostnameRecord:
    pool = NAME_POOLS[ChassisClass(chassis)]
    suffix = mac_suffix(mac)
    idx = name_index(suffix, len(pool), seed=seed)
    record = HostnameRecord(short_name=f"{pool[idx]}-{suffix}", domain=domain)
    logger.info("Generated hostname %s (chassis=%s, index=%d)", record.fqdn, ChassisClass(chassis).value, idx)
    return record
