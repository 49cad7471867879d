from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

from ..errors import ProbeError
from .command import run_cmd
from .env import PATHS, Paths, read_text
from .firmware import FirmwareMode, detect_firmware
from .net import select_primary_mac

logger = logging.getLogger(__name__)

GIB = 1024**3


class ChassisClass(str, Enum):
    VM = "vm"
    NETBOOK = "netbook"
    LAPTOP = "laptop"
    DESKTOP = "desktop"


@dataclass(frozen=True)
class HostProfile:
    """Facts about the running host plus the operator's swap policy.

    Computed once per invocation and never persisted.
    """

    firmware: FirmwareMode
    memory_bytes: int
    hibernation: bool
    swap_gib: int
    chassis: ChassisClass
    primary_mac: str

    @property
    def memory_gib(self) -> int:
        # Rounded up: a 7.8 GiB machine needs 8 GiB to hibernate.
        return (self.memory_bytes + GIB - 1) // GIB


@dataclass(frozen=True)
class ChassisSignals:
    virt_detected: bool = False
    cpu_flags: FrozenSet[str] = field(default_factory=frozenset)
    system_manufacturer: Optional[str] = None
    chassis_type: Optional[str] = None
    chassis_code: Optional[int] = None
    system_product: Optional[str] = None
    baseboard_product: Optional[str] = None
    device_tree_model: Optional[str] = None
    dmi_product_name: Optional[str] = None


HYPERVISOR_CPU_FLAGS = frozenset({"vmx", "svm", "hypervisor"})
_HYPERVISOR_VENDOR_RE = re.compile(r"VMware|Microsoft|QEMU|Xen|Oracle.*VirtualBox|Parallels")
_SFF_PRODUCT_RE = re.compile(r"Netbook|Atom|NUC|BRIX")
_SFF_CHASSIS_RE = re.compile(r"Embedded|Mini PC|Lunch Box")
_LAPTOP_CHASSIS_RE = re.compile(r"Laptop|Notebook|Portable|Sub Notebook|Hand Held|Convertible|Detachable")
_DESKTOP_CHASSIS_RE = re.compile(
    r"Desktop|Low Profile Desktop|Pizza Box|Mini Tower|Tower|Docking Station|All in One|Space-saving"
)

# SMBIOS chassis type codes, as exposed in /sys/class/dmi/id/chassis_type.
SFF_CHASSIS_CODES = frozenset({16, 34, 35})  # Lunch Box, Embedded PC, Mini PC
LAPTOP_CHASSIS_CODES = frozenset({8, 9, 10, 11, 14, 31, 32})
DESKTOP_CHASSIS_CODES = frozenset({3, 4, 5, 6, 7, 12, 13, 15})


def _has(value: Optional[str], pattern: "re.Pattern[str]") -> bool:
    return bool(value) and bool(pattern.search(value or ""))


def _ci_contains(value: Optional[str], needle: str) -> bool:
    return needle in (value or "").lower()


def _virt_service(s: ChassisSignals) -> Optional[Dict[str, Any]]:
    if s.virt_detected:
        return {"source": "systemd-detect-virt"}
    return None


def _hypervisor_flags(s: ChassisSignals) -> Optional[Dict[str, Any]]:
    flags = sorted(HYPERVISOR_CPU_FLAGS & s.cpu_flags)
    if not flags:
        return None
    # Unknown vendor still counts as a VM; the vendor is evidence only.
    vendor = s.system_manufacturer if _has(s.system_manufacturer, _HYPERVISOR_VENDOR_RE) else None
    return {"source": "cpuinfo", "flags": flags, "vendor": vendor or "unknown"}


def _small_form_factor(s: ChassisSignals) -> Optional[Dict[str, Any]]:
    if _ci_contains(s.baseboard_product, "raspberry pi") or _ci_contains(s.device_tree_model, "raspberry pi"):
        return {"source": "board_model", "model": s.device_tree_model or s.baseboard_product}
    if _has(s.system_product, _SFF_PRODUCT_RE):
        return {"source": "system_product", "product": s.system_product}
    if _has(s.chassis_type, _SFF_CHASSIS_RE):
        return {"source": "chassis_type", "chassis_type": s.chassis_type}
    if s.chassis_code in SFF_CHASSIS_CODES:
        return {"source": "chassis_code", "chassis_code": s.chassis_code}
    if _ci_contains(s.dmi_product_name, "netbook") or _ci_contains(s.dmi_product_name, "atom"):
        return {"source": "dmi_product_name", "product": s.dmi_product_name}
    return None


def _laptop_chassis(s: ChassisSignals) -> Optional[Dict[str, Any]]:
    if _has(s.chassis_type, _LAPTOP_CHASSIS_RE):
        return {"source": "chassis_type", "chassis_type": s.chassis_type}
    if s.chassis_code in LAPTOP_CHASSIS_CODES:
        return {"source": "chassis_code", "chassis_code": s.chassis_code}
    return None


def _desktop_chassis(s: ChassisSignals) -> Optional[Dict[str, Any]]:
    if _has(s.chassis_type, _DESKTOP_CHASSIS_RE):
        return {"source": "chassis_type", "chassis_type": s.chassis_type}
    if s.chassis_code in DESKTOP_CHASSIS_CODES:
        return {"source": "chassis_code", "chassis_code": s.chassis_code}
    return None


Rule = Tuple[str, ChassisClass, Callable[[ChassisSignals], Optional[Dict[str, Any]]]]

# Evaluated top to bottom; the first rule returning evidence decides.
CHASSIS_RULES: List[Rule] = [
    ("virtualization_service", ChassisClass.VM, _virt_service),
    ("hypervisor_cpu_flags", ChassisClass.VM, _hypervisor_flags),
    ("small_form_factor", ChassisClass.NETBOOK, _small_form_factor),
    ("laptop_chassis", ChassisClass.LAPTOP, _laptop_chassis),
    ("desktop_chassis", ChassisClass.DESKTOP, _desktop_chassis),
]


def classify_chassis(signals: ChassisSignals) -> Tuple[ChassisClass, Dict[str, Any]]:
    """Rule engine: pick the chassis class + record why."""

    for reason, chassis, match in CHASSIS_RULES:
        evidence = match(signals)
        if evidence is not None:
            return chassis, {"reason": reason, "evidence": evidence}
    return ChassisClass.DESKTOP, {"reason": "default", "evidence": {"chassis_type": signals.chassis_type}}


def _dmidecode(keyword: str) -> Optional[str]:
    r = run_cmd(["dmidecode", "-s", keyword], check=False)
    out = (r.stdout or "").strip()
    return out if r.returncode == 0 and out else None


def read_cpu_flags(cpuinfo_path: str = PATHS.proc_cpuinfo) -> FrozenSet[str]:
    flags: set[str] = set()
    try:
        for line in Path(cpuinfo_path).read_text(encoding="utf-8", errors="ignore").splitlines():
            key, _, value = line.partition(":")
            if key.strip() in {"flags", "Features"}:
                flags.update(value.split())
    except OSError:
        pass
    return frozenset(flags)


def collect_chassis_signals(*, paths: Paths = PATHS) -> ChassisSignals:
    """Gather every signal the chassis decision table looks at (best-effort).

    The probes only read, so they run the same way in dry-run mode.
    """

    virt = False
    if shutil.which("systemd-detect-virt"):
        virt = run_cmd(["systemd-detect-virt", "-q"], check=False).returncode == 0

    manufacturer = chassis_type = system_product = baseboard_product = None
    if shutil.which("dmidecode"):
        manufacturer = _dmidecode("system-manufacturer")
        chassis_type = _dmidecode("chassis-type")
        system_product = _dmidecode("system-product-name")
        baseboard_product = _dmidecode("baseboard-product-name")
    else:
        logger.info("dmidecode not available, relying on /sys fallbacks.")

    dmi = Path(paths.dmi_dir)
    code_txt = read_text(dmi / "chassis_type")
    chassis_code = int(code_txt) if code_txt and code_txt.isdigit() else None

    return ChassisSignals(
        virt_detected=virt,
        cpu_flags=read_cpu_flags(paths.proc_cpuinfo),
        system_manufacturer=manufacturer,
        chassis_type=chassis_type,
        chassis_code=chassis_code,
        system_product=system_product,
        baseboard_product=baseboard_product,
        device_tree_model=read_text(Path(paths.device_tree_model)),
        dmi_product_name=read_text(dmi / "product_name"),
    )


def read_memory_bytes(meminfo_path: str = PATHS.proc_meminfo) -> int:
    try:
        for line in Path(meminfo_path).read_text(encoding="utf-8").splitlines():
            if line.startswith("MemTotal:"):
                return int(line.split()[1]) * 1024
    except (OSError, ValueError, IndexError) as e:
        raise ProbeError(f"Unable to read total memory from {meminfo_path}") from e
    raise ProbeError(f"MemTotal missing from {meminfo_path}")


def inspect_host(
    *,
    hibernation: bool,
    swap_gib: int,
    paths: Paths = PATHS,
) -> HostProfile:
    """Build the HostProfile for this invocation.

    Raises ProbeError when no usable network interface or MAC can be found.
    """

    selection = select_primary_mac(sys_class_net=paths.sys_class_net, route_path=paths.proc_net_route)
    chassis, why = classify_chassis(collect_chassis_signals(paths=paths))

    profile = HostProfile(
        firmware=detect_firmware(paths.efi_dir),
        memory_bytes=read_memory_bytes(paths.proc_meminfo),
        hibernation=hibernation,
        swap_gib=max(0, int(swap_gib)),
        chassis=chassis,
        primary_mac=selection.mac.lower(),
    )

    logger.info(
        "Host: firmware=%s memory_gib=%s chassis=%s (%s) mac=%s via %s",
        profile.firmware.value,
        profile.memory_gib,
        profile.chassis.value,
        why["reason"],
        profile.primary_mac,
        selection.interface,
    )
    return profile
