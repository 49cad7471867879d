from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

DEFAULT_INCLUDE_PACKAGES = ["ubuntu-minimal", "openssh-server", "wget", "nano", "auto-apt-proxy"]
DEFAULT_BUILD_PACKAGES = [
    "zfsutils-linux",
    "gdisk",
    "openssh-server",
    "openssh-client",
    "wget",
    "parted",
    "debootstrap",
    "haveged",
    "auto-apt-proxy",
    "python3",
]
DEFAULT_HOST_PACKAGES = ["debootstrap", "net-tools", "gdisk", "zfsutils-linux"]

AUTO_HOSTNAME = "auto"


def _as_list(value: Any, default: List[str]) -> List[str]:
    if value is None:
        return list(default)
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return [str(v) for v in value]


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"1", "y", "yes", "true", "on"}
    return bool(value)


@dataclass(frozen=True)
class Config:
    raw: Dict[str, Any] = field(default_factory=dict)

    def _section(self, name: str) -> Dict[str, Any]:
        return self.raw.get(name) or {}

    def _get(self, section: str, key: str) -> Any:
        return self._section(section).get(key)

    def with_overrides(self, section: str, **values: Any) -> "Config":
        """Copy with non-None values set in section (used for CLI flags)."""

        raw = copy.deepcopy(self.raw)
        sec = raw.setdefault(section, {})
        sec.update({k: v for k, v in values.items() if v is not None})
        return Config(raw=raw)

    # install

    @property
    def root_disk(self) -> str:
        return str(self._get("install", "root_disk") or "/dev/vda")

    @property
    def hostname(self) -> str:
        return str(self._get("install", "hostname") or "ubuzfs")

    @property
    def hibernation(self) -> bool:
        return _as_bool(self._get("install", "hibernation"), True)

    @property
    def swap_size_gib(self) -> int:
        return int(self._get("install", "swap_size_gib") or 0)

    @property
    def root_password(self) -> str:
        v = self._get("install", "root_password")
        return "password" if v is None else str(v)

    @property
    def locale(self) -> str:
        return str(self._get("install", "locale") or "en_US.UTF-8")

    @property
    def timezone(self) -> str:
        return str(self._get("install", "timezone") or "Africa/Johannesburg")

    @property
    def reboot(self) -> bool:
        return _as_bool(self._get("install", "reboot"), True)

    @property
    def dry_run(self) -> bool:
        return _as_bool(self._get("install", "dry_run"), False)

    @property
    def release(self) -> str:
        return str(self._get("install", "release") or "noble")

    @property
    def arch(self) -> str:
        return str(self._get("install", "arch") or "amd64")

    @property
    def include_packages(self) -> List[str]:
        return _as_list(self._get("install", "include_packages"), DEFAULT_INCLUDE_PACKAGES)

    @property
    def exclude_packages(self) -> List[str]:
        return _as_list(self._get("install", "exclude_packages"), ["ubuntu-pro-client"])

    @property
    def mirror(self) -> str:
        return str(self._get("install", "mirror") or "http://archive.ubuntu.com/ubuntu")

    @property
    def target_root(self) -> str:
        return str(self._get("install", "target_root") or "/mnt")

    @property
    def host_packages(self) -> List[str]:
        return _as_list(self._get("install", "host_packages"), DEFAULT_HOST_PACKAGES)

    # hostname

    @property
    def domain(self) -> str:
        return str(self._get("hostname", "domain") or "bothahome.co.za")

    @property
    def hosts_file(self) -> str:
        return str(self._get("hostname", "hosts_file") or "/etc/hosts")

    # bootscript

    @property
    def download_dir(self) -> str:
        return str(self._get("bootscript", "download_dir") or "/root")

    @property
    def download_retries(self) -> int:
        return int(self._get("bootscript", "retries") or 3)

    @property
    def retry_delay_s(self) -> float:
        v = self._get("bootscript", "retry_delay_s")
        return 2.0 if v is None else float(v)

    # build

    @property
    def build_work_dir(self) -> str:
        return str(self._get("build", "work_dir") or "pumba")

    @property
    def image_size(self) -> str:
        return str(self._get("build", "image_size") or "512m")

    @property
    def build_hostname(self) -> str:
        return str(self._get("build", "hostname") or "netboot")

    @property
    def build_include_packages(self) -> List[str]:
        return _as_list(self._get("build", "include_packages"), DEFAULT_BUILD_PACKAGES)

    @property
    def enable_ssh(self) -> bool:
        return _as_bool(self._get("build", "enable_ssh"), True)

    @property
    def authorized_keys_url(self) -> Optional[str]:
        v = self._get("build", "authorized_keys_url")
        return str(v) if v else None

    @property
    def initramfs_dir(self) -> str:
        return str(self._get("build", "initramfs_dir") or "initramfs")


def load_config(path: Optional[str]) -> Config:
    if path is None:
        return Config()

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ValueError("config must be YAML")

    try:
        import yaml  # type: ignore
    except Exception as e:
        raise RuntimeError("PyYAML is required to read the config file") from e

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path} must contain a mapping/object")

    return Config(raw=raw)
