"""Configuration script run inside the new root.

Kernel, ZFS user space and GRUB have to be installed from inside the target,
so the work is rendered into one bash script that runs under chroot and
stops at the first failing command.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass
from typing import List, Optional

from .firmware import FirmwareMode

logger = logging.getLogger(__name__)

SCRIPT_NAME = "zfs-init"

GRUB_CMDLINE = "console=tty0,115200 console=ttyS0,115200"


@dataclass(frozen=True)
class ChrootScriptSettings:
    firmware: FirmwareMode
    locale: str
    timezone: str
    grub_disk: str
    efi_device: Optional[str] = None
    zvol_swap: bool = False
    has_bpool: bool = True
    permit_root_login: bool = True


def _apt_install(*packages: str, recommends: bool = True) -> str:
    flags = "--yes" if recommends else "--yes --no-install-recommends"
    return f"apt-get -qq install {flags} {' '.join(packages)} || fail 'Failed to install {' '.join(packages)}'"


def _grub_common(s: ChrootScriptSettings) -> List[str]:
    packages = ["initramfs-tools"] + (["grub-pc"] if s.firmware == FirmwareMode.BIOS else [])
    lines = [
        _apt_install(*packages),
        "apt-get purge --yes os-prober || fail 'Failed to remove os-prober'",
    ]
    if s.zvol_swap:
        # The swap zvol is not imported yet when the resume hook runs.
        lines.append("echo 'RESUME=none' >/etc/initramfs-tools/scripts/local-premount/resume")
    lines += [
        "update-initramfs -c -k all || fail 'Failed running update-initramfs'",
        "sed -i 's/\"quiet splash\"/\"\"/g' /etc/default/grub",
        "sed -i 's/#GRUB_TERMINAL=console/GRUB_TERMINAL=console/g' /etc/default/grub",
        f"sed -i 's/GRUB_CMDLINE_LINUX=.*/GRUB_CMDLINE_LINUX=\"{GRUB_CMDLINE}\"/g' /etc/default/grub",
        "update-grub || fail 'Failed running update-grub'",
    ]
    return lines


def _efi_lines(s: ChrootScriptSettings) -> List[str]:
    if not s.efi_device:
        raise ValueError("EFI firmware requires an EFI partition device")
    dev = shlex.quote(s.efi_device)
    lines = [
        _apt_install("dosfstools"),
        f"mkdosfs -F 32 -s 1 -n EFI {dev} || fail 'Failed to create a FAT32 filesystem on {s.efi_device}'",
        "mkdir -p /boot/efi",
        f"mount -t vfat {dev} /boot/efi || fail 'Failed to mount /boot/efi'",
        "printf '/dev/disk/by-label/EFI /boot/efi vfat defaults 0 0\\n' >>/etc/fstab",
        _apt_install("grub-efi-amd64", "grub-efi-amd64-signed", "shim-signed"),
    ]
    lines += _grub_common(s)
    lines.append(
        "grub-install --target=x86_64-efi --efi-directory=/boot/efi --bootloader-id=ubuntu --recheck --no-floppy"
        " || fail 'grub-install failed'"
    )

    # Mount ordering for bpool and the ESP via the zfs-mount-generator cache
    pools = ["rpool"] + (["bpool"] if s.has_bpool else [])
    lines += [
        "mkdir -p /etc/zfs/zfs-list.cache",
        f"touch {' '.join('/etc/zfs/zfs-list.cache/' + p for p in pools)}",
        "zed -F &",
    ]
    if s.has_bpool:
        lines.append("zfs set canmount=on bpool/boot")
    lines.append("zfs set canmount=on rpool/ROOT/ubuntu")
    lines += [f"zpool set cachefile=/etc/zfs/zpool.cache {p}" for p in pools]
    lines += [
        "sleep 3",
        "pkill zed",
        "/usr/lib/systemd/system-generators/zfs-mount-generator",
        "sed -Ei 's|/mnt/?|/|' /etc/zfs/zfs-list.cache/*",
    ]
    return lines


def _bios_lines(s: ChrootScriptSettings) -> List[str]:
    return _grub_common(s) + [f"grub-install {shlex.quote(s.grub_disk)} || fail 'grub-install failed'"]


def render_chroot_script(s: ChrootScriptSettings) -> str:
    locale = shlex.quote(s.locale)
    lines = [
        "#!/bin/bash",
        "fail() {",
        "  printf '%s\\n' \"$1\" >&2",
        "  exit 1",
        "}",
        "",
        f"locale-gen --purge {locale} || fail 'Failed running locale-gen'",
        f"update-locale LANG={locale} || fail 'Failed running update-locale'",
        f"printf '%s' {shlex.quote(s.timezone)} >/etc/timezone || fail 'Failed to update /etc/timezone'",
        "dpkg-reconfigure --frontend noninteractive tzdata || fail 'Failed setting timezone'",
        "",
        "apt-get clean",
        "apt-get update -qq || fail 'Failed updating apt cache'",
    ]
    if s.permit_root_login:
        lines.append("sed -i 's/^#PermitRootLogin .*/PermitRootLogin yes/g' /etc/ssh/sshd_config")
    lines += [
        _apt_install("linux-image-generic", recommends=False),
        _apt_install("zfsutils-linux"),
        _apt_install("zfs-initramfs"),
        _apt_install("zsys"),
        "",
    ]
    lines += _efi_lines(s) if s.firmware == FirmwareMode.EFI else _bios_lines(s)
    lines += [
        "",
        "for d in bin lib sbin; do",
        '  [ -d "/${d}.usr-is-merged" ] && rmdir "/${d}.usr-is-merged"',
        "done",
        "exit 0",
    ]
    logger.info("Rendered chroot script (firmware=%s, zvol_swap=%s)", s.firmware.value, s.zvol_swap)
    return "\n".join(lines) + "\n"
