from __future__ import annotations

from enum import Enum
from pathlib import Path

from .env import PATHS


class FirmwareMode(str, Enum):
    EFI = "efi"
    BIOS = "bios"


def detect_firmware(efi_dir: str = PATHS.efi_dir) -> FirmwareMode:
    """Detect firmware type for the *currently running* environment.

    The EFI runtime directory only exists when the kernel was booted by UEFI
    firmware; its absence means legacy BIOS.
    """

    if Path(efi_dir).exists():
        return FirmwareMode.EFI
    return FirmwareMode.BIOS
