from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from .env import PATHS, read_text


@dataclass(frozen=True)
class BootParams:
    script_url: Optional[str] = None
    image_url: Optional[str] = None

    @property
    def netbooted(self) -> bool:
        return self.image_url is not None


def parse_params(cmdline: str) -> Dict[str, str]:
    """key=value tokens of a kernel command line; bare flags are ignored."""

    params: Dict[str, str] = {}
    for token in cmdline.split():
        key, sep, value = token.partition("=")
        if sep:
            params[key] = value
    return params


def parse_cmdline(cmdline: str) -> BootParams:
    params = parse_params(cmdline)
    return BootParams(
        script_url=params.get("bootscript") or None,
        image_url=params.get("netboot") or None,
    )


def read_boot_params(path: str = PATHS.proc_cmdline) -> BootParams:
    return parse_cmdline(read_text(Path(path)) or "")
