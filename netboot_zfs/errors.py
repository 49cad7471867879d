"""Error taxonomy for provisioning and naming.

Hierarchy:
    ProvisionError (base)
        ├── ProbeError
        ├── InsufficientSpaceError
        ├── DeviceBusyError
        ├── ToolFailureError
        │   └── DownloadError
        └── VerificationError

Everything raised here is meant to reach the operator with a readable
message; the CLI catches ProvisionError and exits non-zero.
"""

from __future__ import annotations

from typing import Sequence


class ProvisionError(Exception):
    """Base exception for all provisioning errors."""


class ProbeError(ProvisionError):
    """An environment fact could not be determined and has no safe default."""


class InsufficientSpaceError(ProvisionError):
    """The partition plan does not fit on the target disk."""

    def __init__(self, required_bytes: int, available_bytes: int):
        self.required_bytes = required_bytes
        self.available_bytes = available_bytes
        super().__init__(
            f"Insufficient space: need at least {required_bytes} bytes, disk provides {available_bytes}"
        )


class DeviceBusyError(ProvisionError):
    """A precondition on the target device was violated."""

    def __init__(self, device: str, reason: str = ""):
        self.device = device
        self.reason = reason
        msg = f"Device {device} is busy"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class ToolFailureError(ProvisionError):
    """An external collaborator returned non-zero."""

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = "", message: str | None = None):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        if message is None:
            message = f"Command failed ({returncode}): {' '.join(self.argv)}"
            if stderr:
                message += f"\n{stderr.strip()}"
        super().__init__(message)


class DownloadError(ToolFailureError):
    """A download did not produce a non-empty file within the allowed attempts."""

    def __init__(self, url: str, attempts: int):
        self.url = url
        self.attempts = attempts
        super().__init__(
            ["wget", url],
            1,
            message=f"Download failed from: {url} (after {attempts} attempts)",
        )


class VerificationError(ProvisionError):
    """A post-condition check failed (e.g. an expected device node never appeared)."""
