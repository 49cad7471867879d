from .step_10_preflight import PreflightStep
from .step_20_wipe_disk import WipeDiskStep
from .step_30_partition import PartitionStep
from .step_40_create_pools import CreatePoolsStep
from .step_50_install_base import InstallBaseStep
from .step_60_write_config import WriteConfigStep
from .step_70_chroot_configure import ChrootConfigureStep
from .step_90_finalize import FinalizeStep

__all__ = [
    "PreflightStep",
    "WipeDiskStep",
    "PartitionStep",
    "CreatePoolsStep",
    "InstallBaseStep",
    "WriteConfigStep",
    "ChrootConfigureStep",
    "FinalizeStep",
]
