from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Protocol, Sequence

from .lib.chroot import umount_chroot_binds, unmount_target
from .lib.hostname import HostnameRecord
from .lib.hwdetect import HostProfile
from .lib.storage import PartitionPlan
from .lib.zfs import PoolTopology, export_pool, pool_exists

logger = logging.getLogger(__name__)


class ProvisionState(str, Enum):
    UNPROVISIONED = "unprovisioned"
    PARTITIONED = "partitioned"
    POOLS_CREATED = "pools_created"
    BASE_INSTALLED = "base_installed"
    CONFIGURED = "configured"
    EXPORTED = "exported"
    FAILED = "failed"


FORWARD_ORDER = (
    ProvisionState.UNPROVISIONED,
    ProvisionState.PARTITIONED,
    ProvisionState.POOLS_CREATED,
    ProvisionState.BASE_INSTALLED,
    ProvisionState.CONFIGURED,
    ProvisionState.EXPORTED,
)


@dataclass(frozen=True)
class InstallSettings:
    hostname: HostnameRecord
    root_password: str = "password"
    locale: str = "en_US.UTF-8"
    timezone: str = "Africa/Johannesburg"
    release: str = "noble"
    arch: str = "amd64"
    mirror: str = "http://archive.ubuntu.com/ubuntu"
    include_packages: Sequence[str] = ()
    exclude_packages: Sequence[str] = ()
    reboot: bool = True
    # Booted over the network: the new root needs the live resolver.
    netbooted: bool = False


@dataclass(frozen=True)
class InstallCtx:
    plan: PartitionPlan
    topology: PoolTopology
    profile: HostProfile
    settings: InstallSettings
    dry_run: bool = False

    @property
    def target_root(self) -> str:
        return self.topology.altroot


class Step(Protocol):
    """One executor step; reaches is the state entered on success, if any."""

    step_id: str
    reaches: Optional[ProvisionState]

    def run(self, ctx: InstallCtx) -> None:
        ...


@dataclass(frozen=True)
class ExecutionResult:
    state: ProvisionState
    ran_steps: List[str]
    error: Optional[BaseException] = None
    history: List[ProvisionState] = field(default_factory=list)


def cleanup_after_failure(ctx: InstallCtx) -> List[str]:
    """Best-effort unmount and export so no pool is left imported on the host.

    Never raises; returns the warnings it logged.
    """

    warnings: List[str] = []

    def attempt(what: str, fn: Callable[[], object]) -> object:
        try:
            return fn()
        except Exception as e:
            msg = f"Cleanup: {what} failed: {e}"
            logger.warning(msg)
            warnings.append(msg)
            return None

    target = ctx.target_root
    attempt("unmount chroot binds", lambda: umount_chroot_binds(target, dry_run=ctx.dry_run))
    failed = attempt("unmount target", lambda: unmount_target(target, dry_run=ctx.dry_run)) or []
    for mp in failed:
        warnings.append(f"Cleanup: could not unmount {mp}")

    # bpool first; its datasets mount inside rpool's.
    for pool in reversed(ctx.topology.pools):
        if not attempt(f"probe {pool.name}", lambda: pool_exists(pool.name, dry_run=ctx.dry_run)):
            continue
        ok = attempt(f"export {pool.name}", lambda: export_pool(pool.name, check=False, dry_run=ctx.dry_run))
        if not ok:
            msg = f"Cleanup: zpool export {pool.name} failed; the pool may still be imported"
            logger.warning(msg)
            warnings.append(msg)
    return warnings


class Executor:
    """Runs steps in order and tracks the provisioning state.

    The first error aborts the run. Once pools may exist on the disk, a
    cleanup attempt is made before the original error is re-raised.
    """

    def __init__(
        self,
        ctx: InstallCtx,
        steps: Sequence[Step],
        *,
        cleanup: Callable[[InstallCtx], List[str]] = cleanup_after_failure,
    ):
        self.ctx = ctx
        self.steps = list(steps)
        self.cleanup = cleanup
        self.state = ProvisionState.UNPROVISIONED
        self.history: List[ProvisionState] = [self.state]
        self.result: Optional[ExecutionResult] = None

    def _enter(self, new: ProvisionState) -> None:
        if new != ProvisionState.FAILED:
            cur = FORWARD_ORDER.index(self.state)
            if FORWARD_ORDER.index(new) != cur + 1:
                raise RuntimeError(f"Invalid transition {self.state.value} -> {new.value}")
        logger.info("State: %s -> %s", self.state.value, new.value)
        self.state = new
        self.history.append(new)

    def _pools_may_exist(self) -> bool:
        return FORWARD_ORDER.index(self.state) >= FORWARD_ORDER.index(ProvisionState.PARTITIONED)

    def run(self) -> ExecutionResult:
        ran: List[str] = []
        for step in self.steps:
            logger.info("Running step %s", step.step_id)
            try:
                step.run(self.ctx)
            except Exception as e:
                logger.error("Step %s failed (state=%s): %s", step.step_id, self.state.value, e)
                if self._pools_may_exist():
                    try:
                        self.cleanup(self.ctx)
                    except Exception as cleanup_error:
                        logger.warning("Cleanup after %s failed: %s", step.step_id, cleanup_error)
                    logger.info("State: %s -> %s (cleanup)", self.state.value, ProvisionState.EXPORTED.value)
                    self.history.append(ProvisionState.EXPORTED)
                self._enter(ProvisionState.FAILED)
                self.result = ExecutionResult(self.state, ran, e, list(self.history))
                raise
            ran.append(step.step_id)
            if step.reaches is not None:
                self._enter(step.reaches)

        self.result = ExecutionResult(self.state, ran, None, list(self.history))
        return self.result


def execute(ctx: InstallCtx, steps: Sequence[Step]) -> ExecutionResult:
    return Executor(ctx, steps).run()
