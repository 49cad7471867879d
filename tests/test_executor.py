"""Tests for netboot_zfs.executor (state machine and failure cleanup)."""

from unittest.mock import MagicMock, patch

import pytest

from netboot_zfs import executor
from netboot_zfs.errors import ToolFailureError
from netboot_zfs.executor import (
    Executor,
    InstallCtx,
    InstallSettings,
    ProvisionState,
    cleanup_after_failure,
)
from netboot_zfs.lib.hostname import HostnameRecord
from netboot_zfs.lib.hwdetect import GIB
from netboot_zfs.lib.storage import build_plan
from netboot_zfs.lib.zfs import build_topology


@pytest.fixture
def ctx(make_profile, tmp_path):
    profile = make_profile()
    plan = build_plan(profile, 20 * GIB, disk="/dev/vda")
    topo = build_topology(plan, profile, last_used=1, altroot=str(tmp_path / "target"))
    return InstallCtx(plan, topo, profile, InstallSettings(HostnameRecord("simba-1122", "example.org")), dry_run=True)


class FakeStep:
    def __init__(self, step_id, reaches=None, error=None):
        self.step_id = step_id
        self.reaches = reaches
        self.error = error
        self.calls = 0

    def run(self, ctx):
        self.calls += 1
        if self.error is not None:
            raise self.error


def _happy_steps():
    return [
        FakeStep("10_preflight"),
        FakeStep("30_partition", ProvisionState.PARTITIONED),
        FakeStep("40_create_pools", ProvisionState.POOLS_CREATED),
        FakeStep("50_install_base", ProvisionState.BASE_INSTALLED),
        FakeStep("70_chroot_configure", ProvisionState.CONFIGURED),
        FakeStep("90_finalize", ProvisionState.EXPORTED),
    ]


class TestHappyPath:
    def test_walks_every_state(self, ctx):
        cleanup = MagicMock()
        result = Executor(ctx, _happy_steps(), cleanup=cleanup).run()

        assert result.state == ProvisionState.EXPORTED
        assert result.error is None
        assert result.history == [
            ProvisionState.UNPROVISIONED,
            ProvisionState.PARTITIONED,
            ProvisionState.POOLS_CREATED,
            ProvisionState.BASE_INSTALLED,
            ProvisionState.CONFIGURED,
            ProvisionState.EXPORTED,
        ]
        assert result.ran_steps[0] == "10_preflight"
        cleanup.assert_not_called()

    def test_skipping_a_state_is_rejected(self, ctx):
        steps = [FakeStep("40_create_pools", ProvisionState.POOLS_CREATED)]
        with pytest.raises(RuntimeError):
            Executor(ctx, steps, cleanup=MagicMock()).run()


class TestFailure:
    def test_failure_before_partitioning_skips_cleanup(self, ctx):
        cleanup = MagicMock()
        boom = ToolFailureError(["wipefs", "-a", "/dev/vda"], 1)
        steps = [FakeStep("10_preflight"), FakeStep("20_wipe_disk", error=boom), FakeStep("30_partition")]
        ex = Executor(ctx, steps, cleanup=cleanup)

        with pytest.raises(ToolFailureError):
            ex.run()

        cleanup.assert_not_called()
        assert ex.result.state == ProvisionState.FAILED
        assert ex.result.error is boom
        assert ex.result.ran_steps == ["10_preflight"]
        assert ex.result.history == [ProvisionState.UNPROVISIONED, ProvisionState.FAILED]
        assert steps[2].calls == 0

    @pytest.mark.parametrize("fail_at", [2, 3, 4])
    def test_failure_after_partitioning_cleans_up(self, ctx, fail_at):
        cleanup = MagicMock(return_value=[])
        steps = _happy_steps()
        steps[fail_at].error = ToolFailureError(["debootstrap"], 1)
        ex = Executor(ctx, steps, cleanup=cleanup)

        with pytest.raises(ToolFailureError):
            ex.run()

        cleanup.assert_called_once_with(ctx)
        assert ex.result.history[-2:] == [ProvisionState.EXPORTED, ProvisionState.FAILED]
        assert ex.state == ProvisionState.FAILED

    def test_original_error_survives_cleanup_warnings(self, ctx):
        steps = _happy_steps()
        steps[3].error = ValueError("boom")
        with patch.object(executor, "unmount_target", side_effect=OSError("busy")), patch.object(
            executor, "umount_chroot_binds"
        ), patch.object(executor, "pool_exists", return_value=True), patch.object(
            executor, "export_pool", return_value=False
        ):
            with pytest.raises(ValueError, match="boom"):
                Executor(ctx, steps).run()

    def test_failing_cleanup_does_not_mask_step_error(self, ctx):
        steps = _happy_steps()
        steps[2].error = ValueError("boom")
        ex = Executor(ctx, steps, cleanup=MagicMock(side_effect=RuntimeError("export hung")))

        with pytest.raises(ValueError, match="boom"):
            ex.run()

        assert isinstance(ex.result.error, ValueError)
        assert ex.result.history[-2:] == [ProvisionState.EXPORTED, ProvisionState.FAILED]


class TestCleanupAfterFailure:
    def test_exports_existing_pools_bpool_first(self, ctx):
        with patch.object(executor, "umount_chroot_binds") as binds, patch.object(
            executor, "unmount_target", return_value=[]
        ), patch.object(executor, "pool_exists", return_value=True), patch.object(
            executor, "export_pool", return_value=True
        ) as export:
            warnings = cleanup_after_failure(ctx)

        assert warnings == []
        binds.assert_called_once()
        assert [c[0][0] for c in export.call_args_list] == ["bpool", "rpool"]
        for c in export.call_args_list:
            assert c[1]["check"] is False

    def test_missing_pools_not_exported(self, ctx):
        with patch.object(executor, "umount_chroot_binds"), patch.object(
            executor, "unmount_target", return_value=[]
        ), patch.object(executor, "pool_exists", return_value=False), patch.object(executor, "export_pool") as export:
            assert cleanup_after_failure(ctx) == []
        export.assert_not_called()

    def test_collects_warnings_and_never_raises(self, ctx):
        with patch.object(executor, "umount_chroot_binds", side_effect=RuntimeError("x")), patch.object(
            executor, "unmount_target", return_value=["/mnt/boot/efi"]
        ), patch.object(executor, "pool_exists", return_value=True), patch.object(
            executor, "export_pool", side_effect=[False, True]
        ):
            warnings = cleanup_after_failure(ctx)

        assert len(warnings) == 3
        assert any("chroot binds" in w for w in warnings)
        assert any("/mnt/boot/efi" in w for w in warnings)
        assert any("bpool" in w for w in warnings)
