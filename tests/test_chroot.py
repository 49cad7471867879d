"""Tests for netboot_zfs.lib.chroot (bind mounts and target unmounting)."""

from unittest.mock import patch

from netboot_zfs.lib import chroot
from netboot_zfs.lib.chroot import mount_chroot_binds, target_mounts, umount_chroot_binds, unmount_target
from netboot_zfs.lib.command import CmdResult

MOUNTS = """proc /proc proc rw 0 0
rpool/ROOT/ubuntu /mnt zfs rw 0 0
/dev/sda1 /mnt/boot/efi vfat rw 0 0
udev /mnt/dev devtmpfs rw 0 0
tmpfs /mnt/run tmpfs rw 0 0
/dev/sdb1 /mntx ext4 rw 0 0
"""


class TestTargetMounts:
    def test_below_root_deepest_first(self, tmp_path):
        p = tmp_path / "mounts"
        p.write_text(MOUNTS)
        assert target_mounts("/mnt", proc_mounts=str(p)) == ["/mnt/run", "/mnt/dev", "/mnt/boot/efi"]

    def test_include_zfs(self, tmp_path):
        p = tmp_path / "mounts"
        p.write_text(MOUNTS)
        assert target_mounts("/mnt/", proc_mounts=str(p), include_zfs=True)[-1] == "/mnt"

    def test_missing_table(self, tmp_path):
        assert target_mounts("/mnt", proc_mounts=str(tmp_path / "nope")) == []


class TestUnmount:
    def test_reports_failures(self, tmp_path):
        p = tmp_path / "mounts"
        p.write_text(MOUNTS)

        def fake_run(argv, **kwargs):
            return CmdResult(list(argv), 32 if argv[-1] == "/mnt/dev" else 0, "", "")

        with patch.object(chroot, "run_cmd", side_effect=fake_run):
            assert unmount_target("/mnt", proc_mounts=str(p)) == ["/mnt/dev"]

    def test_binds(self, tmp_path):
        with patch.object(chroot, "run_cmd") as run:
            mount_chroot_binds(str(tmp_path))
            umount_chroot_binds(str(tmp_path))
        argvs = [c[0][0] for c in run.call_args_list]
        assert argvs[0] == ["mount", "--rbind", "/dev", f"{tmp_path}/dev"]
        assert argvs[3] == ["umount", "-lf", f"{tmp_path}/sys"]
        assert (tmp_path / "proc").is_dir()
