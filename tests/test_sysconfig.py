"""Tests for netboot_zfs.lib.sysconfig (files written into the new root)."""

import stat
from unittest.mock import patch

import yaml

from netboot_zfs.lib import sysconfig
from netboot_zfs.lib.sysconfig import (
    make_swap,
    netplan_dhcp_all,
    permit_root_login,
    render_netplan,
    render_sources_list,
    set_root_password,
    swap_fstab_line,
    write_file,
)


class TestRenderers:
    def test_netplan_round_trips(self):
        text = render_netplan()
        assert text.startswith("---\n")
        assert yaml.safe_load(text) == netplan_dhcp_all()

    def test_netplan_matches_ethernet(self):
        eth = netplan_dhcp_all()["network"]["ethernets"]["all_ethernet"]
        assert eth == {"match": {"name": "e*"}, "dhcp4": True}

    def test_sources_list(self):
        lines = render_sources_list("noble", mirror="http://m/ubuntu").splitlines()
        assert lines[0].startswith("#")
        assert lines[1] == "deb http://m/ubuntu noble main restricted universe multiverse"
        assert [ln.split()[2] for ln in lines[1:]] == ["noble", "noble-updates", "noble-backports", "noble-security"]
        assert "security.ubuntu.com" in lines[4]

    def test_swap_fstab_line(self):
        assert swap_fstab_line("/dev/zvol/rpool/swap") == "/dev/zvol/rpool/swap none swap defaults 0 0\n"


class TestWriteFile:
    def test_write_with_mode(self, tmp_path):
        p = write_file(str(tmp_path), "/etc/netplan/x.yaml", "a: 1\n", mode=0o600)
        assert p == tmp_path / "etc/netplan/x.yaml"
        assert p.read_text() == "a: 1\n"
        assert stat.S_IMODE(p.stat().st_mode) == 0o600

    def test_append(self, tmp_path):
        write_file(str(tmp_path), "etc/fstab", "one\n")
        p = write_file(str(tmp_path), "etc/fstab", "two\n", append=True)
        assert p.read_text() == "one\ntwo\n"

    def test_dry_run(self, tmp_path):
        p = write_file(str(tmp_path), "etc/hostname", "x\n", dry_run=True)
        assert not p.exists()


class TestCommands:
    def test_root_password_via_chpasswd(self):
        with patch.object(sysconfig, "run_cmd") as run:
            set_root_password("/mnt", "secret")
        run.assert_called_once_with(["chroot", "/mnt", "chpasswd"], input_text="root:secret", dry_run=False)

    def test_empty_password_skipped(self):
        with patch.object(sysconfig, "run_cmd") as run:
            set_root_password("/mnt", "")
        run.assert_not_called()

    def test_mkswap_label(self):
        with patch.object(sysconfig, "run_cmd") as run:
            make_swap("/dev/sda3", label="SWAP")
        run.assert_called_once_with(["mkswap", "-f", "--label", "SWAP", "/dev/sda3"], dry_run=False)


class TestPermitRootLogin:
    def test_uncomments_setting(self, tmp_path):
        cfg = tmp_path / "etc/ssh/sshd_config"
        cfg.parent.mkdir(parents=True)
        cfg.write_text("Port 22\n#PermitRootLogin prohibit-password\n#PermitRootLoginX no\n")
        assert permit_root_login(str(tmp_path)) is True
        assert cfg.read_text() == "Port 22\nPermitRootLogin yes\n#PermitRootLoginX no\n"

    def test_already_set(self, tmp_path):
        cfg = tmp_path / "etc/ssh/sshd_config"
        cfg.parent.mkdir(parents=True)
        cfg.write_text("PermitRootLogin yes\n")
        assert permit_root_login(str(tmp_path)) is False

    def test_missing_config(self, tmp_path):
        assert permit_root_login(str(tmp_path)) is False
