"""Tests for netboot_zfs.install (host to plan to context)."""

from dataclasses import replace
from unittest.mock import patch

import pytest

from netboot_zfs.config import Config
from netboot_zfs.install import build_steps, hostname_record, prepare
from netboot_zfs.lib import hwdetect
from netboot_zfs.lib.firmware import FirmwareMode
from netboot_zfs.lib.hwdetect import GIB, ChassisClass
from netboot_zfs.lib.storage import PartitionRole

CAPACITY = 20 * GIB


@pytest.fixture(autouse=True)
def no_host_tools():
    with patch.object(hwdetect.shutil, "which", return_value=None):
        yield


class TestHostnameRecord:
    def test_auto_derives_from_mac(self, make_profile):
        cfg = Config({"install": {"hostname": "auto"}, "hostname": {"domain": "example.org"}})
        record = hostname_record(cfg, make_profile(mac="52:54:00:12:34:56"))
        # digits "34" -> 34 % 14 == 6
        assert record.short_name == "mickey-3456"
        assert record.domain == "example.org"

    def test_fqdn_is_split(self, make_profile):
        record = hostname_record(Config({"install": {"hostname": "box.lan.example"}}), make_profile())
        assert (record.short_name, record.domain) == ("box", "lan.example")

    def test_short_name_gets_configured_domain(self, make_profile):
        cfg = Config({"install": {"hostname": "box"}, "hostname": {"domain": "example.org"}})
        assert hostname_record(cfg, make_profile()).fqdn == "box.example.org"


class TestPrepare:
    def test_efi_laptop(self, fake_host):
        cfg = Config({"install": {"dry_run": True, "swap_size_gib": 4, "target_root": fake_host.target_root}})
        ctx = prepare(cfg, capacity_bytes=CAPACITY, paths=fake_host)

        assert ctx.dry_run
        assert ctx.profile.firmware == FirmwareMode.EFI
        assert ctx.profile.chassis == ChassisClass.LAPTOP
        assert ctx.plan.disk == ctx.plan.pool_disk == "/dev/vda"
        assert ctx.plan.has(PartitionRole.SWAP)
        assert [p.name for p in ctx.topology.pools] == ["rpool", "bpool"]
        assert ctx.target_root == fake_host.target_root
        assert not ctx.settings.netbooted

    def test_netbooted_from_cmdline(self, fake_host):
        with open(fake_host.proc_cmdline, "w") as f:
            f.write("ip=dhcp netboot=http://srv/rootfs.squashfs\n")
        ctx = prepare(Config({"install": {"dry_run": True}}), capacity_bytes=CAPACITY, paths=fake_host)
        assert ctx.settings.netbooted

    def test_bios_without_hibernation_is_whole_disk(self, fake_host, tmp_path):
        paths = replace(fake_host, efi_dir=str(tmp_path / "no-efi"))
        cfg = Config({"install": {"dry_run": True, "hibernation": False, "swap_size_gib": 2}})
        ctx = prepare(cfg, capacity_bytes=CAPACITY, paths=paths)
        assert ctx.plan.whole_disk_pool
        assert ctx.topology.bpool is None
        assert ctx.topology.swap_volume.volume_size == "2G"


class TestBuildSteps:
    def test_order_and_states(self):
        steps = build_steps()
        ids = [s.step_id for s in steps]
        assert ids == sorted(ids)
        assert ids[0] == "10_preflight" and ids[-1] == "90_finalize"
        reached = [s.reaches.value for s in steps if s.reaches is not None]
        assert reached == ["partitioned", "pools_created", "base_installed", "configured", "exported"]
