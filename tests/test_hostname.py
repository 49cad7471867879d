"""Tests for netboot_zfs.lib.hostname (deterministic host naming)."""

import re

import pytest

from netboot_zfs.lib.hostname import NAME_POOLS, HostnameRecord, derive_hostname, mac_suffix, name_index
from netboot_zfs.lib.hwdetect import ChassisClass


class TestNamePools:
    """Name pool tables."""

    @pytest.mark.parametrize("chassis", list(ChassisClass))
    def test_pool_sizes_and_tokens(self, chassis):
        pool = NAME_POOLS[chassis]
        assert 13 <= len(pool) <= 15
        assert len(set(pool)) == len(pool)
        assert all(re.fullmatch(r"[a-z]+", name) for name in pool)

    def test_every_chassis_class_has_a_pool(self):
        assert set(NAME_POOLS) == set(ChassisClass)


class TestMacSuffix:
    """Last-two-octet suffix extraction."""

    def test_colon_separated(self):
        assert mac_suffix("aa:bb:cc:dd:11:22") == "1122"

    def test_uppercase_is_lowered(self):
        assert mac_suffix("AA:BB:CC:DD:EE:0F") == "ee0f"

    def test_dash_separated(self):
        assert mac_suffix("aa-bb-cc-dd-11-22") == "1122"

    def test_wrong_octet_count_rejected(self):
        with pytest.raises(ValueError):
            mac_suffix("aa:bb:cc:dd:11")


class TestNameIndex:
    """Index selection from MAC digits."""

    def test_first_two_digits_used(self):
        assert name_index("1122", 14) == 11

    def test_digits_are_extracted_from_hex(self):
        # "a1b2" -> digits "12"
        assert name_index("a1b2", 14) == 12

    def test_single_digit(self):
        assert name_index("0abc", 14) == 0

    def test_wraps_modulo_pool_size(self):
        assert name_index("9900", 14) == 99 % 14

    @pytest.mark.parametrize("chassis", list(ChassisClass))
    def test_index_always_in_range(self, chassis):
        size = len(NAME_POOLS[chassis])
        for n in range(100):
            idx = name_index(f"{n:02d}ff", size)
            assert 0 <= idx < size

    def test_no_digits_uses_seed(self):
        assert name_index("efab", 14, seed=lambda: 17) == 3

    def test_empty_pool_rejected(self):
        with pytest.raises(ValueError):
            name_index("1122", 0)


class TestDeriveHostname:
    """End-to-end derivation."""

    def test_laptop_scenario(self):
        record = derive_hostname("aa:bb:cc:dd:11:22", ChassisClass.LAPTOP, "example.com")
        assert record == HostnameRecord(short_name="kuzco-1122", domain="example.com")
        assert record.fqdn == "kuzco-1122.example.com"

    @pytest.mark.parametrize("chassis", list(ChassisClass))
    def test_deterministic_when_suffix_has_digits(self, chassis):
        mac = "52:54:00:ab:3c:4d"
        first = derive_hostname(mac, chassis, "example.com")
        for _ in range(5):
            assert derive_hostname(mac, chassis, "example.com") == first

    def test_chassis_value_string_accepted(self):
        record = derive_hostname("aa:bb:cc:dd:11:22", "laptop", "example.com")
        assert record.short_name == "kuzco-1122"

    def test_non_digit_suffix_is_well_formed(self):
        record = derive_hostname("aa:bb:cc:dd:ef:gh", ChassisClass.DESKTOP, "example.com")
        assert re.fullmatch(r"[a-z]+-efgh\.example\.com", record.fqdn)
        assert record.short_name.split("-")[0] in NAME_POOLS[ChassisClass.DESKTOP]

    def test_non_digit_suffix_follows_seed(self):
        record = derive_hostname("aa:bb:cc:dd:ef:ab", ChassisClass.VM, "example.com", seed=lambda: 1)
        assert record.short_name == f"{NAME_POOLS[ChassisClass.VM][1]}-efab"
