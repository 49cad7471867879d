"""Tests for netboot_zfs.config."""

import pytest

from netboot_zfs.config import DEFAULT_BUILD_PACKAGES, DEFAULT_INCLUDE_PACKAGES, Config, load_config


class TestDefaults:
    def test_install_defaults(self):
        cfg = Config()
        assert cfg.root_disk == "/dev/vda"
        assert cfg.hostname == "ubuzfs"
        assert cfg.hibernation is True
        assert cfg.swap_size_gib == 0
        assert cfg.release == "noble"
        assert cfg.reboot is True
        assert cfg.dry_run is False
        assert cfg.include_packages == DEFAULT_INCLUDE_PACKAGES
        assert cfg.exclude_packages == ["ubuntu-pro-client"]
        assert cfg.target_root == "/mnt"

    def test_other_sections(self):
        cfg = Config()
        assert cfg.hosts_file == "/etc/hosts"
        assert cfg.download_retries == 3
        assert cfg.retry_delay_s == 2.0
        assert cfg.build_include_packages == DEFAULT_BUILD_PACKAGES
        assert "python3" in cfg.build_include_packages
        assert cfg.authorized_keys_url is None

    def test_empty_root_password_is_kept(self):
        assert Config({"install": {"root_password": ""}}).root_password == ""


class TestCoercion:
    def test_comma_separated_list(self):
        cfg = Config({"install": {"include_packages": "vim, curl,,git"}})
        assert cfg.include_packages == ["vim", "curl", "git"]

    @pytest.mark.parametrize("value,expected", [("yes", True), ("no", False), ("0", False), ("On", True), (False, False)])
    def test_bool_strings(self, value, expected):
        assert Config({"install": {"hibernation": value}}).hibernation is expected

    def test_zero_retry_delay(self):
        assert Config({"bootscript": {"retry_delay_s": 0}}).retry_delay_s == 0.0


class TestOverrides:
    def test_none_values_ignored(self):
        base = Config({"install": {"root_disk": "/dev/sdb"}})
        cfg = base.with_overrides("install", root_disk=None, swap_size_gib=4)
        assert cfg.root_disk == "/dev/sdb"
        assert cfg.swap_size_gib == 4

    def test_original_untouched(self):
        base = Config({"install": {"swap_size_gib": 1}})
        base.with_overrides("install", swap_size_gib=8)
        assert base.swap_size_gib == 1

    def test_false_is_an_override(self):
        assert Config().with_overrides("install", reboot=False).reboot is False


class TestLoadConfig:
    def test_none_gives_defaults(self):
        assert load_config(None) == Config()

    def test_yaml(self, tmp_path):
        p = tmp_path / "install.yaml"
        p.write_text("install:\n  root_disk: /dev/nvme0n1\n  swap_size_gib: 8\nhostname:\n  domain: example.org\n")
        cfg = load_config(str(p))
        assert cfg.root_disk == "/dev/nvme0n1"
        assert cfg.swap_size_gib == 8
        assert cfg.domain == "example.org"

    def test_empty_yaml(self, tmp_path):
        p = tmp_path / "empty.yml"
        p.write_text("")
        assert load_config(str(p)) == Config()

    def test_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_wrong_suffix(self, tmp_path):
        p = tmp_path / "install.json"
        p.write_text("{}")
        with pytest.raises(ValueError):
            load_config(str(p))

    def test_non_mapping(self, tmp_path):
        p = tmp_path / "list.yaml"
        p.write_text("- a\n- b\n")
        with pytest.raises(ValueError):
            load_config(str(p))
