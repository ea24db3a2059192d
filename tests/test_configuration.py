#
# Snapboot
# Copyright 2020, 2021 Thomas Müller
# All rights reserved.
#

import pytest

import snapboot.configuration
import snapboot.error
import snapboot.namespace


def test_defaults_without_file(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_DIRS", f"{tmp_path}:/etc/xdg")
    configuration = snapboot.configuration.Configuration()

    assert configuration.path == tmp_path / "snapboot" / "snapboot.conf"
    assert configuration.limit == 50
    assert configuration.sort == "-rootid"
    assert configuration.title_format == [
        "date", "snapshot", "type", "description"]
    assert configuration.ignore.prefix_path == []
    assert configuration.protection.unrestricted is False
    assert configuration.grub_directory == "/boot/grub"
    assert configuration.boot_directory == "/boot"
    assert configuration.script_check == "grub-script-check"


def test_environment_selects_file(tmp_path, monkeypatch):
    path = tmp_path / "custom.conf"
    path.write_text('{"limit": 3}')
    monkeypatch.setenv("SNAPBOOT_CONFIG", str(path))

    assert snapboot.configuration.Configuration().limit == 3


def test_nested_options_are_merged(configure):
    configuration = configure(ignore={"snapshot_type": ["pre"]})

    assert configuration.ignore.snapshot_type == ["pre"]
    assert configuration.ignore.specific_path == []


@pytest.mark.parametrize("buffer", [
    '{"limit": -1}',
    '{"limit": "50"}',
    '{"sort": "date"}',
    '{"unknown": true}',
    '{"ignore": {"tags": []}}',
    '{"title_format": "date"}',
    '{"limit": '
])
def test_invalid(tmp_path, buffer):
    path = tmp_path / "snapboot.conf"
    path.write_text(buffer)

    with pytest.raises(snapboot.error.InitializationError):
        snapboot.configuration.Configuration(str(path))


def test_configuration_is_read_only(configure):
    configuration = configure()

    with pytest.raises(TypeError):
        configuration.protection["unrestricted"] = True

    with pytest.raises(AttributeError):
        configuration.protection.unrestricted = True


def test_source(tmp_path):
    path = tmp_path / "grub"
    path.write_text(
        'GRUB_DEFAULT=0\n'
        'GRUB_CMDLINE_LINUX_DEFAULT="loglevel=3 quiet"\n'
        '# GRUB_DISABLE_LINUX_UUID=true\n')

    variables = snapboot.configuration.source(path)

    assert variables["GRUB_DEFAULT"] == "0"
    assert variables["GRUB_CMDLINE_LINUX_DEFAULT"] == "loglevel=3 quiet"
    assert "GRUB_DISABLE_LINUX_UUID" not in variables


def test_source_missing_file(tmp_path):
    assert snapboot.configuration.source(tmp_path / "missing") == {}


def test_grub_defaults_prefer_environment(tmp_path, configure, monkeypatch):
    (tmp_path / "default-grub").write_text(
        'GRUB_CMDLINE_LINUX="rd.luks=0"\nGRUB_DISABLE_LINUX_UUID=false\n')
    monkeypatch.setenv("GRUB_DISABLE_LINUX_UUID", "true")
    monkeypatch.setenv("GRUB_DEVICE_UUID", "abcd")

    defaults = configure().grub_defaults()

    assert defaults.GRUB_CMDLINE_LINUX == "rd.luks=0"
    assert defaults.GRUB_DISABLE_LINUX_UUID == "true"
    assert defaults.GRUB_DEVICE_UUID == "abcd"
    assert defaults.GRUB_CMDLINE_LINUX_DEFAULT is None


def test_submenu(configure, monkeypatch):
    assert configure().submenu() == "Test snapshots"

    monkeypatch.setattr(
        snapboot.configuration, "source", lambda file: {"NAME": "Arch Linux"})
    assert configure(submenu_name="").submenu() == "Arch Linux snapshots"

    monkeypatch.setattr(snapboot.configuration, "source", lambda file: {})
    assert configure(submenu_name="").submenu() == "Linux snapshots"


def test_namespace_merge():
    namespace = snapboot.namespace.Namespace(
        a=1, b=snapboot.namespace.Namespace(c=2, d=3))

    merged = namespace.merge({"b": {"d": 4}, "e": 5})

    assert merged == {"a": 1, "b": {"c": 2, "d": 4}, "e": 5}
    assert isinstance(merged.b, snapboot.namespace.Namespace)
    assert namespace.b.d == 3
    assert merged.missing is None
