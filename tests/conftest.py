#
# Snapboot
# Copyright 2020, 2021 Thomas Müller
# All rights reserved.
#

import json
import pathlib
import typing

import pytest
import sh

import snapboot.block
import snapboot.btrfs
import snapboot.configuration


ROOT_UUID = "11111111-2222-3333-4444-555555555555"
BOOT_UUID = "66666666-7777-8888-9999-000000000000"


def subvolume_line(number: int, date: str, path: str) -> str:
    return f"ID {256 + number} gen {number * 10} cgen {number * 10} " \
        f"top level 5 otime {date} path {path}"


class FakeBtrfs(object):
    """Stands in for snapboot.btrfs.Btrfs."""

    def __init__(
            self, lines: typing.Sequence[str] = (),
            subvolumes: typing.Mapping[str, str] = None) -> None:
        self.lines = list(lines)
        self.subvolumes = subvolumes or {}
        self.sorts = []

    def check(self, path: str = "/") -> None:
        pass

    def list_snapshots(self, path: str, sort: str) -> typing.List[str]:
        self.sorts.append(sort)
        return self.lines

    def subvolume_uuid(self, path: str) -> typing.Optional[str]:
        return self.subvolumes.get(str(path))


class FakeDevice(object):
    """Stands in for snapboot.block.Device."""

    def __init__(
            self, path: str = "/dev/sda2", uuid: str = ROOT_UUID,
            hints: str = "--hint='hd0,gpt2'", file_system_type: str = "btrfs",
            abstractions: typing.Sequence[str] = ()) -> None:
        self.path = path
        self.uuid = uuid
        self.hints = hints
        self.file_system_type = file_system_type
        self.abstractions = list(abstractions)

    def uses_abstraction(self, abstraction: str) -> bool:
        return abstraction in self.abstractions


class FakeCommand(object):
    """
    Stands in for an sh command.  Subcommands and arguments are passed to
    handler as one tuple, e.g. ("subvolume", "show", "/").
    """

    def __init__(
            self, handler: typing.Callable[..., str],
            names: typing.Tuple[str, ...] = ()) -> None:
        self._handler = handler
        self._names = names

    def __getattr__(self, name: str) -> "FakeCommand":
        if name.startswith("_"):
            raise AttributeError(name)

        return FakeCommand(self._handler, self._names + (name,))

    def __call__(self, *args: str) -> str:
        return self._handler(self._names + args)


class FakeShell(object):
    """Stands in for the sh module, serving the given command handlers."""

    CommandNotFound = sh.CommandNotFound
    ErrorReturnCode = sh.ErrorReturnCode

    def __init__(
            self, **handlers: typing.Callable[..., str]) -> None:
        self.handlers = handlers
        self.calls = []

    def Command(self, name: str) -> FakeCommand:
        if name not in self.handlers:
            raise sh.CommandNotFound(name)

        def handler(args):
            self.calls.append((name,) + args)
            return self.handlers[name](args)

        return FakeCommand(handler)

    def findmnt(self, *args: str) -> str:
        return self.Command("findmnt")(*args)


def failure(command: str, stderr: str) -> sh.ErrorReturnCode:
    return sh.ErrorReturnCode_1(command, b"", stderr.encode())


@pytest.fixture(autouse=True)
def environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in [
            "SNAPBOOT_CONFIG", "GRUB_CMDLINE_LINUX",
            "GRUB_CMDLINE_LINUX_DEFAULT", "GRUB_DEVICE_UUID",
            "GRUB_DISABLE_LINUX_UUID"]:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def configure(tmp_path: pathlib.Path) -> typing.Callable[
        ..., snapboot.configuration.Configuration]:
    """Returns a factory writing a configuration file and loading it."""
    grub_directory = tmp_path / "grub"
    grub_directory.mkdir()

    def factory(**options: typing.Any) -> \
            snapboot.configuration.Configuration:
        values = {
            "submenu_name": "Test snapshots",
            "grub_directory": str(grub_directory),
            "grub_defaults": str(tmp_path / "default-grub"),
            "script_check": "true",
            **options
        }
        path = tmp_path / "snapboot.conf"
        path.write_text(json.dumps(values))
        return snapboot.configuration.Configuration(str(path))

    return factory


def make_snapshot(
        mount_point: pathlib.Path, path: str,
        files: typing.Iterable[str] = (),
        fstab: str = None) -> pathlib.Path:
    """Creates a snapshot tree with the given boot files below mount_point."""
    root = mount_point / path
    boot = root / "boot"
    boot.mkdir(parents=True)

    for name in files:
        (boot / name).write_text(name)

    if fstab is not None:
        (root / "etc").mkdir()
        (root / "etc" / "fstab").write_text(fstab)

    return root
