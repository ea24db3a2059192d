#
# Snapboot
# Copyright 2020, 2021 Thomas Müller
# All rights reserved.
#

import json
import pathlib
import sh
import typing

import snapboot.error
import snapboot.namespace


def grub_probe(*args: str) -> typing.Optional[str]:
    """
    Runs grub-probe, returning its stripped output or None if grub-probe
    failed.

    Keyword arguments:
    args -- the grub-probe arguments
    """
    try:
        command = sh.Command("grub-probe")
    except sh.CommandNotFound:
        raise snapboot.error.ToolUnavailableError("grub-probe")

    try:
        return str(command(*args)).strip()
    except sh.ErrorReturnCode:
        return None


def grub_mkrelpath(path: pathlib.Path) -> str:
    """
    Returns path relative to the root of the file system it is located on,
    as seen by GRUB.

    Keyword arguments:
    path -- the path to convert
    """
    try:
        command = sh.Command("grub-mkrelpath")
    except sh.CommandNotFound:
        raise snapboot.error.ToolUnavailableError("grub-mkrelpath")

    try:
        return str(command(str(path))).strip()
    except sh.ErrorReturnCode:
        raise snapboot.error.InitializationError(
            f"Unable to determine GRUB path of {path}")


class FileSystem(object):
    """Mounted file system."""

    def __init__(self, mount_point: str) -> None:
        # Get the source device, file system type, UUID and mount options for
        # the file system.
        try:
            block = json.loads(
                str(sh.findmnt(
                    "-J", "-T", str(mount_point), "-o",
                    "TARGET,SOURCE,FSTYPE,UUID,OPTIONS")),
                object_hook=lambda kwargs: snapboot.namespace.Namespace(
                    **kwargs))
        except sh.CommandNotFound:
            raise snapboot.error.ToolUnavailableError("findmnt")
        except sh.ErrorReturnCode:
            raise snapboot.error.InitializationError(
                f"Invalid mount point {mount_point}")

        file_system = block.filesystems[0]
        self.subvol = None

        for option in (file_system.options or "").split(","):
            if option.startswith("subvol="):
                self.subvol = pathlib.Path(option.split("=")[-1])
                break

        # Btrfs subvolume mounts are reported as /dev/sda2[/@].
        self.source = (file_system.source or "").split("[")[0] or None
        self.file_system_type = file_system.fstype
        self.target = file_system.target
        self.uuid = file_system.uuid


class Device(object):
    """Block device holding a file system, as probed by GRUB."""

    def __init__(self, path: str) -> None:
        file_system = FileSystem(path)

        # grub-probe knows better than findmnt which device GRUB will see,
        # especially on top of LVM or LUKS.
        self.path = grub_probe("--target=device", str(path)) or \
            file_system.source

        if self.path:
            self.uuid = grub_probe(
                "--device", self.path, "--target=fs_uuid") or file_system.uuid
            self.hints = grub_probe(
                "--device", self.path, "--target=hints_string") or ""
            self.file_system_type = grub_probe(
                "--device", self.path, "--target=fs") or \
                file_system.file_system_type
            self.abstractions = (grub_probe(
                "--device", self.path, "--target=abstraction") or "").split()
        else:
            self.uuid = file_system.uuid
            self.hints = ""
            self.file_system_type = file_system.file_system_type
            self.abstractions = []

    def uses_abstraction(self, abstraction: str) -> bool:
        """
        Returns True if the device uses the given GRUB abstraction module,
        e.g. lvm or cryptodisk.

        Keyword arguments:
        abstraction -- the abstraction module name
        """
        return abstraction in self.abstractions
