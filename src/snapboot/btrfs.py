#
# Snapboot
# Copyright 2020, 2021 Thomas Müller
# All rights reserved.
#

import re
import sh
import typing

import snapboot.block
import snapboot.error


class Btrfs(object):
    """Wrapper around btrfs-progs."""

    def __init__(self) -> None:
        try:
            self._btrfs = sh.Command("btrfs")
        except sh.CommandNotFound:
            raise snapboot.error.ToolUnavailableError("btrfs")

    def check(self, path: str = "/") -> None:
        """
        Raises NotASupportedFilesystemError if path is not located on a Btrfs
        file system.

        Keyword arguments:
        path -- the path to check (default "/")
        """
        file_system = snapboot.block.FileSystem(path)

        if file_system.file_system_type != "btrfs":
            raise snapboot.error.NotASupportedFilesystemError(
                f"{file_system.target or path} is located on "
                f"{file_system.file_system_type}, not Btrfs")

    def list_snapshots(self, path: str, sort: str) -> typing.List[str]:
        """
        Returns the raw snapshot list of the file system path is located on,
        one line per snapshot.

        Keyword arguments:
        path -- any path on the file system
        sort -- the btrfs sort specification, e.g. "-rootid"
        """
        try:
            buffer = str(self._btrfs.subvolume.list(
                "-sa", f"--sort={sort}", path))
        except sh.ErrorReturnCode as e:
            raise snapboot.error.InitializationError(
                f"btrfs subvolume list {path} failed: "
                f"{e.stderr.decode(errors='replace').strip()}")

        return [line for line in buffer.splitlines() if line.strip()]

    def subvolume_uuid(self, path: str) -> typing.Optional[str]:
        """
        Returns the UUID of the subvolume path, or None if path is not a
        subvolume.

        Keyword arguments:
        path -- the path to inspect
        """
        try:
            buffer = str(self._btrfs.subvolume.show(str(path)))
        except sh.ErrorReturnCode:
            return None

        m = re.search(r"^\s+UUID:\s+(?P<uuid>\S+)", buffer, re.MULTILINE)
        return m.group("uuid") if m else None
