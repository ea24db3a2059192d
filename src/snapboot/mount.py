#
# Snapboot
# Copyright 2020, 2021 Thomas Müller
# All rights reserved.
#

import pathlib
import sh
import sys
import syslog
import tempfile
import time
import typing

import snapboot.error


class Mount(object):
    """
    Read-only mount of the top-level subvolume of a Btrfs file system on a
    temporary directory.  Unmounting happens on leaving the context, whatever
    the reason.
    """

    retries = 10
    delay = 2

    def __init__(self, uuid: str) -> None:
        self._uuid = uuid
        self.path = None

    def __enter__(self) -> pathlib.Path:
        self.path = pathlib.Path(tempfile.mkdtemp(prefix="snapboot."))

        try:
            sh.mount(
                "-o", "ro,subvolid=5", f"/dev/disk/by-uuid/{self._uuid}",
                str(self.path))
        except sh.CommandNotFound:
            self.path.rmdir()
            raise snapboot.error.ToolUnavailableError("mount")
        except sh.ErrorReturnCode as e:
            self.path.rmdir()
            raise snapboot.error.MountError(
                f"Error mounting file system {self._uuid} on {self.path}: "
                f"{e.stderr.decode(errors='replace').strip()}")

        return self.path

    def __exit__(self, *args: typing.Any) -> None:
        try:
            self.unmount()
        except snapboot.error.UnmountTimeoutError as e:
            print(f"Warning: {e.message}", file=sys.stderr)
            syslog.syslog(syslog.LOG_WARNING, e.message)

    def mounted(self) -> bool:
        """Returns True if the mount point is listed in /proc/mounts."""
        try:
            with open("/proc/mounts", "r") as f:
                return any(
                    line.split()[1] == str(self.path)
                    for line in f if len(line.split()) > 1)
        except FileNotFoundError:
            return False

    def unmount(self) -> None:
        """
        Unmounts the file system and removes the mount point.  A busy file
        system is retried a limited number of times; raises
        UnmountTimeoutError and leaves the mount point behind if it is still
        mounted afterwards.
        """
        if self.path is None or not self.path.exists():
            return

        attempt = 0

        while self.mounted():
            attempt += 1

            try:
                sh.umount(str(self.path))
                break
            except sh.CommandNotFound:
                raise snapboot.error.ToolUnavailableError("umount")
            except sh.ErrorReturnCode:
                if attempt >= self.retries:
                    raise snapboot.error.UnmountTimeoutError(
                        f"Unable to unmount {self.path}; remove it manually")

                time.sleep(self.delay)

        try:
            self.path.rmdir()
        except OSError as e:
            syslog.syslog(
                syslog.LOG_WARNING, f"Unable to delete {self.path}: "
                f"{e.strerror}")
