#
# Snapboot
# Copyright 2020, 2021 Thomas Müller
# All rights reserved.
#

import os
import pathlib
import sh
import typing

import snapboot.boot.grub
import snapboot.error


class Writer(object):
    """
    Writes the generated GRUB configuration.  Entries are appended to a
    staging file which only replaces the live configuration after
    grub-script-check accepted it.
    """

    name = "snapboot.cfg"

    def __init__(
            self, directory: pathlib.Path,
            script_check: str = "grub-script-check") -> None:
        self._directory = pathlib.Path(directory)
        self._script_check = script_check
        self.path = self._directory / self.name
        self.staged = self._directory / "snapboot.new"
        self.backup = self._directory / f"{self.name}.bkp"

        if not self._directory.is_dir():
            raise snapboot.error.InitializationError(
                f"Directory {self._directory} does not exist")

    def stage(self) -> None:
        """Starts a new configuration, backing up the current one."""
        if self.staged.exists():
            self.staged.unlink()

        if self.path.exists():
            os.replace(self.path, self.backup)

        self.staged.touch()

    def write(self, text: str) -> None:
        """
        Appends text to the staged configuration.

        Keyword arguments:
        text -- the text to append
        """
        with open(self.staged, "a") as f:
            f.write(text)

    def commit(self, header: str) -> None:
        """
        Prepends the header to the staged configuration, checks its syntax
        and promotes it.  Raises InvalidGeneratedSyntaxError and restores
        the backup if the check fails.

        Keyword arguments:
        header -- the header line, without quoting
        """
        with open(self.staged, "r") as f:
            buffer = f.read()

        with open(self.staged, "w") as f:
            f.write(
                f"menuentry {snapboot.boot.grub.quote(header)} {{ echo }}\n"
                f"{buffer}")

        try:
            command = sh.Command(self._script_check)
        except sh.CommandNotFound:
            self.abort()
            raise snapboot.error.ToolUnavailableError(self._script_check)

        try:
            command(str(self.staged))
        except sh.ErrorReturnCode as e:
            self.abort()
            diagnostic = "\n".join(filter(None, [
                e.stdout.decode(errors="replace").strip(),
                e.stderr.decode(errors="replace").strip()]))
            raise snapboot.error.InvalidGeneratedSyntaxError(
                f"Syntax error in the generated {self.name}; backup "
                f"restored", diagnostic)

        os.replace(self.staged, self.path)

        if self.backup.exists():
            self.backup.unlink()

    def discard(self) -> None:
        """Drops the staged configuration and the backup."""
        for file in [self.staged, self.backup]:
            if file.exists():
                file.unlink()

    def include(
            self, submenu: str,
            users: typing.Iterable[str] = (),
            unrestricted: bool = False) -> str:
        """
        Returns the grub.cfg fragment loading the generated configuration if
        it exists.

        Keyword arguments:
        submenu      -- the submenu title
        users        -- the users allowed to enter the submenu (default ())
        unrestricted -- if True, everybody may enter the submenu
                        (default False)
        """
        users = ",".join(users)
        options = (f"--users {users} " if users else "") + \
            ("--unrestricted " if unrestricted else "")
        quote = snapboot.boot.grub.quote
        return f"""if [ ! -e "${{prefix}}/{self.name}" ]; then
echo ""
else
submenu {quote(submenu)} {options}{{
    configfile "${{prefix}}/{self.name}"
}}
fi
"""

    def abort(self) -> None:
        """Drops the staged configuration and restores the backup."""
        if self.staged.exists():
            self.staged.unlink()

        if self.backup.exists():
            os.replace(self.backup, self.path)
