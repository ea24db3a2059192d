#
# Snapboot
# Copyright 2020, 2021 Thomas Müller
# All rights reserved.
#


class Error(Exception):
    """Snapboot error."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InitializationError(Error):
    """Initialization error."""

    pass


class ToolUnavailableError(Error):
    """Required external tool missing."""

    def __init__(self, command: str) -> None:
        super().__init__(f"{command}: Command not found")
        self.command = command


class NotASupportedFilesystemError(Error):
    """Root file system is not Btrfs."""

    pass


class NoBootableKernelsError(Error):
    """No kernel found on the separate boot partition."""

    pass


class InvalidGeneratedSyntaxError(Error):
    """grub-script-check rejected the generated configuration."""

    def __init__(self, message: str, diagnostic: str) -> None:
        super().__init__(message)
        self.diagnostic = diagnostic

    def __str__(self) -> str:
        if self.diagnostic:
            return f"{self.message}\n{self.diagnostic}"

        return self.message


class NoSnapshotsFoundError(Error):
    """No snapshot produced a boot entry."""

    pass


class MountError(Error):
    """Mount error."""

    pass


class UnmountTimeoutError(Error):
    """Unmounting did not succeed within the retry budget."""

    pass
