#
# Snapboot
# Copyright 2020, 2021 Thomas Müller
# All rights reserved.
#

import argh
import pathlib
import sys
import syslog
import typing

import snapboot
import snapboot.block
import snapboot.boot
import snapboot.boot.grub
import snapboot.btrfs
import snapboot.configuration
import snapboot.error
import snapboot.mount
import snapboot.snapshot
import snapboot.writer


BUG_REPORT = "If you think an error has occurred, please file a bug report " \
    "including the output of snapboot --version"


class Generator(object):
    """Snapshot boot menu generator."""

    # GRUB gets slow or fails to load menus beyond this number of entries.
    warning_threshold = 250

    def __init__(
            self,
            configuration: snapboot.configuration.Configuration) -> None:
        self._configuration = configuration
        self._boot_directory = configuration.boot_directory

        # Raises ToolUnavailableError if btrfs-progs are missing and
        # NotASupportedFilesystemError if / is not Btrfs.
        self._btrfs = snapboot.btrfs.Btrfs()
        self._btrfs.check("/")

        self._root = snapboot.block.Device("/")
        self._boot = snapboot.block.Device(self._boot_directory)

        if not self._root.uuid:
            raise snapboot.error.InitializationError(
                "Unable to determine the UUID of the root file system")

        # Boot images live inside every snapshot unless /boot is located on
        # another file system or subvolume than /.  A boot directory which is
        # not a subvolume itself is part of the root subvolume.
        root_subvolume = self._btrfs.subvolume_uuid("/")
        boot_subvolume = self._btrfs.subvolume_uuid(self._boot_directory) \
            or root_subvolume
        self.separate = configuration.override_boot_partition_detection or \
            self._root.uuid != self._boot.uuid or \
            root_subvolume != boot_subvolume

        grub_defaults = configuration.grub_defaults()
        kernel_parameters = " ".join(filter(None, [
            grub_defaults.GRUB_CMDLINE_LINUX,
            grub_defaults.GRUB_CMDLINE_LINUX_DEFAULT,
            configuration.snapshot_kernel_parameters]))

        self._writer = snapboot.writer.Writer(
            pathlib.Path(configuration.grub_directory),
            configuration.script_check)
        self._resolver = snapboot.boot.Resolver(configuration)
        self._builder = snapboot.boot.grub.MenuEntryBuilder(
            configuration, self._boot,
            snapboot.boot.grub.root_device(self._root, grub_defaults),
            kernel_parameters)
        self._boot_dir_grub = \
            snapboot.block.grub_mkrelpath(
                pathlib.Path(self._boot_directory)) \
            if self.separate else None

    def run(self) -> str:
        """
        Generates the snapshot menu, returning the grub.cfg fragment which
        includes it.
        """
        with snapboot.mount.Mount(self._root.uuid) as mount_point:
            return self.generate(mount_point)

    def generate(self, mount_point: pathlib.Path) -> str:
        """
        Generates the snapshot menu from the top-level subvolume mounted on
        mount_point, returning the grub.cfg fragment which includes it.

        Keyword arguments:
        mount_point -- the mount point of the top-level subvolume
        """
        configuration = self._configuration

        if self.separate:
            # All snapshots share the kernels of the boot partition.
            boot_dir = pathlib.Path(self._boot_directory)
            artifacts = self._resolver.resolve(boot_dir)

            if not artifacts.kernels:
                raise snapboot.error.NoBootableKernelsError(
                    f"Kernels not found in {boot_dir}")

        self._writer.stage()

        try:
            lister = snapboot.snapshot.SnapshotLister(
                self._btrfs, mount_point, configuration)
            snapshots = lister.list(
                None if self.separate else self._boot_directory)
            title = snapboot.boot.grub.Title(
                snapshots,
                snapboot.snapshot.Column.parse(configuration.title_format))
            count = 0

            for snapshot in snapshots:
                if count >= configuration.limit:
                    break

                snapshot_root = mount_point / snapshot.path

                if not self.separate:
                    boot_dir = snapshot_root / self._boot_directory.lstrip("/")
                    artifacts = self._resolver.resolve(boot_dir)

                    if not artifacts.kernels:
                        continue

                    boot_dir_grub = f"/{snapshot.path}/" \
                        f"{self._boot_directory.strip('/')}"
                else:
                    boot_dir_grub = self._boot_dir_grub

                text = self._builder.build(
                    snapshot, boot_dir_grub,
                    snapboot.boot.bind(boot_dir, artifacts), title,
                    snapboot.boot.grub.rootflags(
                        snapshot_root / "etc" / "fstab", snapshot.path,
                        configuration.rootflags))

                if not text:
                    continue

                self._writer.write(text)
                count += 1

                if configuration.show_snapshots_found:
                    print(f"Found snapshot: {title.row(snapshot)}",
                          file=sys.stderr)
        except BaseException:
            self._writer.abort()
            raise

        if self._builder.count > self.warning_threshold:
            message = f"Generated {self._builder.count} total GRUB entries. " \
                f"You might experience issues loading snapshots menu in GRUB."
            print(message, file=sys.stderr)
            syslog.syslog(syslog.LOG_WARNING, message)

        if configuration.show_total_snapshots_found and count:
            print(f"Found {count} snapshot(s)", file=sys.stderr)

        if not count:
            self._writer.discard()
            raise snapboot.error.NoSnapshotsFoundError("No snapshots found.")

        # Raises InvalidGeneratedSyntaxError after restoring the backup.
        self._writer.commit(title.header())

        protection = configuration.protection
        return self._writer.include(
            configuration.submenu(), protection.authorized_users,
            protection.unrestricted)


@argh.arg("-c", "--config", help="configuration file")
def generate(*, config: typing.Optional[str] = None) -> None:
    """Generates the GRUB menu entries for all Btrfs snapshots."""
    try:
        configuration = snapboot.configuration.Configuration(config)

        if configuration.disable:
            return

        print(Generator(configuration).run(), end="")
    except snapboot.error.Error as e:
        # A failing /etc/grub.d script aborts grub-mkconfig, so errors are
        # reported but never turned into a non-zero exit status.
        print(f"{e}\n{BUG_REPORT}", file=sys.stderr)
        syslog.syslog(syslog.LOG_ERR, str(e))


def main(args: typing.List[str] = None) -> None:
    """Entry point."""
    if args is None:
        args = sys.argv[1:]

    # Set syslog logging options.
    syslog.openlog("snapboot")

    # Process command line arguments.
    parser = argh.ArghParser(prog="snapboot")
    parser.add_argument(
        "-V", "--version", action="version",
        version=f"%(prog)s {snapboot.__version__}")
    argh.set_default_command(parser, generate)
    parser.dispatch(argv=args)


if __name__ == "__main__":
    main()
