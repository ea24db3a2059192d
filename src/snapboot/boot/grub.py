#
# Snapboot
# Copyright 2020, 2021 Thomas Müller
# All rights reserved.
#

import pathlib
import re
import typing

import snapboot.block
import snapboot.boot
import snapboot.snapshot


def quote(value: str) -> str:
    """
    Returns value as a single-quoted GRUB word.

    Keyword arguments:
    value -- the string to quote
    """
    return "'" + value.replace("'", "'\\''") + "'"


def quote_path(value: str) -> str:
    """
    Returns value as a double-quoted GRUB word.

    Keyword arguments:
    value -- the path to quote
    """
    return '"' + re.sub(r'([\\"$])', r"\\\1", value) + '"'


def root_device(
        device: snapboot.block.Device, grub_defaults: typing.Any,
        by_uuid: pathlib.Path = pathlib.Path("/dev/disk/by-uuid")) -> str:
    """
    Returns the root= kernel parameter value.  The file system UUID is
    preferred over the device path unless UUIDs are disabled, unknown or the
    device sits on LVM.

    Keyword arguments:
    device        -- the root device
    grub_defaults -- the GRUB default settings
    by_uuid       -- the directory of UUID device links
                     (default /dev/disk/by-uuid)
    """
    uuid = grub_defaults.GRUB_DEVICE_UUID or device.uuid

    if device.path and (
            not uuid or "true" == grub_defaults.GRUB_DISABLE_LINUX_UUID or
            not (by_uuid / uuid).exists() or
            (pathlib.Path(device.path).exists() and
             device.uses_abstraction("lvm"))):
        return device.path

    return f"UUID={uuid}"


def rootflags(
        fstab: pathlib.Path, path: str, extra: str = "") -> str:
    """
    Returns the rootflags= kernel parameter for a snapshot.  The mount
    options of / are taken from the snapshot's own fstab, minus any
    subvolume selection, followed by extra and the snapshot subvolume.

    Keyword arguments:
    fstab -- the fstab of the snapshot
    path  -- the snapshot path
    extra -- additional, comma separated mount options (default "")
    """
    flags = []

    try:
        with open(fstab, "r") as f:
            for line in f:
                fields = line.split()

                if len(fields) >= 4 and not fields[0].startswith("#") and \
                        "/" == fields[1] and "btrfs" == fields[2]:
                    flags = [
                        option for option in fields[3].split(",") if option
                        and not option.startswith(("subvol=", "subvolid="))]
                    break
    except (FileNotFoundError, NotADirectoryError):
        pass

    flags += [option for option in extra.split(",") if option]
    flags.append(f"subvol={quote_path(path)}")
    return f"rootflags={','.join(flags)}"


class Title(object):
    """Pipe-delimited snapshot titles with aligned columns."""

    def __init__(
            self, snapshots: typing.Iterable[snapboot.snapshot.Snapshot],
            columns: typing.Sequence[snapboot.snapshot.Column]) -> None:
        self.columns = list(columns)
        snapshots = list(snapshots)
        self.widths = {
            column: max([len(column(snapshot)) for snapshot in snapshots],
                        default=0)
            for column in self.columns}

    def row(self, snapshot: snapboot.snapshot.Snapshot) -> str:
        """Returns the title of a snapshot submenu."""
        return "|" + "".join(
            f" {column(snapshot):<{self.widths[column]}} |"
            for column in self.columns)

    def heading(self) -> str:
        """Returns the column labels, left-aligned like the rows."""
        return "|" + "".join(
            f" {column.label:<{self.widths[column]}} |"
            for column in self.columns)

    def header(self) -> str:
        """Returns the column labels centered over the rows."""
        return "|" + "".join(
            f" {column.label:^{self.widths[column]}} |"
            for column in self.columns)


class MenuEntryBuilder(object):
    """Builds GRUB submenus and menu entries for snapshots."""

    classes = "--class snapshots --class gnu-linux --class gnu --class os"

    def __init__(
            self, configuration: typing.Any, boot: snapboot.block.Device,
            root: str, kernel_parameters: str) -> None:
        self._boot = boot
        self._root = root
        self._kernel_parameters = " ".join(kernel_parameters.split())
        self._id = f"gnulinux-snapshots-{boot.uuid}"
        self._modules = [boot.file_system_type or "btrfs"]

        if configuration.enable_cryptodisk:
            self._modules += ["cryptodisk", "luks", "luks2"]

        self._fixed_subvolume_id = configuration.fixed_subvolume_id
        self.count = 0

    def build(
            self, snapshot: snapboot.snapshot.Snapshot, boot_dir_grub: str,
            bindings: typing.Iterable[snapboot.boot.KernelBinding],
            title: Title, rootflags: str) -> str:
        """
        Returns a submenu holding one menu entry per binding, or an empty
        string if there are no bindings.

        Keyword arguments:
        snapshot      -- the snapshot to boot into
        boot_dir_grub -- the boot directory as seen by GRUB
        bindings      -- the kernel bindings
        title         -- the title formatter
        rootflags     -- the rootflags= kernel parameter
        """
        entries = [
            self.entry(snapshot, boot_dir_grub, binding, rootflags)
            for binding in bindings]

        if not entries:
            return ""

        return f"submenu {quote(title.row(snapshot))} {{\n" \
            f"    submenu {quote(title.heading())} {{ echo }}\n" + \
            "".join(entries) + "}\n"

    def entry(
            self, snapshot: snapboot.snapshot.Snapshot, boot_dir_grub: str,
            binding: snapboot.boot.KernelBinding, rootflags: str) -> str:
        """
        Returns a single menu entry.

        Keyword arguments:
        snapshot      -- the snapshot to boot into
        boot_dir_grub -- the boot directory as seen by GRUB
        binding       -- the kernel binding
        rootflags     -- the rootflags= kernel parameter
        """
        def path(name: str) -> str:
            return quote_path(f"{boot_dir_grub.rstrip('/')}/{name}")

        images = [
            image for image in [binding.microcode, binding.initramfs]
            if image]
        title = " & ".join([binding.kernel] + images[::-1])
        parameters = " ".join(filter(None, [
            f"root={self._root}", self._kernel_parameters, rootflags]))
        lines = [
            f"menuentry {quote(f'  {title}')} {self.classes} "
            f"$menuentry_id_option {quote(self._id)} {{",
            "    if [ x$feature_all_video_module = xy ]; then",
            "    insmod all_video",
            "    fi",
            "    set gfxpayload=keep"]
        lines += [f"    insmod {module}" for module in self._modules]
        lines += [
            "    if [ x$feature_platform_search_hint = xy ]; then",
            f"        search --no-floppy --fs-uuid --set=root "
            f"{self._boot.hints + ' ' if self._boot.hints else ''}"
            f"{self._boot.uuid}",
            "    else",
            f"        search --no-floppy --fs-uuid --set=root "
            f"{self._boot.uuid}",
            "    fi"]

        if self._fixed_subvolume_id:
            lines.append("    set btrfs_subvolid=5")

        lines += [
            f"    echo "
            f"{quote(f'Loading Snapshot: {snapshot.date} {snapshot.path}')}",
            f"    echo {quote(f'Loading Kernel: {binding.kernel} ...')}",
            f"    linux {path(binding.kernel)} {parameters}"]

        if binding.microcode and binding.initramfs:
            message = f"Loading Microcode & Initramfs: {binding.microcode} " \
                f"{binding.initramfs} ..."
        elif binding.microcode:
            message = f"Loading Microcode: {binding.microcode} ..."
        elif binding.initramfs:
            message = f"Loading Initramfs: {binding.initramfs} ..."
        else:
            message = None

        if message:
            lines += [
                f"    echo {quote(message)}",
                f"    initrd {' '.join(path(image) for image in images)}"]

        lines.append("}")
        self.count += 1
        return "".join(f"    {line}\n" for line in lines)
