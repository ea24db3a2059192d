#
# Snapboot
# Copyright 2020, 2021 Thomas Müller
# All rights reserved.
#

import pathlib
import typing


class BootArtifactSet(typing.NamedTuple):
    """
    Kernel, initramfs and microcode images found in a boot directory.
    initramfs and microcode are None if no such image exists at all.
    """

    kernels: typing.Sequence[str]
    initramfs: typing.Optional[typing.Sequence[str]]
    microcode: typing.Optional[typing.Sequence[str]]


class KernelBinding(typing.NamedTuple):
    """A kernel together with the images to be loaded alongside it."""

    kernel: str
    initramfs: typing.Optional[str] = None
    microcode: typing.Optional[str] = None


def matches(kernel: str, initramfs: str) -> bool:
    """
    Returns True if the initramfs image belongs to the kernel.  Both are
    compared by the text after their first "-", e.g. vmlinuz-6.1 and
    initramfs-6.1.img.

    Keyword arguments:
    kernel    -- the kernel file name
    initramfs -- the initramfs file name
    """
    version = kernel.partition("-")[2]
    suffix = initramfs.partition("-")[2]

    if not version or not suffix:
        return False

    return suffix in [
        version, f"{version}.img", f"{version}-fallback.img",
        f"{version}.gz"]


class Resolver(object):
    """Finds boot images in a boot directory."""

    kernel_patterns = ["vmlinuz-*", "vmlinux-*", "linux-*", "kernel-*"]
    initramfs_patterns = ["initrd.img-*", "initramfs-*", "initrd-*"]
    microcode_patterns = [
        "intel-uc.img", "intel-ucode.img", "amd-uc.img", "amd-ucode.img",
        "early_ucode.cpio", "microcode.cpio"]

    def __init__(self, configuration: typing.Any) -> None:
        # Custom names extend the built-in patterns.
        self._kernel_patterns = \
            self.kernel_patterns + list(configuration.custom_kernels)
        self._initramfs_patterns = \
            self.initramfs_patterns + list(configuration.custom_initramfs)
        self._microcode_patterns = \
            self.microcode_patterns + list(configuration.custom_microcode)

    def resolve(self, boot_dir: pathlib.Path) -> BootArtifactSet:
        """
        Returns the boot images found in boot_dir.

        Keyword arguments:
        boot_dir -- the boot directory
        """
        return BootArtifactSet(
            self._glob(boot_dir, self._kernel_patterns),
            self._glob(boot_dir, self._initramfs_patterns) or None,
            self._glob(boot_dir, self._microcode_patterns) or None)

    @staticmethod
    def _glob(
            boot_dir: pathlib.Path,
            patterns: typing.Iterable[str]) -> typing.List[str]:
        result = []

        for pattern in patterns:
            for file in sorted(pathlib.Path(boot_dir).glob(pattern)):
                if file.is_file() and file.name not in result:
                    result.append(file.name)

        return result


def bind(
        boot_dir: pathlib.Path,
        artifacts: BootArtifactSet) -> typing.List[KernelBinding]:
    """
    Returns one binding per kernel, matching initramfs image and microcode
    image.  A kernel without a matching initramfs image is bound on its own.
    Kernels which are not regular files are skipped.

    Keyword arguments:
    boot_dir  -- the boot directory containing the images
    artifacts -- the images found in boot_dir
    """
    result = []

    for kernel in artifacts.kernels:
        if not (pathlib.Path(boot_dir) / kernel).is_file():
            continue

        if artifacts.initramfs is None:
            initramfs = [None]
        else:
            initramfs = [
                initramfs_ for initramfs_ in artifacts.initramfs
                if matches(kernel, initramfs_)] or [None]

        for initramfs_ in initramfs:
            for microcode in artifacts.microcode or [None]:
                result.append(KernelBinding(kernel, initramfs_, microcode))

    return result
