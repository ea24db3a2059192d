#
# Snapboot
# Copyright 2020, 2021 Thomas Müller
# All rights reserved.
#

import json
import jsonschema
import os
import pathlib
import sh
import typing

import snapboot.error
import snapboot.namespace


def _string_array() -> typing.Mapping[str, typing.Any]:
    return {
        "type": "array",
        "additionalItems": False,
        "items": {
            "type": "string"
        }
    }


def source(file: pathlib.Path) -> typing.Mapping[str, str]:
    """
    Sources a shell variable file in a clean environment, returning all
    variables it defines.  Returns an empty mapping if the file does not
    exist.

    Keyword arguments:
    file -- the file to source
    """
    if not pathlib.Path(file).is_file():
        return {}

    try:
        buffer = str(sh.env(
            "-i", "sh", "-c", 'set -a && . "$1" && env', "sh", str(file)))
    except sh.CommandNotFound:
        raise snapboot.error.ToolUnavailableError("sh")
    except sh.ErrorReturnCode:
        raise snapboot.error.InitializationError(
            f"Failed to source {file}")

    result = {}

    for line in buffer.splitlines():
        name, separator, value = line.partition("=")

        if separator and name.isidentifier():
            result[name] = value

    return result


class Configuration(object):
    """Snapboot configuration."""

    _schema = {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "disable": {
                "type": "boolean"
            },
            "show_snapshots_found": {
                "type": "boolean"
            },
            "show_total_snapshots_found": {
                "type": "boolean"
            },
            "submenu_name": {
                "type": "string"
            },
            "limit": {
                "type": "integer",
                "minimum": 0
            },
            "sort": {
                "type": "string",
                "pattern": r"^[+-]?(rootid|gen|ogen|path)"
                           r"(,[+-]?(rootid|gen|ogen|path))*$"
            },
            "title_format": _string_array(),
            "ignore": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "specific_path": _string_array(),
                    "prefix_path": _string_array(),
                    "snapshot_type": _string_array(),
                    "snapshot_description": _string_array()
                }
            },
            "custom_kernels": _string_array(),
            "custom_initramfs": _string_array(),
            "custom_microcode": _string_array(),
            "protection": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "authorized_users": _string_array(),
                    "unrestricted": {
                        "type": "boolean"
                    }
                }
            },
            "rootflags": {
                "type": "string"
            },
            "snapshot_kernel_parameters": {
                "type": "string"
            },
            "enable_cryptodisk": {
                "type": "boolean"
            },
            "fixed_subvolume_id": {
                "type": "boolean"
            },
            "override_boot_partition_detection": {
                "type": "boolean"
            },
            "grub_directory": {
                "type": "string"
            },
            "boot_directory": {
                "type": "string"
            },
            "script_check": {
                "type": "string"
            },
            "grub_defaults": {
                "type": "string"
            }
        }
    }

    _defaults = {
        "disable": False,
        "show_snapshots_found": True,
        "show_total_snapshots_found": True,
        "submenu_name": None,
        "limit": 50,
        "sort": "-rootid",
        "title_format": ["date", "snapshot", "type", "description"],
        "ignore": {
            "specific_path": [],
            "prefix_path": [],
            "snapshot_type": [],
            "snapshot_description": []
        },
        "custom_kernels": [],
        "custom_initramfs": [],
        "custom_microcode": [],
        "protection": {
            "authorized_users": [],
            "unrestricted": False
        },
        "rootflags": "",
        "snapshot_kernel_parameters": "",
        "enable_cryptodisk": False,
        "fixed_subvolume_id": False,
        "override_boot_partition_detection": False,
        "grub_directory": "/boot/grub",
        "boot_directory": "/boot",
        "script_check": "grub-script-check",
        "grub_defaults": "/etc/default/grub"
    }

    def __init__(self, path: typing.Optional[str] = None) -> None:
        # An explicit path wins over $SNAPBOOT_CONFIG, which wins over the
        # first (most important) XDG configuration directory.  Fall back on
        # /etc/xdg if no directory is defined.  See also
        # https://specifications.freedesktop.org/basedir-spec/
        # basedir-spec-latest.html.
        if path is None:
            path = os.getenv("SNAPBOOT_CONFIG")

        if path is None:
            xdg_config_dirs = os.getenv("XDG_CONFIG_DIRS")
            xdg_config_dir = xdg_config_dirs.split(":")[0] \
                if xdg_config_dirs else "/etc/xdg"
            path = pathlib.Path(
                xdg_config_dir) / "snapboot" / "snapboot.conf"

        self.path = pathlib.Path(path)

        # Every option has a default, so a missing configuration file is not
        # an error.
        try:
            with open(self.path, "r") as f:
                instance = json.load(
                    f, object_hook=lambda kwargs: snapboot.namespace.Namespace(
                        **kwargs))
        except FileNotFoundError:
            instance = snapboot.namespace.Namespace()
        except json.JSONDecodeError as e:
            raise snapboot.error.InitializationError(
                f"Invalid configuration file {self.path}: {e}")

        # Validate the configuration file using JSON Schema.
        try:
            jsonschema.validate(instance, Configuration._schema)
        except jsonschema.exceptions.ValidationError as e:
            raise snapboot.error.InitializationError(
                f"Invalid configuration: {e.message}")

        self._instance = snapboot.namespace.Namespace().merge(
            Configuration._defaults).merge(instance)

    def __getattr__(self, name: str) -> typing.Any:
        return getattr(self._instance, name)

    def submenu(self) -> str:
        """
        Returns the title of the top-level snapshot submenu, derived from
        /etc/os-release unless configured explicitly.
        """
        if self._instance.submenu_name:
            return self._instance.submenu_name

        distribution = source(pathlib.Path("/etc/os-release")).get("NAME")
        return f"{distribution or 'Linux'} snapshots"

    def grub_defaults(self) -> snapboot.namespace.Namespace:
        """
        Returns the GRUB default settings relevant for snapshot entries.
        Values exported by grub-mkconfig take precedence over the defaults
        file.
        """
        defaults = dict(source(pathlib.Path(self._instance.grub_defaults)))

        for name in [
                "GRUB_CMDLINE_LINUX", "GRUB_CMDLINE_LINUX_DEFAULT",
                "GRUB_DEVICE_UUID", "GRUB_DISABLE_LINUX_UUID"]:
            if name in os.environ:
                defaults[name] = os.environ[name]

        return snapboot.namespace.Namespace(**defaults)
