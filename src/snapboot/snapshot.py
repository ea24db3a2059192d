#
# Snapboot
# Copyright 2020, 2021 Thomas Müller
# All rights reserved.
#

import enum
import json
import pathlib
import re
import typing
import xml.etree.ElementTree

import snapboot.btrfs


NOT_AVAILABLE = "N/A"


class Snapshot(typing.NamedTuple):
    """Btrfs snapshot."""

    date: str
    path: str
    type: str = NOT_AVAILABLE
    description: str = NOT_AVAILABLE


class Column(enum.Enum):
    """Snapshot title column."""

    DATE = "date"
    SNAPSHOT = "snapshot"
    TYPE = "type"
    DESCRIPTION = "description"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    def __call__(self, snapshot: Snapshot) -> str:
        return _accessors[self](snapshot)

    @classmethod
    def parse(cls, names: typing.Iterable[str]) -> typing.List["Column"]:
        """
        Returns the columns for a configured title format.  Names are case
        insensitive, "tag" is an alias for "type" and unknown names are
        skipped.  Falls back on all columns if nothing is left.

        Keyword arguments:
        names -- the configured column names
        """
        result = []

        for name in names:
            name = name.strip().lower()
            column = _aliases.get(name)

            if column is None:
                try:
                    column = cls(name)
                except ValueError:
                    continue

            result.append(column)

        return result or list(cls)


_accessors = {
    Column.DATE: lambda snapshot: snapshot.date,
    Column.SNAPSHOT: lambda snapshot: snapshot.path,
    Column.TYPE: lambda snapshot: snapshot.type,
    Column.DESCRIPTION: lambda snapshot: snapshot.description
}

_aliases = {
    "tag": Column.TYPE,
    "tags": Column.TYPE
}


def read_snapper_info(file: pathlib.Path) -> typing.Tuple[str, str]:
    """
    Returns type and description from a snapper info.xml file.

    Keyword arguments:
    file -- the info.xml file
    """
    try:
        root = xml.etree.ElementTree.parse(file).getroot()
    except (OSError, xml.etree.ElementTree.ParseError):
        return NOT_AVAILABLE, NOT_AVAILABLE

    return (root.findtext("type") or "").strip() or NOT_AVAILABLE, \
        (root.findtext("description") or "").strip() or NOT_AVAILABLE


def read_timeshift_info(file: pathlib.Path) -> typing.Tuple[str, str]:
    """
    Returns tags and comments from a timeshift info.json file.

    Keyword arguments:
    file -- the info.json file
    """
    try:
        with open(file, "r") as f:
            info = json.load(f)
    except (OSError, ValueError):
        return NOT_AVAILABLE, NOT_AVAILABLE

    if not isinstance(info, dict):
        return NOT_AVAILABLE, NOT_AVAILABLE

    def field(name: str) -> str:
        value = info.get(name)
        return value.strip() if isinstance(value, str) and value.strip() \
            else NOT_AVAILABLE

    return field("tags"), field("comments")


class SnapshotLister(object):
    """Lists the snapshots of the root file system."""

    _line = re.compile(
        r"\botime\s+(?P<date>\S+\s+\S+)\s+path\s+(?P<path>.*?)\s*$")

    # Sidecar files are tried in this order.
    _readers = [
        ("info.xml", read_snapper_info),
        ("info.json", read_timeshift_info)
    ]

    def __init__(
            self, btrfs: snapboot.btrfs.Btrfs, mount_point: pathlib.Path,
            configuration: typing.Any) -> None:
        self._btrfs = btrfs
        self._mount_point = pathlib.Path(mount_point)
        self._sort = configuration.sort
        self._ignore = configuration.ignore

    def list(
            self, boot_directory: typing.Optional[str] = None) -> \
            typing.List[Snapshot]:
        """
        Returns all snapshots which are neither deleted nor ignored, in the
        configured sort order.

        Keyword arguments:
        boot_directory -- if set, snapshots not containing this directory are
                          discarded (default None)
        """
        result = []

        for line in self._btrfs.list_snapshots("/", self._sort):
            m = self._line.search(line)

            if not m:
                continue

            path = m.group("path")

            if "DELETED" == path:
                continue

            # Remove the <FS_TREE> marker at the beginning of the path.
            if path.startswith("<FS_TREE>/"):
                path = path[len("<FS_TREE>/"):]

            if self._ignored_path(path):
                continue

            if boot_directory is not None and not (
                    self._mount_point / path /
                    boot_directory.lstrip("/")).is_dir():
                continue

            type, description = self._read_info(path)

            if type in self._ignore.snapshot_type or \
                    description in self._ignore.snapshot_description:
                continue

            result.append(Snapshot(m.group("date"), path, type, description))

        return result

    def _ignored_path(self, path: str) -> bool:
        if path in self._ignore.specific_path:
            return True

        return any(path.startswith(f"{prefix.rstrip('/')}/")
                   for prefix in self._ignore.prefix_path)

    def _read_info(self, path: str) -> typing.Tuple[str, str]:
        directory = self._mount_point / path.rpartition("/")[0]

        for name, reader in self._readers:
            file = directory / name

            if file.is_file() and file.stat().st_size > 0:
                return reader(file)

        return NOT_AVAILABLE, NOT_AVAILABLE
