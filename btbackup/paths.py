# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup path codec - Pure functions over the backup storage layout.

Backups are stored as:

    {bucket}/{prefix}{table_id}/{unix_timestamp}/{table_id}:{shard-file}

This layout is shared by create, list-backups, restore and delete-backup,
so every path is built and parsed here. Nothing in this module does I/O.
"""

from dataclasses import dataclass
from typing import Tuple
import re

from btbackup.errors import explain_empty_backup_path
from btbackup.exceptions import InvalidPathError

GCS_SCHEME = "gs://"

# Separates the table id from the shard name in exported file names
TABLE_ID_SEPARATOR = ":"

_TIMESTAMP_SEGMENT = re.compile(r"[0-9]+")
_MAX_INT64 = 2**63 - 1


@dataclass(frozen=True)
class BackupRoot:
    """A bucket plus an object prefix that is either empty or ends with '/'."""

    bucket: str
    prefix: str = ""

    def render(self) -> str:
        """Render the root as a gs:// URL that parses back to this root."""
        if self.prefix:
            return f"{GCS_SCHEME}{self.bucket}/{self.prefix}"
        return f"{GCS_SCHEME}{self.bucket}"

    def __str__(self) -> str:
        return self.render()


def parse_backup_root(path: str) -> BackupRoot:
    """
    Split a user-supplied backup path into bucket and object prefix.

    A leading "gs://" is stripped, the remainder is split on the first
    "/", and the prefix gets a trailing "/" unless it is empty. Anything
    with a bucket name is accepted; the storage service does the rest of
    the validation.

    Args:
        path: Path such as "gs://bucket/backups", "bucket/a/b/" or "bucket"

    Returns:
        The parsed BackupRoot

    Raises:
        InvalidPathError: If the bucket name is empty
    """
    remainder = path[len(GCS_SCHEME):] if path.startswith(GCS_SCHEME) else path
    bucket, _, prefix = remainder.partition("/")

    if not bucket:
        raise InvalidPathError(explain_empty_backup_path(path), details={"path": path})

    if prefix and not prefix.endswith("/"):
        prefix += "/"

    return BackupRoot(bucket=bucket, prefix=prefix)


def export_file_prefix(table_id: str) -> str:
    """File name prefix of every shard exported for a table."""
    return f"{table_id}{TABLE_ID_SEPARATOR}"


def backup_object_prefix(root: BackupRoot, table_id: str, timestamp: int) -> str:
    """Object name prefix (without bucket) of one backup of one table."""
    return f"{root.prefix}{table_id}/{timestamp}/"


def render_backup_object_path(root: BackupRoot, table_id: str, timestamp: int) -> str:
    """
    Render the bucket-qualified directory of one backup.

    Returns:
        "{bucket}/{prefix}{table_id}/{timestamp}/"
    """
    return f"{root.bucket}/{backup_object_prefix(root, table_id, timestamp)}"


def render_destination_path(root: BackupRoot, table_id: str, timestamp: int) -> str:
    """gs:// directory an export job writes a table's shards into."""
    return f"{GCS_SCHEME}{render_backup_object_path(root, table_id, timestamp)}"


def render_source_pattern(root: BackupRoot, table_id: str, timestamp: int) -> str:
    """gs:// glob matching every shard of one backup, for import jobs."""
    return f"{render_destination_path(root, table_id, timestamp)}{export_file_prefix(table_id)}*"


def parse_backup_object_name(prefix: str, object_name: str) -> Tuple[str, int] | None:
    """
    Recover (table_id, timestamp) from a listed object name.

    The name, minus the root prefix, is split into at most three
    "/"-separated segments. The object counts as part of a backup only
    when the third segment is non-empty and the second is all digits.
    Directory markers ("t/100/") and foreign objects return None.

    Args:
        prefix: Object prefix of the backup root
        object_name: Full object name as listed from the bucket

    Returns:
        (table_id, timestamp) or None if the object is not part of a backup
    """
    if not object_name.startswith(prefix):
        return None

    segments = object_name[len(prefix):].split("/", 2)
    if len(segments) < 3 or segments[2] == "":
        return None

    table_id, timestamp = segments[0], segments[1]
    if not _TIMESTAMP_SEGMENT.fullmatch(timestamp):
        return None

    value = int(timestamp)
    if value > _MAX_INT64:
        return None

    return (table_id, value)
