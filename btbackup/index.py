# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Index - Discover, select and delete backups in object storage.

The index is rebuilt on every call by listing every object under the
backup root and parsing "{table_id}/{timestamp}/{file}" out of each
name. It maps a table id to the ascending, de-duplicated list of
timestamps that have at least one file. Nothing is cached.
"""

from dataclasses import dataclass
from typing import AsyncIterator, Dict, List, Set

import structlog

from btbackup.clients import ObjectStore
from btbackup.errors import explain_no_backups
from btbackup.exceptions import NoBackupsFoundError, PartialDeleteError, StorageError
from btbackup.pagination import iter_pages
from btbackup.paths import BackupRoot, backup_object_prefix, parse_backup_object_name

logger = structlog.get_logger()

BackupIndex = Dict[str, List[int]]


@dataclass(frozen=True)
class BackupEntry:
    """One listed object that belongs to a backup."""

    table_id: str
    timestamp: int
    path: str


def _list_object_names(storage: ObjectStore, bucket: str, prefix: str) -> AsyncIterator[str]:
    async def fetch_page(token: str | None):
        return await storage.list_objects(bucket, prefix, token)

    return iter_pages(fetch_page)


async def iter_backup_entries(
    storage: ObjectStore, root: BackupRoot
) -> AsyncIterator[BackupEntry]:
    """
    Yield a BackupEntry for every object under `root` that is part of a backup.

    Objects that do not follow the backup layout (non-numeric timestamp,
    directory markers, files directly under the root) are skipped.
    """
    async for name in _list_object_names(storage, root.bucket, root.prefix):
        parsed = parse_backup_object_name(root.prefix, name)
        if parsed is None:
            logger.debug("object_skipped", bucket=root.bucket, name=name)
            continue
        table_id, timestamp = parsed
        yield BackupEntry(table_id=table_id, timestamp=timestamp, path=name)


async def list_backups(storage: ObjectStore, root: BackupRoot) -> BackupIndex:
    """
    Build the table -> timestamps index of a backup root.

    Args:
        storage: Object-storage client
        root: Backup root to scan

    Returns:
        Mapping of table id to ascending, distinct backup timestamps
    """
    timestamps: Dict[str, Set[int]] = {}
    objects = 0

    async for entry in iter_backup_entries(storage, root):
        objects += 1
        timestamps.setdefault(entry.table_id, set()).add(entry.timestamp)

    index = {table_id: sorted(values) for table_id, values in timestamps.items()}

    logger.info(
        "backups_listed",
        root=root.render(),
        objects=objects,
        tables=len(index),
    )

    return index


async def newest_backup_timestamp(
    storage: ObjectStore, root: BackupRoot, table_id: str
) -> int:
    """
    Find the most recent backup of a table.

    Timestamps are compared as integers, so 10 is newer than 9.

    Raises:
        NoBackupsFoundError: If the root holds no backups, or none for the table
    """
    index = await list_backups(storage, root)

    timestamps = index.get(table_id)
    if not timestamps:
        raise NoBackupsFoundError(
            explain_no_backups(table_id, root.render()),
            details={"table_id": table_id, "tables_with_backups": len(index)},
        )

    return timestamps[-1]


async def delete_backup(
    storage: ObjectStore, root: BackupRoot, table_id: str, timestamp: int
) -> int:
    """
    Delete every object of one backup.

    Objects are deleted one at a time. A backup that does not exist
    (nothing listed) is not an error. If a delete fails part-way the
    already deleted objects stay deleted.

    Args:
        storage: Object-storage client
        root: Backup root
        table_id: Table whose backup is deleted
        timestamp: Timestamp of the backup

    Returns:
        Number of objects deleted

    Raises:
        PartialDeleteError: If a delete fails after other objects were deleted
        StorageError: If listing fails, or the first delete fails
    """
    prefix = backup_object_prefix(root, table_id, timestamp)
    deleted = 0

    try:
        async for name in _list_object_names(storage, root.bucket, prefix):
            await storage.delete_object(root.bucket, name)
            deleted += 1
            logger.debug("backup_object_deleted", bucket=root.bucket, name=name)
    except StorageError as e:
        if deleted == 0:
            raise
        raise PartialDeleteError(
            f"Backup partially deleted: {e.message}",
            deleted_count=deleted,
            details={"table_id": table_id, "timestamp": timestamp},
        ) from e

    logger.info(
        "backup_deleted",
        bucket=root.bucket,
        prefix=prefix,
        deleted=deleted,
    )

    return deleted
