# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Table resolution - Which tables of an instance a command acts on.

Tables are matched by literal prefix on their short id (the last segment
of the fully qualified name). For periodic tables, i.e. tables rotated
every N seconds with the period number as a suffix, the period of `now`
is appended to the prefix so only the active table matches.
"""

import time
from datetime import timedelta
from typing import List

import structlog

from btbackup.clients import TableAdmin
from btbackup.pagination import iter_pages

logger = structlog.get_logger()


def instance_parent(project_id: str, instance_id: str) -> str:
    """Resource name of a Bigtable instance."""
    return f"projects/{project_id}/instances/{instance_id}"


def table_id_from_name(name: str) -> str:
    """Short table id from "projects/p/instances/i/tables/<id>"."""
    return name[name.rfind("/") + 1:]


def effective_table_prefix(
    id_or_prefix: str,
    periodic_table_duration: timedelta = timedelta(0),
    now: float | None = None,
) -> str:
    """
    Compute the prefix tables must match.

    With a zero duration this is `id_or_prefix` unchanged. Otherwise the
    duration is truncated to whole seconds and the current period number,
    floor(now / period_seconds), is appended.

    Args:
        id_or_prefix: Table id or prefix given by the user
        periodic_table_duration: Rotation period of periodic tables
        now: Unix time to use (defaults to the current time)

    Returns:
        The prefix to match table ids against
    """
    period_seconds = int(periodic_table_duration.total_seconds())
    if period_seconds <= 0:
        return id_or_prefix

    if now is None:
        now = time.time()
    return f"{id_or_prefix}{int(now) // period_seconds}"


async def list_table_ids(
    tables: TableAdmin,
    project_id: str,
    instance_id: str,
    id_or_prefix: str,
    periodic_table_duration: timedelta = timedelta(0),
    now: float | None = None,
) -> List[str]:
    """
    List the ids of all tables in an instance that match a prefix.

    Every page of the table listing is read. Order follows the listing;
    nothing is re-sorted. An empty result is returned as-is, callers
    decide whether that is an error.

    Args:
        tables: Table-metadata client
        project_id: GCP project of the instance
        instance_id: Bigtable instance id
        id_or_prefix: Table id or prefix
        periodic_table_duration: Rotation period (0 disables)
        now: Unix time used for the periodic suffix

    Returns:
        Matching table ids
    """
    parent = instance_parent(project_id, instance_id)
    prefix = effective_table_prefix(id_or_prefix, periodic_table_duration, now)

    async def fetch_page(token: str | None):
        return await tables.list_tables(parent, token)

    matched: List[str] = []
    seen = 0
    async for name in iter_pages(fetch_page):
        seen += 1
        table_id = table_id_from_name(name)
        if table_id.startswith(prefix):
            matched.append(table_id)

    logger.info(
        "tables_resolved",
        parent=parent,
        prefix=prefix,
        listed=seen,
        matched=len(matched),
    )

    return matched
