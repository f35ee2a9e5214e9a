# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bigtable Backup Core - Orchestrators for the four commands.

Each orchestrator composes table resolution, the backup index and the
job driver into the behavior of one command:

- run_create_backup: resolve tables, submit one export job per table
- run_list_backups: build the table -> timestamps index
- run_restore_backup: pick a backup (newest by default), submit an import job
- run_delete_backup: delete every object of one backup

Tables are processed one at a time, in listing order. Nothing is rolled
back when a later step fails.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import List

import structlog
from ulid import ULID

from btbackup.clients import Clients
from btbackup.config import (
    CreateBackupConfig,
    DeleteBackupConfig,
    ListBackupsConfig,
    RestoreBackupConfig,
)
from btbackup.errors import explain_no_tables
from btbackup.exceptions import BTBackupError, NoTablesFoundError
from btbackup.index import BackupIndex, delete_backup, list_backups, newest_backup_timestamp
from btbackup.jobs import (
    JobHandle,
    await_completion,
    build_export_job,
    build_import_job,
    submit_job,
)
from btbackup.tables import effective_table_prefix, list_table_ids

logger = structlog.get_logger()


@dataclass
class CreateBackupResult:
    """Result of a create run."""

    operation_id: str  # ULID
    backup_timestamp: int
    table_ids: List[str]
    jobs: List[JobHandle]
    waited: bool
    errors: List[str] = field(default_factory=list)
    failed_tables: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return not self.errors


@dataclass
class ListBackupsResult:
    """Result of a list-backups run."""

    operation_id: str
    backups: BackupIndex
    duration_seconds: float = 0.0


@dataclass
class RestoreBackupResult:
    """Result of a restore run."""

    operation_id: str
    table_id: str
    backup_timestamp: int
    job: JobHandle
    selected_newest: bool
    waited: bool
    duration_seconds: float = 0.0


@dataclass
class DeleteBackupResult:
    """Result of a delete-backup run."""

    operation_id: str
    table_id: str
    backup_timestamp: int
    deleted_count: int


async def run_create_backup(
    config: CreateBackupConfig,
    clients: Clients,
    now: float | None = None,
) -> CreateBackupResult:
    """
    Back up every table matching the configured prefix.

    All tables of one run share a single backup timestamp (the invocation
    time, in unix seconds), which is also part of every job name. For each
    table an export job is submitted and, if `wait_for_completion` is set,
    polled until it finishes before moving to the next table.

    With `stop_on_first_error` (the default) the first failing table
    aborts the run and its error is raised; tables after it are not
    processed. Otherwise failures are collected in the result and the
    remaining tables are still processed.

    Args:
        config: Create configuration
        clients: Service clients
        now: Unix time to use for the backup timestamp and periodic prefix

    Returns:
        CreateBackupResult with one job handle per submitted table

    Raises:
        NoTablesFoundError: If no table matches; no job is submitted
        SubmissionError: If a job is rejected (stop_on_first_error only)
        JobFailedError: If a waited-for job fails (stop_on_first_error only)
    """
    operation_id = str(ULID())
    start_time = datetime.now(UTC)
    if now is None:
        now = time.time()
    backup_timestamp = int(now)
    root = config.backup_root
    log = logger.bind(operation_id=operation_id)

    log.info(
        "create_backup_started",
        instance_id=config.instance_id,
        prefix=config.table_id_prefix,
        destination=root.render(),
        backup_timestamp=backup_timestamp,
        wait=config.wait_for_completion,
    )

    # Step 1: Resolve the tables to back up
    table_ids = await list_table_ids(
        clients.tables,
        config.project_id,
        config.instance_id,
        config.table_id_prefix,
        config.periodic_table_duration,
        now=now,
    )
    if not table_ids:
        prefix = effective_table_prefix(
            config.table_id_prefix, config.periodic_table_duration, now
        )
        raise NoTablesFoundError(
            explain_no_tables(config.instance_id, prefix),
            details={"project_id": config.project_id, "prefix": prefix},
        )

    # Step 2: One export job per table, strictly in order
    jobs: List[JobHandle] = []
    errors: List[str] = []
    failed_tables: List[str] = []

    for table_id in table_ids:
        spec = build_export_job(
            config.project_id,
            config.instance_id,
            table_id,
            root,
            backup_timestamp,
            config.temp_prefix,
            config.location,
        )
        try:
            handle = await submit_job(clients.jobs, spec)
            jobs.append(handle)
            if config.wait_for_completion:
                await await_completion(clients.jobs, handle, config.poll)
        except BTBackupError as e:
            log.error(
                "table_backup_failed",
                table_id=table_id,
                error=str(e),
                submitted=len(jobs),
            )
            if config.stop_on_first_error:
                raise
            errors.append(f"{table_id}: {e}")
            failed_tables.append(table_id)

    duration = (datetime.now(UTC) - start_time).total_seconds()

    result = CreateBackupResult(
        operation_id=operation_id,
        backup_timestamp=backup_timestamp,
        table_ids=table_ids,
        jobs=jobs,
        waited=config.wait_for_completion,
        errors=errors,
        failed_tables=failed_tables,
        duration_seconds=duration,
    )

    log.info(
        "create_backup_completed",
        tables=len(table_ids),
        submitted=len(jobs),
        failed=len(failed_tables),
        duration=duration,
    )

    return result


async def run_list_backups(
    config: ListBackupsConfig,
    clients: Clients,
) -> ListBackupsResult:
    """
    List the backups under the configured backup path.

    Returns:
        ListBackupsResult whose `backups` maps table id to ascending timestamps
    """
    operation_id = str(ULID())
    start_time = datetime.now(UTC)
    root = config.backup_root
    log = logger.bind(operation_id=operation_id)

    log.info("list_backups_started", backup_path=root.render())

    backups = await list_backups(clients.storage, root)

    duration = (datetime.now(UTC) - start_time).total_seconds()

    log.info(
        "list_backups_completed",
        tables=len(backups),
        backups=sum(len(timestamps) for timestamps in backups.values()),
        duration=duration,
    )

    return ListBackupsResult(
        operation_id=operation_id,
        backups=backups,
        duration_seconds=duration,
    )


async def run_restore_backup(
    config: RestoreBackupConfig,
    clients: Clients,
) -> RestoreBackupResult:
    """
    Restore one backup of one table.

    Without an explicit timestamp (None or 0) the newest backup of the
    table is looked up in the backup index first. One import job is then
    submitted; it is only waited for if `wait_for_completion` is set.

    Raises:
        NoBackupsFoundError: If no timestamp was given and the table has no backup
        SubmissionError: If the import job is rejected
    """
    operation_id = str(ULID())
    start_time = datetime.now(UTC)
    root = config.backup_root
    log = logger.bind(operation_id=operation_id, table_id=config.table_id)

    log.info(
        "restore_backup_started",
        instance_id=config.instance_id,
        backup_path=root.render(),
        backup_timestamp=config.backup_timestamp,
        wait=config.wait_for_completion,
    )

    timestamp = config.backup_timestamp
    selected_newest = not timestamp
    if selected_newest:
        timestamp = await newest_backup_timestamp(clients.storage, root, config.table_id)
        log.info("newest_backup_selected", backup_timestamp=timestamp)

    spec = build_import_job(
        config.project_id,
        config.instance_id,
        config.table_id,
        root,
        timestamp,
        config.temp_prefix,
        config.location,
    )
    handle = await submit_job(clients.jobs, spec)

    if config.wait_for_completion:
        await await_completion(clients.jobs, handle, config.poll)

    duration = (datetime.now(UTC) - start_time).total_seconds()

    log.info(
        "restore_backup_completed",
        backup_timestamp=timestamp,
        job_id=handle.job_id,
        waited=config.wait_for_completion,
        duration=duration,
    )

    return RestoreBackupResult(
        operation_id=operation_id,
        table_id=config.table_id,
        backup_timestamp=timestamp,
        job=handle,
        selected_newest=selected_newest,
        waited=config.wait_for_completion,
        duration_seconds=duration,
    )


async def run_delete_backup(
    config: DeleteBackupConfig,
    clients: Clients,
) -> DeleteBackupResult:
    """
    Delete one backup of one table.

    Deleting a backup that does not exist succeeds with zero deletions.
    """
    operation_id = str(ULID())
    root = config.backup_root
    log = logger.bind(operation_id=operation_id, table_id=config.table_id)

    log.info(
        "delete_backup_started",
        backup_path=root.render(),
        backup_timestamp=config.backup_timestamp,
    )

    deleted = await delete_backup(
        clients.storage,
        root,
        config.table_id,
        config.backup_timestamp,
    )

    log.info(
        "delete_backup_completed",
        backup_timestamp=config.backup_timestamp,
        deleted=deleted,
    )

    return DeleteBackupResult(
        operation_id=operation_id,
        table_id=config.table_id,
        backup_timestamp=config.backup_timestamp,
        deleted_count=deleted,
    )
