# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Example nightly backup job using the btbackup library API.

Backs up every table matching a prefix, then deletes backups of those
tables older than a retention window. Suitable for a cron job or a
Kubernetes CronJob.

Run with:
    python examples/nightly_backup.py

Environment variables:
    BIGTABLE_PROJECT: GCP project of the Bigtable instance
    BIGTABLE_INSTANCE: Bigtable instance id
    BIGTABLE_TABLE_PREFIX: Prefix of the tables to back up (default: "")
    BACKUP_PATH: Backup root, e.g. gs://my-backups/bigtable
    TEMP_PREFIX: Dataflow temp location, e.g. gs://my-backups/tmp
    RETENTION_DAYS: Days of backups to keep (default: 14)
    BTBACKUP_DATAFLOW_LOCATION / BTBACKUP_POLL_*: see btbackup.env
"""

import asyncio
import os
import sys
import time

import structlog

from btbackup import (
    CreateBackupConfig,
    DeleteBackupConfig,
    ListBackupsConfig,
    build_clients,
    run_create_backup,
    run_delete_backup,
    run_list_backups,
)
from btbackup.cli import LogFormat, configure_logging
from btbackup.env import dataflow_location_from_env, poll_policy_from_env
from btbackup.exceptions import BTBackupError

logger = structlog.get_logger()


def create_backup_config() -> CreateBackupConfig:
    """Create the backup configuration from environment variables."""
    return CreateBackupConfig(
        project_id=os.getenv("BIGTABLE_PROJECT", ""),
        instance_id=os.getenv("BIGTABLE_INSTANCE", ""),
        table_id_prefix=os.getenv("BIGTABLE_TABLE_PREFIX", ""),
        destination_path=os.getenv("BACKUP_PATH", ""),
        temp_prefix=os.getenv("TEMP_PREFIX", ""),
        location=dataflow_location_from_env(),
        wait_for_completion=True,
        stop_on_first_error=False,
        poll=poll_policy_from_env(),
    )


async def prune_old_backups(config: CreateBackupConfig, table_ids, clients, retention_days: int) -> int:
    """Delete backups of `table_ids` older than the retention window."""
    cutoff = int(time.time()) - retention_days * 86400
    listed = await run_list_backups(ListBackupsConfig(backup_path=config.destination_path), clients)

    pruned = 0
    for table_id in table_ids:
        for timestamp in listed.backups.get(table_id, []):
            if timestamp >= cutoff:
                continue
            result = await run_delete_backup(
                DeleteBackupConfig(
                    table_id=table_id,
                    backup_path=config.destination_path,
                    backup_timestamp=timestamp,
                ),
                clients,
            )
            logger.info(
                "backup_pruned",
                table_id=table_id,
                backup_timestamp=timestamp,
                objects=result.deleted_count,
            )
            pruned += 1
    return pruned


async def main() -> int:
    configure_logging(verbosity=1, log_format=LogFormat.JSON)
    retention_days = int(os.getenv("RETENTION_DAYS", "14"))

    try:
        config = create_backup_config()
        clients = build_clients(config.project_id)

        result = await run_create_backup(config, clients)
        logger.info(
            "nightly_backup_finished",
            backup_timestamp=result.backup_timestamp,
            tables=len(result.table_ids),
            failed=result.failed_tables,
        )

        # Only prune tables whose backup succeeded tonight
        healthy = [t for t in result.table_ids if t not in result.failed_tables]
        pruned = await prune_old_backups(config, healthy, clients, retention_days)
        logger.info("nightly_prune_finished", pruned=pruned)
    except BTBackupError as e:
        logger.error("nightly_backup_failed", error=str(e))
        return 1

    return 0 if result.succeeded else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
