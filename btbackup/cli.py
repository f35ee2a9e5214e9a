# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bigtable Backup CLI - create, list-backups, restore and delete-backup.

Command output goes to stdout; logs go to stderr so that
`list-backups -o json` can be piped. Any btbackup error ends the process
with exit code 1 and a one-line message.
"""

import asyncio
import json
import logging
import sys
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Optional

import structlog
import typer

from btbackup.clients import build_clients
from btbackup.config import (
    CreateBackupConfig,
    DeleteBackupConfig,
    ListBackupsConfig,
    OutputFormat,
    PollPolicy,
    RestoreBackupConfig,
    parse_duration,
)
from btbackup.core import (
    run_create_backup,
    run_delete_backup,
    run_list_backups,
    run_restore_backup,
)
from btbackup.env import dataflow_location_from_env, poll_policy_from_env
from btbackup.errors import explain_invalid_output_format
from btbackup.exceptions import BTBackupError, InvalidInputError
from btbackup.index import BackupIndex

logger = structlog.get_logger()

app = typer.Typer(
    name="bigtable-backup",
    help="A command-line for creating and restoring backups from bigtable.",
    add_completion=False,
    no_args_is_help=True,
)


class LogFormat(str, Enum):
    CONSOLE = "console"
    JSON = "json"


def configure_logging(verbosity: int = 0, log_format: LogFormat = LogFormat.CONSOLE) -> None:
    """
    Route structlog output to stderr at a level picked by -v flags.

    0 -> WARNING, 1 -> INFO, 2+ -> DEBUG.
    """
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbosity, logging.DEBUG)

    if log_format == LogFormat.JSON:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


@contextmanager
def _command_errors(command: str, action: str) -> Iterator[None]:
    try:
        yield
    except BTBackupError as e:
        logger.error("command_failed", command=command, error=str(e))
        typer.secho(f"Error {action}: {e}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1)


def _poll_policy(
    poll_interval: str | None,
    poll_timeout: str | None,
    max_unrecognized_states: int | None,
) -> PollPolicy:
    """Environment defaults with command-line overrides applied."""
    policy = poll_policy_from_env()
    updates = {}

    if poll_interval:
        interval = parse_duration(poll_interval).total_seconds()
        updates["interval"] = interval
        updates["max_interval"] = max(policy.max_interval, interval)
    if poll_timeout:
        updates["timeout"] = parse_duration(poll_timeout).total_seconds()
    if max_unrecognized_states is not None:
        updates["max_unrecognized_states"] = max_unrecognized_states

    return policy.with_updates(**updates) if updates else policy


def render_backups(index: BackupIndex, output_format: OutputFormat) -> str:
    """
    Render a backup index for display.

    JSON maps table id to its timestamp array. Text lists one table per
    line as "table: ts1,ts2", sorted by table id.
    """
    if output_format == OutputFormat.JSON:
        return json.dumps(index, sort_keys=True)

    if not index:
        return "No backups found"

    lines = ["TableName: Backup Timestamps"]
    for table_id in sorted(index):
        lines.append(f"{table_id}: {','.join(str(ts) for ts in index[table_id])}")
    return "\n".join(lines)


@app.callback()
def main(
    verbose: int = typer.Option(
        0, "--verbose", "-v", count=True, help="Log progress to stderr (-vv for debug)"
    ),
    log_format: LogFormat = typer.Option(
        LogFormat.CONSOLE, "--log-format", help="Log renderer for stderr"
    ),
) -> None:
    configure_logging(verbose, log_format)


@app.command("create")
def create_command(
    project_id: str = typer.Option(
        ...,
        "--bigtable-project-id",
        help="The ID of the GCP project of the Cloud Bigtable instance that you want to read data from",
    ),
    instance_id: str = typer.Option(
        ...,
        "--bigtable-instance-id",
        help="The ID of the Cloud Bigtable instance that contains the table",
    ),
    table_id_prefix: str = typer.Option(
        ...,
        "--bigtable-table-id-prefix",
        help="Prefix to find the IDs of the Cloud Bigtable table to export",
    ),
    destination_path: str = typer.Option(
        ...,
        "--destination-path",
        help='GCS path where data should be written. For example, "gs://mybucket/somefolder/"',
    ),
    temp_prefix: str = typer.Option(
        ...,
        "--temp-prefix",
        help="Path and filename prefix for writing temporary files. ex: gs://MyBucket/tmp",
    ),
    periodic_table_duration: str = typer.Option(
        "0s",
        "--periodic-table-duration",
        help="Periodic config set for cortex/loki tables. Used for backing up currently active periodic table",
    ),
    location: Optional[str] = typer.Option(
        None, "--dataflow-location", help="Dataflow region to run the export jobs in"
    ),
    wait: bool = typer.Option(
        True, "--wait/--no-wait", help="Wait for each export job to finish before the next table"
    ),
    continue_on_error: bool = typer.Option(
        False, "--continue-on-error", help="Keep backing up the remaining tables after a failure"
    ),
    poll_interval: Optional[str] = typer.Option(None, "--poll-interval", help="Time between job state polls"),
    poll_timeout: Optional[str] = typer.Option(None, "--poll-timeout", help="Give up waiting for a job after this long"),
    max_unrecognized_states: Optional[int] = typer.Option(
        None, "--max-unrecognized-states", help="Fail after this many consecutive unknown job states"
    ),
) -> None:
    """Create backups for specific table or all the tables for given prefix."""
    with _command_errors("create", "creating backups"):
        config = CreateBackupConfig(
            project_id=project_id,
            instance_id=instance_id,
            table_id_prefix=table_id_prefix,
            destination_path=destination_path,
            temp_prefix=temp_prefix,
            periodic_table_duration=parse_duration(periodic_table_duration),
            location=location or dataflow_location_from_env(),
            wait_for_completion=wait,
            stop_on_first_error=not continue_on_error,
            poll=_poll_policy(poll_interval, poll_timeout, max_unrecognized_states),
        )
        result = asyncio.run(run_create_backup(config, build_clients(project_id)))

    verb = "Completed" if result.waited else "Submitted"
    for job in result.jobs:
        if job.table_id in result.failed_tables:
            continue
        typer.echo(f"{verb} export job {job.job_name} ({job.job_id}) for table {job.table_id}")

    if not result.succeeded:
        for error in result.errors:
            typer.secho(f"Error creating backups: {error}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1)


@app.command("list-backups")
def list_backups_command(
    backup_path: str = typer.Option(..., "--backup-path", help="GCS path where backups can be found"),
    output: str = typer.Option(
        "text", "--output", "-o", help="Output Format. Support json, text. Defaults to text"
    ),
) -> None:
    """List the backup timestamps of every table under a backup path."""
    with _command_errors("list-backups", "listing backups"):
        try:
            output_format = OutputFormat(output.lower())
        except ValueError:
            raise InvalidInputError(explain_invalid_output_format(output)) from None

        config = ListBackupsConfig(backup_path=backup_path, output_format=output_format)
        result = asyncio.run(run_list_backups(config, build_clients()))

    typer.echo(render_backups(result.backups, config.output_format))


@app.command("restore")
def restore_command(
    backup_path: str = typer.Option(..., "--backup-path", help="GCS path where backups can be found"),
    project_id: str = typer.Option(
        ...,
        "--bigtable-project-id",
        help="The ID of the GCP project of the Cloud Bigtable instance that you want to write data to",
    ),
    instance_id: str = typer.Option(
        ...,
        "--bigtable-instance-id",
        help="The ID of the Cloud Bigtable instance that contains the table",
    ),
    table_id: str = typer.Option(..., "--bigtable-table-id", help="ID of the Cloud Bigtable table to restore"),
    temp_prefix: str = typer.Option(
        ...,
        "--temp-prefix",
        help="Path and filename prefix for writing temporary files. ex: gs://MyBucket/tmp",
    ),
    backup_timestamp: int = typer.Option(
        0,
        "--backup-timestamp",
        help="Timestamp of the backup to be restored. If not set, most recent backup would be restored",
    ),
    location: Optional[str] = typer.Option(
        None, "--dataflow-location", help="Dataflow region to run the import job in"
    ),
    wait: bool = typer.Option(False, "--wait/--no-wait", help="Wait for the import job to finish"),
    poll_interval: Optional[str] = typer.Option(None, "--poll-interval", help="Time between job state polls"),
    poll_timeout: Optional[str] = typer.Option(None, "--poll-timeout", help="Give up waiting for the job after this long"),
    max_unrecognized_states: Optional[int] = typer.Option(
        None, "--max-unrecognized-states", help="Fail after this many consecutive unknown job states"
    ),
) -> None:
    """Restore backups of specific bigtableTableId created at a timestamp."""
    with _command_errors("restore", "restoring backup"):
        config = RestoreBackupConfig(
            backup_path=backup_path,
            project_id=project_id,
            instance_id=instance_id,
            table_id=table_id,
            temp_prefix=temp_prefix,
            backup_timestamp=backup_timestamp or None,
            location=location or dataflow_location_from_env(),
            wait_for_completion=wait,
            poll=_poll_policy(poll_interval, poll_timeout, max_unrecognized_states),
        )
        result = asyncio.run(run_restore_backup(config, build_clients(project_id)))

    if result.selected_newest:
        typer.echo(f"Newest backup for {result.table_id} is for timestamp {result.backup_timestamp}")
    typer.echo(
        f"Created job for restoring {result.table_id} with timestamp {result.backup_timestamp}"
        f" ({result.job.job_id})"
    )
    if result.waited:
        typer.echo(f"Restore of {result.table_id} completed")


@app.command("delete-backup")
def delete_backup_command(
    table_id: str = typer.Option(..., "--bigtable-table-id", help="ID of the bigtable table to delete its backup"),
    backup_path: str = typer.Option(..., "--backup-path", help="GCS path where backups can be found"),
    backup_timestamp: int = typer.Option(..., "--backup-timestamp", help="Timestamp of the backup to delete"),
) -> None:
    """Delete backup of a table with timestamp."""
    with _command_errors("delete-backup", "deleting backup"):
        config = DeleteBackupConfig(
            table_id=table_id,
            backup_path=backup_path,
            backup_timestamp=backup_timestamp,
        )
        result = asyncio.run(run_delete_backup(config, build_clients()))

    typer.echo(
        f"Backup deleted for table {result.table_id} with timestamp {result.backup_timestamp}"
        f" ({result.deleted_count} objects)"
    )
