# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Job Driver - Submit Dataflow template jobs and wait for them to finish.

Export jobs copy a table into SequenceFiles under the backup layout;
import jobs load those files back into a table. A submitted job is only
tracked by its id and the last state seen; the job name
("export-<table>-<ts>" / "import-<table>-<ts>") is the only link back to
the backup it belongs to.
"""

import asyncio
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict

import structlog

from btbackup.clients import JobService
from btbackup.config import PollPolicy
from btbackup.exceptions import (
    BTBackupError,
    JobFailedError,
    JobStatusError,
    JobTimeoutError,
    SubmissionError,
    UnrecognizedStateError,
)
from btbackup.paths import (
    BackupRoot,
    export_file_prefix,
    render_destination_path,
    render_source_pattern,
)

logger = structlog.get_logger()

EXPORT_TEMPLATE_PATH = "gs://dataflow-templates/latest/Cloud_Bigtable_to_GCS_SequenceFile"
IMPORT_TEMPLATE_PATH = "gs://dataflow-templates/latest/GCS_SequenceFile_to_Cloud_Bigtable"

SUCCESS_STATES = frozenset({"JOB_STATE_DONE"})

FAILURE_STATES = frozenset({
    "JOB_STATE_FAILED",
    "JOB_STATE_CANCELLED",
    "JOB_STATE_CANCELLING",
})

PROGRESS_STATES = frozenset({
    "JOB_STATE_STOPPED",  # created, not started yet
    "JOB_STATE_PENDING",
    "JOB_STATE_QUEUED",
    "JOB_STATE_RUNNING",
    "JOB_STATE_DRAINING",
    "JOB_STATE_RESOURCE_CLEANING_UP",
})


class JobStateClass(str, Enum):
    """Classification of an observed job state."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    IN_PROGRESS = "in_progress"
    UNRECOGNIZED = "unrecognized"


def normalize_state(state: str) -> str:
    """Map "done" / "Done" / "JOB_STATE_DONE" to "JOB_STATE_DONE"."""
    state = state.strip().upper()
    if not state.startswith("JOB_STATE_"):
        state = f"JOB_STATE_{state}"
    return state


def classify_state(state: str) -> JobStateClass:
    """Classify a job state name."""
    state = normalize_state(state)
    if state in SUCCESS_STATES:
        return JobStateClass.SUCCEEDED
    if state in FAILURE_STATES:
        return JobStateClass.FAILED
    if state in PROGRESS_STATES:
        return JobStateClass.IN_PROGRESS
    return JobStateClass.UNRECOGNIZED


@dataclass(frozen=True)
class JobSpec:
    """Everything needed to launch one template job."""

    project_id: str
    job_name: str
    template_gcs_path: str
    parameters: Dict[str, str]
    temp_location: str
    location: str

    # Table the job reads or writes, for error context
    table_id: str = ""


@dataclass
class JobHandle:
    """Reference to a submitted job and the last state observed for it."""

    job_id: str
    job_name: str
    project_id: str
    location: str
    table_id: str = ""
    last_state: str | None = None
    polls: int = field(default=0, compare=False)


def export_job_name(table_id: str, timestamp: int) -> str:
    return f"export-{table_id}-{timestamp}"


def import_job_name(table_id: str, timestamp: int) -> str:
    return f"import-{table_id}-{timestamp}"


def build_export_job(
    project_id: str,
    instance_id: str,
    table_id: str,
    root: BackupRoot,
    timestamp: int,
    temp_location: str,
    location: str,
) -> JobSpec:
    """
    Build the export job that backs up one table.

    Shards are written to "{root}{table_id}/{timestamp}/" with the file
    name prefix "{table_id}:".
    """
    return JobSpec(
        project_id=project_id,
        job_name=export_job_name(table_id, timestamp),
        template_gcs_path=EXPORT_TEMPLATE_PATH,
        parameters={
            "bigtableProject": project_id,
            "bigtableInstanceId": instance_id,
            "bigtableTableId": table_id,
            "destinationPath": render_destination_path(root, table_id, timestamp),
            "filenamePrefix": export_file_prefix(table_id),
        },
        temp_location=temp_location,
        location=location,
        table_id=table_id,
    )


def build_import_job(
    project_id: str,
    instance_id: str,
    table_id: str,
    root: BackupRoot,
    timestamp: int,
    temp_location: str,
    location: str,
) -> JobSpec:
    """Build the import job that restores one backup of one table."""
    return JobSpec(
        project_id=project_id,
        job_name=import_job_name(table_id, timestamp),
        template_gcs_path=IMPORT_TEMPLATE_PATH,
        parameters={
            "bigtableProject": project_id,
            "bigtableInstanceId": instance_id,
            "bigtableTableId": table_id,
            "sourcePattern": render_source_pattern(root, table_id, timestamp),
        },
        temp_location=temp_location,
        location=location,
        table_id=table_id,
    )


async def submit_job(jobs: JobService, spec: JobSpec) -> JobHandle:
    """
    Launch a template job.

    Args:
        jobs: Batch-execution client
        spec: Job to launch

    Returns:
        Handle of the created job

    Raises:
        SubmissionError: If the service rejects the job
    """
    try:
        job_id = await jobs.create_job_from_template(spec)
    except Exception as e:
        raise SubmissionError(
            f"Failed to submit job for table {spec.table_id}: {e}",
            details={"table_id": spec.table_id, "job_name": spec.job_name},
        ) from e

    logger.info(
        "job_submitted",
        job_id=job_id,
        job_name=spec.job_name,
        table_id=spec.table_id,
        template=spec.template_gcs_path,
    )

    return JobHandle(
        job_id=job_id,
        job_name=spec.job_name,
        project_id=spec.project_id,
        location=spec.location,
        table_id=spec.table_id,
    )


def _jittered(interval: float, jitter: float, rng: Callable[[], float]) -> float:
    if not jitter:
        return interval
    return interval * (1.0 + jitter * (2.0 * rng() - 1.0))


async def await_completion(
    jobs: JobService,
    handle: JobHandle,
    policy: PollPolicy | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
    rng: Callable[[], float] = random.random,
) -> JobHandle:
    """
    Poll a job until it reaches a terminal state.

    The state is fetched, classified, and the loop sleeps for the policy
    interval (grown by `backoff`, randomized by `jitter`) until the job
    is done or failed. States outside the known sets are tolerated up to
    `max_unrecognized_states` consecutive times, and `timeout` bounds the
    whole wait. Cancelling the awaiting task stops the wait.

    Args:
        jobs: Batch-execution client
        handle: Job to wait for (its last_state is updated)
        policy: Poll policy (defaults to a fixed 10s interval, no deadline)
        sleep: Sleep coroutine, injectable for tests
        clock: Monotonic clock, injectable for tests
        rng: Random source in [0, 1) used for jitter

    Returns:
        The handle, with last_state set to the success state

    Raises:
        JobFailedError: If the job reaches a failure state
        UnrecognizedStateError: If too many consecutive unknown states are seen
        JobTimeoutError: If the deadline passes first
        JobStatusError: If the state cannot be fetched
    """
    policy = policy or PollPolicy()
    started = clock()
    interval = policy.interval
    unrecognized_streak = 0

    while True:
        try:
            raw_state = await jobs.get_job_state(
                handle.project_id, handle.location, handle.job_id
            )
        except BTBackupError:
            raise
        except Exception as e:
            raise JobStatusError(
                f"Failed to fetch state of job {handle.job_name}: {e}",
                details={"job_id": handle.job_id, "table_id": handle.table_id},
            ) from e

        state = normalize_state(raw_state)
        handle.last_state = state
        handle.polls += 1
        kind = classify_state(state)

        logger.debug(
            "job_state_polled",
            job_id=handle.job_id,
            job_name=handle.job_name,
            state=state,
            polls=handle.polls,
        )

        if kind is JobStateClass.FAILED:
            raise JobFailedError(
                f"Job {handle.job_name} ended in state {state}",
                state=state,
                details={"job_id": handle.job_id, "table_id": handle.table_id},
            )

        if kind is JobStateClass.SUCCEEDED:
            logger.info(
                "job_completed",
                job_id=handle.job_id,
                job_name=handle.job_name,
                polls=handle.polls,
            )
            return handle

        if kind is JobStateClass.UNRECOGNIZED:
            unrecognized_streak += 1
            logger.warning(
                "job_state_unrecognized",
                job_id=handle.job_id,
                state=state,
                streak=unrecognized_streak,
            )
            limit = policy.max_unrecognized_states
            if limit is not None and unrecognized_streak >= limit:
                raise UnrecognizedStateError(
                    f"Job {handle.job_name} reported unrecognized state {state} "
                    f"{unrecognized_streak} times in a row",
                    state=state,
                    details={"job_id": handle.job_id, "table_id": handle.table_id},
                )
        else:
            unrecognized_streak = 0

        delay = _jittered(interval, policy.jitter, rng)
        if policy.timeout is not None:
            remaining = policy.timeout - (clock() - started)
            if remaining <= 0:
                raise JobTimeoutError(
                    f"Job {handle.job_name} did not finish within {policy.timeout:g}s",
                    details={
                        "job_id": handle.job_id,
                        "table_id": handle.table_id,
                        "last_state": state,
                    },
                )
            delay = min(delay, remaining)

        await sleep(delay)
        interval = policy.next_interval(interval)
